from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.config import settings
from drive_backend.domain.collaborators import (
    ID_KIND_SHARE,
    ID_KIND_USER,
    ShareCollaborators,
    ShareRecord,
    bounded_call,
)
from drive_backend.domain.errors import InvalidIdError, ShareExpiredError
from drive_backend.domain.share_redirect import share_short_url
from drive_backend.domain.share_status import (
    ShareStatus,
    is_share_unlocked,
    load_share_for_info,
)
from drive_backend.models import PROFILE_SHARES_HIDE, PROFILE_SHARES_PUBLIC_ONLY
from drive_backend.repositories import users_repo
from drive_backend.schemas_shares import ShareInfo, ShareListResponse, ShareOwnerInfo

logger = logging.getLogger(__name__)


def build_share_info(
    collaborators: ShareCollaborators,
    share: ShareRecord,
    *,
    unlocked: bool,
    expired: bool = False,
) -> ShareInfo:
    codec = collaborators.id_codec
    opaque_id = codec.encode(share.id, ID_KIND_SHARE)

    owner = None
    if share.owner is not None:
        owner = ShareOwnerInfo(
            id=codec.encode(share.owner.id, ID_KIND_USER),
            nickname=share.owner.nickname,
        )

    root = share.root
    return ShareInfo(
        id=opaque_id,
        url=share_short_url(collaborators.site.site_url(), opaque_id),
        owner=owner,
        source_type=root.kind if root is not None else None,
        name=root.name if (root is not None and unlocked) else None,
        unlocked=unlocked,
        password_protected=share.password_protected,
        expired=expired,
        views=share.views,
        downloads=share.downloads,
        remain_downloads=share.remain_downloads,
        expires_at=share.expires_at,
        created_at=share.created_at,
    )


async def get_share_info(
    collaborators: ShareCollaborators,
    *,
    opaque_id: str,
    password: str,
    viewer_id: int | None,
    count_views: bool,
) -> ShareInfo:
    try:
        share_id = collaborators.id_codec.decode(opaque_id, ID_KIND_SHARE)
    except InvalidIdError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="share not found")

    loaded = await load_share_for_info(
        collaborators,
        share_id,
        viewer_id=viewer_id,
        password=password,
        count_views=count_views,
    )
    if loaded.status is ShareStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="share not found")
    if loaded.status is ShareStatus.ERROR:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="failed to get share",
        )
    if loaded.status is ShareStatus.EXPIRED:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="share expired")

    share = loaded.share
    if share is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="share not found")
    return build_share_info(collaborators, share, unlocked=loaded.unlocked)


def _is_expired(collaborators: ShareCollaborators, share: ShareRecord) -> bool:
    try:
        collaborators.check_valid(share)
    except ShareExpiredError:
        return True
    return False


def _clamp_page(limit: int, offset: int) -> tuple[int, int]:
    limit = max(1, min(limit, settings.share_list_max_page_size))
    return limit, max(0, offset)


async def list_user_shares(
    collaborators: ShareCollaborators,
    *,
    user_id: int,
    limit: int,
    offset: int,
) -> ShareListResponse:
    limit, offset = _clamp_page(limit, offset)
    rows = await bounded_call(
        collaborators.shares.list_by_user(user_id, public_only=False, limit=limit, offset=offset),
        collaborators.timeout_seconds,
    )
    return ShareListResponse(
        shares=[
            build_share_info(
                collaborators,
                row,
                unlocked=True,
                expired=_is_expired(collaborators, row),
            )
            for row in rows
        ],
        limit=limit,
        offset=offset,
    )


async def list_profile_shares(
    session: AsyncSession,
    collaborators: ShareCollaborators,
    *,
    opaque_user_id: str,
    viewer_id: int | None,
    limit: int,
    offset: int,
) -> ShareListResponse:
    try:
        user_id = collaborators.id_codec.decode(opaque_user_id, ID_KIND_USER)
    except InvalidIdError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")

    target = await users_repo.get_user(session, user_id=user_id)
    if target is None or not target.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")

    if target.share_links_in_profile == PROFILE_SHARES_HIDE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="user has disabled share links in profile",
        )

    public_only = target.share_links_in_profile == PROFILE_SHARES_PUBLIC_ONLY
    limit, offset = _clamp_page(limit, offset)
    rows = await bounded_call(
        collaborators.shares.list_by_user(
            user_id, public_only=public_only, limit=limit, offset=offset
        ),
        collaborators.timeout_seconds,
    )

    shares: list[ShareInfo] = []
    for row in rows:
        if _is_expired(collaborators, row):
            continue
        unlocked = is_share_unlocked(row, "", viewer_id)
        shares.append(build_share_info(collaborators, row, unlocked=unlocked))
    logger.debug("profile shares user_id=%s listed=%s", user_id, len(shares))
    return ShareListResponse(shares=shares, limit=limit, offset=offset)
