from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.config import settings
from drive_backend.db import get_session
from drive_backend.deps import get_current_user, get_optional_user, get_share_collaborators
from drive_backend.domain.collaborators import ShareCollaborators
from drive_backend.domain.errors import PreviewRenderError
from drive_backend.domain.share_redirect import build_redirect_url
from drive_backend.models import User
from drive_backend.routers.share_links import og_html_response
from drive_backend.schemas_shares import ShareInfo, ShareListResponse
from drive_backend.services import shares_service
from drive_backend.services.share_preview_service import PreviewOptions, render_og_page

router = APIRouter(tags=["shares"])

logger = logging.getLogger(__name__)


def _viewer_id(user: User | None) -> int | None:
    if user is None or user.id is None:
        return None
    return int(user.id)


# Query keys consumed by the preview endpoint itself; the password already
# travels inside the share address.
_PREVIEW_OWN_KEYS = frozenset({"password"})


def _forwarded_query(request: Request) -> list[tuple[str, str]]:
    return [(k, v) for k, v in request.query_params.multi_items() if k not in _PREVIEW_OWN_KEYS]


@router.get("/shares/{share_id}/info", response_model=ShareInfo)
async def get_share_info(
    share_id: str,
    password: str = Query(default=""),
    count_views: bool = Query(default=False),
    viewer: User | None = Depends(get_optional_user),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
):
    return await shares_service.get_share_info(
        collaborators,
        opaque_id=share_id,
        password=password,
        viewer_id=_viewer_id(viewer),
        count_views=count_views,
    )


@router.get("/shares/{share_id}/preview", response_class=HTMLResponse)
async def preview_share(
    request: Request,
    share_id: str,
    password: str = Query(default=""),
    path: str = Query(default=""),
    viewer: User | None = Depends(get_optional_user),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
):
    """Render the social preview document for any client, crawler or not."""

    if len(share_id) > settings.share_max_id_length or len(password) > settings.share_max_password_length:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="share id or password too long")

    forwarded = _forwarded_query(request)
    request_id = getattr(request.state, "request_id", None)
    try:
        result = await render_og_page(
            collaborators,
            PreviewOptions(
                id=share_id,
                password=password,
                share_path=path,
                extra_query=forwarded,
                viewer_id=_viewer_id(viewer),
                request_id=request_id,
            ),
            scheme=settings.share_uri_scheme,
        )
    except PreviewRenderError:
        logger.warning(
            "share preview render failed, falling back to redirect request_id=%s",
            request_id,
            exc_info=True,
        )
        target = build_redirect_url(
            collaborators.site.site_url(),
            share_id,
            password,
            path,
            forwarded,
            scheme=settings.share_uri_scheme,
        )
        return RedirectResponse(target, status_code=status.HTTP_302_FOUND)
    return og_html_response(result.html)


@router.get("/shares", response_model=ShareListResponse)
async def list_my_shares(
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
):
    user_id = user.id
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="user id missing")
    return await shares_service.list_user_shares(
        collaborators, user_id=int(user_id), limit=limit, offset=offset
    )


@router.get("/users/{user_id}/shares", response_model=ShareListResponse)
async def list_profile_shares(
    user_id: str,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    viewer: User | None = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
):
    return await shares_service.list_profile_shares(
        session,
        collaborators,
        opaque_user_id=user_id,
        viewer_id=_viewer_id(viewer),
        limit=limit,
        offset=offset,
    )
