from __future__ import annotations

import enum
import hmac
import logging
from dataclasses import dataclass

from drive_backend.domain.collaborators import ShareCollaborators, ShareRecord, bounded_call
from drive_backend.domain.errors import ShareExpiredError, ShareNotFoundError

logger = logging.getLogger(__name__)


class ShareStatus(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    # Store/transport failure, distinct from a missing share.
    ERROR = "error"


@dataclass(frozen=True)
class ShareLoadResult:
    status: ShareStatus
    share: ShareRecord | None = None
    unlocked: bool = False
    # Retained for diagnostics only; never rendered.
    error: BaseException | None = None


def is_share_unlocked(share: ShareRecord, password: str, viewer_id: int | None) -> bool:
    if not share.password:
        return True
    if hmac.compare_digest(share.password.encode("utf-8"), (password or "").encode("utf-8")):
        return True
    if viewer_id is not None and share.owner is not None and share.owner.id == viewer_id:
        return True
    return False


async def load_share_for_info(
    collaborators: ShareCollaborators,
    share_id: int,
    *,
    viewer_id: int | None,
    password: str,
    count_views: bool = False,
) -> ShareLoadResult:
    """Load a share with its owner and root entry and classify it.

    Not-found and store failures are reported through the status, never raised.
    `count_views` is only set by the info endpoint; previews never count.
    """
    try:
        share = await bounded_call(
            collaborators.shares.get_by_id(share_id, with_associations=True),
            collaborators.timeout_seconds,
        )
    except ShareNotFoundError:
        return ShareLoadResult(status=ShareStatus.NOT_FOUND)
    except Exception as exc:
        logger.warning("share lookup failed share_id=%s", share_id, exc_info=True)
        return ShareLoadResult(status=ShareStatus.ERROR, error=exc)

    try:
        collaborators.check_valid(share)
    except ShareExpiredError as exc:
        return ShareLoadResult(status=ShareStatus.EXPIRED, share=share, error=exc)

    if count_views:
        await _mark_viewed_best_effort(collaborators, share)

    unlocked = is_share_unlocked(share, password, viewer_id)
    return ShareLoadResult(status=ShareStatus.OK, share=share, unlocked=unlocked)


async def _mark_viewed_best_effort(collaborators: ShareCollaborators, share: ShareRecord) -> None:
    try:
        await bounded_call(collaborators.shares.mark_viewed(share), collaborators.timeout_seconds)
    except Exception:
        logger.warning("share view counting failed share_id=%s", share.id, exc_info=True)
