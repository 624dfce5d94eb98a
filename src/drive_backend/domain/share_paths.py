from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass

from drive_backend.domain.collaborators import (
    Entry,
    EntryKind,
    ShareCollaborators,
    ShareRecord,
    bounded_call,
)
from drive_backend.domain.errors import EntryNotFoundError
from drive_backend.domain.share_uri import ShareUri

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "Shared File"
DEFAULT_FOLDER_NAME = "Shared Folder"


@dataclass(frozen=True)
class ResolvedEntry:
    kind: EntryKind
    display_name: str
    # Only meaningful for files.
    size: int = 0
    extension: str = ""

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"


def sanitize_share_path(raw: str | None) -> str:
    """Normalize a caller-supplied sub-path so it cannot escape the share root."""
    if not raw:
        return ""
    cleaned = posixpath.normpath("/" + raw)
    return cleaned.lstrip("/")


def file_extension(name: str) -> str:
    base = name.rsplit("/", 1)[-1]
    _, dot, ext = base.rpartition(".")
    return ext if dot else ""


def resolve_display_name(entry: Entry) -> str:
    if entry.display_name:
        return entry.display_name
    if entry.name:
        return entry.name
    return DEFAULT_FOLDER_NAME if entry.kind == "folder" else DEFAULT_FILE_NAME


def to_resolved_entry(entry: Entry) -> ResolvedEntry:
    name = resolve_display_name(entry)
    if entry.kind == "folder":
        return ResolvedEntry(kind="folder", display_name=name)
    return ResolvedEntry(
        kind="file",
        display_name=name,
        size=entry.size,
        extension=file_extension(name),
    )


async def resolve_share_path(
    collaborators: ShareCollaborators,
    share: ShareRecord,
    *,
    opaque_id: str,
    password: str,
    sub_path: str,
    viewer_id: int | None,
    scheme: str,
) -> ResolvedEntry:
    """Return the entry a preview describes: the share root or a leaf below it.

    The share must already be known to be unlocked and valid. Raises
    EntryNotFoundError when the leaf is missing, or when a sub-path is given
    for a share whose root is not a folder.
    """
    root = share.root
    if root is None:
        raise EntryNotFoundError("share has no root entry")

    sub_path = sanitize_share_path(sub_path)
    if not sub_path:
        return to_resolved_entry(root)

    if root.kind != "folder":
        raise EntryNotFoundError("sub-path requested on a file share")

    address = ShareUri.for_share(opaque_id, password, scheme=scheme).join_raw(sub_path)
    try:
        entry = await bounded_call(
            collaborators.entries.resolve(address, viewer_id=viewer_id),
            collaborators.timeout_seconds,
        )
    except EntryNotFoundError:
        raise
    except Exception as exc:
        logger.warning("share path resolution failed share_id=%s", share.id, exc_info=True)
        raise EntryNotFoundError("share path resolution failed") from exc

    return to_resolved_entry(entry)
