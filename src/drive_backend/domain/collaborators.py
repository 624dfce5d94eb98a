"""Value types and collaborator contracts consumed by the share preview core.

Storage, permissions, ID obfuscation and site settings live outside the core;
they are handed in explicitly through `ShareCollaborators` so every dependency
of a resolution is visible at the call site.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal, Protocol, TypeVar

from drive_backend.domain.errors import ShareExpiredError

if TYPE_CHECKING:
    from drive_backend.domain.share_uri import ShareUri


EntryKind = Literal["file", "folder"]

ID_KIND_SHARE = "share"
ID_KIND_USER = "user"

PERMISSION_SHARE_DOWNLOAD = 1 << 0


@dataclass(frozen=True)
class Entry:
    id: int
    kind: EntryKind
    name: str
    size: int = 0
    display_name: str | None = None


@dataclass(frozen=True)
class ShareOwner:
    id: int
    nickname: str = ""


@dataclass(frozen=True)
class ShareRecord:
    id: int
    password: str = field(default="", repr=False)
    created_at: datetime | None = None
    expires_at: datetime | None = None
    remain_downloads: int | None = None
    views: int = 0
    downloads: int = 0
    owner: ShareOwner | None = None
    root: Entry | None = None

    @property
    def password_protected(self) -> bool:
        return self.password != ""


@dataclass(frozen=True)
class PermissionSet:
    bits: int = 0

    def enabled(self, flag: int) -> bool:
        return self.bits & flag == flag


@dataclass(frozen=True)
class SiteIdentity:
    name: str
    description: str = ""


@dataclass(frozen=True)
class PwaIcons:
    large: str = ""
    medium: str = ""


class ShareStore(Protocol):
    async def get_by_id(self, share_id: int, *, with_associations: bool = True) -> ShareRecord:
        """Raises ShareNotFoundError when no row matches."""
        ...

    async def get_by_opaque_id(self, opaque_id: str) -> ShareRecord: ...

    async def mark_viewed(self, share: ShareRecord) -> None: ...

    async def list_by_user(
        self, user_id: int, *, public_only: bool, limit: int, offset: int
    ) -> list[ShareRecord]: ...


class EntryResolver(Protocol):
    async def resolve(self, uri: "ShareUri", *, viewer_id: int | None) -> Entry:
        """Raises EntryNotFoundError when the address does not exist."""
        ...


class PermissionGate(Protocol):
    async def anonymous_group_permissions(self) -> PermissionSet: ...


class IdCodec(Protocol):
    def encode(self, raw_id: int, kind: str) -> str: ...

    def decode(self, opaque: str, kind: str) -> int:
        """Raises InvalidIdError for anything that was not produced by encode()."""
        ...


class SiteSettingsProvider(Protocol):
    def site_basic(self) -> SiteIdentity: ...

    def site_url(self) -> str: ...

    def pwa_icons(self) -> PwaIcons: ...


ShareValidator = Callable[[ShareRecord], None]


def _assume_utc(dt: datetime | None) -> datetime | None:
    # SQLite may return naive datetimes even when the column was declared with timezone=True.
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def check_share_valid(share: ShareRecord, *, now: datetime | None = None) -> None:
    current = now or datetime.now(timezone.utc)
    expires_at = _assume_utc(share.expires_at)
    if expires_at is not None and expires_at <= current:
        raise ShareExpiredError("share expired")
    if share.remain_downloads is not None and share.remain_downloads <= 0:
        raise ShareExpiredError("share download quota exhausted")


@dataclass(frozen=True)
class ShareCollaborators:
    shares: ShareStore
    entries: EntryResolver
    permissions: PermissionGate
    id_codec: IdCodec
    site: SiteSettingsProvider
    check_valid: ShareValidator = check_share_valid
    # Applied to each store / resolver call; None disables the bound.
    timeout_seconds: float | None = None


_T = TypeVar("_T")


async def bounded_call(awaitable: Awaitable[_T], timeout_seconds: float | None) -> _T:
    """Await a collaborator call, raising TimeoutError once the bound elapses."""
    if timeout_seconds is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout_seconds)
