from __future__ import annotations

import inspect
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass, field

import pytest

from drive_backend.db import dispose_engine_cache, get_engine
from drive_backend.domain.collaborators import (
    PERMISSION_SHARE_DOWNLOAD,
    Entry,
    PermissionSet,
    PwaIcons,
    ShareCollaborators,
    ShareRecord,
    SiteIdentity,
)
from drive_backend.domain.errors import EntryNotFoundError, ShareNotFoundError
from drive_backend.domain.share_uri import ShareUri
from drive_backend.integrations.hashid_codec import HmacIdCodec


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
async def _dispose_engine_cache_per_test(  # pyright: ignore[reportUnusedFunction]
    anyio_backend: object,  # noqa: ARG001
) -> AsyncGenerator[None, None]:
    # Dispose the cached AsyncEngine (aiosqlite worker thread) while the
    # per-test event loop is still alive.
    _ = anyio_backend
    yield

    try:
        engine = get_engine()
    except Exception:
        engine = None

    if engine is not None:
        try:
            result = engine.dispose()
            if inspect.isawaitable(result):
                await result
        except Exception:
            # Best-effort: fall back to sync pool dispose below.
            pass

    dispose_engine_cache()
    get_engine.cache_clear()


def pytest_sessionfinish(session: object, exitstatus: int) -> None:  # noqa: ARG001
    _ = session, exitstatus
    dispose_engine_cache()


# In-memory collaborators for the share preview core.


@dataclass
class FakeShareStore:
    shares: dict[int, ShareRecord] = field(default_factory=dict)
    fail_with: Exception | None = None
    fail_mark_viewed: bool = False
    viewed: list[int] = field(default_factory=list)

    async def get_by_id(self, share_id: int, *, with_associations: bool = True) -> ShareRecord:
        if self.fail_with is not None:
            raise self.fail_with
        share = self.shares.get(share_id)
        if share is None:
            raise ShareNotFoundError("share not found")
        return share

    async def get_by_opaque_id(self, opaque_id: str) -> ShareRecord:
        raise ShareNotFoundError("not supported by the fake store")

    async def mark_viewed(self, share: ShareRecord) -> None:
        if self.fail_mark_viewed:
            raise RuntimeError("counter unavailable")
        self.viewed.append(share.id)

    async def list_by_user(
        self, user_id: int, *, public_only: bool, limit: int, offset: int
    ) -> list[ShareRecord]:
        rows = [
            s
            for s in self.shares.values()
            if s.owner is not None and s.owner.id == user_id and (not public_only or not s.password)
        ]
        return rows[offset : offset + limit]


@dataclass
class FakeEntryResolver:
    # share-relative path -> entry
    entries: dict[str, Entry] = field(default_factory=dict)
    calls: list[ShareUri] = field(default_factory=list)
    fail_with: Exception | None = None

    async def resolve(self, uri: ShareUri, *, viewer_id: int | None) -> Entry:
        self.calls.append(uri)
        if self.fail_with is not None:
            raise self.fail_with
        entry = self.entries.get(uri.path)
        if entry is None:
            raise EntryNotFoundError(uri.path)
        return entry


@dataclass
class FakePermissionGate:
    bits: int = PERMISSION_SHARE_DOWNLOAD
    fail: bool = False

    async def anonymous_group_permissions(self) -> PermissionSet:
        if self.fail:
            raise LookupError("anonymous group missing")
        return PermissionSet(bits=self.bits)


@dataclass
class FakeSite:
    name: str = "Drive"
    description: str = "Files for everyone"
    url: str = "https://drive.example.com/"
    icons: PwaIcons = field(default_factory=lambda: PwaIcons(large="/static/img/logo512.png"))

    def site_basic(self) -> SiteIdentity:
        return SiteIdentity(name=self.name, description=self.description)

    def site_url(self) -> str:
        return self.url

    def pwa_icons(self) -> PwaIcons:
        return self.icons


@dataclass
class FakeBundle:
    collaborators: ShareCollaborators
    store: FakeShareStore
    entries: FakeEntryResolver
    permissions: FakePermissionGate
    codec: HmacIdCodec

    def share_id(self, raw_id: int) -> str:
        return self.codec.encode(raw_id, "share")


@pytest.fixture
def make_collaborators() -> Callable[..., FakeBundle]:
    def _make(
        *shares: ShareRecord,
        entries: dict[str, Entry] | None = None,
        anonymous_bits: int = PERMISSION_SHARE_DOWNLOAD,
        site: FakeSite | None = None,
    ) -> FakeBundle:
        store = FakeShareStore(shares={s.id: s for s in shares})
        resolver = FakeEntryResolver(entries=dict(entries or {}))
        gate = FakePermissionGate(bits=anonymous_bits)
        codec = HmacIdCodec(secret="test-secret")
        collaborators = ShareCollaborators(
            shares=store,
            entries=resolver,
            permissions=gate,
            id_codec=codec,
            site=site or FakeSite(),
        )
        return FakeBundle(
            collaborators=collaborators,
            store=store,
            entries=resolver,
            permissions=gate,
            codec=codec,
        )

    return _make
