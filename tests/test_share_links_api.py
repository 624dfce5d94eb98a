from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import timedelta
from pathlib import Path
from urllib.parse import parse_qs, quote, urlsplit

import httpx
import pytest

from drive_backend.config import settings
from drive_backend.db import get_engine, init_db, reset_engine_cache, session_scope
from drive_backend.deps import get_id_codec
from drive_backend.domain.crawlers import CrawlerClassifier
from drive_backend.main import app  # pyright: ignore[reportMissingTypeStubs]
from drive_backend.models import (
    FILE_TYPE_FILE,
    FILE_TYPE_FOLDER,
    PROFILE_SHARES_HIDE,
    File,
    Group,
    Share,
    User,
    utc_now,
)
from drive_backend.repositories import shares_repo

CRAWLER_UA = "facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)"
BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/126.0 Safari/537.36"


def _make_async_client() -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


def _share_id(raw_id: int) -> str:
    return get_id_codec().encode(raw_id, "share")


async def _seed() -> dict[str, int]:
    async with session_scope() as session:
        session.add(Group(id=settings.anonymous_group_id, name="Anonymous", permissions=1))
        alice = User(username="alice", nickname="Alice", api_token="tok-alice")
        bob = User(
            username="bob",
            nickname="Bob",
            api_token="tok-bob",
            share_links_in_profile=PROFILE_SHARES_HIDE,
        )
        session.add(alice)
        session.add(bob)
        await session.commit()
        await session.refresh(alice)
        await session.refresh(bob)
        assert alice.id is not None and bob.id is not None

        reports = File(owner_id=alice.id, name="reports", type=FILE_TYPE_FOLDER)
        secret = File(owner_id=alice.id, name="secret.txt", type=FILE_TYPE_FILE, size=2048)
        session.add(reports)
        session.add(secret)
        await session.commit()
        await session.refresh(reports)
        await session.refresh(secret)
        assert reports.id is not None and secret.id is not None

        q1 = File(
            owner_id=alice.id,
            parent_id=reports.id,
            name="q1.pdf",
            type=FILE_TYPE_FILE,
            size=1048576,
        )
        session.add(q1)

        folder_share = Share(user_id=alice.id, file_id=reports.id)
        locked_share = Share(user_id=alice.id, file_id=secret.id, password="pw")
        expired_share = Share(
            user_id=alice.id,
            file_id=secret.id,
            expires_at=utc_now() - timedelta(days=1),
        )
        session.add(folder_share)
        session.add(locked_share)
        session.add(expired_share)
        await session.commit()
        for row in (folder_share, locked_share, expired_share):
            await session.refresh(row)

        return {
            "alice": int(alice.id),
            "bob": int(bob.id),
            "folder_share": int(folder_share.id or 0),
            "locked_share": int(locked_share.id or 0),
            "expired_share": int(expired_share.id or 0),
        }


@pytest.fixture
async def seeded(tmp_path: Path) -> AsyncIterator[dict[str, int]]:
    old_db = settings.database_url
    old_public = settings.public_base_url
    try:
        settings.database_url = f"sqlite:///{tmp_path / 'test-share-links.db'}"
        settings.public_base_url = "http://test"
        reset_engine_cache()
        await init_db()
        yield await _seed()
    finally:
        await get_engine().dispose()
        settings.database_url = old_db
        settings.public_base_url = old_public
        reset_engine_cache()


@pytest.mark.anyio
async def test_browser_gets_redirect_with_merged_query(seeded: dict[str, int]):
    share_id = _share_id(seeded["folder_share"])
    async with _make_async_client() as client:
        r = await client.get(
            f"/s/{share_id}",
            params=[("path", "q1.pdf"), ("tag", "a"), ("tag", "b")],
            headers={"User-Agent": BROWSER_UA},
        )

    assert r.status_code == 302
    assert r.headers.get("x-request-id")
    location = r.headers["location"]
    parts = urlsplit(location)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "http://test/home"
    query = parse_qs(parts.query)
    assert query["path"] == [f"drive://{share_id}@share/q1.pdf"]
    assert query["tag"] == ["a", "b"]


@pytest.mark.anyio
async def test_password_short_link_redirect(seeded: dict[str, int]):
    share_id = _share_id(seeded["locked_share"])
    async with _make_async_client() as client:
        r = await client.get(f"/s/{share_id}/pw")

    assert r.status_code == 302
    query = parse_qs(urlsplit(r.headers["location"]).query)
    assert query["path"] == [f"drive://{share_id}:pw@share"]


@pytest.mark.anyio
async def test_crawler_gets_og_document_for_folder_sub_path(seeded: dict[str, int]):
    share_id = _share_id(seeded["folder_share"])
    async with _make_async_client() as client:
        r = await client.get(
            f"/s/{share_id}",
            params={"path": "q1.pdf"},
            headers={"User-Agent": CRAWLER_UA, "X-Request-Id": "req-123"},
        )

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert r.headers["cache-control"] == "public, no-cache"
    assert r.headers["x-request-id"] == "req-123"
    assert '<meta property="og:title" content="q1.pdf">' in r.text
    assert '<meta property="og:description" content="1.00 MB · Alice">' in r.text
    assert '<meta property="og:image" content="http://test/static/img/logo512.png">' in r.text


@pytest.mark.anyio
async def test_crawler_locked_and_unlocked_file_share(seeded: dict[str, int]):
    share_id = _share_id(seeded["locked_share"])
    async with _make_async_client() as client:
        locked = await client.get(f"/s/{share_id}", headers={"User-Agent": CRAWLER_UA})
        unlocked = await client.get(f"/s/{share_id}/pw", headers={"User-Agent": CRAWLER_UA})

    assert locked.status_code == 200
    assert "Password Required" in locked.text
    assert "secret.txt" not in locked.text

    assert unlocked.status_code == 200
    assert '<meta property="og:title" content="secret.txt">' in unlocked.text
    assert "2.00 KB · Alice" in unlocked.text


@pytest.mark.anyio
async def test_crawler_expired_and_unknown_shares(seeded: dict[str, int]):
    async with _make_async_client() as client:
        expired = await client.get(
            f"/s/{_share_id(seeded['expired_share'])}", headers={"User-Agent": CRAWLER_UA}
        )
        unknown = await client.get(f"/s/{_share_id(9999)}", headers={"User-Agent": CRAWLER_UA})
        garbage = await client.get("/s/zzzz-not-an-id", headers={"User-Agent": CRAWLER_UA})

    assert "Share Expired" in expired.text
    assert "secret.txt" not in expired.text
    assert "Invalid Link" in unknown.text
    assert "Invalid Link" in garbage.text


@pytest.mark.anyio
async def test_crawler_with_oversized_id_is_redirected(seeded: dict[str, int]):
    _ = seeded
    async with _make_async_client() as client:
        r = await client.get("/s/" + "a" * 40, headers={"User-Agent": CRAWLER_UA})
    assert r.status_code == 302


@pytest.mark.anyio
async def test_anonymous_group_without_download_needs_login(seeded: dict[str, int]):
    async with session_scope() as session:
        group = await session.get(Group, settings.anonymous_group_id)
        assert group is not None
        group.permissions = 0
        session.add(group)
        await session.commit()

    share_id = _share_id(seeded["folder_share"])
    async with _make_async_client() as client:
        anonymous = await client.get(f"/s/{share_id}", headers={"User-Agent": CRAWLER_UA})
        logged_in = await client.get(
            f"/s/{share_id}",
            headers={"User-Agent": CRAWLER_UA, "Authorization": "Bearer tok-bob"},
        )

    assert "Login Required" in anonymous.text
    assert '<meta property="og:title" content="reports">' in logged_in.text


@pytest.mark.anyio
async def test_injected_crawler_classifier(seeded: dict[str, int]):
    share_id = _share_id(seeded["folder_share"])
    app.state.crawler_classifier = CrawlerClassifier(identifiers=frozenset({"previewbot"}))
    try:
        async with _make_async_client() as client:
            custom = await client.get(f"/s/{share_id}", headers={"User-Agent": "PreviewBot/0.1"})
            default = await client.get(f"/s/{share_id}", headers={"User-Agent": CRAWLER_UA})
    finally:
        del app.state.crawler_classifier

    assert custom.status_code == 200
    assert default.status_code == 302


@pytest.mark.anyio
async def test_home_long_url_preview_for_crawlers_only(seeded: dict[str, int]):
    share_id = _share_id(seeded["folder_share"])
    address = f"drive://{share_id}@share/q1.pdf"
    async with _make_async_client() as client:
        crawler = await client.get(
            "/home", params={"path": address}, headers={"User-Agent": CRAWLER_UA}
        )
        # Mangled percent-encoding is repaired before giving up.
        mangled = await client.get(
            "/home?path=" + quote(quote(f"drive://{share_id}@share", safe=""), safe=""),
            headers={"User-Agent": CRAWLER_UA},
        )
        browser = await client.get(
            "/home", params={"path": address}, headers={"User-Agent": BROWSER_UA}
        )
        other_fs = await client.get(
            "/home",
            params={"path": f"drive://{share_id}@my/q1.pdf"},
            headers={"User-Agent": CRAWLER_UA},
        )
        tracked = await client.get(
            "/home",
            params=[("path", address), ("utm", "x")],
            headers={"User-Agent": CRAWLER_UA},
        )

    assert crawler.status_code == 200
    assert '<meta property="og:title" content="q1.pdf">' in crawler.text
    assert mangled.status_code == 200
    assert '<meta property="og:title" content="reports">' in mangled.text
    # Not a crawler / not a share address: the request falls through to the app.
    assert browser.status_code == 404
    assert other_fs.status_code == 404
    # Extra query parameters survive into the redirect target.
    assert tracked.status_code == 200
    assert "&amp;utm=x" in tracked.text


@pytest.mark.anyio
async def test_share_info_endpoint(seeded: dict[str, int]):
    folder_id = _share_id(seeded["folder_share"])
    locked_id = _share_id(seeded["locked_share"])
    async with _make_async_client() as client:
        first = await client.get(f"/api/v1/shares/{folder_id}/info", params={"count_views": "true"})
        second = await client.get(f"/api/v1/shares/{folder_id}/info")
        locked = await client.get(f"/api/v1/shares/{locked_id}/info")
        unlocked = await client.get(f"/api/v1/shares/{locked_id}/info", params={"password": "pw"})
        owner_view = await client.get(
            f"/api/v1/shares/{locked_id}/info", headers={"Authorization": "Bearer tok-alice"}
        )

    assert first.status_code == 200
    body = first.json()
    assert body["id"] == folder_id
    assert body["url"] == f"http://test/s/{folder_id}"
    assert body["source_type"] == "folder"
    assert body["name"] == "reports"
    assert body["owner"]["nickname"] == "Alice"
    assert "email" not in body["owner"]
    assert second.json()["views"] == 1

    assert locked.json()["unlocked"] is False
    assert locked.json()["password_protected"] is True
    assert locked.json()["name"] is None
    assert unlocked.json()["name"] == "secret.txt"
    assert owner_view.json()["unlocked"] is True


@pytest.mark.anyio
async def test_share_info_errors_use_error_contract(seeded: dict[str, int]):
    async with _make_async_client() as client:
        expired = await client.get(f"/api/v1/shares/{_share_id(seeded['expired_share'])}/info")
        missing = await client.get("/api/v1/shares/garbage/info", headers={"X-Request-Id": "rid-1"})

    assert expired.status_code == 410
    assert expired.json()["error"] == "share_expired"
    assert missing.status_code == 404
    assert missing.json() == {"error": "not_found", "message": "share not found", "request_id": "rid-1"}


@pytest.mark.anyio
async def test_explicit_preview_endpoint_serves_any_client(seeded: dict[str, int]):
    share_id = _share_id(seeded["folder_share"])
    async with _make_async_client() as client:
        r = await client.get(
            f"/api/v1/shares/{share_id}/preview",
            params={"path": "q1.pdf"},
            headers={"User-Agent": BROWSER_UA},
        )
    assert r.status_code == 200
    assert '<meta property="og:title" content="q1.pdf">' in r.text


@pytest.mark.anyio
async def test_list_my_shares_requires_token(seeded: dict[str, int]):
    async with _make_async_client() as client:
        missing = await client.get("/api/v1/shares")
        bad = await client.get("/api/v1/shares", headers={"Authorization": "Bearer nope"})
        mine = await client.get("/api/v1/shares", headers={"Authorization": "Bearer tok-alice"})

    assert missing.status_code == 401
    assert missing.json()["message"] == "missing token"
    assert bad.status_code == 401
    assert bad.json()["message"] == "invalid token"

    assert mine.status_code == 200
    shares = {s["id"]: s for s in mine.json()["shares"]}
    assert set(shares) == {
        _share_id(seeded["folder_share"]),
        _share_id(seeded["locked_share"]),
        _share_id(seeded["expired_share"]),
    }
    assert shares[_share_id(seeded["expired_share"])]["expired"] is True
    assert shares[_share_id(seeded["locked_share"])]["name"] == "secret.txt"


@pytest.mark.anyio
async def test_profile_share_listing_respects_visibility(seeded: dict[str, int]):
    codec = get_id_codec()
    alice = codec.encode(seeded["alice"], "user")
    bob = codec.encode(seeded["bob"], "user")
    async with _make_async_client() as client:
        public = await client.get(f"/api/v1/users/{alice}/shares")
        hidden = await client.get(f"/api/v1/users/{bob}/shares")
        unknown = await client.get("/api/v1/users/nobody/shares")

    assert public.status_code == 200
    # public_only: password-protected and expired shares are left out.
    assert [s["id"] for s in public.json()["shares"]] == [_share_id(seeded["folder_share"])]
    assert hidden.status_code == 403
    assert unknown.status_code == 404


@pytest.mark.anyio
async def test_health(seeded: dict[str, int]):
    _ = seeded
    async with _make_async_client() as client:
        r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


@pytest.mark.anyio
async def test_render_failure_falls_back_to_redirect(
    seeded: dict[str, int], monkeypatch: pytest.MonkeyPatch
):
    from drive_backend.domain.errors import PreviewRenderError
    from drive_backend.routers import share_links

    async def _broken(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise PreviewRenderError("template missing")

    monkeypatch.setattr(share_links, "render_og_page", _broken)

    share_id = _share_id(seeded["folder_share"])
    async with _make_async_client() as client:
        r = await client.get(f"/s/{share_id}", headers={"User-Agent": CRAWLER_UA})

    assert r.status_code == 302
    assert urlsplit(r.headers["location"]).path == "/home"


@pytest.mark.anyio
async def test_oversized_opaque_ids_are_not_found(seeded: dict[str, int]):
    _ = seeded
    oversized = "0000" + "z" * 2500
    async with _make_async_client() as client:
        info = await client.get(f"/api/v1/shares/{oversized}/info")
        profile = await client.get(f"/api/v1/users/{oversized}/shares")

    assert info.status_code == 404
    assert info.json()["error"] == "not_found"
    assert profile.status_code == 404
    assert profile.json()["error"] == "not_found"


@pytest.mark.anyio
async def test_explicit_preview_does_not_forward_its_password_param(seeded: dict[str, int]):
    share_id = _share_id(seeded["locked_share"])
    async with _make_async_client() as client:
        r = await client.get(
            f"/api/v1/shares/{share_id}/preview",
            params=[("password", "pw"), ("tag", "a")],
            headers={"User-Agent": BROWSER_UA},
        )

    assert r.status_code == 200
    assert '<meta property="og:title" content="secret.txt">' in r.text
    assert "&amp;tag=a" in r.text
    assert "password=pw" not in r.text


@pytest.mark.anyio
async def test_explicit_preview_fallback_drops_password_param(
    seeded: dict[str, int], monkeypatch: pytest.MonkeyPatch
):
    from drive_backend.domain.errors import PreviewRenderError
    from drive_backend.routers import shares

    async def _broken(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise PreviewRenderError("template missing")

    monkeypatch.setattr(shares, "render_og_page", _broken)

    share_id = _share_id(seeded["locked_share"])
    async with _make_async_client() as client:
        r = await client.get(
            f"/api/v1/shares/{share_id}/preview",
            params=[("password", "pw"), ("tag", "a")],
        )

    assert r.status_code == 302
    query = parse_qs(urlsplit(r.headers["location"]).query)
    assert query["path"] == [f"drive://{share_id}:pw@share"]
    assert query["tag"] == ["a"]
    assert "password" not in query


@pytest.mark.anyio
async def test_view_increments_are_not_lost_across_sessions(seeded: dict[str, int]):
    share_id = seeded["folder_share"]
    async with session_scope() as first, session_scope() as second:
        assert await shares_repo.get_share(first, share_id=share_id) is not None
        assert await shares_repo.get_share(second, share_id=share_id) is not None
        await shares_repo.increment_views(first, share_id=share_id)
        await shares_repo.increment_views(second, share_id=share_id)

    async with session_scope() as session:
        share = await shares_repo.get_share(session, share_id=share_id)
    assert share is not None
    assert share.views == 2
