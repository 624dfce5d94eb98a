"""Social-preview (Open Graph) rendering for share links.

Crawlers never see the shared content itself: every outcome other than an
unlocked, valid share renders a status card carrying only the site identity.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from urllib.parse import urlencode, urljoin

from drive_backend.domain.collaborators import (
    ID_KIND_SHARE,
    PERMISSION_SHARE_DOWNLOAD,
    ShareCollaborators,
    ShareRecord,
    SiteSettingsProvider,
    bounded_call,
)
from drive_backend.domain.errors import EntryNotFoundError, InvalidIdError
from drive_backend.domain.og_template import (
    FILE_SCENARIO,
    FOLDER_SCENARIO,
    STATUS_SCENARIO,
    OgDocument,
    PreviewContext,
    format_file_size,
    render_scenario,
)
from drive_backend.domain.share_paths import ResolvedEntry, resolve_share_path, sanitize_share_path
from drive_backend.domain.share_redirect import (
    SHARE_PATH_QUERY_KEY,
    QueryMergeSet,
    build_redirect_url,
    share_short_url,
)
from drive_backend.domain.share_status import ShareStatus, load_share_for_info

logger = logging.getLogger(__name__)


class PreviewScenario(enum.Enum):
    INVALID_LINK = "invalid_link"
    SHARE_EXPIRED = "share_expired"
    NEED_LOGIN = "need_login"
    PASSWORD_REQUIRED = "password_required"
    FILE = "file"
    FOLDER = "folder"


STATUS_LABELS: dict[PreviewScenario, str] = {
    PreviewScenario.INVALID_LINK: "Invalid Link",
    PreviewScenario.SHARE_EXPIRED: "Share Expired",
    PreviewScenario.NEED_LOGIN: "Login Required",
    PreviewScenario.PASSWORD_REQUIRED: "Password Required",
}


@dataclass(frozen=True)
class PreviewOptions:
    id: str
    password: str = ""
    share_path: str = ""
    extra_query: QueryMergeSet | None = None
    viewer_id: int | None = None
    request_id: str | None = None


@dataclass(frozen=True)
class PreviewResult:
    scenario: PreviewScenario
    document: OgDocument

    @property
    def html(self) -> str:
        return self.document.html


@dataclass(frozen=True)
class _Classified:
    scenario: PreviewScenario
    share: ShareRecord | None = None
    entry: ResolvedEntry | None = None


def _is_absolute_url(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def _thumbnail_url(site: SiteSettingsProvider, base_url: str) -> str:
    # PWA large icon (PNG) first, medium as fallback.
    icons = site.pwa_icons()
    url = icons.large or icons.medium
    if url and not _is_absolute_url(url):
        url = urljoin(base_url, url)
    return url


async def _anonymous_can_download(
    collaborators: ShareCollaborators, request_id: str | None
) -> bool:
    try:
        permissions = await bounded_call(
            collaborators.permissions.anonymous_group_permissions(),
            collaborators.timeout_seconds,
        )
    except Exception:
        logger.warning(
            "anonymous permission lookup failed request_id=%s", request_id, exc_info=True
        )
        return False
    return permissions.enabled(PERMISSION_SHARE_DOWNLOAD)


async def _classify(
    collaborators: ShareCollaborators,
    options: PreviewOptions,
    share_path: str,
    scheme: str,
) -> _Classified:
    try:
        share_id = collaborators.id_codec.decode(options.id, ID_KIND_SHARE)
    except (InvalidIdError, ValueError):
        return _Classified(PreviewScenario.INVALID_LINK)

    loaded = await load_share_for_info(
        collaborators,
        share_id,
        viewer_id=options.viewer_id,
        password=options.password,
    )

    status = loaded.status
    if status is ShareStatus.NOT_FOUND:
        return _Classified(PreviewScenario.INVALID_LINK)
    elif status is ShareStatus.ERROR:
        # Fail closed; the cause was already logged by the loader.
        return _Classified(PreviewScenario.INVALID_LINK)
    elif status is ShareStatus.EXPIRED:
        return _Classified(PreviewScenario.SHARE_EXPIRED)
    elif status is ShareStatus.OK:
        pass
    else:
        raise AssertionError(f"unhandled share status: {status!r}")

    share = loaded.share
    if share is None:
        return _Classified(PreviewScenario.INVALID_LINK)

    if options.viewer_id is None and not await _anonymous_can_download(
        collaborators, options.request_id
    ):
        return _Classified(PreviewScenario.NEED_LOGIN, share=share)

    if share.password_protected and not loaded.unlocked:
        return _Classified(PreviewScenario.PASSWORD_REQUIRED, share=share)

    try:
        entry = await resolve_share_path(
            collaborators,
            share,
            opaque_id=options.id,
            password=options.password,
            sub_path=share_path,
            viewer_id=options.viewer_id,
            scheme=scheme,
        )
    except EntryNotFoundError:
        return _Classified(PreviewScenario.INVALID_LINK, share=share)

    scenario = PreviewScenario.FOLDER if entry.is_folder else PreviewScenario.FILE
    return _Classified(scenario, share=share, entry=entry)


async def render_og_page(
    collaborators: ShareCollaborators,
    options: PreviewOptions,
    *,
    scheme: str,
) -> PreviewResult:
    """Resolve a share for a crawler and render its preview document.

    Raises PreviewRenderError only when the HTML template itself fails; callers
    fall back to a plain redirect in that case.
    """
    site = collaborators.site.site_basic()
    base_url = collaborators.site.site_url()
    share_path = sanitize_share_path(options.share_path)

    share_url = share_short_url(base_url, options.id)
    if share_path:
        share_url += "?" + urlencode({SHARE_PATH_QUERY_KEY: share_path})

    context = PreviewContext(
        site_name=site.name,
        site_description=site.description,
        site_url=base_url,
        share_url=share_url,
        share_id=options.id,
        thumbnail_url=_thumbnail_url(collaborators.site, base_url),
        redirect_url=build_redirect_url(
            base_url,
            options.id,
            options.password,
            share_path,
            options.extra_query,
            scheme=scheme,
        ),
    )

    classified = await _classify(collaborators, options, share_path, scheme)
    logger.debug(
        "share preview request_id=%s scenario=%s",
        options.request_id,
        classified.scenario.value,
    )

    entry = classified.entry
    if entry is None:
        # Never expose the real file/folder identity here.
        context.status = STATUS_LABELS[classified.scenario]
        context.display_name = site.name
        return PreviewResult(
            scenario=classified.scenario,
            document=render_scenario(context, STATUS_SCENARIO),
        )

    owner = classified.share.owner if classified.share is not None else None
    context.owner_name = owner.nickname if owner is not None else ""

    if entry.is_folder:
        context.folder_name = entry.display_name
        context.display_name = entry.display_name
        return PreviewResult(
            scenario=PreviewScenario.FOLDER,
            document=render_scenario(context, FOLDER_SCENARIO),
        )

    context.file_name = entry.display_name
    context.file_size = format_file_size(entry.size)
    context.file_ext = entry.extension
    context.display_name = entry.display_name
    return PreviewResult(
        scenario=PreviewScenario.FILE,
        document=render_scenario(context, FILE_SCENARIO),
    )
