"""Crawler previews for the long-form ``/home?path=<share uri>`` links.

The SPA owns ``/home``; this hook only answers known crawlers and lets every
other request through untouched.
"""

from __future__ import annotations

import logging

from fastapi import Request
from starlette.responses import Response

from drive_backend.config import settings
from drive_backend.db import session_scope
from drive_backend.deps import get_crawler_classifier, get_id_codec, resolve_viewer_from_header
from drive_backend.domain.share_redirect import LONG_URL_ROUTE, SHARE_PATH_QUERY_KEY
from drive_backend.domain.share_uri import parse_share_uri
from drive_backend.integrations.sql_collaborators import build_share_collaborators
from drive_backend.routers.share_links import og_html_response, share_params_within_limits
from drive_backend.services.share_preview_service import PreviewOptions, render_og_page

logger = logging.getLogger(__name__)

HOME_PATHS = frozenset({LONG_URL_ROUTE, LONG_URL_ROUTE + "/"})


async def maybe_render_home_preview(request: Request) -> Response | None:
    """Return an Open Graph response for a crawler hitting ``/home``, else None."""

    if request.method not in ("GET", "HEAD") or request.url.path not in HOME_PATHS:
        return None
    if not get_crawler_classifier(request).is_known_crawler(request.headers.get("user-agent")):
        return None

    uri = parse_share_uri(
        request.query_params.get(SHARE_PATH_QUERY_KEY),
        scheme=settings.share_uri_scheme,
    )
    if uri is None or not uri.id or not share_params_within_limits(uri.id, uri.password):
        return None

    request_id = getattr(request.state, "request_id", None)
    try:
        async with session_scope() as session:
            viewer = await resolve_viewer_from_header(session, request.headers.get("authorization"))
            collaborators = build_share_collaborators(session, get_id_codec(), settings)
            result = await render_og_page(
                collaborators,
                PreviewOptions(
                    id=uri.id,
                    password=uri.password,
                    share_path=uri.path,
                    extra_query=request.query_params,
                    viewer_id=int(viewer.id) if viewer is not None and viewer.id is not None else None,
                    request_id=request_id,
                ),
                scheme=settings.share_uri_scheme,
            )
    except Exception:
        # The SPA still renders; crawlers just lose the rich card.
        logger.warning("home share preview failed request_id=%s", request_id, exc_info=True)
        return None
    return og_html_response(result.html)
