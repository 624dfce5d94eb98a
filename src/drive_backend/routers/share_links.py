"""Short share links: ``/s/{id}`` and ``/s/{id}/{password}``.

Browsers are redirected to the long-form share URL; social-media crawlers get
an Open Graph preview document instead.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from drive_backend.config import settings
from drive_backend.deps import get_crawler_classifier, get_optional_user, get_share_collaborators
from drive_backend.domain.collaborators import ShareCollaborators
from drive_backend.domain.crawlers import CrawlerClassifier
from drive_backend.domain.errors import PreviewRenderError
from drive_backend.domain.share_redirect import SHARE_PATH_QUERY_KEY, build_redirect_url
from drive_backend.models import User
from drive_backend.services.share_preview_service import PreviewOptions, render_og_page

router = APIRouter(tags=["share-links"])

logger = logging.getLogger(__name__)


def og_html_response(html: str) -> HTMLResponse:
    return HTMLResponse(
        content=html,
        status_code=status.HTTP_200_OK,
        headers={"Cache-Control": "public, no-cache"},
    )


def share_params_within_limits(share_id: str, password: str) -> bool:
    return (
        len(share_id) <= settings.share_max_id_length
        and len(password) <= settings.share_max_password_length
    )


async def render_preview_or_none(
    request: Request,
    collaborators: ShareCollaborators,
    *,
    share_id: str,
    password: str,
    share_path: str,
    viewer: User | None,
) -> HTMLResponse | None:
    request_id = getattr(request.state, "request_id", None)
    try:
        result = await render_og_page(
            collaborators,
            PreviewOptions(
                id=share_id,
                password=password,
                share_path=share_path,
                extra_query=request.query_params,
                viewer_id=int(viewer.id) if viewer is not None and viewer.id is not None else None,
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
        return None
    return og_html_response(result.html)


async def _share_redirect(
    request: Request,
    share_id: str,
    password: str,
    viewer: User | None,
    collaborators: ShareCollaborators,
    classifier: CrawlerClassifier,
) -> Response:
    share_path = request.query_params.get(SHARE_PATH_QUERY_KEY, "")

    if classifier.is_known_crawler(request.headers.get("user-agent")) and (
        share_params_within_limits(share_id, password)
    ):
        preview = await render_preview_or_none(
            request,
            collaborators,
            share_id=share_id,
            password=password,
            share_path=share_path,
            viewer=viewer,
        )
        if preview is not None:
            return preview

    target = build_redirect_url(
        collaborators.site.site_url(),
        share_id,
        password,
        share_path,
        request.query_params,
        scheme=settings.share_uri_scheme,
    )
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)


@router.get("/s/{share_id}", include_in_schema=False)
async def share_redirect(
    request: Request,
    share_id: str,
    viewer: User | None = Depends(get_optional_user),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
    classifier: CrawlerClassifier = Depends(get_crawler_classifier),
) -> Response:
    return await _share_redirect(request, share_id, "", viewer, collaborators, classifier)


@router.get("/s/{share_id}/{password}", include_in_schema=False)
async def share_redirect_with_password(
    request: Request,
    share_id: str,
    password: str,
    viewer: User | None = Depends(get_optional_user),
    collaborators: ShareCollaborators = Depends(get_share_collaborators),
    classifier: CrawlerClassifier = Depends(get_crawler_classifier),
) -> Response:
    return await _share_redirect(request, share_id, password, viewer, collaborators, classifier)
