from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.config import settings
from drive_backend.db import get_session
from drive_backend.domain.collaborators import ShareCollaborators
from drive_backend.domain.crawlers import CrawlerClassifier
from drive_backend.integrations.hashid_codec import HmacIdCodec
from drive_backend.integrations.sql_collaborators import build_share_collaborators
from drive_backend.models import User
from drive_backend.repositories import users_repo

_bearer = HTTPBearer(auto_error=False)


def _bearer_from_header(authorization: str | None) -> str | None:
    scheme, _, credentials = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = credentials.strip()
    return token or None


async def resolve_viewer(session: AsyncSession, token: str | None) -> User | None:
    if not token:
        return None
    user = await users_repo.get_user_by_api_token(session, token=token)
    if user is None or not user.is_active or user.id is None:
        return None
    return user


async def resolve_viewer_from_header(
    session: AsyncSession, authorization: str | None
) -> User | None:
    return await resolve_viewer(session, _bearer_from_header(authorization))


async def get_optional_user(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    # Dedicated session so services own tx boundaries on the request-scoped one.
    session: AsyncSession = Depends(get_session, use_cache=False),
) -> User | None:
    # Share links are public: a bad token just means an anonymous visitor.
    raw_token = creds.credentials if creds is not None else None
    return await resolve_viewer(session, (raw_token or "").strip() or None)


async def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    user: User | None = Depends(get_optional_user),
) -> User:
    if user is not None:
        return user
    if creds is not None and creds.credentials.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")


def get_id_codec() -> HmacIdCodec:
    return HmacIdCodec(secret=settings.share_id_secret)


def get_crawler_classifier(request: Request) -> CrawlerClassifier:
    # app.state.crawler_classifier lets tests swap the identifier set.
    classifier = getattr(request.app.state, "crawler_classifier", None)
    if isinstance(classifier, CrawlerClassifier):
        return classifier
    return CrawlerClassifier.with_extra(settings.crawler_user_agents_extra_list())


async def get_share_collaborators(
    session: AsyncSession = Depends(get_session),
    id_codec: HmacIdCodec = Depends(get_id_codec),
) -> ShareCollaborators:
    return build_share_collaborators(session, id_codec, settings)
