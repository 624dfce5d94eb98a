from __future__ import annotations

from typing import cast

from sqlalchemy import update
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.models import Share


async def get_share(session: AsyncSession, *, share_id: int) -> Share | None:
    stmt = select(Share).where(Share.id == share_id)
    return (await session.exec(stmt)).first()


async def increment_views(session: AsyncSession, *, share_id: int) -> None:
    # Increment in SQL; sessions may hold stale rows.
    stmt = update(Share).where(col(Share.id) == share_id).values(views=col(Share.views) + 1)
    await session.exec(stmt)
    await session.commit()


async def list_shares_for_user(
    session: AsyncSession,
    *,
    user_id: int,
    public_only: bool,
    limit: int,
    offset: int,
) -> list[Share]:
    stmt = select(Share).where(Share.user_id == user_id)
    if public_only:
        stmt = stmt.where(Share.password == "")
    stmt = (
        stmt.order_by(cast(ColumnElement[object], cast(object, Share.created_at)).desc())
        .order_by(cast(ColumnElement[object], cast(object, Share.id)).desc())
        .offset(offset)
        .limit(limit)
    )
    return list((await session.exec(stmt)).all())
