from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.models import Group, User


async def get_user(session: AsyncSession, *, user_id: int) -> User | None:
    stmt = select(User).where(User.id == user_id)
    return (await session.exec(stmt)).first()


async def get_user_by_api_token(session: AsyncSession, *, token: str) -> User | None:
    stmt = select(User).where(User.api_token == token)
    return (await session.exec(stmt)).first()


async def get_group(session: AsyncSession, *, group_id: int) -> Group | None:
    stmt = select(Group).where(Group.id == group_id)
    return (await session.exec(stmt)).first()
