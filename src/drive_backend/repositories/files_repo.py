from __future__ import annotations

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from drive_backend.models import File


async def get_file(session: AsyncSession, *, file_id: int) -> File | None:
    stmt = select(File).where(File.id == file_id)
    return (await session.exec(stmt)).first()


async def get_child_by_name(session: AsyncSession, *, parent_id: int, name: str) -> File | None:
    stmt = select(File).where(File.parent_id == parent_id).where(File.name == name)
    return (await session.exec(stmt)).first()
