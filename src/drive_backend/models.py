# basedpyright: reportAssignmentType=false
# basedpyright: reportIncompatibleVariableOverride=false

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


FILE_TYPE_FILE = 0
FILE_TYPE_FOLDER = 1

PROFILE_SHARES_ALL = "all"
PROFILE_SHARES_PUBLIC_ONLY = "public_only"
PROFILE_SHARES_HIDE = "hide"


class Group(SQLModel, table=True):
    __tablename__ = "groups"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=64)
    permissions: int = Field(default=0)


class User(SQLModel, table=True):
    __tablename__ = "users"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, min_length=1, max_length=64)
    # Public display name; the only owner field a share preview may show.
    nickname: str = Field(default="", max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    api_token: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    group_id: Optional[int] = Field(default=None, index=True, foreign_key="groups.id")

    # all | public_only | hide
    share_links_in_profile: str = Field(default=PROFILE_SHARES_PUBLIC_ONLY, max_length=16)

    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)


class File(SQLModel, table=True):
    __tablename__ = "files"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True, foreign_key="users.id")
    parent_id: Optional[int] = Field(default=None, index=True, foreign_key="files.id")

    name: str = Field(min_length=1, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    type: int = Field(default=FILE_TYPE_FILE)
    size: int = Field(default=0)

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)


class Share(SQLModel, table=True):
    __tablename__ = "shares"  # pyright: ignore[reportAssignmentType,reportIncompatibleVariableOverride]

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    file_id: Optional[int] = Field(default=None, index=True, foreign_key="files.id")

    # Compared verbatim (constant-time) against the visitor-supplied password.
    password: str = Field(default="", max_length=32)

    views: int = Field(default=0)
    downloads: int = Field(default=0)
    # None -> unlimited.
    remain_downloads: Optional[int] = Field(default=None)
    expires_at: Optional[datetime] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now, index=True)
