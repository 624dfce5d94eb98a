from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ShareOwnerInfo(BaseModel):
    id: str
    nickname: str = ""


class ShareInfo(BaseModel):
    id: str = Field(min_length=1)
    url: str
    owner: ShareOwnerInfo | None = None
    source_type: Literal["file", "folder"] | None = None
    # Only present once the visitor has unlocked the share.
    name: str | None = None
    unlocked: bool
    password_protected: bool
    expired: bool = False
    views: int = 0
    downloads: int = 0
    remain_downloads: int | None = None
    expires_at: datetime | None = None
    created_at: datetime | None = None


class ShareListResponse(BaseModel):
    shares: list[ShareInfo] = Field(default_factory=list)
    limit: int
    offset: int
