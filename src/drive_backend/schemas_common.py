from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    ok: bool = True


class ErrorResponse(BaseModel):
    """Uniform error body for every JSON API route."""

    error: str
    message: str
    request_id: str | None = None
    details: object | None = None
