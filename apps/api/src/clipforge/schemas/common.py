"""
Envelope and shared response schemas.

Successful responses are ``{"data": ..., "meta": {...}}``; list endpoints
put a ``pagination`` block in ``meta``. Errors are ``{"error": {...}}``.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_items: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    has_next: bool
    has_prev: bool

    @classmethod
    def create(cls, page: int, page_size: int, total_items: int) -> "PaginationMeta":
        total_pages = -(-total_items // page_size)
        return cls(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ApiResponse(BaseModel, Generic[T]):
    data: T
    meta: dict[str, Any] = Field(default_factory=dict)


class ErrorDetail(BaseModel):
    code: str = Field(description="Machine-readable error code, e.g. NOT_FOUND")
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    """
    Health check payload.

    Attributes:
        status: "healthy", "degraded" or "unhealthy"
        checks: Per-dependency results keyed by dependency name
        providers: Registered provider ids per role
        platforms: Publishing platforms with a registered publisher
    """

    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: dict[str, dict[str, Any]] = Field(default_factory=dict)
    providers: dict[str, list[str]] = Field(default_factory=dict)
    platforms: list[str] = Field(default_factory=list)
