"""
Response envelope and pagination schemas shared by all endpoints.
"""

import math
from typing import Any, Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    """Envelope for successful responses."""

    status: Literal["success"] = "success"
    message: str = ""
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Envelope for failed responses."""

    status: Literal["error"] = "error"
    message: str
    errors: Optional[list[dict[str, Any]]] = Field(None, description="Field errors for invalid requests")
    detail: Optional[str] = Field(None, description="Exception detail, only in debug mode")


class PaginationMeta(BaseModel):
    """Page position within a filtered listing."""

    page: int
    per_page: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "PaginationMeta":
        return cls(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=math.ceil(total / per_page) if per_page else 0,
        )
