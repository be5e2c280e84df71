from __future__ import annotations

import math
from decimal import Decimal
from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, PlainSerializer

T = TypeVar("T")

# Decimal amounts (days, percentages, money) go out as JSON numbers.
Number = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class PaginationMeta(BaseModel):
    """Paging block attached to list responses."""

    current_page: int
    per_page: int
    total: int
    last_page: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> PaginationMeta:
        return cls(
            current_page=page,
            per_page=per_page,
            total=total,
            last_page=max(1, math.ceil(total / per_page)),
        )


class Envelope(BaseModel, Generic[T]):
    """Standard success envelope: ``{"success": true, "message": ..., "data": ...}``."""

    success: bool = True
    message: str
    data: T | None = None


class PaginatedEnvelope(Envelope[list[T]], Generic[T]):
    """Envelope for list endpoints."""

    pagination: PaginationMeta
