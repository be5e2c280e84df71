# ruff: noqa: TC003
from __future__ import annotations

import datetime

from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase


class Holiday(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A public or organisation holiday excluded from working-day counts."""

    __tablename__ = "holiday"

    date: datetime.date = Field(unique=True, index=True)
    name: str = Field(max_length=255)
    is_active: bool = Field(default=True, sa_column_kwargs={"server_default": "true"})
