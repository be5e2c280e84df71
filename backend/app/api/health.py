import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.config import get_settings
from app.db import SessionDep
from app.services.statistics import get_statistics_cache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

ComponentStatus = Literal["ok", "error"]


class HealthResponse(BaseModel):
    """Health check response.

    The database is required; the statistics cache only degrades the service.
    """

    status: Literal["ok", "degraded", "error"]
    version: str
    environment: str
    database: ComponentStatus
    cache: ComponentStatus


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    """Report database and statistics cache connectivity."""
    settings = get_settings()
    database: ComponentStatus = "ok"
    cache: ComponentStatus = "ok"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: database connectivity failed")
        database = "error"

    if not await get_statistics_cache().ping():
        cache = "error"

    return HealthResponse(
        status="ok" if database == cache == "ok" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=database,
        cache=cache,
    )
