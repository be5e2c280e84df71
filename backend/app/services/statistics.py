from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlmodel import col

from app.config import get_settings
from app.models.enums import LeaveRequestStatus
from app.models.leave_type import LeaveType
from app.models.request import LeaveRequest, LeaveRequestItem
from app.schemas.request import LeaveRequestStatistics, LeaveTypeUsage

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

STATISTICS_CACHE_KEY = "leave_request_statistics"
_TOP_LEAVE_TYPES = 5


# ---------------------------------------------------------------------------
# Cache backends
# ---------------------------------------------------------------------------


@runtime_checkable
class StatisticsCache(Protocol):
    """Short-lived store for computed statistics. Never a source of truth."""

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the cached value, or None when absent or expired."""
        ...

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        """Store a value for ``ttl_seconds``."""
        ...

    async def delete(self, key: str) -> None:
        """Drop a key if present."""
        ...

    async def ping(self) -> bool:
        """True when the backend is reachable."""
        ...


class InMemoryStatisticsCache:
    """Process-local cache with per-key expiry."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        self._entries[key] = (time.monotonic() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True


class RedisStatisticsCache:
    """Cache shared between workers through Redis.

    Redis failures are logged and treated as cache misses.
    """

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(key)
        except RedisError:
            logger.warning("Statistics cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        value: dict[str, Any] = json.loads(raw)
        return value

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            await self._redis.setex(key, ttl_seconds, json.dumps(value))
        except RedisError:
            logger.warning("Statistics cache write failed for %s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except RedisError:
            logger.warning("Statistics cache invalidation failed for %s", key, exc_info=True)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError:
            logger.warning("Statistics cache ping failed", exc_info=True)
            return False


_cache: StatisticsCache | None = None


def get_statistics_cache() -> StatisticsCache:
    """Return the configured cache: Redis when ``redis_url`` is set, in-memory otherwise."""
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = RedisStatisticsCache(settings.redis_url) if settings.redis_url else InMemoryStatisticsCache()
    return _cache


def set_statistics_cache(cache: StatisticsCache) -> None:
    """Override the cache (for testing or production wiring)."""
    global _cache
    _cache = cache


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def invalidate_statistics() -> None:
    """Drop cached statistics. Called after every committed leave request change."""
    await get_statistics_cache().delete(STATISTICS_CACHE_KEY)


async def _count(session: AsyncSession, *filters: Any) -> int:
    result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    return int(result.scalar_one())


async def compute_statistics(session: AsyncSession) -> LeaveRequestStatistics:
    """Count requests by status, by creation period and by leave type."""
    now = datetime.now(UTC)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_week = start_of_day - timedelta(days=start_of_day.weekday())
    start_of_month = start_of_day.replace(day=1)
    start_of_year = start_of_month.replace(month=1)

    status_result = await session.execute(
        select(col(LeaveRequest.status), func.count()).group_by(col(LeaveRequest.status))
    )
    by_status = {status: int(count) for status, count in status_result.all()}

    usage_count = func.count(col(LeaveRequestItem.id)).label("request_count")
    usage_result = await session.execute(
        select(col(LeaveType.id), col(LeaveType.name), usage_count)
        .join(LeaveRequestItem, col(LeaveRequestItem.leave_type_id) == col(LeaveType.id))
        .group_by(col(LeaveType.id), col(LeaveType.name))
        .order_by(usage_count.desc(), col(LeaveType.name))
        .limit(_TOP_LEAVE_TYPES)
    )

    return LeaveRequestStatistics(
        total_requests=sum(by_status.values()),
        pending=by_status.get(LeaveRequestStatus.PENDING.value, 0),
        approved=by_status.get(LeaveRequestStatus.APPROVED.value, 0),
        declined=by_status.get(LeaveRequestStatus.DECLINED.value, 0),
        cancelled=by_status.get(LeaveRequestStatus.CANCELLED.value, 0),
        this_week=await _count(session, col(LeaveRequest.created_at) >= start_of_week),
        this_month=await _count(session, col(LeaveRequest.created_at) >= start_of_month),
        this_year=await _count(session, col(LeaveRequest.created_at) >= start_of_year),
        top_leave_types=[
            LeaveTypeUsage(leave_type_id=leave_type_id, leave_type_name=name, request_count=int(count))
            for leave_type_id, name, count in usage_result.all()
        ],
    )


async def get_statistics(session: AsyncSession) -> LeaveRequestStatistics:
    """Return statistics from the cache, computing and caching them on a miss."""
    cache = get_statistics_cache()
    cached = await cache.get(STATISTICS_CACHE_KEY)
    if cached is not None:
        return LeaveRequestStatistics.model_validate(cached)

    statistics = await compute_statistics(session)
    await cache.set(
        STATISTICS_CACHE_KEY,
        statistics.model_dump(mode="json"),
        get_settings().statistics_cache_ttl_seconds,
    )
    return statistics
