"""Tests for leave request statistics and the cache in front of them."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import RedisError

from app.services.statistics import (
    STATISTICS_CACHE_KEY,
    InMemoryStatisticsCache,
    RedisStatisticsCache,
    set_statistics_cache,
)

if TYPE_CHECKING:
    from httpx import AsyncClient

STATISTICS_URL = "/leave-requests/statistics"
YEAR = 2025


@pytest.fixture
async def seeded(async_client: AsyncClient) -> dict[str, str]:
    employee = await async_client.post(
        "/employees", json={"staff_id": "EMP001", "first_name": "Ana", "last_name": "Lopez"}
    )
    annual = await async_client.post("/leave-types", json={"name": "Annual Leave", "default_duration": 20})
    sick = await async_client.post("/leave-types", json={"name": "Sick Leave", "default_duration": 10})
    ids = {
        "employee_id": employee.json()["data"]["id"],
        "annual_id": annual.json()["data"]["leave_type"]["id"],
        "sick_id": sick.json()["data"]["leave_type"]["id"],
    }
    for leave_type_id, total in ((ids["annual_id"], 20), (ids["sick_id"], 10)):
        await async_client.post(
            "/leave-balances",
            json={"employee_id": ids["employee_id"], "leave_type_id": leave_type_id, "total_days": total, "year": YEAR},
        )
    return ids


async def _create(
    client: AsyncClient,
    seeded: dict[str, str],
    start: str,
    end: str,
    leave_type_ids: list[str],
    **extra: Any,
) -> str:
    response = await client.post(
        "/leave-requests",
        json={
            "employee_id": seeded["employee_id"],
            "start_date": start,
            "end_date": end,
            "items": [{"leave_type_id": lt, "days": 1} for lt in leave_type_ids],
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def _statistics(client: AsyncClient) -> dict[str, Any]:
    response = await client.get(STATISTICS_URL)
    assert response.status_code == 200, response.text
    return response.json()["data"]


# ---------------------------------------------------------------------------
# Counters
# ---------------------------------------------------------------------------


async def test_empty_statistics(async_client: AsyncClient) -> None:
    data = await _statistics(async_client)
    assert data["total_requests"] == 0
    assert data["pending"] == 0
    assert data["top_leave_types"] == []


async def test_counts_by_status_and_leave_type(async_client: AsyncClient, seeded: dict[str, str]) -> None:
    await _create(async_client, seeded, "2025-02-03", "2025-02-03", [seeded["annual_id"]])
    await _create(async_client, seeded, "2025-02-10", "2025-02-10", [seeded["annual_id"]], status="approved")
    cancelled = await _create(
        async_client, seeded, "2025-02-17", "2025-02-17", [seeded["annual_id"], seeded["sick_id"]]
    )
    response = await async_client.patch(f"/leave-requests/{cancelled}/status", json={"status": "cancelled"})
    assert response.status_code == 200

    data = await _statistics(async_client)
    assert data["total_requests"] == 3
    assert (data["pending"], data["approved"], data["declined"], data["cancelled"]) == (1, 1, 0, 1)
    # Requests were all created just now.
    assert data["this_week"] == data["this_month"] == data["this_year"] == 3
    assert [(t["leave_type_name"], t["request_count"]) for t in data["top_leave_types"]] == [
        ("Annual Leave", 3),
        ("Sick Leave", 1),
    ]


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


async def test_statistics_are_served_from_cache(
    async_client: AsyncClient,
    _statistics_cache: InMemoryStatisticsCache,
) -> None:
    await _statistics(async_client)
    cached = await _statistics_cache.get(STATISTICS_CACHE_KEY)
    assert cached is not None

    cached["total_requests"] = 42
    await _statistics_cache.set(STATISTICS_CACHE_KEY, cached, ttl_seconds=60)

    data = await _statistics(async_client)
    assert data["total_requests"] == 42


async def test_request_changes_invalidate_cache(
    async_client: AsyncClient,
    seeded: dict[str, str],
    _statistics_cache: InMemoryStatisticsCache,
) -> None:
    assert (await _statistics(async_client))["total_requests"] == 0

    request_id = await _create(async_client, seeded, "2025-02-03", "2025-02-03", [seeded["annual_id"]])
    assert await _statistics_cache.get(STATISTICS_CACHE_KEY) is None

    data = await _statistics(async_client)
    assert data["total_requests"] == 1
    assert data["pending"] == 1

    approval = await async_client.post(
        f"/leave-requests/{request_id}/approvals", json={"approver_role": "HR Manager", "status": "approved"}
    )
    assert approval.status_code == 201
    data = await _statistics(async_client)
    assert (data["pending"], data["approved"]) == (0, 1)


async def test_renaming_leave_type_invalidates_cache(
    async_client: AsyncClient,
    seeded: dict[str, str],
    _statistics_cache: InMemoryStatisticsCache,
) -> None:
    await _create(async_client, seeded, "2025-02-03", "2025-02-03", [seeded["sick_id"]])
    data = await _statistics(async_client)
    assert [t["leave_type_name"] for t in data["top_leave_types"]] == ["Sick Leave"]

    response = await async_client.put(f"/leave-types/{seeded['sick_id']}", json={"name": "Medical Leave"})
    assert response.status_code == 200
    assert await _statistics_cache.get(STATISTICS_CACHE_KEY) is None

    data = await _statistics(async_client)
    assert [t["leave_type_name"] for t in data["top_leave_types"]] == ["Medical Leave"]


async def test_expired_entry_is_a_miss() -> None:
    cache = InMemoryStatisticsCache()
    await cache.set("key", {"value": 1}, ttl_seconds=0)
    assert await cache.get("key") is None


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


def _redis_cache(client: Any) -> RedisStatisticsCache:
    cache = RedisStatisticsCache("redis://localhost:6379/0")
    cache._redis = client
    return cache


async def test_redis_cache_round_trip() -> None:
    client = AsyncMock()
    client.get.return_value = '{"total_requests": 3}'
    cache = _redis_cache(client)

    assert await cache.get(STATISTICS_CACHE_KEY) == {"total_requests": 3}
    await cache.set(STATISTICS_CACHE_KEY, {"total_requests": 3}, ttl_seconds=30)
    client.setex.assert_awaited_once_with(STATISTICS_CACHE_KEY, 30, '{"total_requests": 3}')


async def test_redis_errors_are_cache_misses(async_client: AsyncClient) -> None:
    client = AsyncMock()
    client.get.side_effect = RedisError("connection refused")
    client.setex.side_effect = RedisError("connection refused")
    client.delete.side_effect = RedisError("connection refused")
    cache = _redis_cache(client)

    assert await cache.get(STATISTICS_CACHE_KEY) is None
    await cache.delete(STATISTICS_CACHE_KEY)

    set_statistics_cache(cache)
    data = await _statistics(async_client)
    assert data["total_requests"] == 0
    client.setex.assert_awaited_once()
