from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from httpx import AsyncClient

HOLIDAYS_URL = "/holidays"


async def _create(client: AsyncClient, day: str, name: str, **extra: Any) -> dict[str, Any]:
    response = await client.post(HOLIDAYS_URL, json={"date": day, "name": name, **extra})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def test_create_holiday(async_client: AsyncClient) -> None:
    data = await _create(async_client, "2025-12-25", "Christmas Day")
    assert data["date"] == "2025-12-25"
    assert data["is_active"] is True

    response = await async_client.get(f"{HOLIDAYS_URL}/{data['id']}")
    assert response.json()["data"]["name"] == "Christmas Day"


async def test_duplicate_date_conflicts(async_client: AsyncClient) -> None:
    await _create(async_client, "2025-01-01", "New Year")
    response = await async_client.post(HOLIDAYS_URL, json={"date": "2025-01-01", "name": "Again"})
    assert response.status_code == 409
    assert response.json()["message"] == "Holiday already exists for this date"


async def test_list_filters_by_year_and_active(async_client: AsyncClient) -> None:
    await _create(async_client, "2025-05-01", "Labour Day")
    await _create(async_client, "2025-01-01", "New Year")
    await _create(async_client, "2025-04-18", "Old Observance", is_active=False)
    await _create(async_client, "2026-01-01", "New Year")

    response = await async_client.get(HOLIDAYS_URL, params={"year": 2025})
    body = response.json()
    assert [h["date"] for h in body["data"]] == ["2025-01-01", "2025-04-18", "2025-05-01"]
    assert body["pagination"]["total"] == 3

    response = await async_client.get(HOLIDAYS_URL, params={"year": 2025, "active_only": True})
    assert [h["name"] for h in response.json()["data"]] == ["New Year", "Labour Day"]


async def test_update_and_delete(async_client: AsyncClient) -> None:
    holiday = await _create(async_client, "2025-06-12", "Independence Day")

    response = await async_client.put(f"{HOLIDAYS_URL}/{holiday['id']}", json={"is_active": False})
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False
    assert response.json()["data"]["name"] == "Independence Day"

    response = await async_client.delete(f"{HOLIDAYS_URL}/{holiday['id']}")
    assert response.status_code == 200

    response = await async_client.get(f"{HOLIDAYS_URL}/{holiday['id']}")
    assert response.status_code == 404


async def test_date_cannot_be_edited(async_client: AsyncClient) -> None:
    holiday = await _create(async_client, "2025-06-12", "Independence Day")
    response = await async_client.put(f"{HOLIDAYS_URL}/{holiday['id']}", json={"date": "2025-06-13"})
    assert response.status_code == 422
