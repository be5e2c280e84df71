"""Integration tests for leave type CRUD, balance initialisation and the in-use guard."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from app.models.audit import AuditLog
from app.models.balance import LeaveBalance

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

LEAVE_TYPES_URL = "/leave-types"


async def _create_employee(client: AsyncClient, staff_id: str = "EMP001") -> str:
    response = await client.post(
        "/employees", json={"staff_id": staff_id, "first_name": "Ana", "last_name": staff_id}
    )
    assert response.status_code == 201
    return response.json()["data"]["id"]


async def _create_leave_type(client: AsyncClient, **overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"name": "Annual Leave", "default_duration": 10}
    payload.update(overrides)
    response = await client.post(LEAVE_TYPES_URL, json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def test_create_leave_type(async_client: AsyncClient) -> None:
    data = await _create_leave_type(async_client, description="Paid yearly leave")
    assert data["leave_type"]["name"] == "Annual Leave"
    assert data["leave_type"]["default_duration"] == 10.0
    assert data["leave_type"]["requires_attachment"] is False
    assert data["leave_type"]["created_by"] == "Hannah HR"
    assert data["balances_created"] == 0


async def test_create_leave_type_initialises_balances_for_every_employee(
    async_client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    first = await _create_employee(async_client, "EMP001")
    await _create_employee(async_client, "EMP002")

    data = await _create_leave_type(async_client, default_duration=12)
    assert data["balances_created"] == 2

    result = await db_session.execute(
        select(LeaveBalance).where(col(LeaveBalance.leave_type_id) == uuid.UUID(data["leave_type"]["id"]))
    )
    balances = list(result.scalars().all())
    assert len(balances) == 2
    assert {str(b.employee_id) for b in balances} >= {first}
    for balance in balances:
        assert balance.year == date.today().year
        assert float(balance.total_days) == 12.0
        assert float(balance.used_days) == 0.0
        assert float(balance.remaining_days) == 12.0


async def test_create_leave_type_duplicate_name(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client)
    response = await async_client.post(LEAVE_TYPES_URL, json={"name": "Annual Leave"})
    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "AppError"


async def test_create_leave_type_rejects_unknown_fields(async_client: AsyncClient) -> None:
    response = await async_client.post(LEAVE_TYPES_URL, json={"name": "Sick", "is_admin": True})
    assert response.status_code == 422


async def test_create_leave_type_negative_duration(async_client: AsyncClient) -> None:
    response = await async_client.post(LEAVE_TYPES_URL, json={"name": "Sick", "default_duration": -1})
    assert response.status_code == 422


async def test_create_leave_type_without_actor_is_attributed_to_system(async_client: AsyncClient) -> None:
    response = await async_client.post(
        LEAVE_TYPES_URL,
        json={"name": "Sick Leave"},
        headers={"X-User-Name": ""},
    )
    assert response.status_code == 201
    assert response.json()["data"]["leave_type"]["created_by"] == "System"


# ---------------------------------------------------------------------------
# Read / update
# ---------------------------------------------------------------------------


async def test_list_leave_types_with_search(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, name="Annual Leave")
    await _create_leave_type(async_client, name="Sick Leave")

    response = await async_client.get(LEAVE_TYPES_URL)
    assert response.status_code == 200
    assert [lt["name"] for lt in response.json()["data"]] == ["Annual Leave", "Sick Leave"]

    response = await async_client.get(LEAVE_TYPES_URL, params={"search": "sick"})
    assert [lt["name"] for lt in response.json()["data"]] == ["Sick Leave"]


async def test_get_leave_type_not_found(async_client: AsyncClient) -> None:
    response = await async_client.get(f"{LEAVE_TYPES_URL}/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["message"] == "Leave type not found"


async def test_update_leave_type(async_client: AsyncClient, db_session: AsyncSession) -> None:
    created = await _create_leave_type(async_client)
    leave_type_id = created["leave_type"]["id"]

    response = await async_client.put(
        f"{LEAVE_TYPES_URL}/{leave_type_id}",
        json={"requires_attachment": True, "description": "Needs a form"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["requires_attachment"] is True
    assert data["description"] == "Needs a form"
    assert data["name"] == "Annual Leave"

    result = await db_session.execute(
        select(AuditLog).where(col(AuditLog.entity_type) == "LEAVE_TYPE", col(AuditLog.action) == "UPDATE")
    )
    audit = result.scalar_one()
    assert audit.actor == "Hannah HR"
    assert audit.before_json is not None
    assert audit.before_json["requires_attachment"] is False


async def test_update_leave_type_to_taken_name(async_client: AsyncClient) -> None:
    await _create_leave_type(async_client, name="Annual Leave")
    sick = await _create_leave_type(async_client, name="Sick Leave")

    response = await async_client.put(f"{LEAVE_TYPES_URL}/{sick['leave_type']['id']}", json={"name": "Annual Leave"})
    assert response.status_code == 409


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def test_delete_unused_leave_type(async_client: AsyncClient) -> None:
    created = await _create_leave_type(async_client)
    leave_type_id = created["leave_type"]["id"]

    response = await async_client.delete(f"{LEAVE_TYPES_URL}/{leave_type_id}")
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await async_client.get(f"{LEAVE_TYPES_URL}/{leave_type_id}")
    assert response.status_code == 404


async def test_delete_leave_type_with_balances_is_rejected(async_client: AsyncClient) -> None:
    await _create_employee(async_client)
    created = await _create_leave_type(async_client)

    response = await async_client.delete(f"{LEAVE_TYPES_URL}/{created['leave_type']['id']}")
    assert response.status_code == 400
    assert "in use" in response.json()["message"]
