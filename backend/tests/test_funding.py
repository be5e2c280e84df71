"""Tests for the funding allocation validator: effort totals, grant capacity and set replacement."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from app.models.audit import AuditLog
from app.models.enums import AuditAction, AuditEntityType
from app.models.funding import EmployeeFundingAllocation, OrgFundedAllocation

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

ALLOCATIONS_URL = "/funding-allocations"
START = "2025-01-01"


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _create_grant(client: AsyncClient, code: str = "GR-01") -> str:
    response = await client.post("/grants", json={"code": code, "name": f"Grant {code}"})
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def _create_grant_item(
    client: AsyncClient,
    grant_id: str,
    capacity: int | None,
    slot_count: int | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"grant_position": "Field Officer", "grant_position_number": capacity}
    if slot_count is not None:
        payload["slot_count"] = slot_count
    response = await client.post(f"/grants/{grant_id}/items", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _create_employment(client: AsyncClient, staff_id: str) -> dict[str, str]:
    employee = await client.post(
        "/employees", json={"staff_id": staff_id, "first_name": "Staff", "last_name": staff_id}
    )
    employee_id = employee.json()["data"]["id"]
    employment = await client.post(
        "/employments",
        json={"employee_id": employee_id, "position_title": "Officer", "start_date": START},
    )
    assert employment.status_code == 201, employment.text
    return {"employee_id": employee_id, "employment_id": employment.json()["data"]["id"]}


def _grant_allocation(slot_id: str, effort: float) -> dict[str, Any]:
    return {"allocation_type": "grant", "position_slot_id": slot_id, "level_of_effort": effort}


def _org_allocation(grant_id: str, effort: float) -> dict[str, Any]:
    return {"allocation_type": "org_funded", "grant_id": grant_id, "level_of_effort": effort}


async def _allocate(client: AsyncClient, employment: dict[str, str], allocations: list[dict[str, Any]]) -> Any:
    return await client.post(
        ALLOCATIONS_URL,
        json={**employment, "start_date": START, "allocations": allocations},
    )


async def _allocation_count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(EmployeeFundingAllocation))
    return int(result.scalar_one())


@pytest.fixture
async def grant_setup(async_client: AsyncClient) -> dict[str, Any]:
    """A grant with a two-person item spread over three slots."""
    grant_id = await _create_grant(async_client)
    item = await _create_grant_item(async_client, grant_id, capacity=2, slot_count=3)
    return {"grant_id": grant_id, "item_id": item["id"], "slots": [s["id"] for s in item["slots"]]}


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------


async def test_grant_item_creates_numbered_slots(async_client: AsyncClient) -> None:
    grant_id = await _create_grant(async_client)
    item = await _create_grant_item(async_client, grant_id, capacity=3)
    assert [s["slot_number"] for s in item["slots"]] == [1, 2, 3]

    response = await async_client.get(f"/grants/{grant_id}")
    assert [i["id"] for i in response.json()["data"]["items"]] == [item["id"]]


async def test_duplicate_grant_code(async_client: AsyncClient) -> None:
    await _create_grant(async_client, "GR-01")
    response = await async_client.post("/grants", json={"code": "GR-01", "name": "Again"})
    assert response.status_code == 409


# ---------------------------------------------------------------------------
# Effort totals
# ---------------------------------------------------------------------------


async def test_allocations_totalling_100_are_created(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")

    response = await _allocate(
        async_client,
        employment,
        [_grant_allocation(grant_setup["slots"][0], 60), _org_allocation(grant_setup["grant_id"], 40)],
    )
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert sorted(a["level_of_effort"] for a in data) == [40.0, 60.0]
    org = next(a for a in data if a["allocation_type"] == "org_funded")
    assert org["org_funded_id"] is not None
    assert org["position_slot_id"] is None

    summary = await async_client.get(
        f"{ALLOCATIONS_URL}/summary/{employment['employee_id']}", params={"as_of": "2025-06-01"}
    )
    assert summary.json()["data"]["total_effort"] == 100.0
    assert len(summary.json()["data"]["allocations"]) == 2


async def test_allocations_not_totalling_100_are_rejected(
    async_client: AsyncClient,
    db_session: AsyncSession,
    grant_setup: dict[str, Any],
) -> None:
    employment = await _create_employment(async_client, "EMP001")

    response = await _allocate(
        async_client,
        employment,
        [_grant_allocation(grant_setup["slots"][0], 60), _org_allocation(grant_setup["grant_id"], 30)],
    )
    assert response.status_code == 400
    body = response.json()
    assert body["data"] == {"current_total": 90.0}
    assert "90%" in body["message"]
    assert await _allocation_count(db_session) == 0


async def test_fractional_efforts_summing_to_100(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")
    response = await _allocate(
        async_client,
        employment,
        [_grant_allocation(grant_setup["slots"][0], 33.33), _org_allocation(grant_setup["grant_id"], 66.67)],
    )
    assert response.status_code == 201


async def test_grant_allocation_requires_slot(async_client: AsyncClient) -> None:
    employment = await _create_employment(async_client, "EMP001")
    response = await _allocate(async_client, employment, [{"allocation_type": "grant", "level_of_effort": 100}])
    assert response.status_code == 422


async def test_effort_above_100_percent_is_invalid(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")
    response = await _allocate(async_client, employment, [_grant_allocation(grant_setup["slots"][0], 120)])
    assert response.status_code == 422


async def test_second_active_set_is_rejected(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")
    first = await _allocate(async_client, employment, [_org_allocation(grant_setup["grant_id"], 100)])
    assert first.status_code == 201

    second = await _allocate(async_client, employment, [_org_allocation(grant_setup["grant_id"], 100)])
    assert second.status_code == 400


# ---------------------------------------------------------------------------
# Grant capacity
# ---------------------------------------------------------------------------


async def test_capacity_rejects_allocation_beyond_limit(
    async_client: AsyncClient,
    db_session: AsyncSession,
    grant_setup: dict[str, Any],
) -> None:
    for index in range(2):
        employment = await _create_employment(async_client, f"EMP00{index}")
        response = await _allocate(async_client, employment, [_grant_allocation(grant_setup["slots"][index], 100)])
        assert response.status_code == 201, response.text

    third = await _create_employment(async_client, "EMP009")
    response = await _allocate(async_client, third, [_grant_allocation(grant_setup["slots"][2], 100)])
    assert response.status_code == 400
    assert response.json()["data"] == {
        "grant_item_id": grant_setup["item_id"],
        "position_slot_id": grant_setup["slots"][2],
        "current_count": 2,
        "capacity": 2,
    }
    assert await _allocation_count(db_session) == 2

    capacity = await async_client.get(f"/grants/items/{grant_setup['item_id']}/capacity", params={"as_of": START})
    assert capacity.json()["data"]["available"] == 0


async def test_capacity_counts_rows_of_the_same_set(
    async_client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    grant_id = await _create_grant(async_client)
    item = await _create_grant_item(async_client, grant_id, capacity=1, slot_count=2)
    employment = await _create_employment(async_client, "EMP001")

    response = await _allocate(
        async_client,
        employment,
        [_grant_allocation(item["slots"][0]["id"], 50), _grant_allocation(item["slots"][1]["id"], 50)],
    )
    assert response.status_code == 400
    assert response.json()["data"]["current_count"] == 1
    assert await _allocation_count(db_session) == 0


async def test_uncapped_grant_item(async_client: AsyncClient) -> None:
    grant_id = await _create_grant(async_client)
    item = await _create_grant_item(async_client, grant_id, capacity=0, slot_count=1)
    slot_id = item["slots"][0]["id"]

    for index in range(3):
        employment = await _create_employment(async_client, f"EMP00{index}")
        response = await _allocate(async_client, employment, [_grant_allocation(slot_id, 100)])
        assert response.status_code == 201

    capacity = await async_client.get(f"/grants/items/{item['id']}/capacity", params={"as_of": START})
    data = capacity.json()["data"]
    assert data["capacity"] is None
    assert data["available"] is None
    assert data["current_count"] == 3


async def test_ended_allocations_free_capacity(async_client: AsyncClient) -> None:
    grant_id = await _create_grant(async_client, "GR-02")
    item = await _create_grant_item(async_client, grant_id, capacity=1, slot_count=1)
    slot_id = item["slots"][0]["id"]

    leaver = await _create_employment(async_client, "EMP001")
    response = await async_client.post(
        ALLOCATIONS_URL,
        json={
            **leaver,
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
            "allocations": [_grant_allocation(slot_id, 100)],
        },
    )
    assert response.status_code == 201

    joiner = await _create_employment(async_client, "EMP002")
    response = await _allocate(async_client, joiner, [_grant_allocation(slot_id, 100)])
    assert response.status_code == 201


# ---------------------------------------------------------------------------
# Replace
# ---------------------------------------------------------------------------


async def test_replace_swaps_the_whole_set(
    async_client: AsyncClient,
    db_session: AsyncSession,
    grant_setup: dict[str, Any],
) -> None:
    employment = await _create_employment(async_client, "EMP001")
    await _allocate(
        async_client,
        employment,
        [_grant_allocation(grant_setup["slots"][0], 50), _org_allocation(grant_setup["grant_id"], 50)],
    )

    response = await async_client.put(
        f"{ALLOCATIONS_URL}/employments/{employment['employment_id']}",
        json={"start_date": START, "allocations": [_grant_allocation(grant_setup["slots"][0], 100)]},
    )
    assert response.status_code == 200, response.text
    assert [a["level_of_effort"] for a in response.json()["data"]] == [100.0]

    assert await _allocation_count(db_session) == 1
    org_funded = await db_session.execute(select(func.count()).select_from(OrgFundedAllocation))
    assert org_funded.scalar_one() == 0


async def test_failed_replace_keeps_existing_set(
    async_client: AsyncClient,
    db_session: AsyncSession,
    grant_setup: dict[str, Any],
) -> None:
    employment = await _create_employment(async_client, "EMP001")
    await _allocate(async_client, employment, [_org_allocation(grant_setup["grant_id"], 100)])

    response = await async_client.put(
        f"{ALLOCATIONS_URL}/employments/{employment['employment_id']}",
        json={"start_date": START, "allocations": [_grant_allocation(grant_setup["slots"][0], 90)]},
    )
    assert response.status_code == 400

    listed = await async_client.get(ALLOCATIONS_URL, params={"employment_id": employment["employment_id"]})
    assert [a["allocation_type"] for a in listed.json()["data"]] == ["org_funded"]
    assert await _allocation_count(db_session) == 1


async def test_employment_created_with_allocations(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employee = await async_client.post(
        "/employees", json={"staff_id": "EMP050", "first_name": "Chidi", "last_name": "Eze"}
    )
    response = await async_client.post(
        "/employments",
        json={
            "employee_id": employee.json()["data"]["id"],
            "start_date": START,
            "allocations": [
                _grant_allocation(grant_setup["slots"][0], 70),
                _org_allocation(grant_setup["grant_id"], 30),
            ],
        },
    )
    assert response.status_code == 201, response.text
    assert sorted(a["level_of_effort"] for a in response.json()["data"]["allocations"]) == [30.0, 70.0]


async def test_employment_with_bad_allocations_is_not_created(
    async_client: AsyncClient,
    grant_setup: dict[str, Any],
) -> None:
    employee = await async_client.post(
        "/employees", json={"staff_id": "EMP051", "first_name": "Dana", "last_name": "Kim"}
    )
    employee_id = employee.json()["data"]["id"]
    response = await async_client.post(
        "/employments",
        json={
            "employee_id": employee_id,
            "start_date": START,
            "allocations": [_org_allocation(grant_setup["grant_id"], 50)],
        },
    )
    assert response.status_code == 400

    listed = await async_client.get(f"/employees/{employee_id}/employments")
    assert listed.json()["data"] == []


async def test_employment_update_keeps_allocations_within_employment_dates(
    async_client: AsyncClient,
    grant_setup: dict[str, Any],
) -> None:
    employee = await async_client.post(
        "/employees", json={"staff_id": "EMP060", "first_name": "Femi", "last_name": "Ade"}
    )
    created = await async_client.post(
        "/employments",
        json={
            "employee_id": employee.json()["data"]["id"],
            "start_date": "2030-01-01",
            "end_date": "2030-12-31",
            "allocations": [_org_allocation(grant_setup["grant_id"], 100)],
        },
    )
    employment_id = created.json()["data"]["id"]

    response = await async_client.put(
        f"/employments/{employment_id}",
        json={"allocations": [_org_allocation(grant_setup["grant_id"], 100)]},
    )
    assert response.status_code == 200, response.text
    assert [(a["start_date"], a["end_date"]) for a in response.json()["data"]["allocations"]] == [
        ("2030-01-01", "2030-12-31")
    ]


async def test_deleting_employment_removes_org_funded_records(
    async_client: AsyncClient,
    db_session: AsyncSession,
    grant_setup: dict[str, Any],
) -> None:
    employee = await async_client.post(
        "/employees", json={"staff_id": "EMP061", "first_name": "Gita", "last_name": "Rao"}
    )
    created = await async_client.post(
        "/employments",
        json={
            "employee_id": employee.json()["data"]["id"],
            "start_date": START,
            "allocations": [
                _grant_allocation(grant_setup["slots"][0], 60),
                _org_allocation(grant_setup["grant_id"], 40),
            ],
        },
    )
    employment_id = created.json()["data"]["id"]

    response = await async_client.delete(f"/employments/{employment_id}")
    assert response.status_code == 200

    assert await _allocation_count(db_session) == 0
    org_funded = await db_session.execute(select(func.count()).select_from(OrgFundedAllocation))
    assert org_funded.scalar_one() == 0
    deletions = await db_session.execute(
        select(func.count())
        .select_from(AuditLog)
        .where(
            col(AuditLog.entity_type) == AuditEntityType.FUNDING_ALLOCATION.value,
            col(AuditLog.action) == AuditAction.DELETE.value,
        )
    )
    assert deletions.scalar_one() == 2


# ---------------------------------------------------------------------------
# Deactivation and lookups
# ---------------------------------------------------------------------------


async def test_deactivate_ends_the_active_set(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")
    await _allocate(
        async_client,
        employment,
        [_grant_allocation(grant_setup["slots"][0], 50), _org_allocation(grant_setup["grant_id"], 50)],
    )
    url = f"{ALLOCATIONS_URL}/employments/{employment['employment_id']}/deactivate"

    response = await async_client.post(url, json={"as_of": "2025-06-30"})
    assert response.status_code == 200, response.text
    assert response.json()["data"]["deactivated_count"] == 2

    listed = await async_client.get(ALLOCATIONS_URL, params={"employment_id": employment["employment_id"]})
    assert {a["end_date"] for a in listed.json()["data"]} == {"2025-06-30"}

    again = await async_client.post(url, json={"as_of": "2025-06-30"})
    assert again.json()["data"]["deactivated_count"] == 0

    response = await async_client.post(
        ALLOCATIONS_URL,
        json={**employment, "start_date": "2025-07-01", "allocations": [_org_allocation(grant_setup["grant_id"], 100)]},
    )
    assert response.status_code == 201, response.text


async def test_deactivate_missing_employment(async_client: AsyncClient) -> None:
    response = await async_client.post(
        f"{ALLOCATIONS_URL}/employments/00000000-0000-0000-0000-000000000000/deactivate", json={}
    )
    assert response.status_code == 404


async def test_allocations_by_grant_item(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    leaver = await _create_employment(async_client, "EMP001")
    stayer = await _create_employment(async_client, "EMP002")
    await _allocate(async_client, leaver, [_grant_allocation(grant_setup["slots"][0], 100)])
    await _allocate(async_client, stayer, [_grant_allocation(grant_setup["slots"][1], 100)])
    await async_client.post(
        f"{ALLOCATIONS_URL}/employments/{leaver['employment_id']}/deactivate", json={"as_of": "2025-03-31"}
    )

    response = await async_client.get(
        f"{ALLOCATIONS_URL}/by-grant-item/{grant_setup['item_id']}", params={"as_of": "2025-06-01"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert (data["total_allocations"], data["active_allocations"]) == (2, 1)
    assert {a["employment_id"] for a in data["allocations"]} == {leaver["employment_id"], stayer["employment_id"]}


async def test_get_single_allocation(async_client: AsyncClient, grant_setup: dict[str, Any]) -> None:
    employment = await _create_employment(async_client, "EMP001")
    created = await _allocate(async_client, employment, [_grant_allocation(grant_setup["slots"][0], 100)])
    allocation_id = created.json()["data"][0]["id"]

    response = await async_client.get(f"{ALLOCATIONS_URL}/{allocation_id}")
    assert response.status_code == 200
    assert response.json()["data"]["position_slot_id"] == grant_setup["slots"][0]

    response = await async_client.get(f"{ALLOCATIONS_URL}/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
