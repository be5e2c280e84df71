"""Tests for the balance ledger: admin CRUD, availability checks, deduct/restore invariants."""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import select
from sqlmodel import col

from app.exceptions import AppError, LedgerInvariantError
from app.models.balance import LeaveBalance
from app.models.employee import Employee
from app.models.leave_type import LeaveType
from app.schemas.auth import Actor
from app.services import balance as balance_service

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

BALANCES_URL = "/leave-balances"
YEAR = 2025
ACTOR = Actor(name="Ledger Tester", role="hr")


async def _seed(session: AsyncSession, default_duration: str = "10") -> tuple[Employee, LeaveType]:
    employee = Employee(staff_id="EMP001", first_name="Ana", last_name="Lopez")
    leave_type = LeaveType(name="Annual Leave", default_duration=Decimal(default_duration))
    session.add_all([employee, leave_type])
    await session.commit()
    return employee, leave_type


async def _create_balance(client: AsyncClient, employee_id: Any, leave_type_id: Any, total: float = 10) -> dict:
    response = await client.post(
        BALANCES_URL,
        json={
            "employee_id": str(employee_id),
            "leave_type_id": str(leave_type_id),
            "total_days": total,
            "year": YEAR,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _reload(session: AsyncSession, balance_id: Any) -> LeaveBalance:
    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.id) == uuid.UUID(str(balance_id)))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------


async def test_create_balance(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    data = await _create_balance(async_client, employee.id, leave_type.id, total=15)
    assert data["total_days"] == 15.0
    assert data["used_days"] == 0.0
    assert data["remaining_days"] == 15.0
    assert data["year"] == YEAR
    assert data["created_by"] == "Hannah HR"


async def test_create_duplicate_balance(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    await _create_balance(async_client, employee.id, leave_type.id)

    response = await async_client.post(
        BALANCES_URL,
        json={"employee_id": str(employee.id), "leave_type_id": str(leave_type.id), "total_days": 5, "year": YEAR},
    )
    assert response.status_code == 400


async def test_create_balance_unknown_employee(async_client: AsyncClient, db_session: AsyncSession) -> None:
    _, leave_type = await _seed(db_session)
    response = await async_client.post(
        BALANCES_URL,
        json={
            "employee_id": "00000000-0000-0000-0000-000000000000",
            "leave_type_id": str(leave_type.id),
            "total_days": 5,
            "year": YEAR,
        },
    )
    assert response.status_code == 404


async def test_update_balance_recomputes_remaining(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    created = await _create_balance(async_client, employee.id, leave_type.id)

    response = await async_client.put(f"{BALANCES_URL}/{created['id']}", json={"total_days": 12, "used_days": 4})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_days"] == 12.0
    assert data["used_days"] == 4.0
    assert data["remaining_days"] == 8.0


async def test_update_balance_used_above_total(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    created = await _create_balance(async_client, employee.id, leave_type.id)

    response = await async_client.put(f"{BALANCES_URL}/{created['id']}", json={"used_days": 11})
    assert response.status_code == 400
    assert response.json()["data"] == {"total_days": 10.0, "used_days": 11.0}

    balance = await _reload(db_session, created["id"])
    assert balance.used_days == Decimal(0)
    assert balance.remaining_days == Decimal(10)


async def test_list_balances_filters_by_year(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    await _create_balance(async_client, employee.id, leave_type.id)

    response = await async_client.get(BALANCES_URL, params={"year": YEAR})
    body = response.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["employee_id"] == str(employee.id)

    response = await async_client.get(BALANCES_URL, params={"year": YEAR + 1})
    assert response.json()["pagination"]["total"] == 0


async def test_list_employee_balances_creates_missing_defaults(
    async_client: AsyncClient,
    db_session: AsyncSession,
) -> None:
    employee, _ = await _seed(db_session, default_duration="7")

    response = await async_client.get(f"{BALANCES_URL}/employees/{employee.id}", params={"year": YEAR})
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["leave_type_name"] == "Annual Leave"
    assert data[0]["employee_name"] == "Ana Lopez"
    assert data[0]["total_days"] == 7.0
    assert data[0]["remaining_days"] == 7.0

    # A second call finds the rows and creates nothing new.
    await async_client.get(f"{BALANCES_URL}/employees/{employee.id}", params={"year": YEAR})
    result = await db_session.execute(select(LeaveBalance).where(col(LeaveBalance.employee_id) == employee.id))
    assert len(result.scalars().all()) == 1


async def test_check_availability_endpoint(async_client: AsyncClient, db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    await _create_balance(async_client, employee.id, leave_type.id, total=5)

    url = f"{BALANCES_URL}/employees/{employee.id}/leave-types/{leave_type.id}/availability"
    ok = await async_client.get(url, params={"days": 5, "year": YEAR})
    assert ok.json()["data"]["valid"] is True
    assert ok.json()["data"]["shortfall"] is None

    short = await async_client.get(url, params={"days": 6.5, "year": YEAR})
    data = short.json()["data"]
    assert data["valid"] is False
    assert data["available_days"] == 5.0
    assert data["shortfall"] == 1.5


# ---------------------------------------------------------------------------
# Ledger operations
# ---------------------------------------------------------------------------


async def test_check_availability_without_row_uses_default_entitlement(db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session, default_duration="3")

    check = await balance_service.check_availability(db_session, employee.id, leave_type.id, Decimal(4), YEAR)
    assert check.valid is False
    assert check.available_days == Decimal(3)
    assert check.shortfall == Decimal(1)


async def test_deduct_then_restore_keeps_invariant(db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)

    balance = await balance_service.deduct(db_session, ACTOR, employee.id, leave_type.id, Decimal("2.5"), YEAR)
    assert balance.used_days == Decimal("2.5")
    assert balance.remaining_days == balance.total_days - balance.used_days

    balance = await balance_service.restore(db_session, ACTOR, employee.id, leave_type.id, Decimal("1"), YEAR)
    assert balance.used_days == Decimal("1.5")
    assert balance.remaining_days == Decimal("8.5")


async def test_deduct_beyond_total_raises_invariant_error(db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)

    with pytest.raises(LedgerInvariantError):
        await balance_service.deduct(db_session, ACTOR, employee.id, leave_type.id, Decimal(11), YEAR)


async def test_restore_never_goes_below_zero(db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)
    await balance_service.deduct(db_session, ACTOR, employee.id, leave_type.id, Decimal(2), YEAR)

    balance = await balance_service.restore(db_session, ACTOR, employee.id, leave_type.id, Decimal(5), YEAR)
    assert balance.used_days == Decimal(0)
    assert balance.remaining_days == balance.total_days


async def test_require_availability_reports_shortfall(db_session: AsyncSession) -> None:
    employee, leave_type = await _seed(db_session)

    with pytest.raises(AppError) as exc_info:
        await balance_service.require_availability(db_session, employee.id, [(leave_type.id, Decimal(12))], YEAR)

    assert exc_info.value.status_code == 400
    assert exc_info.value.data is not None
    assert exc_info.value.data["shortfall"] == 2.0
    assert exc_info.value.data["requested_days"] == 12.0
