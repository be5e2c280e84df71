# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.schemas.balance import (
    AvailabilityResponse,
    BalanceResponse,
    CreateBalanceRequest,
    EmployeeBalanceResponse,
    UpdateBalanceRequest,
)
from app.schemas.common import Envelope, PaginatedEnvelope
from app.services import balance as balance_service

balances_router = APIRouter(prefix="/leave-balances", tags=["leave-balances"])


@balances_router.get("", response_model=PaginatedEnvelope[BalanceResponse])
async def list_balances(
    session: SessionDep,
    employee_id: uuid.UUID | None = Query(default=None),
    leave_type_id: uuid.UUID | None = Query(default=None),
    year: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
) -> PaginatedEnvelope[BalanceResponse]:
    """List balances with optional filters."""
    balances, pagination = await balance_service.list_balances(
        session, employee_id, leave_type_id, year, page, per_page
    )
    return PaginatedEnvelope(message="Leave balances retrieved successfully", data=balances, pagination=pagination)


@balances_router.post("", response_model=Envelope[BalanceResponse], status_code=status.HTTP_201_CREATED)
async def create_balance(
    payload: CreateBalanceRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[BalanceResponse]:
    """Create a balance for an employee, leave type and year."""
    balance = await balance_service.create_balance(session, actor, payload)
    return Envelope(message="Leave balance created successfully", data=balance)


@balances_router.put("/{balance_id}", response_model=Envelope[BalanceResponse])
async def update_balance(
    balance_id: uuid.UUID,
    payload: UpdateBalanceRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[BalanceResponse]:
    """Adjust a balance's total or used days; remaining is recomputed."""
    balance = await balance_service.update_balance(session, actor, balance_id, payload)
    return Envelope(message="Leave balance updated successfully", data=balance)


@balances_router.get("/employees/{employee_id}", response_model=Envelope[list[EmployeeBalanceResponse]])
async def list_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
    year: int | None = Query(default=None),
) -> Envelope[list[EmployeeBalanceResponse]]:
    """List an employee's balances for a year, creating any missing default rows."""
    balances = await balance_service.list_employee_balances(
        session, actor, employee_id, year or date.today().year
    )
    return Envelope(message="Employee leave balances retrieved successfully", data=balances)


@balances_router.get(
    "/employees/{employee_id}/leave-types/{leave_type_id}",
    response_model=Envelope[BalanceResponse],
)
async def get_balance(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    year: int | None = Query(default=None),
) -> Envelope[BalanceResponse]:
    """Get one balance row."""
    balance = await balance_service.get_balance(session, employee_id, leave_type_id, year or date.today().year)
    return Envelope(message="Leave balance retrieved successfully", data=BalanceResponse.model_validate(balance))


@balances_router.get(
    "/employees/{employee_id}/leave-types/{leave_type_id}/availability",
    response_model=Envelope[AvailabilityResponse],
)
async def check_availability(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    days: Decimal = Query(gt=0, max_digits=6, decimal_places=2),
    year: int | None = Query(default=None),
    exclude_request_id: uuid.UUID | None = Query(default=None),
) -> Envelope[AvailabilityResponse]:
    """Check whether ``days`` fit in the balance without changing it."""
    year = year or date.today().year
    check = await balance_service.check_availability(
        session, employee_id, leave_type_id, days, year, exclude_request_id
    )
    return Envelope(
        message="Sufficient balance" if check.valid else "Insufficient balance",
        data=AvailabilityResponse(
            valid=check.valid,
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            available_days=check.available_days,
            requested_days=check.requested_days,
            shortfall=check.shortfall,
        ),
    )
