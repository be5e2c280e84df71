# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import extract, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.db import rollback_on_error
from app.exceptions import AppError, LedgerInvariantError
from app.models.balance import LeaveBalance
from app.models.employee import Employee
from app.models.enums import AuditAction, AuditEntityType, LeaveRequestStatus
from app.models.leave_type import LeaveType
from app.models.request import LeaveRequest, LeaveRequestItem
from app.schemas.balance import BalanceResponse, EmployeeBalanceResponse
from app.schemas.common import PaginationMeta
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.balance import CreateBalanceRequest, UpdateBalanceRequest

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class AvailabilityCheck:
    """Outcome of checking requested days against a balance."""

    valid: bool
    available_days: Decimal
    requested_days: Decimal
    shortfall: Decimal | None = None


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _recompute_remaining(balance: LeaveBalance) -> None:
    balance.remaining_days = balance.total_days - balance.used_days


def _build_balance_response(balance: LeaveBalance) -> BalanceResponse:
    """Map a balance model to its response schema."""
    return BalanceResponse.model_validate(balance)


async def _get_leave_type_or_404(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    result = await session.execute(select(LeaveType).where(col(LeaveType.id) == leave_type_id))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise AppError("Leave type not found", status_code=404)
    return leave_type


async def _find_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    query = select(LeaveBalance).where(
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.leave_type_id) == leave_type_id,
        col(LeaveBalance.year) == year,
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def _get_or_create_balance_for_update(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Get the balance row with a FOR UPDATE lock, creating it if absent.

    A new row starts with the leave type's default entitlement and nothing used.
    """
    balance = await _find_balance(session, employee_id, leave_type_id, year, for_update=True)
    if balance is None:
        leave_type = await _get_leave_type_or_404(session, leave_type_id)
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            total_days=leave_type.default_duration,
            used_days=_ZERO,
            remaining_days=leave_type.default_duration,
            created_by=actor.display_name,
            updated_by=actor.display_name,
        )
        session.add(balance)
        await session.flush()
    return balance


async def _approved_days_for_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> Decimal:
    """Days an approved request already holds against a balance; zero otherwise."""
    result = await session.execute(
        select(col(LeaveRequestItem.days))
        .join(LeaveRequest, col(LeaveRequest.id) == col(LeaveRequestItem.leave_request_id))
        .where(
            col(LeaveRequest.id) == request_id,
            col(LeaveRequest.status) == LeaveRequestStatus.APPROVED.value,
            extract("year", col(LeaveRequest.start_date)) == year,
            col(LeaveRequestItem.leave_type_id) == leave_type_id,
        )
    )
    return sum(result.scalars().all(), _ZERO)


# ---------------------------------------------------------------------------
# Ledger operations (run inside the caller's transaction, never commit)
# ---------------------------------------------------------------------------


async def get_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Return the balance row for an employee, leave type and year, or raise 404."""
    balance = await _find_balance(session, employee_id, leave_type_id, year)
    if balance is None:
        raise AppError("Leave balance not found", status_code=404)
    return balance


async def check_availability(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    requested_days: Decimal,
    year: int,
    exclude_request_id: uuid.UUID | None = None,
) -> AvailabilityCheck:
    """Check whether ``requested_days`` fit in the balance.

    When ``exclude_request_id`` names an approved request, the days it already
    holds on this balance count as available so a request being edited is not
    charged against itself. A missing row is treated as a fresh one sized by
    the leave type's default entitlement.
    """
    balance = await _find_balance(session, employee_id, leave_type_id, year)
    if balance is None:
        leave_type = await _get_leave_type_or_404(session, leave_type_id)
        available = leave_type.default_duration
    else:
        available = balance.total_days - balance.used_days

    if exclude_request_id is not None:
        available += await _approved_days_for_request(session, exclude_request_id, leave_type_id, year)

    if available < requested_days:
        return AvailabilityCheck(
            valid=False,
            available_days=available,
            requested_days=requested_days,
            shortfall=requested_days - available,
        )
    return AvailabilityCheck(valid=True, available_days=available, requested_days=requested_days)


async def require_availability(
    session: AsyncSession,
    employee_id: uuid.UUID,
    items: list[tuple[uuid.UUID, Decimal]],
    year: int,
    exclude_request_id: uuid.UUID | None = None,
) -> None:
    """Check every ``(leave_type_id, days)`` pair; the first shortfall raises a 400."""
    for leave_type_id, days in items:
        check = await check_availability(session, employee_id, leave_type_id, days, year, exclude_request_id)
        if check.valid:
            continue
        leave_type = await _get_leave_type_or_404(session, leave_type_id)
        raise AppError(
            f"Insufficient {leave_type.name} balance: {check.available_days} days available, {days} requested",
            status_code=400,
            data={
                "leave_type": leave_type.name,
                "leave_type_id": str(leave_type_id),
                "available_days": float(check.available_days),
                "requested_days": float(check.requested_days),
                "shortfall": float(check.shortfall or _ZERO),
            },
        )


async def deduct(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    days: Decimal,
    year: int,
) -> LeaveBalance:
    """Charge ``days`` to the balance.

    Availability must already have been checked; a deduction that would leave
    the balance negative raises ``LedgerInvariantError`` instead of clamping.
    """
    balance = await _get_or_create_balance_for_update(session, actor, employee_id, leave_type_id, year)

    new_used = balance.used_days + days
    if new_used > balance.total_days:
        raise LedgerInvariantError(
            "Deduction would make the leave balance negative",
            data={
                "employee_id": str(employee_id),
                "leave_type_id": str(leave_type_id),
                "year": year,
                "total_days": float(balance.total_days),
                "used_days": float(balance.used_days),
                "requested_days": float(days),
            },
        )

    balance.used_days = new_used
    _recompute_remaining(balance)
    balance.updated_by = actor.display_name
    await session.flush()

    logger.info(
        "Deducted %s days from balance %s (employee=%s, leave_type=%s, year=%s)",
        days,
        balance.id,
        employee_id,
        leave_type_id,
        year,
    )
    return balance


async def restore(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    days: Decimal,
    year: int,
) -> LeaveBalance:
    """Give ``days`` back to the balance. Used days never drop below zero."""
    balance = await _get_or_create_balance_for_update(session, actor, employee_id, leave_type_id, year)

    balance.used_days = max(_ZERO, balance.used_days - days)
    _recompute_remaining(balance)
    balance.updated_by = actor.display_name
    await session.flush()

    logger.info(
        "Restored %s days to balance %s (employee=%s, leave_type=%s, year=%s)",
        days,
        balance.id,
        employee_id,
        leave_type_id,
        year,
    )
    return balance


async def bulk_initialize(
    session: AsyncSession,
    actor: Actor,
    leave_type_id: uuid.UUID,
    default_days: Decimal,
    year: int,
) -> int:
    """Create a zero-used balance for every employee lacking one. Returns the count created."""
    existing = select(col(LeaveBalance.employee_id)).where(
        col(LeaveBalance.leave_type_id) == leave_type_id,
        col(LeaveBalance.year) == year,
    )
    result = await session.execute(select(col(Employee.id)).where(col(Employee.id).not_in(existing)))
    employee_ids = list(result.scalars().all())

    for employee_id in employee_ids:
        session.add(
            LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type_id,
                year=year,
                total_days=default_days,
                used_days=_ZERO,
                remaining_days=default_days,
                created_by=actor.display_name,
                updated_by=actor.display_name,
            )
        )
    if employee_ids:
        await session.flush()
        logger.info("Initialised %d balances for leave type %s, year %s", len(employee_ids), leave_type_id, year)
    return len(employee_ids)


async def ensure_employee_balances(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    year: int,
) -> int:
    """Create the default balance for every leave type the employee has none for in ``year``."""
    existing = select(col(LeaveBalance.leave_type_id)).where(
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.year) == year,
    )
    result = await session.execute(select(LeaveType).where(col(LeaveType.id).not_in(existing)))
    missing = list(result.scalars().all())

    for leave_type in missing:
        session.add(
            LeaveBalance(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                year=year,
                total_days=leave_type.default_duration,
                used_days=_ZERO,
                remaining_days=leave_type.default_duration,
                created_by=actor.display_name,
                updated_by=actor.display_name,
            )
        )
    if missing:
        await session.flush()
    return len(missing)


# ---------------------------------------------------------------------------
# Admin CRUD
# ---------------------------------------------------------------------------


async def _get_balance_by_id_or_404(session: AsyncSession, balance_id: uuid.UUID) -> LeaveBalance:
    result = await session.execute(select(LeaveBalance).where(col(LeaveBalance.id) == balance_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise AppError("Leave balance not found", status_code=404)
    return balance


async def create_balance(
    session: AsyncSession,
    actor: Actor,
    payload: CreateBalanceRequest,
) -> BalanceResponse:
    """Create a balance row for an employee, leave type and year."""
    employee = await session.get(Employee, payload.employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    await _get_leave_type_or_404(session, payload.leave_type_id)

    if await _find_balance(session, payload.employee_id, payload.leave_type_id, payload.year) is not None:
        raise AppError("Leave balance already exists for this employee, leave type and year", status_code=400)

    balance = LeaveBalance(
        employee_id=payload.employee_id,
        leave_type_id=payload.leave_type_id,
        year=payload.year,
        total_days=payload.total_days,
        used_days=_ZERO,
        remaining_days=payload.total_days,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(balance)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError(
            "Leave balance already exists for this employee, leave type and year", status_code=400
        ) from None

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_BALANCE,
        entity_id=balance.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(balance),
    )

    await session.commit()
    await session.refresh(balance)
    return _build_balance_response(balance)


async def update_balance(
    session: AsyncSession,
    actor: Actor,
    balance_id: uuid.UUID,
    payload: UpdateBalanceRequest,
) -> BalanceResponse:
    """Correct a balance's total or used days; remaining days are recomputed."""
    async with rollback_on_error(session):
        balance = await _get_balance_by_id_or_404(session, balance_id)
        before = model_to_audit_dict(balance)

        total_days = payload.total_days if payload.total_days is not None else balance.total_days
        used_days = payload.used_days if payload.used_days is not None else balance.used_days
        if used_days > total_days:
            raise AppError(
                "Used days cannot exceed total days",
                status_code=400,
                data={"total_days": float(total_days), "used_days": float(used_days)},
            )

        balance.total_days = total_days
        balance.used_days = used_days
        _recompute_remaining(balance)
        balance.updated_by = actor.display_name
        await session.flush()

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_BALANCE,
            entity_id=balance.id,
            action=AuditAction.UPDATE,
            before_json=before,
            after_json=model_to_audit_dict(balance),
        )

    await session.commit()
    await session.refresh(balance)
    return _build_balance_response(balance)


async def list_balances(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    leave_type_id: uuid.UUID | None = None,
    year: int | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[BalanceResponse], PaginationMeta]:
    """List balance rows with optional filters."""
    filters = []
    if employee_id is not None:
        filters.append(col(LeaveBalance.employee_id) == employee_id)
    if leave_type_id is not None:
        filters.append(col(LeaveBalance.leave_type_id) == leave_type_id)
    if year is not None:
        filters.append(col(LeaveBalance.year) == year)

    count_result = await session.execute(select(func.count()).select_from(LeaveBalance).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveBalance)
        .where(*filters)
        .order_by(col(LeaveBalance.year).desc(), col(LeaveBalance.created_at))
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    balances = list(result.scalars().all())

    return [_build_balance_response(b) for b in balances], PaginationMeta.build(page, per_page, total)


async def list_employee_balances(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    year: int,
) -> list[EmployeeBalanceResponse]:
    """Ensure the employee has a balance per leave type for ``year``, then list them."""
    employee = await session.get(Employee, employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=404)

    created = await ensure_employee_balances(session, actor, employee_id, year)
    if created:
        await session.commit()

    result = await session.execute(
        select(LeaveBalance, LeaveType)
        .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
        .where(
            col(LeaveBalance.employee_id) == employee_id,
            col(LeaveBalance.year) == year,
        )
        .order_by(col(LeaveType.name))
    )

    return [
        EmployeeBalanceResponse(
            employee_id=employee.id,
            employee_name=f"{employee.first_name} {employee.last_name}",
            staff_id=employee.staff_id,
            leave_type_id=leave_type.id,
            leave_type_name=leave_type.name,
            leave_type_description=leave_type.description,
            requires_attachment=leave_type.requires_attachment,
            year=balance.year,
            total_days=balance.total_days,
            used_days=balance.used_days,
            remaining_days=balance.remaining_days,
        )
        for balance, leave_type in result.all()
    ]
