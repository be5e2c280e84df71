"""Funding allocation validator.

An employment's active allocations must add up to exactly 100% effort, and a
grant item never funds more concurrently active grant allocations than its
``grant_position_number``. Allocation sets are only ever created whole or
replaced whole.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, func, or_, select
from sqlmodel import col

from app.db import rollback_on_error
from app.exceptions import AppError
from app.models.employee import Employment
from app.models.enums import AllocationType, AuditAction, AuditEntityType
from app.models.funding import EmployeeFundingAllocation, Grant, GrantItem, OrgFundedAllocation, PositionSlot
from app.schemas.funding import (
    AllocationResponse,
    AllocationSummary,
    DeactivationResult,
    GrantItemAllocations,
    GrantItemCapacityResponse,
)
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.funding import (
        AllocationInput,
        CreateAllocationsPayload,
        DeactivateAllocationsPayload,
        ReplaceAllocationsPayload,
    )

logger = logging.getLogger(__name__)

_FULL_EFFORT = Decimal(100)
_FRACTION_PLACES = Decimal("0.0001")


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class EffortCheck:
    """Sum of an allocation set's effort percentages."""

    valid: bool
    total: Decimal


@dataclass
class CapacityCheck:
    """Occupancy of the grant item behind a position slot."""

    valid: bool
    current_count: int
    capacity: int | None
    grant_item_id: uuid.UUID


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _to_fraction(percentage: Decimal) -> Decimal:
    return (percentage / _FULL_EFFORT).quantize(_FRACTION_PLACES)


def _to_percentage(fraction: Decimal) -> Decimal:
    return (fraction * _FULL_EFFORT).quantize(Decimal("0.01"))


def _build_allocation_response(allocation: EmployeeFundingAllocation) -> AllocationResponse:
    return AllocationResponse(
        id=allocation.id,
        employee_id=allocation.employee_id,
        employment_id=allocation.employment_id,
        allocation_type=AllocationType(allocation.allocation_type),
        position_slot_id=allocation.position_slot_id,
        org_funded_id=allocation.org_funded_id,
        level_of_effort=_to_percentage(allocation.level_of_effort),
        allocated_amount=allocation.allocated_amount,
        start_date=allocation.start_date,
        end_date=allocation.end_date,
    )


def _active_on(as_of: date) -> list[ColumnElement[bool]]:
    return [
        col(EmployeeFundingAllocation.start_date) <= as_of,
        or_(
            col(EmployeeFundingAllocation.end_date).is_(None),
            col(EmployeeFundingAllocation.end_date) >= as_of,
        ),
    ]


async def _get_employment_or_404(session: AsyncSession, employment_id: uuid.UUID) -> Employment:
    employment = await session.get(Employment, employment_id)
    if employment is None:
        raise AppError("Employment not found", status_code=404)
    return employment


def _require_full_effort(allocations: list[AllocationInput]) -> None:
    check = validate_effort_total(allocations)
    if not check.valid:
        raise AppError(
            f"Total level of effort must equal 100% (currently {check.total.normalize():f}%)",
            status_code=400,
            data={"current_total": float(check.total)},
        )


async def _insert_allocation_set(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    employment_id: uuid.UUID,
    allocations: list[AllocationInput],
    start_date: date,
    end_date: date | None,
) -> list[EmployeeFundingAllocation]:
    """Insert a validated set one allocation at a time so capacity counts see earlier rows."""
    created: list[EmployeeFundingAllocation] = []
    for allocation_input in allocations:
        org_funded_id: uuid.UUID | None = None
        if allocation_input.allocation_type == AllocationType.GRANT and allocation_input.position_slot_id is not None:
            capacity = await check_grant_capacity(session, allocation_input.position_slot_id, start_date)
            if not capacity.valid:
                raise AppError(
                    "Grant position capacity exceeded",
                    status_code=400,
                    data={
                        "grant_item_id": str(capacity.grant_item_id),
                        "position_slot_id": str(allocation_input.position_slot_id),
                        "current_count": capacity.current_count,
                        "capacity": capacity.capacity,
                    },
                )
        elif allocation_input.grant_id is not None:
            if await session.get(Grant, allocation_input.grant_id) is None:
                raise AppError("Grant not found", status_code=404)
            org_funded = OrgFundedAllocation(
                grant_id=allocation_input.grant_id,
                department_position_id=allocation_input.department_position_id,
                description=allocation_input.description,
                created_by=actor.display_name,
                updated_by=actor.display_name,
            )
            session.add(org_funded)
            await session.flush()
            org_funded_id = org_funded.id

        allocation = EmployeeFundingAllocation(
            employee_id=employee_id,
            employment_id=employment_id,
            allocation_type=allocation_input.allocation_type.value,
            position_slot_id=(
                allocation_input.position_slot_id if allocation_input.allocation_type == AllocationType.GRANT else None
            ),
            org_funded_id=org_funded_id,
            level_of_effort=_to_fraction(allocation_input.level_of_effort),
            allocated_amount=allocation_input.allocated_amount,
            start_date=start_date,
            end_date=end_date,
            created_by=actor.display_name,
            updated_by=actor.display_name,
        )
        session.add(allocation)
        await session.flush()

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.FUNDING_ALLOCATION,
            entity_id=allocation.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(allocation),
        )
        created.append(allocation)
    return created


async def delete_allocation_set(session: AsyncSession, actor: Actor, employment_id: uuid.UUID) -> int:
    """Delete every allocation of an employment and the org-funded records only they used. Does not commit."""
    result = await session.execute(
        select(EmployeeFundingAllocation).where(col(EmployeeFundingAllocation.employment_id) == employment_id)
    )
    existing = list(result.scalars().all())
    if not existing:
        return 0

    existing_ids = [a.id for a in existing]
    org_funded_ids = {a.org_funded_id for a in existing if a.org_funded_id is not None}

    for allocation in existing:
        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.FUNDING_ALLOCATION,
            entity_id=allocation.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(allocation),
        )
        await session.delete(allocation)
    await session.flush()

    if org_funded_ids:
        still_used = await session.execute(
            select(col(EmployeeFundingAllocation.org_funded_id)).where(
                col(EmployeeFundingAllocation.org_funded_id).in_(org_funded_ids),
                col(EmployeeFundingAllocation.id).not_in(existing_ids),
            )
        )
        orphaned = org_funded_ids - set(still_used.scalars().all())
        for org_funded_id in orphaned:
            org_funded = await session.get(OrgFundedAllocation, org_funded_id)
            if org_funded is not None:
                await session.delete(org_funded)
        await session.flush()

    return len(existing)


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_effort_total(allocations: list[AllocationInput]) -> EffortCheck:
    """Sum the set's effort percentages; valid only at exactly 100."""
    total = sum((a.level_of_effort for a in allocations), Decimal(0))
    return EffortCheck(valid=total == _FULL_EFFORT, total=total)


async def check_grant_capacity(
    session: AsyncSession,
    position_slot_id: uuid.UUID,
    as_of: date,
    exclude_allocation_id: uuid.UUID | None = None,
) -> CapacityCheck:
    """Count grant allocations active on ``as_of`` across all slots of the slot's grant item.

    The grant item row is locked so concurrent allocations against the same
    item are serialised. A capacity of 0 or NULL is unlimited.
    """
    slot = await session.get(PositionSlot, position_slot_id)
    if slot is None:
        raise AppError("Position slot not found", status_code=404)

    item_result = await session.execute(
        select(GrantItem).where(col(GrantItem.id) == slot.grant_item_id).with_for_update()
    )
    item = item_result.scalar_one()

    query = (
        select(func.count())
        .select_from(EmployeeFundingAllocation)
        .join(PositionSlot, col(PositionSlot.id) == col(EmployeeFundingAllocation.position_slot_id))
        .where(
            col(PositionSlot.grant_item_id) == item.id,
            col(EmployeeFundingAllocation.allocation_type) == AllocationType.GRANT.value,
            *_active_on(as_of),
        )
    )
    if exclude_allocation_id is not None:
        query = query.where(col(EmployeeFundingAllocation.id) != exclude_allocation_id)
    count_result = await session.execute(query)
    current_count = int(count_result.scalar_one())

    capacity = item.grant_position_number or None
    return CapacityCheck(
        valid=capacity is None or current_count < capacity,
        current_count=current_count,
        capacity=capacity,
        grant_item_id=item.id,
    )


async def check_no_existing_active_allocation(
    session: AsyncSession,
    employee_id: uuid.UUID,
    employment_id: uuid.UUID,
    as_of: date,
) -> bool:
    """True when the employment has no allocation active on ``as_of``."""
    result = await session.execute(
        select(EmployeeFundingAllocation.id).where(
            col(EmployeeFundingAllocation.employee_id) == employee_id,
            col(EmployeeFundingAllocation.employment_id) == employment_id,
            *_active_on(as_of),
        )
    )
    return result.first() is None


# ---------------------------------------------------------------------------
# Allocation sets
# ---------------------------------------------------------------------------


async def create_allocation_set(
    session: AsyncSession,
    actor: Actor,
    employment: Employment,
    allocations: list[AllocationInput],
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[EmployeeFundingAllocation]:
    """Validate and insert an employment's first allocation set. Does not commit."""
    as_of = start_date or date.today()
    _require_full_effort(allocations)
    if not await check_no_existing_active_allocation(session, employment.employee_id, employment.id, as_of):
        raise AppError(
            "Employment already has active funding allocations; update them instead",
            status_code=400,
        )
    return await _insert_allocation_set(
        session, actor, employment.employee_id, employment.id, allocations, as_of, end_date
    )


async def replace_allocation_set(
    session: AsyncSession,
    actor: Actor,
    employment: Employment,
    allocations: list[AllocationInput],
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[EmployeeFundingAllocation]:
    """Delete the employment's allocations and insert a new validated set. Does not commit."""
    as_of = start_date or date.today()
    _require_full_effort(allocations)
    removed = await delete_allocation_set(session, actor, employment.id)
    created = await _insert_allocation_set(
        session, actor, employment.employee_id, employment.id, allocations, as_of, end_date
    )
    logger.info("Replaced %d allocations with %d for employment %s", removed, len(created), employment.id)
    return created


async def create_allocations(
    session: AsyncSession,
    actor: Actor,
    payload: CreateAllocationsPayload,
) -> list[AllocationResponse]:
    """Create an employment's allocation set."""
    async with rollback_on_error(session):
        employment = await _get_employment_or_404(session, payload.employment_id)
        if employment.employee_id != payload.employee_id:
            raise AppError("Employment does not belong to this employee", status_code=400)
        created = await create_allocation_set(
            session, actor, employment, payload.allocations, payload.start_date, payload.end_date
        )

    await session.commit()
    return [_build_allocation_response(a) for a in created]


async def replace_allocations(
    session: AsyncSession,
    actor: Actor,
    employment_id: uuid.UUID,
    payload: ReplaceAllocationsPayload,
) -> list[AllocationResponse]:
    """Replace an employment's allocation set wholesale; any failure writes nothing."""
    async with rollback_on_error(session):
        employment = await _get_employment_or_404(session, employment_id)
        created = await replace_allocation_set(
            session, actor, employment, payload.allocations, payload.start_date, payload.end_date
        )

    await session.commit()
    return [_build_allocation_response(a) for a in created]


async def deactivate_allocations(
    session: AsyncSession,
    actor: Actor,
    employment_id: uuid.UUID,
    payload: DeactivateAllocationsPayload,
) -> DeactivationResult:
    """End every allocation of the employment that is still running on ``as_of``.

    The set is ended as a whole so the remaining active effort is either 100% or nothing.
    """
    as_of = payload.as_of or date.today()
    async with rollback_on_error(session):
        employment = await _get_employment_or_404(session, employment_id)
        result = await session.execute(
            select(EmployeeFundingAllocation)
            .where(
                col(EmployeeFundingAllocation.employment_id) == employment.id,
                col(EmployeeFundingAllocation.start_date) <= as_of,
                or_(
                    col(EmployeeFundingAllocation.end_date).is_(None),
                    col(EmployeeFundingAllocation.end_date) > as_of,
                ),
            )
            .with_for_update()
        )
        allocations = list(result.scalars().all())

        for allocation in allocations:
            before = model_to_audit_dict(allocation)
            allocation.end_date = as_of
            allocation.updated_by = actor.display_name
            await write_audit_log(
                session,
                actor=actor,
                entity_type=AuditEntityType.FUNDING_ALLOCATION,
                entity_id=allocation.id,
                action=AuditAction.UPDATE,
                before_json=before,
                after_json=model_to_audit_dict(allocation),
            )
        await session.flush()

    await session.commit()
    logger.info("Deactivated %d allocations of employment %s as of %s", len(allocations), employment_id, as_of)
    return DeactivationResult(employment_id=employment_id, as_of=as_of, deactivated_count=len(allocations))


async def get_allocation(session: AsyncSession, allocation_id: uuid.UUID) -> AllocationResponse:
    """Get a single allocation."""
    allocation = await session.get(EmployeeFundingAllocation, allocation_id)
    if allocation is None:
        raise AppError("Employee funding allocation not found", status_code=404)
    return _build_allocation_response(allocation)


async def list_grant_item_allocations(
    session: AsyncSession,
    grant_item_id: uuid.UUID,
    as_of: date | None = None,
) -> GrantItemAllocations:
    """Grant allocations on any slot of a grant item, with how many are active on ``as_of``."""
    as_of = as_of or date.today()
    if await session.get(GrantItem, grant_item_id) is None:
        raise AppError("Grant item not found", status_code=404)

    result = await session.execute(
        select(EmployeeFundingAllocation)
        .join(PositionSlot, col(PositionSlot.id) == col(EmployeeFundingAllocation.position_slot_id))
        .where(
            col(PositionSlot.grant_item_id) == grant_item_id,
            col(EmployeeFundingAllocation.allocation_type) == AllocationType.GRANT.value,
        )
        .order_by(col(EmployeeFundingAllocation.created_at).desc())
    )
    allocations = list(result.scalars().all())
    active = [a for a in allocations if a.start_date <= as_of and (a.end_date is None or a.end_date >= as_of)]

    return GrantItemAllocations(
        grant_item_id=grant_item_id,
        as_of=as_of,
        total_allocations=len(allocations),
        active_allocations=len(active),
        allocations=[_build_allocation_response(a) for a in allocations],
    )


async def list_allocations(
    session: AsyncSession,
    employee_id: uuid.UUID | None = None,
    employment_id: uuid.UUID | None = None,
    active_on: date | None = None,
) -> list[AllocationResponse]:
    """List allocations with optional filters."""
    filters = []
    if employee_id is not None:
        filters.append(col(EmployeeFundingAllocation.employee_id) == employee_id)
    if employment_id is not None:
        filters.append(col(EmployeeFundingAllocation.employment_id) == employment_id)
    if active_on is not None:
        filters.extend(_active_on(active_on))

    result = await session.execute(
        select(EmployeeFundingAllocation)
        .where(*filters)
        .order_by(col(EmployeeFundingAllocation.start_date), col(EmployeeFundingAllocation.created_at))
    )
    return [_build_allocation_response(a) for a in result.scalars().all()]


async def get_allocation_summary(
    session: AsyncSession,
    employee_id: uuid.UUID,
    as_of: date | None = None,
) -> AllocationSummary:
    """Active allocations of an employee and their total effort percentage."""
    as_of = as_of or date.today()
    allocations = await list_allocations(session, employee_id=employee_id, active_on=as_of)
    return AllocationSummary(
        employee_id=employee_id,
        as_of=as_of,
        total_effort=sum((a.level_of_effort for a in allocations), Decimal(0)),
        allocations=allocations,
    )


async def get_grant_item_capacity(
    session: AsyncSession,
    grant_item_id: uuid.UUID,
    as_of: date | None = None,
) -> GrantItemCapacityResponse:
    """How many grant allocations a grant item funds on ``as_of`` and how many it may."""
    as_of = as_of or date.today()
    item = await session.get(GrantItem, grant_item_id)
    if item is None:
        raise AppError("Grant item not found", status_code=404)

    result = await session.execute(
        select(func.count())
        .select_from(EmployeeFundingAllocation)
        .join(PositionSlot, col(PositionSlot.id) == col(EmployeeFundingAllocation.position_slot_id))
        .where(
            col(PositionSlot.grant_item_id) == item.id,
            col(EmployeeFundingAllocation.allocation_type) == AllocationType.GRANT.value,
            *_active_on(as_of),
        )
    )
    current_count = int(result.scalar_one())
    capacity = item.grant_position_number or None

    return GrantItemCapacityResponse(
        grant_item_id=item.id,
        as_of=as_of,
        capacity=capacity,
        current_count=current_count,
        available=None if capacity is None else max(0, capacity - current_count),
    )
