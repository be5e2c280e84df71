from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.exceptions import AppError
from app.models.enums import AuditAction, AuditEntityType
from app.models.funding import Grant, GrantItem, PositionSlot
from app.schemas.funding import GrantItemResponse, GrantResponse, PositionSlotResponse
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.funding import CreateGrantItemRequest, CreateGrantRequest


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _build_grant_item_response(session: AsyncSession, item: GrantItem) -> GrantItemResponse:
    slots_result = await session.execute(
        select(PositionSlot).where(col(PositionSlot.grant_item_id) == item.id).order_by(col(PositionSlot.slot_number))
    )
    return GrantItemResponse(
        id=item.id,
        grant_id=item.grant_id,
        grant_position=item.grant_position,
        grant_position_number=item.grant_position_number,
        grant_salary=item.grant_salary,
        slots=[PositionSlotResponse.model_validate(s) for s in slots_result.scalars().all()],
    )


async def _build_grant_response(session: AsyncSession, grant: Grant) -> GrantResponse:
    items_result = await session.execute(
        select(GrantItem).where(col(GrantItem.grant_id) == grant.id).order_by(col(GrantItem.created_at))
    )
    return GrantResponse(
        id=grant.id,
        code=grant.code,
        name=grant.name,
        items=[await _build_grant_item_response(session, item) for item in items_result.scalars().all()],
    )


async def _get_grant_or_404(session: AsyncSession, grant_id: uuid.UUID) -> Grant:
    grant = await session.get(Grant, grant_id)
    if grant is None:
        raise AppError("Grant not found", status_code=404)
    return grant


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_grant(session: AsyncSession, actor: Actor, payload: CreateGrantRequest) -> GrantResponse:
    """Create a grant."""
    grant = Grant(
        code=payload.code,
        name=payload.name,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(grant)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError("A grant with this code already exists", status_code=409) from None

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.GRANT,
        entity_id=grant.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(grant),
    )

    await session.commit()
    await session.refresh(grant)
    return await _build_grant_response(session, grant)


async def add_grant_item(
    session: AsyncSession,
    actor: Actor,
    grant_id: uuid.UUID,
    payload: CreateGrantItemRequest,
) -> GrantItemResponse:
    """Add a position line to a grant together with its numbered slots."""
    grant = await _get_grant_or_404(session, grant_id)

    item = GrantItem(
        grant_id=grant.id,
        grant_position=payload.grant_position,
        grant_position_number=payload.grant_position_number,
        grant_salary=payload.grant_salary,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(item)
    await session.flush()

    slot_count = payload.slot_count or payload.grant_position_number or 1
    for slot_number in range(1, slot_count + 1):
        session.add(
            PositionSlot(
                grant_item_id=item.id,
                slot_number=slot_number,
                created_by=actor.display_name,
                updated_by=actor.display_name,
            )
        )
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.GRANT,
        entity_id=grant.id,
        action=AuditAction.UPDATE,
        after_json={"grant_item": model_to_audit_dict(item), "slots": slot_count},
    )

    await session.commit()
    await session.refresh(item)
    return await _build_grant_item_response(session, item)


async def get_grant(session: AsyncSession, grant_id: uuid.UUID) -> GrantResponse:
    """Get a grant with its items and slots."""
    return await _build_grant_response(session, await _get_grant_or_404(session, grant_id))


async def list_grants(session: AsyncSession) -> list[GrantResponse]:
    """List grants ordered by code."""
    result = await session.execute(select(Grant).order_by(col(Grant.code)))
    return [await _build_grant_response(session, g) for g in result.scalars().all()]
