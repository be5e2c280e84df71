"""Approval evaluator: the single place where a leave request changes status.

Two entry points share ``apply_status_transition``:

* a direct status change (``change_status`` in the request service), and
* ``evaluate_request_status``, which derives the status from the latest
  approval recorded for each required approver role.

Only an actual transition touches the balance ledger, so repeated calls with
no status change never deduct or restore twice.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from app.config import get_settings
from app.db import rollback_on_error
from app.exceptions import AppError
from app.models.enums import ApprovalStatus, AuditAction, AuditEntityType, LeaveRequestStatus
from app.models.request import LeaveRequest, LeaveRequestApproval, LeaveRequestItem
from app.schemas.request import ApprovalDecisionResponse, ApprovalResponse
from app.services import balance as balance_service
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.statistics import invalidate_statistics

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.request import CreateApprovalPayload, UpdateApprovalPayload

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[LeaveRequestStatus, frozenset[LeaveRequestStatus]] = {
    LeaveRequestStatus.PENDING: frozenset(
        {LeaveRequestStatus.APPROVED, LeaveRequestStatus.DECLINED, LeaveRequestStatus.CANCELLED}
    ),
    LeaveRequestStatus.APPROVED: frozenset({LeaveRequestStatus.DECLINED, LeaveRequestStatus.CANCELLED}),
    LeaveRequestStatus.DECLINED: frozenset(),
    LeaveRequestStatus.CANCELLED: frozenset(),
}

_AUDIT_ACTIONS = {
    LeaveRequestStatus.APPROVED: AuditAction.APPROVE,
    LeaveRequestStatus.DECLINED: AuditAction.DECLINE,
    LeaveRequestStatus.CANCELLED: AuditAction.CANCEL,
    LeaveRequestStatus.PENDING: AuditAction.REOPEN,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_approval_response(approval: LeaveRequestApproval) -> ApprovalResponse:
    return ApprovalResponse.model_validate(approval)


async def _get_request_for_update(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
    result = await session.execute(
        select(LeaveRequest).where(col(LeaveRequest.id) == request_id).with_for_update()
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError("Leave request not found", status_code=404)
    return request


async def _get_approval_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    approval_id: uuid.UUID,
) -> LeaveRequestApproval:
    result = await session.execute(
        select(LeaveRequestApproval).where(
            col(LeaveRequestApproval.id) == approval_id,
            col(LeaveRequestApproval.leave_request_id) == request_id,
        )
    )
    approval = result.scalar_one_or_none()
    if approval is None:
        raise AppError("Approval not found", status_code=404)
    return approval


async def _load_items(session: AsyncSession, request_id: uuid.UUID) -> list[LeaveRequestItem]:
    result = await session.execute(
        select(LeaveRequestItem)
        .where(col(LeaveRequestItem.leave_request_id) == request_id)
        .order_by(col(LeaveRequestItem.created_at))
    )
    return list(result.scalars().all())


def _decision_date(status: ApprovalStatus, supplied: datetime | None) -> datetime | None:
    if supplied is not None:
        return supplied
    return None if status == ApprovalStatus.PENDING else datetime.now(UTC)


async def _after_commit() -> None:
    await invalidate_statistics()


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------


def validate_transition(
    current: LeaveRequestStatus,
    target: LeaveRequestStatus,
    *,
    allow_reopen: bool = False,
) -> None:
    """Raise 400 unless ``current -> target`` is a legal move.

    ``allow_reopen`` additionally permits ``approved -> pending``, which only
    the approval evaluator produces when an approver withdraws a decision.
    """
    if target in _TRANSITIONS[current]:
        return
    if allow_reopen and current == LeaveRequestStatus.APPROVED and target == LeaveRequestStatus.PENDING:
        return
    raise AppError(
        f"Cannot change leave request status from {current.value} to {target.value}",
        status_code=400,
        data={"current_status": current.value, "requested_status": target.value},
    )


async def apply_status_transition(
    session: AsyncSession,
    actor: Actor,
    request: LeaveRequest,
    new_status: LeaveRequestStatus,
    *,
    allow_reopen: bool = False,
) -> bool:
    """Move ``request`` to ``new_status`` and apply its ledger effect once.

    Leaving ``approved`` restores every item; entering ``approved`` checks every
    item's availability first and then deducts. Returns False when the status
    is unchanged. Does not commit.
    """
    current = LeaveRequestStatus(request.status)
    if current == new_status:
        return False
    validate_transition(current, new_status, allow_reopen=allow_reopen)

    before = model_to_audit_dict(request)
    items = await _load_items(session, request.id)
    year = request.start_date.year

    if current == LeaveRequestStatus.APPROVED:
        for item in items:
            await balance_service.restore(session, actor, request.employee_id, item.leave_type_id, item.days, year)
    elif new_status == LeaveRequestStatus.APPROVED:
        await balance_service.require_availability(
            session, request.employee_id, [(item.leave_type_id, item.days) for item in items], year
        )
        for item in items:
            await balance_service.deduct(session, actor, request.employee_id, item.leave_type_id, item.days, year)

    request.status = new_status.value
    request.updated_by = actor.display_name
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=request.id,
        action=_AUDIT_ACTIONS[new_status],
        before_json=before,
        after_json=model_to_audit_dict(request),
    )
    logger.info("Leave request %s moved from %s to %s", request.id, current.value, new_status.value)
    return True


async def evaluate_request_status(
    session: AsyncSession,
    actor: Actor,
    request: LeaveRequest,
) -> bool:
    """Derive the request's status from its approvals and apply any change.

    Only the latest approval of each configured required role counts: any
    declined gives ``declined``, all approved gives ``approved``, anything
    else ``pending``. A request without approvals is left alone. Does not
    commit.
    """
    result = await session.execute(
        select(LeaveRequestApproval)
        .where(col(LeaveRequestApproval.leave_request_id) == request.id)
        .order_by(col(LeaveRequestApproval.decided_at), col(LeaveRequestApproval.created_at))
    )
    approvals = list(result.scalars().all())
    if not approvals:
        return False

    latest: dict[str, LeaveRequestApproval] = {}
    for approval in approvals:
        latest[approval.approver_role.casefold()] = approval

    required = [role.casefold() for role in get_settings().leave_required_approver_roles]
    decisions = [latest[role].status if role in latest else None for role in required]

    if ApprovalStatus.DECLINED.value in decisions:
        target = LeaveRequestStatus.DECLINED
    elif decisions and all(d == ApprovalStatus.APPROVED.value for d in decisions):
        target = LeaveRequestStatus.APPROVED
    else:
        target = LeaveRequestStatus.PENDING

    current = LeaveRequestStatus(request.status)
    if current == target:
        return False
    if current in (LeaveRequestStatus.DECLINED, LeaveRequestStatus.CANCELLED):
        raise AppError(
            f"Leave request is {current.value} and its status can no longer change",
            status_code=400,
            data={"current_status": current.value, "derived_status": target.value},
        )
    return await apply_status_transition(session, actor, request, target, allow_reopen=True)


# ---------------------------------------------------------------------------
# Approval records
# ---------------------------------------------------------------------------


async def create_approval(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    payload: CreateApprovalPayload,
) -> ApprovalDecisionResponse:
    """Record an approver's decision and re-evaluate the request.

    If the resulting transition fails (e.g. insufficient balance) nothing is
    written, including the approval itself.
    """
    async with rollback_on_error(session):
        request = await _get_request_for_update(session, request_id)

        approval = LeaveRequestApproval(
            leave_request_id=request.id,
            approver_role=payload.approver_role,
            approver_name=payload.approver_name,
            approver_signature=payload.approver_signature,
            status=payload.status.value,
            approval_date=_decision_date(payload.status, payload.approval_date),
            created_by=actor.display_name,
            updated_by=actor.display_name,
        )
        session.add(approval)
        await session.flush()

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_APPROVAL,
            entity_id=approval.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(approval),
        )

        await evaluate_request_status(session, actor, request)
        request_status = LeaveRequestStatus(request.status)

    await session.commit()
    await _after_commit()
    await session.refresh(approval)
    return ApprovalDecisionResponse(approval=_build_approval_response(approval), request_status=request_status)


async def update_approval(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    approval_id: uuid.UUID,
    payload: UpdateApprovalPayload,
) -> ApprovalDecisionResponse:
    """Change an approver's decision and re-evaluate the request."""
    async with rollback_on_error(session):
        request = await _get_request_for_update(session, request_id)
        approval = await _get_approval_or_404(session, request_id, approval_id)
        before = model_to_audit_dict(approval)

        if payload.approver_name is not None:
            approval.approver_name = payload.approver_name
        if payload.approver_signature is not None:
            approval.approver_signature = payload.approver_signature
        if payload.status is not None and payload.status.value != approval.status:
            approval.status = payload.status.value
            approval.approval_date = _decision_date(payload.status, payload.approval_date)
            approval.decided_at = datetime.now(UTC)
        elif payload.approval_date is not None:
            approval.approval_date = payload.approval_date
        approval.updated_by = actor.display_name
        approval.updated_at = datetime.now(UTC)
        await session.flush()

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_APPROVAL,
            entity_id=approval.id,
            action=AuditAction.UPDATE,
            before_json=before,
            after_json=model_to_audit_dict(approval),
        )

        await evaluate_request_status(session, actor, request)
        request_status = LeaveRequestStatus(request.status)

    await session.commit()
    await _after_commit()
    await session.refresh(approval)
    return ApprovalDecisionResponse(approval=_build_approval_response(approval), request_status=request_status)


async def delete_approval(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    approval_id: uuid.UUID,
) -> LeaveRequestStatus:
    """Remove an approval and re-evaluate the request. Returns the resulting status."""
    async with rollback_on_error(session):
        request = await _get_request_for_update(session, request_id)
        approval = await _get_approval_or_404(session, request_id, approval_id)

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_APPROVAL,
            entity_id=approval.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(approval),
        )
        await session.delete(approval)
        await session.flush()

        await evaluate_request_status(session, actor, request)
        request_status = LeaveRequestStatus(request.status)

    await session.commit()
    await _after_commit()
    return request_status


async def list_approvals(session: AsyncSession, request_id: uuid.UUID) -> list[ApprovalResponse]:
    """List a request's approvals, oldest first."""
    exists_result = await session.execute(select(LeaveRequest.id).where(col(LeaveRequest.id) == request_id))
    if exists_result.first() is None:
        raise AppError("Leave request not found", status_code=404)

    result = await session.execute(
        select(LeaveRequestApproval)
        .where(col(LeaveRequestApproval.leave_request_id) == request_id)
        .order_by(col(LeaveRequestApproval.created_at))
    )
    return [_build_approval_response(a) for a in result.scalars().all()]
