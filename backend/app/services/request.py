# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlmodel import col

from app.db import rollback_on_error
from app.exceptions import AppError
from app.models.employee import Employee
from app.models.enums import AuditAction, AuditEntityType, LeaveRequestSort, LeaveRequestStatus
from app.models.leave_type import LeaveType
from app.models.request import LeaveAttachment, LeaveRequest, LeaveRequestApproval, LeaveRequestItem
from app.schemas.common import PaginationMeta
from app.schemas.request import (
    ApprovalResponse,
    AttachmentResponse,
    LeaveRequestItemResponse,
    LeaveRequestResponse,
    OverlapConflict,
)
from app.services import approval as approval_service
from app.services import balance as balance_service
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.statistics import invalidate_statistics

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.request import (
        AttachmentInput,
        CreateLeaveRequestPayload,
        LeaveRequestItemInput,
        UpdateLeaveRequestPayload,
    )

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = [LeaveRequestStatus.PENDING.value, LeaveRequestStatus.APPROVED.value]

# Paper-form and note fields copied verbatim from an update payload.
_UPDATABLE_FIELDS = (
    "reason",
    "supervisor_approved",
    "supervisor_approved_date",
    "hr_site_admin_approved",
    "hr_site_admin_approved_date",
    "attachment_notes",
)
_FLAG_FIELDS = frozenset({"supervisor_approved", "hr_site_admin_approved"})


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _after_commit() -> None:
    """Hook run after every committed change to a leave request."""
    await invalidate_statistics()


async def _get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest:
    """Fetch a request by ID. Raises 404 if not found."""
    query = select(LeaveRequest).where(col(LeaveRequest.id) == request_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise AppError("Leave request not found", status_code=404)
    return request


async def _get_employee_or_404(session: AsyncSession, employee_id: uuid.UUID) -> Employee:
    employee = await session.get(Employee, employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    return employee


async def _load_leave_types(session: AsyncSession, leave_type_ids: list[uuid.UUID]) -> dict[uuid.UUID, LeaveType]:
    """Fetch the referenced leave types. Raises 404 naming any that do not exist."""
    result = await session.execute(select(LeaveType).where(col(LeaveType.id).in_(leave_type_ids)))
    found = {lt.id: lt for lt in result.scalars().all()}
    missing = [str(i) for i in leave_type_ids if i not in found]
    if missing:
        raise AppError("Leave type not found", status_code=404, data={"leave_type_ids": missing})
    return found


def _require_attachment(
    leave_types: dict[uuid.UUID, LeaveType],
    attachment_notes: str | None,
    has_attachments: bool,
) -> None:
    """Raise 422 when a leave type needs a supporting document and none was given."""
    if has_attachments or (attachment_notes and attachment_notes.strip()):
        return
    needing = sorted(lt.name for lt in leave_types.values() if lt.requires_attachment)
    if needing:
        raise AppError(
            f"{', '.join(needing)} requires attachment",
            status_code=422,
            data={"leave_types": needing},
        )


async def _require_attachment_support(
    session: AsyncSession,
    request_id: uuid.UUID,
    leave_type_ids: list[uuid.UUID],
    attachment_notes: str | None,
) -> None:
    """Re-check the attachment rule against the request's stored attachments."""
    leave_types = await _load_leave_types(session, leave_type_ids)
    attachments_result = await session.execute(
        select(LeaveAttachment.id).where(col(LeaveAttachment.leave_request_id) == request_id)
    )
    _require_attachment(leave_types, attachment_notes, attachments_result.first() is not None)


def _sum_days(items: list[LeaveRequestItemInput]) -> Decimal:
    return sum((item.days for item in items), Decimal(0))


def _new_attachment(request_id: uuid.UUID, actor: Actor, attachment: AttachmentInput) -> LeaveAttachment:
    return LeaveAttachment(
        leave_request_id=request_id,
        document_name=attachment.document_name,
        document_url=attachment.document_url,
        description=attachment.description,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )


async def _find_overlaps(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> list[OverlapConflict]:
    """Pending or approved requests of the employee sharing at least one day with the range."""
    query = select(LeaveRequest).where(
        col(LeaveRequest.employee_id) == employee_id,
        col(LeaveRequest.status).in_(_ACTIVE_STATUSES),
        col(LeaveRequest.start_date) <= end_date,
        col(LeaveRequest.end_date) >= start_date,
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)
    result = await session.execute(query.order_by(col(LeaveRequest.start_date)))
    overlapping = list(result.scalars().all())
    if not overlapping:
        return []

    names_result = await session.execute(
        select(col(LeaveRequestItem.leave_request_id), col(LeaveType.name))
        .join(LeaveType, col(LeaveType.id) == col(LeaveRequestItem.leave_type_id))
        .where(col(LeaveRequestItem.leave_request_id).in_([r.id for r in overlapping]))
    )
    names: dict[uuid.UUID, list[str]] = {}
    for request_id, name in names_result.all():
        names.setdefault(request_id, []).append(name)

    return [
        OverlapConflict(
            id=r.id,
            start_date=r.start_date,
            end_date=r.end_date,
            status=LeaveRequestStatus(r.status),
            leave_types=sorted(names.get(r.id, [])),
        )
        for r in overlapping
    ]


async def _reject_overlaps(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> None:
    conflicts = await _find_overlaps(session, employee_id, start_date, end_date, exclude_request_id)
    if conflicts:
        raise AppError(
            "Leave request overlaps with an existing pending or approved request",
            status_code=422,
            data={"conflicts": [c.model_dump(mode="json") for c in conflicts]},
        )


async def _build_request_response(session: AsyncSession, request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request and its children to the response schema."""
    employee = await session.get(Employee, request.employee_id)

    items_result = await session.execute(
        select(LeaveRequestItem, LeaveType.name)
        .join(LeaveType, col(LeaveType.id) == col(LeaveRequestItem.leave_type_id))
        .where(col(LeaveRequestItem.leave_request_id) == request.id)
        .order_by(col(LeaveType.name))
    )
    approvals_result = await session.execute(
        select(LeaveRequestApproval)
        .where(col(LeaveRequestApproval.leave_request_id) == request.id)
        .order_by(col(LeaveRequestApproval.created_at))
    )
    attachments_result = await session.execute(
        select(LeaveAttachment)
        .where(col(LeaveAttachment.leave_request_id) == request.id)
        .order_by(col(LeaveAttachment.added_at))
    )

    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        employee_name=f"{employee.first_name} {employee.last_name}" if employee else None,
        staff_id=employee.staff_id if employee else None,
        start_date=request.start_date,
        end_date=request.end_date,
        total_days=request.total_days,
        reason=request.reason,
        status=LeaveRequestStatus(request.status),
        supervisor_approved=request.supervisor_approved,
        supervisor_approved_date=request.supervisor_approved_date,
        hr_site_admin_approved=request.hr_site_admin_approved,
        hr_site_admin_approved_date=request.hr_site_admin_approved_date,
        attachment_notes=request.attachment_notes,
        items=[
            LeaveRequestItemResponse(
                id=item.id,
                leave_type_id=item.leave_type_id,
                leave_type_name=name,
                days=item.days,
            )
            for item, name in items_result.all()
        ],
        approvals=[ApprovalResponse.model_validate(a) for a in approvals_result.scalars().all()],
        attachments=[AttachmentResponse.model_validate(a) for a in attachments_result.scalars().all()],
        created_by=request.created_by,
        updated_by=request.updated_by,
        created_at=request.created_at,
    )


async def _deduct_items(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    items: list[tuple[uuid.UUID, Decimal]],
    year: int,
) -> None:
    for leave_type_id, days in items:
        await balance_service.deduct(session, actor, employee_id, leave_type_id, days, year)


async def _restore_items(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    items: list[tuple[uuid.UUID, Decimal]],
    year: int,
) -> None:
    for leave_type_id, days in items:
        await balance_service.restore(session, actor, employee_id, leave_type_id, days, year)


async def _current_items(session: AsyncSession, request_id: uuid.UUID) -> list[LeaveRequestItem]:
    result = await session.execute(
        select(LeaveRequestItem).where(col(LeaveRequestItem.leave_request_id) == request_id)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def check_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> list[OverlapConflict]:
    """Return the employee's pending or approved requests overlapping the range."""
    return await _find_overlaps(session, employee_id, start_date, end_date, exclude_request_id)


async def create_request(
    session: AsyncSession,
    actor: Actor,
    payload: CreateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Create a leave request with its items and attachments.

    Flow:
    1. Resolve employee and leave types
    2. Reject overlapping pending/approved requests
    3. Enforce attachment requirements
    4. When created as approved, check every item's availability
    5. Insert request, items and attachments
    6. When created as approved, deduct every item
    7. Audit, commit, invalidate statistics
    """
    await _get_employee_or_404(session, payload.employee_id)
    leave_types = await _load_leave_types(session, [item.leave_type_id for item in payload.items])

    await _reject_overlaps(session, payload.employee_id, payload.start_date, payload.end_date)
    _require_attachment(leave_types, payload.attachment_notes, bool(payload.attachments))

    status = payload.status or LeaveRequestStatus.PENDING
    year = payload.start_date.year
    item_days = [(item.leave_type_id, item.days) for item in payload.items]

    async with rollback_on_error(session):
        if status == LeaveRequestStatus.APPROVED:
            await balance_service.require_availability(session, payload.employee_id, item_days, year)

        request = LeaveRequest(
            employee_id=payload.employee_id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            total_days=_sum_days(payload.items),
            reason=payload.reason,
            status=status.value,
            supervisor_approved=payload.supervisor_approved,
            supervisor_approved_date=payload.supervisor_approved_date,
            hr_site_admin_approved=payload.hr_site_admin_approved,
            hr_site_admin_approved_date=payload.hr_site_admin_approved_date,
            attachment_notes=payload.attachment_notes,
            created_by=actor.display_name,
            updated_by=actor.display_name,
        )
        session.add(request)
        await session.flush()

        for item in payload.items:
            session.add(LeaveRequestItem(leave_request_id=request.id, leave_type_id=item.leave_type_id, days=item.days))
        for attachment in payload.attachments:
            session.add(_new_attachment(request.id, actor, attachment))
        await session.flush()

        if status == LeaveRequestStatus.APPROVED:
            await _deduct_items(session, actor, payload.employee_id, item_days, year)

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(request),
        )

    await session.commit()
    await _after_commit()
    logger.info("Created leave request %s (%s, %s days)", request.id, status.value, request.total_days)
    return await _build_request_response(session, request)


async def update_request(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    payload: UpdateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Apply an allow-listed edit to a request.

    On an approved request, changing the items or moving it to another year
    restores the old days first, then re-deducts the new ones (with
    availability checks) if the request stays approved. A status change goes
    through the approval evaluator.
    """
    async with rollback_on_error(session):
        request = await _get_request_or_404(session, request_id, for_update=True)
        before = model_to_audit_dict(request)
        current = LeaveRequestStatus(request.status)
        target = payload.status or current

        start_date = payload.start_date or request.start_date
        end_date = payload.end_date or request.end_date
        if end_date < start_date:
            raise AppError("end_date must be on or after start_date", status_code=422)
        if (start_date, end_date) != (request.start_date, request.end_date) and target in (
            LeaveRequestStatus.PENDING,
            LeaveRequestStatus.APPROVED,
        ):
            await _reject_overlaps(session, request.employee_id, start_date, end_date, exclude_request_id=request.id)

        old_items = await _current_items(session, request.id)
        old_days = [(item.leave_type_id, item.days) for item in old_items]
        old_year = request.start_date.year
        new_year = start_date.year

        new_days = old_days if payload.items is None else [(item.leave_type_id, item.days) for item in payload.items]
        notes_set = "attachment_notes" in payload.model_fields_set
        if payload.items is not None or notes_set:
            notes = payload.attachment_notes if notes_set else request.attachment_notes
            await _require_attachment_support(
                session, request.id, [leave_type_id for leave_type_id, _ in new_days], notes
            )

        rebalance = current == LeaveRequestStatus.APPROVED and (payload.items is not None or new_year != old_year)
        if rebalance:
            await _restore_items(session, actor, request.employee_id, old_days, old_year)

        request.start_date = start_date
        request.end_date = end_date
        for field in _UPDATABLE_FIELDS:
            value = getattr(payload, field)
            if field in payload.model_fields_set and (value is not None or field not in _FLAG_FIELDS):
                setattr(request, field, value)

        if payload.items is not None:
            for item in old_items:
                await session.delete(item)
            await session.flush()
            for item_input in payload.items:
                session.add(
                    LeaveRequestItem(
                        leave_request_id=request.id,
                        leave_type_id=item_input.leave_type_id,
                        days=item_input.days,
                    )
                )
            request.total_days = _sum_days(payload.items)

        request.updated_by = actor.display_name
        await session.flush()

        if rebalance and target == LeaveRequestStatus.APPROVED:
            await balance_service.require_availability(session, request.employee_id, new_days, new_year)
            await _deduct_items(session, actor, request.employee_id, new_days, new_year)
        elif rebalance:
            # Old days are already back on the balance; move status without a second restore.
            approval_service.validate_transition(current, target)
            request.status = target.value
            await session.flush()

        if not rebalance and target != current:
            await approval_service.apply_status_transition(session, actor, request, target)

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            action=AuditAction.UPDATE,
            before_json=before,
            after_json=model_to_audit_dict(request),
        )

    await session.commit()
    await _after_commit()
    return await _build_request_response(session, request)


async def change_status(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    new_status: LeaveRequestStatus,
) -> LeaveRequestResponse:
    """Move a request directly to ``new_status``. The same status is a no-op."""
    async with rollback_on_error(session):
        request = await _get_request_or_404(session, request_id, for_update=True)
        changed = await approval_service.apply_status_transition(session, actor, request, new_status)

    if changed:
        await session.commit()
        await _after_commit()
    return await _build_request_response(session, request)


async def delete_request(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
) -> None:
    """Delete a request and its children, restoring its days if it was approved."""
    async with rollback_on_error(session):
        request = await _get_request_or_404(session, request_id, for_update=True)
        items = await _current_items(session, request.id)

        if request.status == LeaveRequestStatus.APPROVED.value:
            await _restore_items(
                session,
                actor,
                request.employee_id,
                [(item.leave_type_id, item.days) for item in items],
                request.start_date.year,
            )

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=request.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(request),
        )

        for child_model in (LeaveRequestApproval, LeaveAttachment):
            children = await session.execute(
                select(child_model).where(col(child_model.leave_request_id) == request.id)
            )
            for child in children.scalars().all():
                await session.delete(child)
        for item in items:
            await session.delete(item)
        await session.flush()
        await session.delete(request)

    await session.commit()
    await _after_commit()
    logger.info("Deleted leave request %s", request_id)


async def get_request(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Get a single request with its children."""
    request = await _get_request_or_404(session, request_id)
    return await _build_request_response(session, request)


async def list_requests(
    session: AsyncSession,
    *,
    search: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    leave_type_ids: list[uuid.UUID] | None = None,
    status_filter: LeaveRequestStatus | None = None,
    supervisor_approved: bool | None = None,
    hr_site_admin_approved: bool | None = None,
    sort_by: LeaveRequestSort = LeaveRequestSort.RECENTLY_ADDED,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[LeaveRequestResponse], PaginationMeta]:
    """List requests with filters, sorting and pagination."""
    filters = []
    if search:
        term = f"%{search.strip()}%"
        matching_employees = select(col(Employee.id)).where(
            or_(
                col(Employee.staff_id).ilike(term),
                col(Employee.first_name).ilike(term),
                col(Employee.last_name).ilike(term),
                (col(Employee.first_name) + " " + col(Employee.last_name)).ilike(term),
            )
        )
        filters.append(col(LeaveRequest.employee_id).in_(matching_employees))
    if from_date is not None:
        filters.append(col(LeaveRequest.start_date) >= from_date)
    if to_date is not None:
        filters.append(col(LeaveRequest.end_date) <= to_date)
    if leave_type_ids:
        with_types = select(col(LeaveRequestItem.leave_request_id)).where(
            col(LeaveRequestItem.leave_type_id).in_(leave_type_ids)
        )
        filters.append(col(LeaveRequest.id).in_(with_types))
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if supervisor_approved is not None:
        filters.append(col(LeaveRequest.supervisor_approved) == supervisor_approved)
    if hr_site_admin_approved is not None:
        filters.append(col(LeaveRequest.hr_site_admin_approved) == hr_site_admin_approved)

    now = datetime.now(UTC)
    if sort_by == LeaveRequestSort.LAST_MONTH:
        filters.append(col(LeaveRequest.created_at) >= now - timedelta(days=30))
    elif sort_by == LeaveRequestSort.LAST_7_DAYS:
        filters.append(col(LeaveRequest.created_at) >= now - timedelta(days=7))

    if sort_by == LeaveRequestSort.ASCENDING:
        order = [col(LeaveRequest.start_date).asc(), col(LeaveRequest.created_at).asc()]
    elif sort_by == LeaveRequestSort.DESCENDING:
        order = [col(LeaveRequest.start_date).desc(), col(LeaveRequest.created_at).desc()]
    else:
        order = [col(LeaveRequest.created_at).desc()]

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest).where(*filters).order_by(*order).offset((page - 1) * per_page).limit(per_page)
    )
    requests = list(result.scalars().all())

    return [await _build_request_response(session, r) for r in requests], PaginationMeta.build(
        page, per_page, total
    )


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


async def add_attachment(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    payload: AttachmentInput,
) -> AttachmentResponse:
    """Attach a document reference to a request."""
    request = await _get_request_or_404(session, request_id)
    attachment = _new_attachment(request.id, actor, payload)
    session.add(attachment)
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_ATTACHMENT,
        entity_id=attachment.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(attachment),
    )

    await session.commit()
    await _after_commit()
    await session.refresh(attachment)
    return AttachmentResponse.model_validate(attachment)


async def list_attachments(session: AsyncSession, request_id: uuid.UUID) -> list[AttachmentResponse]:
    """List a request's attachments, oldest first."""
    await _get_request_or_404(session, request_id)
    result = await session.execute(
        select(LeaveAttachment)
        .where(col(LeaveAttachment.leave_request_id) == request_id)
        .order_by(col(LeaveAttachment.added_at))
    )
    return [AttachmentResponse.model_validate(a) for a in result.scalars().all()]


async def delete_attachment(
    session: AsyncSession,
    actor: Actor,
    request_id: uuid.UUID,
    attachment_id: uuid.UUID,
) -> None:
    """Remove an attachment from a request.

    The last document of a request whose leave types require one cannot be
    removed unless attachment notes are recorded.
    """
    async with rollback_on_error(session):
        request = await _get_request_or_404(session, request_id, for_update=True)
        result = await session.execute(
            select(LeaveAttachment).where(
                col(LeaveAttachment.id) == attachment_id,
                col(LeaveAttachment.leave_request_id) == request_id,
            )
        )
        attachment = result.scalar_one_or_none()
        if attachment is None:
            raise AppError("Attachment not found", status_code=404)

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.LEAVE_ATTACHMENT,
            entity_id=attachment.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(attachment),
        )
        await session.delete(attachment)
        await session.flush()

        items = await _current_items(session, request.id)
        await _require_attachment_support(
            session, request.id, [item.leave_type_id for item in items], request.attachment_notes
        )

    await session.commit()
    await _after_commit()
