from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.db import rollback_on_error
from app.exceptions import AppError
from app.models.employee import Employee, Employment
from app.models.enums import AuditAction, AuditEntityType
from app.schemas.common import PaginationMeta
from app.schemas.employee import EmployeeResponse, EmploymentResponse
from app.services import funding as funding_service
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.employee import (
        CreateEmployeeRequest,
        CreateEmploymentRequest,
        UpdateEmployeeRequest,
        UpdateEmploymentRequest,
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_employee_response(employee: Employee) -> EmployeeResponse:
    return EmployeeResponse.model_validate(employee)


async def _build_employment_response(session: AsyncSession, employment: Employment) -> EmploymentResponse:
    allocations = await funding_service.list_allocations(session, employment_id=employment.id)
    return EmploymentResponse(
        id=employment.id,
        employee_id=employment.employee_id,
        position_title=employment.position_title,
        department=employment.department,
        salary=employment.salary,
        start_date=employment.start_date,
        end_date=employment.end_date,
        allocations=allocations,
    )


async def get_employee_or_404(session: AsyncSession, employee_id: uuid.UUID) -> Employee:
    """Fetch an employee by ID. Raises 404 if not found."""
    employee = await session.get(Employee, employee_id)
    if employee is None:
        raise AppError("Employee not found", status_code=404)
    return employee


async def _get_employment_or_404(session: AsyncSession, employment_id: uuid.UUID) -> Employment:
    employment = await session.get(Employment, employment_id)
    if employment is None:
        raise AppError("Employment not found", status_code=404)
    return employment


# ---------------------------------------------------------------------------
# Employees
# ---------------------------------------------------------------------------


async def create_employee(session: AsyncSession, actor: Actor, payload: CreateEmployeeRequest) -> EmployeeResponse:
    """Create an employee. Balances are created on first use or on listing."""
    employee = Employee(
        staff_id=payload.staff_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(employee)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError("An employee with this staff ID already exists", status_code=409) from None

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=employee.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(employee),
    )

    await session.commit()
    await session.refresh(employee)
    return _build_employee_response(employee)


async def update_employee(
    session: AsyncSession,
    actor: Actor,
    employee_id: uuid.UUID,
    payload: UpdateEmployeeRequest,
) -> EmployeeResponse:
    """Edit an employee's name or email."""
    employee = await get_employee_or_404(session, employee_id)
    before = model_to_audit_dict(employee)

    if payload.first_name is not None:
        employee.first_name = payload.first_name
    if payload.last_name is not None:
        employee.last_name = payload.last_name
    if "email" in payload.model_fields_set:
        employee.email = payload.email
    employee.updated_by = actor.display_name
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.EMPLOYEE,
        entity_id=employee.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(employee),
    )

    await session.commit()
    await session.refresh(employee)
    return _build_employee_response(employee)


async def get_employee(session: AsyncSession, employee_id: uuid.UUID) -> EmployeeResponse:
    """Get a single employee."""
    return _build_employee_response(await get_employee_or_404(session, employee_id))


async def list_employees(
    session: AsyncSession,
    search: str | None = None,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[EmployeeResponse], PaginationMeta]:
    """List employees, optionally matching staff ID or name."""
    filters = []
    if search:
        term = f"%{search.strip()}%"
        filters.append(
            or_(
                col(Employee.staff_id).ilike(term),
                col(Employee.first_name).ilike(term),
                col(Employee.last_name).ilike(term),
            )
        )

    count_result = await session.execute(select(func.count()).select_from(Employee).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Employee)
        .where(*filters)
        .order_by(col(Employee.staff_id))
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    employees = list(result.scalars().all())

    return [_build_employee_response(e) for e in employees], PaginationMeta.build(page, per_page, total)


# ---------------------------------------------------------------------------
# Employments
# ---------------------------------------------------------------------------


async def create_employment(
    session: AsyncSession,
    actor: Actor,
    payload: CreateEmploymentRequest,
) -> EmploymentResponse:
    """Create an employment and, when given, its funding allocation set."""
    async with rollback_on_error(session):
        await get_employee_or_404(session, payload.employee_id)

        employment = Employment(
            employee_id=payload.employee_id,
            position_title=payload.position_title,
            department=payload.department,
            salary=payload.salary,
            start_date=payload.start_date,
            end_date=payload.end_date,
            created_by=actor.display_name,
            updated_by=actor.display_name,
        )
        session.add(employment)
        await session.flush()

        if payload.allocations:
            await funding_service.create_allocation_set(
                session, actor, employment, payload.allocations, payload.start_date, payload.end_date
            )

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.EMPLOYMENT,
            entity_id=employment.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(employment),
        )

    await session.commit()
    await session.refresh(employment)
    return await _build_employment_response(session, employment)


async def update_employment(
    session: AsyncSession,
    actor: Actor,
    employment_id: uuid.UUID,
    payload: UpdateEmploymentRequest,
) -> EmploymentResponse:
    """Edit an employment; a supplied allocation list replaces the existing set."""
    async with rollback_on_error(session):
        employment = await _get_employment_or_404(session, employment_id)
        before = model_to_audit_dict(employment)

        if payload.position_title is not None:
            employment.position_title = payload.position_title
        if payload.department is not None:
            employment.department = payload.department
        if payload.salary is not None:
            employment.salary = payload.salary
        if payload.start_date is not None:
            employment.start_date = payload.start_date
        if "end_date" in payload.model_fields_set:
            employment.end_date = payload.end_date
        if employment.end_date is not None and employment.end_date < employment.start_date:
            raise AppError("end_date must be on or after start_date", status_code=422)
        employment.updated_by = actor.display_name
        await session.flush()

        if payload.allocations is not None:
            await funding_service.replace_allocation_set(
                session, actor, employment, payload.allocations, employment.start_date, employment.end_date
            )

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.EMPLOYMENT,
            entity_id=employment.id,
            action=AuditAction.UPDATE,
            before_json=before,
            after_json=model_to_audit_dict(employment),
        )

    await session.commit()
    await session.refresh(employment)
    return await _build_employment_response(session, employment)


async def get_employment(session: AsyncSession, employment_id: uuid.UUID) -> EmploymentResponse:
    """Get an employment with its allocations."""
    return await _build_employment_response(session, await _get_employment_or_404(session, employment_id))


async def list_employments(session: AsyncSession, employee_id: uuid.UUID) -> list[EmploymentResponse]:
    """List an employee's employments, newest first."""
    await get_employee_or_404(session, employee_id)
    result = await session.execute(
        select(Employment)
        .where(col(Employment.employee_id) == employee_id)
        .order_by(col(Employment.start_date).desc())
    )
    return [await _build_employment_response(session, e) for e in result.scalars().all()]


async def delete_employment(session: AsyncSession, actor: Actor, employment_id: uuid.UUID) -> None:
    """Delete an employment together with its allocations."""
    async with rollback_on_error(session):
        employment = await _get_employment_or_404(session, employment_id)
        await funding_service.delete_allocation_set(session, actor, employment.id)

        await write_audit_log(
            session,
            actor=actor,
            entity_type=AuditEntityType.EMPLOYMENT,
            entity_id=employment.id,
            action=AuditAction.DELETE,
            before_json=model_to_audit_dict(employment),
        )
        await session.flush()
        await session.delete(employment)

    await session.commit()
