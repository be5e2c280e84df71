# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.schemas.common import Envelope, PaginatedEnvelope
from app.schemas.employee import (
    CreateEmployeeRequest,
    CreateEmploymentRequest,
    EmployeeResponse,
    EmploymentResponse,
    UpdateEmployeeRequest,
    UpdateEmploymentRequest,
)
from app.services import employee as employee_service

employees_router = APIRouter(prefix="/employees", tags=["employees"])
employments_router = APIRouter(prefix="/employments", tags=["employments"])


@employees_router.post("", response_model=Envelope[EmployeeResponse], status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: CreateEmployeeRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[EmployeeResponse]:
    """Create an employee."""
    employee = await employee_service.create_employee(session, actor, payload)
    return Envelope(message="Employee created successfully", data=employee)


@employees_router.get("", response_model=PaginatedEnvelope[EmployeeResponse])
async def list_employees(
    session: SessionDep,
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
) -> PaginatedEnvelope[EmployeeResponse]:
    """List employees."""
    employees, pagination = await employee_service.list_employees(session, search, page, per_page)
    return PaginatedEnvelope(message="Employees retrieved successfully", data=employees, pagination=pagination)


@employees_router.get("/{employee_id}", response_model=Envelope[EmployeeResponse])
async def get_employee(
    employee_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[EmployeeResponse]:
    """Get a single employee."""
    employee = await employee_service.get_employee(session, employee_id)
    return Envelope(message="Employee retrieved successfully", data=employee)


@employees_router.put("/{employee_id}", response_model=Envelope[EmployeeResponse])
async def update_employee(
    employee_id: uuid.UUID,
    payload: UpdateEmployeeRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[EmployeeResponse]:
    """Edit an employee."""
    employee = await employee_service.update_employee(session, actor, employee_id, payload)
    return Envelope(message="Employee updated successfully", data=employee)


@employees_router.get("/{employee_id}/employments", response_model=Envelope[list[EmploymentResponse]])
async def list_employments(
    employee_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[list[EmploymentResponse]]:
    """List an employee's employments with their allocations."""
    employments = await employee_service.list_employments(session, employee_id)
    return Envelope(message="Employments retrieved successfully", data=employments)


@employments_router.post("", response_model=Envelope[EmploymentResponse], status_code=status.HTTP_201_CREATED)
async def create_employment(
    payload: CreateEmploymentRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[EmploymentResponse]:
    """Create an employment, validating any funding allocations supplied with it."""
    employment = await employee_service.create_employment(session, actor, payload)
    return Envelope(message="Employment created successfully", data=employment)


@employments_router.get("/{employment_id}", response_model=Envelope[EmploymentResponse])
async def get_employment(
    employment_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[EmploymentResponse]:
    """Get an employment with its allocations."""
    employment = await employee_service.get_employment(session, employment_id)
    return Envelope(message="Employment retrieved successfully", data=employment)


@employments_router.put("/{employment_id}", response_model=Envelope[EmploymentResponse])
async def update_employment(
    employment_id: uuid.UUID,
    payload: UpdateEmploymentRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[EmploymentResponse]:
    """Edit an employment; supplied allocations replace the existing set."""
    employment = await employee_service.update_employment(session, actor, employment_id, payload)
    return Envelope(message="Employment updated successfully", data=employment)


@employments_router.delete("/{employment_id}", response_model=Envelope[None])
async def delete_employment(
    employment_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[None]:
    """Delete an employment and its allocations."""
    await employee_service.delete_employment(session, actor, employment_id)
    return Envelope(message="Employment deleted successfully")
