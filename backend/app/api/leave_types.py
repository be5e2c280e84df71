# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.schemas.common import Envelope
from app.schemas.leave_type import (
    CreateLeaveTypeRequest,
    LeaveTypeCreatedResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from app.services import leave_type as leave_type_service

leave_types_router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@leave_types_router.post("", response_model=Envelope[LeaveTypeCreatedResponse], status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveTypeCreatedResponse]:
    """Create a leave type and give every employee a balance for the current year."""
    created = await leave_type_service.create_leave_type(session, actor, payload)
    return Envelope(message="Leave type created successfully", data=created)


@leave_types_router.get("", response_model=Envelope[list[LeaveTypeResponse]])
async def list_leave_types(
    session: SessionDep,
    search: str | None = Query(default=None),
) -> Envelope[list[LeaveTypeResponse]]:
    """List leave types."""
    leave_types = await leave_type_service.list_leave_types(session, search)
    return Envelope(message="Leave types retrieved successfully", data=leave_types)


@leave_types_router.get("/{leave_type_id}", response_model=Envelope[LeaveTypeResponse])
async def get_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[LeaveTypeResponse]:
    """Get a single leave type."""
    leave_type = await leave_type_service.get_leave_type(session, leave_type_id)
    return Envelope(message="Leave type retrieved successfully", data=leave_type)


@leave_types_router.put("/{leave_type_id}", response_model=Envelope[LeaveTypeResponse])
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveTypeResponse]:
    """Edit a leave type."""
    leave_type = await leave_type_service.update_leave_type(session, actor, leave_type_id, payload)
    return Envelope(message="Leave type updated successfully", data=leave_type)


@leave_types_router.delete("/{leave_type_id}", response_model=Envelope[None])
async def delete_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[None]:
    """Delete a leave type that no balance or request uses."""
    await leave_type_service.delete_leave_type(session, actor, leave_type_id)
    return Envelope(message="Leave type deleted successfully")
