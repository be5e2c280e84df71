# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.schemas.common import Envelope
from app.schemas.funding import (
    AllocationResponse,
    AllocationSummary,
    CreateAllocationsPayload,
    CreateGrantItemRequest,
    CreateGrantRequest,
    DeactivateAllocationsPayload,
    DeactivationResult,
    GrantItemAllocations,
    GrantItemCapacityResponse,
    GrantItemResponse,
    GrantResponse,
    ReplaceAllocationsPayload,
)
from app.services import funding as funding_service
from app.services import grant as grant_service

allocations_router = APIRouter(prefix="/funding-allocations", tags=["funding-allocations"])
grants_router = APIRouter(prefix="/grants", tags=["grants"])


# ---------------------------------------------------------------------------
# Allocations
# ---------------------------------------------------------------------------


@allocations_router.post("", response_model=Envelope[list[AllocationResponse]], status_code=status.HTTP_201_CREATED)
async def create_allocations(
    payload: CreateAllocationsPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[list[AllocationResponse]]:
    """Create an employment's allocation set; effort must total 100%."""
    allocations = await funding_service.create_allocations(session, actor, payload)
    return Envelope(message="Funding allocations created successfully", data=allocations)


@allocations_router.get("", response_model=Envelope[list[AllocationResponse]])
async def list_allocations(
    session: SessionDep,
    employee_id: uuid.UUID | None = Query(default=None),
    employment_id: uuid.UUID | None = Query(default=None),
    active_on: date | None = Query(default=None),
) -> Envelope[list[AllocationResponse]]:
    """List allocations with optional filters."""
    allocations = await funding_service.list_allocations(session, employee_id, employment_id, active_on)
    return Envelope(message="Funding allocations retrieved successfully", data=allocations)


@allocations_router.put("/employments/{employment_id}", response_model=Envelope[list[AllocationResponse]])
async def replace_allocations(
    employment_id: uuid.UUID,
    payload: ReplaceAllocationsPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[list[AllocationResponse]]:
    """Replace an employment's allocation set wholesale."""
    allocations = await funding_service.replace_allocations(session, actor, employment_id, payload)
    return Envelope(message="Funding allocations updated successfully", data=allocations)


@allocations_router.get("/summary/{employee_id}", response_model=Envelope[AllocationSummary])
async def get_allocation_summary(
    employee_id: uuid.UUID,
    session: SessionDep,
    as_of: date | None = Query(default=None),
) -> Envelope[AllocationSummary]:
    """Active allocations of an employee and their effort total."""
    summary = await funding_service.get_allocation_summary(session, employee_id, as_of)
    return Envelope(message="Funding allocation summary retrieved successfully", data=summary)


@allocations_router.post(
    "/employments/{employment_id}/deactivate",
    response_model=Envelope[DeactivationResult],
)
async def deactivate_allocations(
    employment_id: uuid.UUID,
    payload: DeactivateAllocationsPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[DeactivationResult]:
    """End an employment's active allocation set."""
    result = await funding_service.deactivate_allocations(session, actor, employment_id, payload)
    return Envelope(message="Funding allocations deactivated successfully", data=result)


@allocations_router.get("/by-grant-item/{grant_item_id}", response_model=Envelope[GrantItemAllocations])
async def list_grant_item_allocations(
    grant_item_id: uuid.UUID,
    session: SessionDep,
    as_of: date | None = Query(default=None),
) -> Envelope[GrantItemAllocations]:
    """Grant allocations placed on a grant item."""
    allocations = await funding_service.list_grant_item_allocations(session, grant_item_id, as_of)
    return Envelope(message="Funding allocations retrieved successfully", data=allocations)


@allocations_router.get("/{allocation_id}", response_model=Envelope[AllocationResponse])
async def get_allocation(
    allocation_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[AllocationResponse]:
    """Get a single allocation."""
    allocation = await funding_service.get_allocation(session, allocation_id)
    return Envelope(message="Funding allocation retrieved successfully", data=allocation)


# ---------------------------------------------------------------------------
# Grants
# ---------------------------------------------------------------------------


@grants_router.post("", response_model=Envelope[GrantResponse], status_code=status.HTTP_201_CREATED)
async def create_grant(
    payload: CreateGrantRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[GrantResponse]:
    """Create a grant."""
    grant = await grant_service.create_grant(session, actor, payload)
    return Envelope(message="Grant created successfully", data=grant)


@grants_router.get("", response_model=Envelope[list[GrantResponse]])
async def list_grants(session: SessionDep) -> Envelope[list[GrantResponse]]:
    """List grants with their items and slots."""
    grants = await grant_service.list_grants(session)
    return Envelope(message="Grants retrieved successfully", data=grants)


@grants_router.get("/{grant_id}", response_model=Envelope[GrantResponse])
async def get_grant(
    grant_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[GrantResponse]:
    """Get a grant."""
    grant = await grant_service.get_grant(session, grant_id)
    return Envelope(message="Grant retrieved successfully", data=grant)


@grants_router.post(
    "/{grant_id}/items",
    response_model=Envelope[GrantItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_grant_item(
    grant_id: uuid.UUID,
    payload: CreateGrantItemRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[GrantItemResponse]:
    """Add a position line with its slots to a grant."""
    item = await grant_service.add_grant_item(session, actor, grant_id, payload)
    return Envelope(message="Grant item created successfully", data=item)


@grants_router.get("/items/{grant_item_id}/capacity", response_model=Envelope[GrantItemCapacityResponse])
async def get_grant_item_capacity(
    grant_item_id: uuid.UUID,
    session: SessionDep,
    as_of: date | None = Query(default=None),
) -> Envelope[GrantItemCapacityResponse]:
    """How many grant allocations a grant item funds on a date, against its capacity."""
    capacity = await funding_service.get_grant_item_capacity(session, grant_item_id, as_of)
    return Envelope(message="Grant item capacity retrieved successfully", data=capacity)
