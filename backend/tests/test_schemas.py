from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.models.enums import AllocationType
from app.schemas.common import PaginationMeta
from app.schemas.funding import AllocationInput, ReplaceAllocationsPayload
from app.schemas.request import CreateLeaveRequestPayload, UpdateLeaveRequestPayload

ANNUAL = uuid.uuid4()
SICK = uuid.uuid4()


def _request(**overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "employee_id": uuid.uuid4(),
        "start_date": date(2025, 3, 3),
        "end_date": date(2025, 3, 7),
        "items": [{"leave_type_id": ANNUAL, "days": 2}, {"leave_type_id": SICK, "days": "1.5"}],
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------


def test_create_payload_accepts_half_days() -> None:
    payload = CreateLeaveRequestPayload.model_validate(_request())
    assert [item.days for item in payload.items] == [Decimal(2), Decimal("1.5")]
    assert payload.status is None
    assert payload.attachments == []


def test_create_payload_rejects_duplicate_leave_types() -> None:
    items = [{"leave_type_id": ANNUAL, "days": 1}, {"leave_type_id": ANNUAL, "days": 2}]
    with pytest.raises(ValidationError, match="Duplicate leave type"):
        CreateLeaveRequestPayload.model_validate(_request(items=items))


def test_create_payload_rejects_inverted_range() -> None:
    with pytest.raises(ValidationError, match="end_date must be on or after start_date"):
        CreateLeaveRequestPayload.model_validate(_request(end_date=date(2025, 3, 1)))


@pytest.mark.parametrize("days", [0, "0.25", -1])
def test_item_days_below_half_day_rejected(days: object) -> None:
    with pytest.raises(ValidationError):
        CreateLeaveRequestPayload.model_validate(_request(items=[{"leave_type_id": ANNUAL, "days": days}]))


def test_create_payload_requires_items() -> None:
    with pytest.raises(ValidationError):
        CreateLeaveRequestPayload.model_validate(_request(items=[]))


def test_update_payload_forbids_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        UpdateLeaveRequestPayload.model_validate({"employee_id": str(uuid.uuid4())})


def test_update_payload_tracks_set_fields() -> None:
    payload = UpdateLeaveRequestPayload.model_validate({"reason": None, "supervisor_approved": True})
    assert payload.model_fields_set == {"reason", "supervisor_approved"}


# ---------------------------------------------------------------------------
# Funding allocations
# ---------------------------------------------------------------------------


def test_grant_allocation_needs_position_slot() -> None:
    with pytest.raises(ValidationError, match="position_slot_id is required"):
        AllocationInput(allocation_type=AllocationType.GRANT, level_of_effort=Decimal(100))


def test_org_funded_allocation_needs_grant() -> None:
    with pytest.raises(ValidationError, match="grant_id is required"):
        AllocationInput(allocation_type=AllocationType.ORG_FUNDED, level_of_effort=Decimal(100))


def test_effort_is_bounded() -> None:
    with pytest.raises(ValidationError):
        AllocationInput(
            allocation_type=AllocationType.ORG_FUNDED, grant_id=uuid.uuid4(), level_of_effort=Decimal("100.01")
        )


def test_allocation_set_rejects_inverted_range() -> None:
    with pytest.raises(ValidationError):
        ReplaceAllocationsPayload.model_validate(
            {
                "start_date": "2025-06-01",
                "end_date": "2025-01-01",
                "allocations": [
                    {"allocation_type": "org_funded", "grant_id": str(uuid.uuid4()), "level_of_effort": 100},
                ],
            }
        )


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("total", "per_page", "last_page"),
    [(0, 10, 1), (10, 10, 1), (11, 10, 2), (3, 2, 2)],
)
def test_pagination_last_page(total: int, per_page: int, last_page: int) -> None:
    assert PaginationMeta.build(1, per_page, total).last_page == last_page
