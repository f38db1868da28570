from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, Field

from backend.app.core.clock import to_local
from backend.app.db.records import Booking, Workspace
from backend.app.services.availability import DayAvailability


class WorkspaceOut(BaseModel):
    id: int
    name: str
    price_per_hour: Decimal
    quantity: int
    opens_at: time
    closes_at: time

    @classmethod
    def from_record(cls, workspace: Workspace) -> "WorkspaceOut":
        return cls(
            id=workspace.id,
            name=workspace.name,
            price_per_hour=workspace.price_per_hour,
            quantity=workspace.quantity,
            opens_at=workspace.opens_at,
            closes_at=workspace.closes_at,
        )


class SlotOut(BaseModel):
    time: str  # local "HH:MM"
    starts_at: datetime
    occupied: int
    remaining: int
    disabled: bool
    durations: list[int]


class AvailabilityOut(BaseModel):
    workspace_id: int
    date: date
    slots: list[SlotOut]

    @classmethod
    def from_result(cls, result: DayAvailability) -> "AvailabilityOut":
        return cls(
            workspace_id=result.workspace.id,
            date=result.day,
            slots=[
                SlotOut(
                    time=slot.slot.strftime("%H:%M"),
                    starts_at=slot.starts_at,
                    occupied=slot.occupied,
                    remaining=slot.remaining,
                    disabled=slot.disabled,
                    durations=list(slot.durations),
                )
                for slot in result.slots
            ],
        )


class GuestIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=3, max_length=32)


class BookingCreateIn(BaseModel):
    workspace_id: int
    # Local calendar date and wall-clock start, e.g. "2024-01-10" / "09:00"
    date: date
    start_time: time
    duration_hours: int = Field(default=1, ge=1, le=24)
    guest: GuestIn | None = None


class BookingOut(BaseModel):
    id: int
    workspace_id: int
    user_id: str | None
    guest_id: int | None
    starts_at: datetime
    ends_at: datetime
    local_date: date
    local_start: str
    local_end: str
    status: str
    price: Decimal
    checked_in_at: datetime | None
    checked_out_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_record(cls, booking: Booking) -> "BookingOut":
        local_start = to_local(booking.starts_at)
        return cls(
            id=booking.id,
            workspace_id=booking.workspace_id,
            user_id=booking.user_id,
            guest_id=booking.guest_id,
            starts_at=booking.starts_at,
            ends_at=booking.ends_at,
            local_date=local_start.date(),
            local_start=local_start.strftime("%H:%M"),
            local_end=to_local(booking.ends_at).strftime("%H:%M"),
            status=booking.status.value,
            price=booking.price,
            checked_in_at=booking.checked_in_at,
            checked_out_at=booking.checked_out_at,
            created_at=booking.created_at,
        )


class SweepOut(BaseModel):
    swept: int
    booking_ids: list[int]
    swept_at: datetime
