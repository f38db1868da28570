"""Typed rows returned by the record store."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Union


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses whose interval still holds a unit of the workspace. Completed
# bookings keep their original interval so an early check-out does not free
# the rest of that slot for the same day.
OCCUPYING_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.CHECKED_IN,
    BookingStatus.COMPLETED,
)

# What a member sees as still ahead of them.
UPCOMING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)


@dataclass(frozen=True)
class Workspace:
    id: int
    name: str
    price_per_hour: Decimal
    quantity: int
    opens_at: time
    closes_at: time
    is_archived: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Workspace:
        return cls(
            id=row["id"],
            name=row["name"],
            price_per_hour=Decimal(row["price_per_hour"]),
            quantity=row["quantity"],
            opens_at=row["opens_at"],
            closes_at=row["closes_at"],
            is_archived=row["is_archived"],
        )


@dataclass(frozen=True)
class Guest:
    id: int
    full_name: str
    phone_number: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Guest:
        return cls(id=row["id"], full_name=row["full_name"], phone_number=row["phone_number"])


@dataclass(frozen=True)
class Booking:
    id: int
    workspace_id: int
    user_id: str | None
    guest_id: int | None
    starts_at: datetime
    ends_at: datetime
    status: BookingStatus
    price: Decimal
    checked_in_at: datetime | None = None
    checked_out_at: datetime | None = None
    created_at: datetime | None = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.starts_at < end and start < self.ends_at

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Booking:
        return cls(
            id=row["id"],
            workspace_id=row["workspace_id"],
            user_id=row["user_id"],
            guest_id=row["guest_id"],
            starts_at=row["starts_at"],
            ends_at=row["ends_at"],
            status=BookingStatus(row["status"]),
            price=Decimal(row["price"]),
            checked_in_at=row["checked_in_at"],
            checked_out_at=row["checked_out_at"],
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class UserRequester:
    user_id: str

    @property
    def hold_key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class GuestRequester:
    name: str
    phone: str

    @property
    def hold_key(self) -> str:
        return f"guest:{self.phone}"


Requester = Union[UserRequester, GuestRequester]


@dataclass(frozen=True)
class NewBooking:
    """Fields handed to the store's atomic conditional insert."""

    workspace_id: int
    starts_at: datetime
    ends_at: datetime
    price: Decimal
    user_id: str | None = None
    guest_id: int | None = None
