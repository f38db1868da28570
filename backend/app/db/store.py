"""
Record store for workspaces, guests and bookings.

Every method runs in its own transaction and reports failures as booking
errors: ``CapacityConflict`` when the ``commit_booking()`` guard refuses an
insert, ``StoreUnavailable`` for anything the database or network raised.
"""
from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import Depends
from sqlalchemy import bindparam, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import (
    BookingError,
    CapacityConflict,
    StoreUnavailable,
    ValidationError,
)
from backend.app.db.records import Booking, BookingStatus, Guest, NewBooking, Workspace
from backend.app.db.session import get_session

logger = structlog.get_logger(__name__)

TIMESTAMP_COLUMNS = frozenset({"checked_in_at", "checked_out_at"})

_BOOKING_COLUMNS = """
    id, workspace_id, user_id, guest_id, starts_at, ends_at, status, price,
    checked_in_at, checked_out_at, created_at
"""

_WORKSPACE_COLUMNS = "id, name, price_per_hour, quantity, opens_at, closes_at, is_archived"


@asynccontextmanager
async def _store_call(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except BookingError:
        raise
    except DBAPIError as exc:
        orig = getattr(exc, "orig", exc)
        message = str(orig)
        if "Capacity exceeded" in message:
            raise CapacityConflict("Capacity exceeded") from exc
        if "Workspace not bookable" in message:
            raise ValidationError("Workspace is no longer bookable") from exc
        logger.error("store_call_failed", operation=operation, error=message)
        raise StoreUnavailable(f"{operation} failed") from exc
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.error("store_call_failed", operation=operation, error=repr(exc))
        raise StoreUnavailable(f"{operation} failed") from exc


def _statuses(values: Iterable[BookingStatus]) -> list[str]:
    return [BookingStatus(v).value for v in values]


class BookingStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_workspace(self, workspace_id: int) -> Workspace | None:
        async with _store_call("select_workspace"), self._session.begin():
            result = await self._session.execute(
                text(f"SELECT {_WORKSPACE_COLUMNS} FROM workspace WHERE id = :id"),
                {"id": workspace_id},
            )
            row = result.mappings().one_or_none()
        return Workspace.from_row(row) if row is not None else None

    async def list_workspaces(self, include_archived: bool = False) -> list[Workspace]:
        query = f"SELECT {_WORKSPACE_COLUMNS} FROM workspace"
        if not include_archived:
            query += " WHERE NOT is_archived"
        async with _store_call("list_workspaces"), self._session.begin():
            result = await self._session.execute(text(query + " ORDER BY id"))
            rows = result.mappings().all()
        return [Workspace.from_row(row) for row in rows]

    async def select_bookings(
        self,
        workspace_id: int,
        window_start: datetime,
        window_end: datetime,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        """Bookings on the workspace whose [starts_at, ends_at) meets the window."""
        query = text(
            f"""
            SELECT {_BOOKING_COLUMNS}
            FROM booking
            WHERE workspace_id = :workspace_id
              AND status IN :statuses
              AND starts_at < :window_end
              AND ends_at > :window_start
            ORDER BY starts_at
            """
        ).bindparams(bindparam("statuses", expanding=True))
        async with _store_call("select_bookings"), self._session.begin():
            result = await self._session.execute(
                query,
                {
                    "workspace_id": workspace_id,
                    "statuses": _statuses(statuses),
                    "window_start": window_start,
                    "window_end": window_end,
                },
            )
            rows = result.mappings().all()
        return [Booking.from_row(row) for row in rows]

    async def get_booking(self, booking_id: int) -> Booking | None:
        async with _store_call("select_booking"), self._session.begin():
            result = await self._session.execute(
                text(f"SELECT {_BOOKING_COLUMNS} FROM booking WHERE id = :id"),
                {"id": booking_id},
            )
            row = result.mappings().one_or_none()
        return Booking.from_row(row) if row is not None else None

    async def list_bookings(
        self,
        window_start: datetime,
        window_end: datetime,
        workspace_id: int | None = None,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        clauses = ["starts_at < :window_end", "ends_at > :window_start"]
        params: dict[str, object] = {"window_start": window_start, "window_end": window_end}
        if workspace_id is not None:
            clauses.append("workspace_id = :workspace_id")
            params["workspace_id"] = workspace_id
        if status is not None:
            clauses.append("status = :status")
            params["status"] = BookingStatus(status).value

        query = text(
            f"SELECT {_BOOKING_COLUMNS} FROM booking WHERE {' AND '.join(clauses)} "
            "ORDER BY starts_at, id"
        )
        async with _store_call("list_bookings"), self._session.begin():
            result = await self._session.execute(query, params)
            rows = result.mappings().all()
        return [Booking.from_row(row) for row in rows]

    async def list_user_bookings(
        self,
        user_id: str,
        from_instant: datetime,
        statuses: Iterable[BookingStatus],
        limit: int = 20,
    ) -> list[Booking]:
        """A member's bookings in ``statuses`` that have not ended by ``from_instant``."""
        query = text(
            f"""
            SELECT {_BOOKING_COLUMNS}
            FROM booking
            WHERE user_id = :user_id
              AND status IN :statuses
              AND ends_at > :from_instant
            ORDER BY starts_at, id
            LIMIT :limit
            """
        ).bindparams(bindparam("statuses", expanding=True))
        async with _store_call("list_user_bookings"), self._session.begin():
            result = await self._session.execute(
                query,
                {
                    "user_id": user_id,
                    "statuses": _statuses(statuses),
                    "from_instant": from_instant,
                    "limit": limit,
                },
            )
            rows = result.mappings().all()
        return [Booking.from_row(row) for row in rows]

    async def find_guest_by_phone(self, phone: str) -> Guest | None:
        async with _store_call("find_guest"), self._session.begin():
            result = await self._session.execute(
                text("SELECT id, full_name, phone_number FROM guest WHERE phone_number = :phone"),
                {"phone": phone},
            )
            row = result.mappings().one_or_none()
        return Guest.from_row(row) if row is not None else None

    async def insert_guest(self, name: str, phone: str) -> Guest:
        """Insert a guest, or return the existing row if the phone is already known."""
        query = text(
            """
            INSERT INTO guest (full_name, phone_number)
            VALUES (:name, :phone)
            ON CONFLICT (phone_number) DO UPDATE SET phone_number = EXCLUDED.phone_number
            RETURNING id, full_name, phone_number
            """
        )
        async with _store_call("insert_guest"), self._session.begin():
            result = await self._session.execute(query, {"name": name, "phone": phone})
            row = result.mappings().one()
        return Guest.from_row(row)

    async def commit_booking(self, fields: NewBooking) -> Booking:
        """
        Insert a confirmed booking through the ``commit_booking()`` SQL function.

        The function locks the workspace row, recomputes peak occupancy over
        the span and raises ``Capacity exceeded`` rather than inserting when
        no unit is free, so the check and the insert are one atomic step.
        """
        query = text(
            f"""
            SELECT {_BOOKING_COLUMNS}
            FROM commit_booking(
              :workspace_id, :user_id, :guest_id, :starts_at, :ends_at, :price
            )
            """
        )
        async with _store_call("commit_booking"), self._session.begin():
            result = await self._session.execute(
                query,
                {
                    "workspace_id": fields.workspace_id,
                    "user_id": fields.user_id,
                    "guest_id": fields.guest_id,
                    "starts_at": fields.starts_at,
                    "ends_at": fields.ends_at,
                    "price": fields.price,
                },
            )
            row = result.mappings().one()
        return Booking.from_row(row)

    async def transition_booking(
        self,
        booking_id: int,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        timestamp_column: str | None = None,
        at: datetime | None = None,
    ) -> Booking | None:
        """
        Move a booking to ``to_status`` only if it is currently in ``from_statuses``.

        Returns the updated booking, or None when no row matched.
        """
        assignments = ["status = :to_status"]
        params: dict[str, object] = {
            "id": booking_id,
            "to_status": BookingStatus(to_status).value,
            "from_statuses": _statuses(from_statuses),
        }
        if timestamp_column is not None:
            if timestamp_column not in TIMESTAMP_COLUMNS:
                raise ValueError(f"Unknown timestamp column {timestamp_column!r}")
            assignments.append(f"{timestamp_column} = :at")
            params["at"] = at

        query = text(
            f"""
            UPDATE booking
            SET {', '.join(assignments)}
            WHERE id = :id AND status IN :from_statuses
            RETURNING {_BOOKING_COLUMNS}
            """
        ).bindparams(bindparam("from_statuses", expanding=True))
        async with _store_call("update_booking_status"), self._session.begin():
            result = await self._session.execute(query, params)
            row = result.mappings().one_or_none()
        return Booking.from_row(row) if row is not None else None

    async def mark_no_shows(self, now: datetime) -> list[Booking]:
        """Flip every confirmed, never-checked-in booking that already started to no_show."""
        query = text(
            f"""
            UPDATE booking
            SET status = 'no_show'
            WHERE status = 'confirmed'
              AND checked_in_at IS NULL
              AND starts_at < :now
            RETURNING {_BOOKING_COLUMNS}
            """
        )
        async with _store_call("mark_no_shows"), self._session.begin():
            result = await self._session.execute(query, {"now": now})
            rows = result.mappings().all()
        return [Booking.from_row(row) for row in rows]

    async def ping(self) -> None:
        async with _store_call("ping"), self._session.begin():
            await self._session.execute(text("SELECT 1"))


async def get_store(
    session: AsyncSession = Depends(get_session),
) -> AsyncGenerator[BookingStore, None]:
    yield BookingStore(session)
