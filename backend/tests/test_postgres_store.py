"""
Store checks against a migrated Postgres database.

Run with ALEMBIC_DATABASE_URL (sync driver, for seeding) and DATABASE_URL
(asyncpg, for the app) pointing at the same database.
"""
import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import psycopg2
import pytest
import pytest_asyncio
from sqlalchemy.engine import make_url

from backend.app.core.errors import CapacityConflict
from backend.app.db.records import BookingStatus, NewBooking
from backend.app.db.session import SessionLocal, dispose_engine
from backend.app.db.store import BookingStore

pytestmark = [
    pytest.mark.asyncio(loop_scope="module"),
    pytest.mark.skipif(
        not os.getenv("ALEMBIC_DATABASE_URL"),
        reason="ALEMBIC_DATABASE_URL not set",
    ),
]

STARTS_AT = datetime(2031, 3, 4, 2, 0, tzinfo=timezone.utc)


def _connect():
    url = make_url(os.environ["ALEMBIC_DATABASE_URL"])
    conn = psycopg2.connect(
        host=url.host or "localhost",
        port=url.port or 5432,
        user=url.username or "app_owner",
        password=url.password,
        dbname=url.database or "cowork",
    )
    conn.autocommit = True
    return conn


@pytest.fixture(scope="module")
def workspace_id():
    conn = _connect()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO workspace (name, price_per_hour, quantity, opens_at, closes_at)
        VALUES ('Single Pod (pytest)', 45000, 1, '08:30', '22:00')
        RETURNING id
        """
    )
    (new_id,) = cur.fetchone()
    yield new_id

    cur.execute("DELETE FROM booking WHERE workspace_id = %s", (new_id,))
    cur.execute("DELETE FROM workspace WHERE id = %s", (new_id,))
    cur.execute("DELETE FROM guest WHERE phone_number = '+84 90 999 0000'")
    cur.close()
    conn.close()


@pytest_asyncio.fixture(scope="module", loop_scope="module", autouse=True)
async def close_pool():
    yield
    await dispose_engine()


async def _commit(workspace_id, user_id, starts_at=STARTS_AT, hours=1):
    async with SessionLocal() as session:
        return await BookingStore(session).commit_booking(
            NewBooking(
                workspace_id=workspace_id,
                starts_at=starts_at,
                ends_at=starts_at + timedelta(hours=hours),
                price=Decimal("45000") * hours,
                user_id=user_id,
            )
        )


async def test_parallel_commits_for_last_unit(workspace_id):
    results = await asyncio.gather(
        _commit(workspace_id, "race-a"),
        _commit(workspace_id, "race-b"),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, CapacityConflict)) == 1
    committed = [r for r in results if not isinstance(r, Exception)]
    assert len(committed) == 1
    assert committed[0].status == BookingStatus.CONFIRMED
    assert committed[0].starts_at == STARTS_AT


async def test_back_to_back_commit_is_allowed(workspace_id):
    booking = await _commit(workspace_id, "race-c", starts_at=STARTS_AT + timedelta(hours=1))

    assert booking.starts_at == STARTS_AT + timedelta(hours=1)


async def test_guest_insert_is_deduplicated(workspace_id):
    async with SessionLocal() as session:
        store = BookingStore(session)
        first = await store.insert_guest("Linh Tran", "+84 90 999 0000")
        second = await store.insert_guest("Linh T.", "+84 90 999 0000")
        found = await store.find_guest_by_phone("+84 90 999 0000")

    assert first.id == second.id == found.id


async def test_no_show_sweep_and_transitions(workspace_id):
    # Seeded long ago so the sweep cutoff cannot reach anything but these rows.
    long_ago = datetime(2001, 1, 1, 2, 0, tzinfo=timezone.utc)
    missed = await _commit(workspace_id, "sweep-a", starts_at=long_ago)
    attended = await _commit(workspace_id, "sweep-b", starts_at=long_ago + timedelta(hours=1))
    cutoff = long_ago + timedelta(hours=3)

    async with SessionLocal() as session:
        store = BookingStore(session)
        checked_in = await store.transition_booking(
            attended.id,
            [BookingStatus.CONFIRMED],
            BookingStatus.CHECKED_IN,
            timestamp_column="checked_in_at",
            at=attended.starts_at,
        )
        swept = await store.mark_no_shows(cutoff)
        again = await store.mark_no_shows(cutoff)
        current = await store.get_booking(missed.id)

    assert checked_in is not None and checked_in.checked_in_at == attended.starts_at
    assert missed.id in {b.id for b in swept}
    assert attended.id not in {b.id for b in swept}
    assert missed.id not in {b.id for b in again}
    assert current.status == BookingStatus.NO_SHOW


async def test_member_listing_skips_ended_and_other_users(workspace_id):
    upcoming = await _commit(workspace_id, "member-x", starts_at=STARTS_AT + timedelta(days=1))
    await _commit(workspace_id, "member-y", starts_at=STARTS_AT + timedelta(days=1, hours=2))
    await _commit(workspace_id, "member-x", starts_at=datetime(2001, 2, 1, 2, 0, tzinfo=timezone.utc))

    async with SessionLocal() as session:
        mine = await BookingStore(session).list_user_bookings(
            "member-x",
            STARTS_AT,
            [BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN],
        )

    assert [b.id for b in mine] == [upcoming.id]
