from __future__ import annotations

from datetime import date
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.exceptions import RedisError

from backend.app.core import redis_client as redis_module
from backend.app.core.clock import local_day_bounds, utcnow
from backend.app.core.config import settings
from backend.app.core.errors import BookingError, NotFound, booking_error_to_http
from backend.app.core.identity import Identity, get_identity, require_staff
from backend.app.db.records import (
    UPCOMING_STATUSES,
    Booking,
    BookingStatus,
    GuestRequester,
    Requester,
    UserRequester,
)
from backend.app.db.store import BookingStore, get_store
from backend.app.jobs.sweep_no_shows import run_locked_sweep
from backend.app.routers.schemas import BookingCreateIn, BookingOut, SweepOut
from backend.app.services import lifecycle
from backend.app.services.bookings import BookingRequest, create_booking, validate_request

logger = structlog.get_logger(__name__)

router = APIRouter()


def _requester(payload: BookingCreateIn, identity: Identity) -> Requester | None:
    if identity.user_id is not None:
        return UserRequester(identity.user_id)
    if payload.guest is not None:
        return GuestRequester(payload.guest.name.strip(), payload.guest.phone.strip())
    return None


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    payload: BookingCreateIn,
    identity: Identity = Depends(get_identity),
    store: BookingStore = Depends(get_store),
) -> BookingOut:
    request = BookingRequest(
        workspace_id=payload.workspace_id,
        day=payload.date,
        start_time=payload.start_time,
        duration_hours=payload.duration_hours,
        requester=_requester(payload, identity),
    )

    try:
        validate_request(request)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    if redis_module.redis_client is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable")

    hold_key = redis_module.booking_hold_key(
        payload.workspace_id,
        request.starts_at.strftime("%Y%m%d%H%M"),
        request.ends_at.strftime("%Y%m%d%H%M"),
        request.requester.hold_key,
    )
    hold_token = str(uuid4())
    try:
        hold_acquired = await redis_module.acquire(
            hold_key, hold_token, settings.BOOKING_HOLD_TTL_SECONDS
        )
    except RedisError as exc:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable") from exc
    if not hold_acquired:
        raise HTTPException(status.HTTP_409_CONFLICT, detail="This booking is already being processed")

    try:
        booking = await create_booking(store, request, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    finally:
        await redis_module.release(hold_key, hold_token)

    return BookingOut.from_record(booking)


@router.get("/bookings", response_model=list[BookingOut])
async def list_bookings(
    day: date = Query(alias="date"),
    workspace_id: int | None = None,
    booking_status: BookingStatus | None = Query(default=None, alias="status"),
    _: Identity = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> list[BookingOut]:
    """Bookings touching a local day, for the front desk."""
    window_start, window_end = local_day_bounds(day)
    try:
        bookings = await store.list_bookings(window_start, window_end, workspace_id, booking_status)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return [BookingOut.from_record(b) for b in bookings]


@router.get("/bookings/mine", response_model=list[BookingOut])
async def my_bookings(
    limit: int = Query(default=20, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    store: BookingStore = Depends(get_store),
) -> list[BookingOut]:
    """The caller's confirmed or in-progress bookings that have not ended yet."""
    if identity.is_anonymous:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Sign in to see your bookings")
    try:
        bookings = await store.list_user_bookings(
            identity.user_id, utcnow(), UPCOMING_STATUSES, limit=limit
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return [BookingOut.from_record(b) for b in bookings]


async def _visible_booking(store: BookingStore, booking_id: int, identity: Identity) -> Booking:
    booking = await store.get_booking(booking_id)
    # Other users' bookings are reported as missing rather than forbidden.
    if booking is None or not (identity.is_staff or booking.user_id == identity.user_id):
        raise NotFound(f"Booking {booking_id} not found")
    return booking


@router.get("/bookings/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    store: BookingStore = Depends(get_store),
) -> BookingOut:
    try:
        booking = await _visible_booking(store, booking_id, identity)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return BookingOut.from_record(booking)


@router.post("/bookings/{booking_id}/check-in", response_model=BookingOut)
async def check_in(
    booking_id: int,
    _: Identity = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> BookingOut:
    try:
        booking = await lifecycle.check_in(store, booking_id, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return BookingOut.from_record(booking)


@router.post("/bookings/{booking_id}/check-out", response_model=BookingOut)
async def check_out(
    booking_id: int,
    _: Identity = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> BookingOut:
    try:
        booking = await lifecycle.check_out(store, booking_id, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return BookingOut.from_record(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
async def cancel(
    booking_id: int,
    identity: Identity = Depends(get_identity),
    store: BookingStore = Depends(get_store),
) -> BookingOut:
    if identity.is_anonymous:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Sign in to cancel a booking")
    try:
        await _visible_booking(store, booking_id, identity)
        booking = await lifecycle.cancel(store, booking_id, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return BookingOut.from_record(booking)


@router.post("/bookings/no-show-sweep", response_model=SweepOut)
async def no_show_sweep(
    _: Identity = Depends(require_staff),
    store: BookingStore = Depends(get_store),
) -> SweepOut:
    if redis_module.redis_client is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="Redis unavailable")
    try:
        result = await run_locked_sweep(store, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    if result is None:
        raise HTTPException(status.HTTP_409_CONFLICT, detail="A no-show sweep is already running")
    return SweepOut(swept=result.count, booking_ids=result.booking_ids, swept_at=result.swept_at)
