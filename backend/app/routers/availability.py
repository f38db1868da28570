from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query

from backend.app.core.clock import utcnow
from backend.app.core.errors import BookingError, NotFound, booking_error_to_http
from backend.app.db.store import BookingStore, get_store
from backend.app.routers.schemas import AvailabilityOut, WorkspaceOut
from backend.app.services.availability import get_day_availability

router = APIRouter()


@router.get("/workspaces", response_model=list[WorkspaceOut])
async def list_workspaces(store: BookingStore = Depends(get_store)) -> list[WorkspaceOut]:
    try:
        workspaces = await store.list_workspaces()
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return [WorkspaceOut.from_record(w) for w in workspaces]


@router.get("/workspaces/{workspace_id}", response_model=WorkspaceOut)
async def get_workspace(workspace_id: int, store: BookingStore = Depends(get_store)) -> WorkspaceOut:
    try:
        workspace = await store.get_workspace(workspace_id)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    if workspace is None or workspace.is_archived:
        raise booking_error_to_http(NotFound(f"Workspace {workspace_id} not found"))
    return WorkspaceOut.from_record(workspace)


@router.get("/workspaces/{workspace_id}/availability", response_model=AvailabilityOut)
async def workspace_availability(
    workspace_id: int,
    day: date = Query(alias="date"),
    store: BookingStore = Depends(get_store),
) -> AvailabilityOut:
    """Per-slice occupancy and the durations a booking may start with on ``date``."""
    try:
        result = await get_day_availability(store, workspace_id, day, utcnow())
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
    return AvailabilityOut.from_result(result)
