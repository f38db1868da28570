import structlog
from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError

from backend.app.core import redis_client as redis_module
from backend.app.core.errors import StoreUnavailable
from backend.app.db.store import BookingStore, get_store

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness check."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(store: BookingStore = Depends(get_store)) -> dict[str, bool]:
    """Ensure Postgres and Redis are reachable."""
    if redis_module.redis_client is None:
        raise HTTPException(status_code=503, detail="Redis unavailable")

    try:
        await store.ping()
    except StoreUnavailable as exc:
        logger.error("readiness_check_failed", reason="database_not_accessible")
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    try:
        await redis_module.redis_client.ping()
    except RedisError as exc:
        logger.error("readiness_check_failed", reason="redis_not_accessible")
        raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {"ready": True}
