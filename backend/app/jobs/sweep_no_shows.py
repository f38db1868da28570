"""
No-show sweep entrypoint for an external scheduler.

    python -m backend.app.jobs.sweep_no_shows

Runs once and exits. A Redis lock keeps two overlapping invocations from
sweeping at the same time.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from uuid import uuid4

import structlog

from backend.app.core import redis_client as redis_module
from backend.app.core.clock import utcnow
from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging
from backend.app.db.session import SessionLocal, dispose_engine
from backend.app.db.store import BookingStore
from backend.app.services.lifecycle import SweepResult, sweep_no_shows

logger = structlog.get_logger(__name__)


async def run_locked_sweep(store: BookingStore, now: datetime) -> SweepResult | None:
    """Sweep under the shared lock. Returns None if another sweep holds it."""
    token = str(uuid4())
    acquired = await redis_module.acquire(
        redis_module.SWEEP_LOCK_KEY, token, settings.SWEEP_LOCK_TTL_SECONDS
    )
    if not acquired:
        logger.info("no_show_sweep_skipped", reason="lock_held")
        return None
    try:
        return await sweep_no_shows(store, now)
    finally:
        if not await redis_module.release(redis_module.SWEEP_LOCK_KEY, token):
            logger.warning("no_show_sweep_lock_lost", ttl_seconds=settings.SWEEP_LOCK_TTL_SECONDS)


async def main() -> int:
    setup_logging()
    await redis_module.init_redis()
    try:
        async with SessionLocal() as session:
            result = await run_locked_sweep(BookingStore(session), utcnow())
    finally:
        await redis_module.close_redis()
        await dispose_engine()
    return 0 if result is None else result.count


if __name__ == "__main__":
    swept = asyncio.run(main())
    print(f"Marked {swept} no-show(s)")
