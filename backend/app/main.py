from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from backend.app.core.config import settings
from backend.app.core.logging_config import setup_logging
from backend.app.core.redis_client import close_redis, init_redis
from backend.app.db.session import dispose_engine
import backend.app.routers.availability as availability
import backend.app.routers.bookings as bookings
import backend.app.routers.health as health

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_redis()
    logger.info("api_started")
    try:
        yield
    finally:
        await close_redis()
        await dispose_engine()


app = FastAPI(
    title="Coworking Booking API",
    lifespan=lifespan,
)

app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
app.include_router(availability.router, prefix=settings.API_PREFIX, tags=["Workspaces"])
app.include_router(bookings.router, prefix=settings.API_PREFIX, tags=["Bookings"])
