import redis.asyncio as redis

from backend.app.core.config import settings


redis_client: redis.Redis | None = None


async def init_redis() -> None:
    """Initialise a shared Redis connection."""
    global redis_client
    redis_client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
    )


async def close_redis() -> None:
    """Close the Redis connection if it was initialised."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


def booking_hold_key(workspace_id: int, start_utc: str, end_utc: str, requester: str) -> str:
    return f"hold:booking:{workspace_id}:{start_utc}:{end_utc}:{requester}"


SWEEP_LOCK_KEY = "lock:no-show-sweep"


# Compare-and-delete: removes KEYS[1] only while it still holds ARGV[1].
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("del", KEYS[1])
end
return 0
"""


async def acquire(key: str, token: str, ttl_seconds: int) -> bool:
    """SET NX with expiry. Returns False when someone else holds ``key``."""
    if redis_client is None:
        raise RuntimeError("Redis unavailable")
    return bool(await redis_client.set(key, token, nx=True, px=ttl_seconds * 1000))


async def release(key: str, token: str) -> bool:
    """Drop ``key`` if it is still held with ``token``. Returns whether it was removed."""
    if redis_client is None:
        return False
    return bool(await redis_client.eval(_RELEASE_SCRIPT, 1, key, token))
