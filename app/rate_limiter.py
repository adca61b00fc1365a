"""
Fixed-window rate limiting for sensitive endpoints (login, signup).

Counts live in process memory and are mirrored to Redis every few seconds
when REDIS_URL is set, so several API workers share roughly one budget.
Without Redis each process limits on its own.
"""

import logging
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request

from .config import RATE_LIMIT_ENABLED, REDIS_URL
from .security_utils import get_client_ip

logger = logging.getLogger(__name__)

# {key: {"count": int, "reset_time": int, "last_redis_sync": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

REDIS_SYNC_INTERVAL = 10
CACHE_CLEANUP_INTERVAL = 60
_last_cleanup = 0

_redis_client: Optional[redis.Redis] = None
_redis_failed = False


def get_redis_client() -> Optional[redis.Redis]:
    """Shared Redis connection, or None when Redis is not configured or unreachable"""
    global _redis_client, _redis_failed

    if not REDIS_URL or _redis_failed:
        return None
    if _redis_client is None:
        try:
            client = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=5, socket_timeout=5)
            client.ping()
            _redis_client = client
            logger.info("✅ Redis connected for rate limiting")
        except (redis.RedisError, ValueError) as e:
            _redis_failed = True
            logger.warning(f"⚠️ Redis unavailable, rate limiting is per-process: {e}")
            return None
    return _redis_client


def reset_rate_limits() -> None:
    with cache_lock:
        memory_cache.clear()


def _cleanup_expired(now: int) -> None:
    global _last_cleanup
    if now - _last_cleanup < CACHE_CLEANUP_INTERVAL:
        return
    expired = [k for k, v in memory_cache.items() if now >= v["reset_time"]]
    for k in expired:
        del memory_cache[k]
    _last_cleanup = now


def _load_entry(key: str, window_seconds: int, now: int, client: Optional[redis.Redis]) -> dict:
    entry = {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}
    if client is None:
        return entry
    try:
        count = client.get(key)
        ttl = client.ttl(key)
        if count and ttl > 0:
            entry.update(count=int(count), reset_time=now + ttl)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Failed to load {key} from Redis: {e}")
    return entry


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: Optional[redis.Redis] = None
) -> tuple[bool, int, int]:
    """
    Count one hit against `key`.

    Returns (is_allowed, current_count, seconds_until_reset).
    """
    now = int(time.time())
    with cache_lock:
        _cleanup_expired(now)
        entry = memory_cache.get(key)
        if entry is None:
            entry = memory_cache[key] = _load_entry(key, window_seconds, now, client)

        if now >= entry["reset_time"]:
            entry.update(count=0, reset_time=now + window_seconds, last_redis_sync=0)

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if client is not None and now - entry["last_redis_sync"] >= REDIS_SYNC_INTERVAL:
            try:
                client.set(key, entry["count"], ex=max(entry["reset_time"] - now, 1))
                entry["last_redis_sync"] = now
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

        return is_allowed, entry["count"], max(entry["reset_time"] - now, 0)


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Per-IP rate limiter dependency.

        login_rate_limit = create_rate_limiter(limit=10, window_seconds=300, key_prefix="login")

        @router.post("/login")
        async def login(data: LoginRequest, _: None = Depends(login_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request) -> None:
        if not RATE_LIMIT_ENABLED:
            return

        key = f"{key_prefix}:{get_client_ip(request) or 'unknown'}"
        is_allowed, count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())
        if not is_allowed:
            logger.warning(f"🚫 Rate limit exceeded for {key} - {count}/{limit}")
            raise HTTPException(
                status_code=429,
                detail=f"Too many requests. Try again in {ttl} seconds.",
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
