# dramahub/core/redis_client.py
from __future__ import annotations

"""
DramaHub — Redis Client (Async)
===============================
Connection manager for the one thing the API uses Redis for: the per-title
**single-flight refresh lock** of the drama cache.

Public API (imported as `redis_wrapper`)
----------------------------------------
- await redis_wrapper.connect() / await redis_wrapper.close() / await redis_wrapper.is_connected()
- async with redis_wrapper.lock(name, timeout=60, blocking_timeout=15): ...

Failure semantics
-----------------
- `lock()` raises `RuntimeError` when Redis is not connected and the built-in
  `TimeoutError` when the lock is not acquired within `blocking_timeout`.
  Callers that treat the lock as optional catch both and run unlocked.
- Releases are best-effort; never crash the request.
"""

import asyncio
import inspect
import logging
import os
import random
import time
from contextlib import asynccontextmanager
from typing import Optional
from urllib.parse import urlparse

import redis.asyncio as redis
from redis.exceptions import RedisError

from dramahub.core.config import settings

logger = logging.getLogger(__name__)

# ─────────────────────────────────────────────────────────────────────────────
# Tunables (env-aware sensible defaults)
# ─────────────────────────────────────────────────────────────────────────────
MAX_RETRIES = int(os.getenv("REDIS_CONNECT_MAX_RETRIES", "3"))
BASE_DELAY = float(os.getenv("REDIS_CONNECT_BASE_DELAY", "0.3"))  # seconds
HEALTH_CHECK_INTERVAL = int(os.getenv("REDIS_HEALTH_CHECK_INTERVAL", "30"))  # seconds
SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "3"))
SOCKET_CONNECT_TIMEOUT = float(os.getenv("REDIS_SOCKET_CONNECT_TIMEOUT", "3"))
POOL_MAX_CONNECTIONS = int(os.getenv("REDIS_POOL_MAX_CONNECTIONS", "32"))
CLIENT_NAME = os.getenv("REDIS_CLIENT_NAME", "dramahub-api")


class RedisClient:
    """
    Redis connection manager (asyncio).

    - Resilient connect with exponential backoff + jitter
    - Pooled connections, health checks
    - Async distributed lock (native lock preferred; `SET NX` fallback)
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client: Optional[redis.Redis] = None

    # ── lifecycle ────────────────────────────────────────────────────────────
    async def connect(self) -> None:
        """Establish a connection with retries; reuse a healthy client."""
        if self._client:
            try:
                await self._client.ping()
                logger.debug("Redis already connected.")
                return
            except RedisError:
                self._client = None  # stale client → reconnect

        attempt = 0
        last_err: Optional[Exception] = None
        while attempt < MAX_RETRIES:
            attempt += 1
            try:
                self._client = self._build_client()
                await self._client.ping()
                logger.info("Connected to Redis")
                return
            except (RedisError, OSError) as e:
                last_err = e
                delay = self._backoff(attempt)
                logger.warning(
                    "Redis connect attempt %s/%s failed: %r (retrying in %.2fs)",
                    attempt, MAX_RETRIES, e, delay,
                )
                await asyncio.sleep(delay)

        self._client = None
        logger.error("Redis connection failed after %s retries.", MAX_RETRIES)
        raise RuntimeError("Redis connection failed") from last_err

    async def close(self) -> None:
        """Gracefully close connection & pool."""
        if not self._client:
            return
        try:
            await self._client.aclose()
            logger.info("Redis connection closed.")
        except RedisError as e:
            logger.warning("Error closing Redis connection: %s", e)
        finally:
            self._client = None

    async def is_connected(self) -> bool:
        """Return True if `PING` succeeds (healthy connection)."""
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    # ── lock ────────────────────────────────────────────────────────────────
    @asynccontextmanager
    async def lock(
        self,
        name: str,
        *,
        timeout: int = 60,
        blocking_timeout: int = 15,
        sleep: float = 0.2,
    ):
        """
        Async distributed lock.

        1) Native Redis lock (`client.lock(...)`), released in `finally`.
        2) Portable `SET NX EX` spin-lock when the client has no `lock`;
           only the owner token releases the key.
        """
        if not self._client:
            raise RuntimeError("Redis not connected")
        rc = self._client

        if hasattr(rc, "lock"):
            lock_obj = rc.lock(name, timeout=timeout, blocking_timeout=blocking_timeout, sleep=sleep)
            acquired = False
            try:
                res = lock_obj.acquire(blocking=True, blocking_timeout=blocking_timeout)
                acquired = bool(await res if inspect.isawaitable(res) else res)
                if not acquired:
                    raise TimeoutError(f"Failed to acquire lock: {name}")
                yield
            finally:
                if acquired:
                    try:
                        rel = lock_obj.release()
                        if inspect.isawaitable(rel):
                            await rel
                    except RedisError:
                        logger.debug("Redis native lock release failed (best-effort).", exc_info=True)
            return

        token = f"{time.time_ns()}-{os.getpid()}-{random.randint(0, 1_000_000)}"
        deadline = time.monotonic() + max(0.0, float(blocking_timeout))
        acquired = False
        try:
            while time.monotonic() < deadline:
                if await rc.set(name, token, ex=int(timeout), nx=True):
                    acquired = True
                    break
                await asyncio.sleep(sleep)

            if not acquired:
                raise TimeoutError(f"Failed to acquire lock: {name}")

            yield
        finally:
            if acquired:
                try:
                    val = await rc.get(name)
                    if isinstance(val, (bytes, bytearray)):
                        val = val.decode("utf-8", errors="ignore")
                    if val == token:
                        await rc.delete(name)
                except RedisError:
                    logger.debug("Redis spin-lock release failed (best-effort).", exc_info=True)

    # ── internals ───────────────────────────────────────────────────────────
    def _build_client(self) -> redis.Redis:
        """Instantiate a pooled Redis client from the URL."""
        url = self.redis_url.strip()
        client_kwargs = dict(
            decode_responses=True,
            health_check_interval=HEALTH_CHECK_INTERVAL,
            socket_keepalive=True,
            socket_timeout=SOCKET_TIMEOUT,
            socket_connect_timeout=SOCKET_CONNECT_TIMEOUT,
            retry_on_timeout=True,
            max_connections=POOL_MAX_CONNECTIONS,
            client_name=CLIENT_NAME,
        )
        if urlparse(url).scheme == "rediss" and os.getenv("REDIS_SSL_CERT_REQS", "required").lower() == "none":
            client_kwargs["ssl_cert_reqs"] = None  # dev only
        return redis.Redis.from_url(url, **client_kwargs)

    @staticmethod
    def _backoff(attempt: int) -> float:
        # Exponential backoff with jitter (cap at 3s)
        return min(3.0, BASE_DELAY * (2 ** (attempt - 1))) + random.uniform(0, 0.25)


# Singleton instance
redis_wrapper = RedisClient(settings.REDIS_URL)
