import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from vellume.core.config import settings

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.05


class QuotaLock:
    """
    Per-user distributed lock around check-generate-record.

    Without it two concurrent requests from one user can both pass the quota
    check before either usage event lands. Disabled by default; see
    quota_lock_enabled. Waiting happens on the event loop, so other requests
    keep running while a contender polls.
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        enabled: bool = True,
        timeout_seconds: int = 120,
        block_seconds: float = 5,
    ):
        self._client = client
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self.block_seconds = block_seconds

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                settings.redis_url,
                password=settings.redis_password or None,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self._client

    @staticmethod
    def lock_key(user_id: str) -> str:
        return f"quota_lock:{user_id}"

    async def acquire(
        self,
        user_id: str,
        timeout_seconds: Optional[int] = None,
        block_seconds: Optional[float] = None,
    ) -> Optional[str]:
        """
        Acquire the user's lock with SET NX EX.

        Returns the token identifying our hold, or None if the lock could not
        be taken within block_seconds (or Redis is unavailable).
        """
        lock_key = self.lock_key(user_id)
        token = str(uuid.uuid4())
        ttl = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        wait = block_seconds if block_seconds is not None else self.block_seconds
        end_time = time.monotonic() + wait

        try:
            client = self._get_client()
            while True:
                if await client.set(lock_key, token, nx=True, ex=ttl):
                    logger.debug(f"QuotaLock: Lock acquired - {lock_key}")
                    return token
                if time.monotonic() >= end_time:
                    break
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
        except RedisError as e:
            logger.error(f"QuotaLock: Error acquiring lock {lock_key}: {e}")
            return None

        logger.debug(f"QuotaLock: Failed to acquire lock - {lock_key}")
        return None

    async def release(self, user_id: str, token: str):
        lock_key = self.lock_key(user_id)
        try:
            client = self._get_client()
            current = await client.get(lock_key)
            if current is not None and current.decode() == token:
                await client.delete(lock_key)
                logger.debug(f"QuotaLock: Lock released - {lock_key}")
        except RedisError as e:
            logger.error(f"QuotaLock: Error releasing lock {lock_key}: {e}")

    @asynccontextmanager
    async def hold(self, user_id: str):
        """Serialize the enclosed block per user when enabled."""
        if not self.enabled:
            yield
            return

        token = await self.acquire(user_id)
        if token is None:
            # Proceed unserialized
            logger.warning(f"QuotaLock: Could not acquire lock - {user_id}")
        try:
            yield
        finally:
            if token is not None:
                await self.release(user_id, token)


def get_quota_lock() -> QuotaLock:
    """Dependency to get the per-user quota lock"""
    return QuotaLock(enabled=settings.quota_lock_enabled)
