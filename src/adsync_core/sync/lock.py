"""Redis lock guarding against overlapping batch runs for one provider."""
import logging
from typing import Optional

from redis.asyncio import Redis
from redis.asyncio.lock import Lock as AsyncRedisLock


logger = logging.getLogger(__name__)


class ProviderSyncLock:
    """Non-blocking per-provider lock; one batch per provider at a time."""

    LOCK_TTL_SECONDS = 900  # 15 minutes

    def __init__(self, redis: Redis, provider: str) -> None:
        self.redis = redis
        self.provider = provider
        self.lock_key = f"adsync:sync_lock:{provider}"
        self._lock: Optional[AsyncRedisLock] = None

    async def acquire(self) -> bool:
        """Try to take the lock without waiting."""
        lock = AsyncRedisLock(
            self.redis,
            name=self.lock_key,
            timeout=self.LOCK_TTL_SECONDS,
            blocking=False,
        )
        acquired = await lock.acquire(blocking=False)
        if not acquired:
            logger.warning("Sync lock already held for provider=%s", self.provider)
            return False

        self._lock = lock
        logger.info("Acquired sync lock for provider=%s", self.provider)
        return True

    async def release(self) -> None:
        """Release the lock with error suppression."""
        if self._lock:
            try:
                await self._lock.release()
                logger.info("Released sync lock for provider=%s", self.provider)
            except Exception as exc:
                logger.error("Failed to release sync lock: %s", exc)
            finally:
                self._lock = None
