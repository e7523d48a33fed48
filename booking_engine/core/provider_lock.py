"""
Per-provider calendar mutex.

Every write to a provider's calendar (holds, bookings, reschedules) runs its
conflict check and commit while holding this lock, so that attempts against
the same provider are totally ordered. Providers never contend with each
other.
"""
from contextlib import contextmanager
import logging
import threading
from typing import Dict, Iterator

from redis.exceptions import LockError, RedisError

from booking_engine.config.redis import RedisKeys, get_sync_redis
from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import LockUnavailableError

logger = logging.getLogger(__name__)

_LOCAL_LOCKS: Dict[str, threading.Lock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()


def _lock_key(provider_id: str) -> str:
    return RedisKeys.PROVIDER_CALENDAR_LOCK.format(provider_id=provider_id)


def _local_lock(key: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[key] = lock
        return lock


@contextmanager
def _redis_provider_lock(key: str, ttl_s: int, wait_s: float) -> Iterator[None]:
    lock = get_sync_redis().lock(key, timeout=ttl_s, blocking_timeout=wait_s)
    try:
        acquired = lock.acquire()
    except RedisError as exc:
        logger.error(f"Calendar lock backend error for {key}: {exc}")
        raise LockUnavailableError(
            "Calendar lock backend unavailable",
            details={"lock": key},
        ) from exc

    if not acquired:
        logger.warning(f"Timed out waiting for calendar lock {key}")
        raise LockUnavailableError("Provider calendar is busy, try again", details={"lock": key})

    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            # TTL elapsed before release; the key is already gone
            logger.warning(f"Calendar lock {key} expired before release")


@contextmanager
def _local_provider_lock(key: str, wait_s: float) -> Iterator[None]:
    lock = _local_lock(key)
    if not lock.acquire(timeout=wait_s):
        logger.warning(f"Timed out waiting for calendar lock {key}")
        raise LockUnavailableError("Provider calendar is busy, try again", details={"lock": key})
    try:
        yield
    finally:
        lock.release()


@contextmanager
def provider_lock(provider_id: str) -> Iterator[None]:
    """Serialize calendar writes for one provider"""
    settings = get_settings()
    key = _lock_key(provider_id)

    if settings.LOCK_BACKEND == "local":
        with _local_provider_lock(key, settings.PROVIDER_LOCK_WAIT_SECONDS):
            yield
        return

    with _redis_provider_lock(
        key,
        ttl_s=settings.PROVIDER_LOCK_TTL_SECONDS,
        wait_s=settings.PROVIDER_LOCK_WAIT_SECONDS,
    ):
        yield
