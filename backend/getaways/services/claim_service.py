"""
Per-session claim for payment reconciliation.

Two reconciliations of the same checkout session (the customer's redirect and
the processor webhook, or a double-submitted redirect) would both see "no
booking yet" and both try to insert one. Holding a Redis lock keyed by the
session id serializes them across workers.

Fail-open policy:
  If Redis is disabled, unreachable, or the lock cannot be acquired within
  RECONCILE_LOCK_WAIT, reconciliation proceeds without the claim. The unique
  constraints on bookings.source_session_id and
  payment_transactions.stripe_session_id remain the authoritative guard;
  the claim only keeps the losing request off the IntegrityError path.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from redis.exceptions import RedisError

from getaways.core.config import get_settings
from getaways.core.logging import get_logger
from getaways.infrastructure.redis_client import get_redis

logger = get_logger(__name__)
settings = get_settings()

CLAIM_PREFIX = "reconcile:session:"


@asynccontextmanager
async def session_claim(session_id: str) -> AsyncIterator[bool]:
    """Yield True while holding the claim, False when running unclaimed."""
    client = await get_redis()
    lock = None
    acquired = False

    if client is not None:
        lock = client.lock(
            f"{CLAIM_PREFIX}{session_id}",
            timeout=settings.RECONCILE_LOCK_TIMEOUT,
            blocking_timeout=settings.RECONCILE_LOCK_WAIT,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.warning("reconcile_claim_unavailable", session_id=session_id, error=str(e))
        if not acquired:
            logger.warning("reconcile_claim_not_acquired", session_id=session_id)

    try:
        yield acquired
    finally:
        if acquired:
            try:
                await lock.release()
            except RedisError as e:
                # Lock expired while we worked; nothing left to release
                logger.warning("reconcile_claim_release_failed", session_id=session_id, error=str(e))
