"""
Background Rating-Reveal Worker
===============================

Runs every ``RATING_REVEAL_INTERVAL_SECONDS`` (default 1 h).

Ratings are hidden until the other participant rates back.  When that
never happens, this worker reveals them once they are
``RATING_REVEAL_AFTER_DAYS`` old (default 7) and recomputes the rated
users' averages.

Concurrency safety
------------------
* **Redis distributed lock** ensures only one API process sweeps per cycle.
* The reveal itself is a single ``UPDATE ... WHERE is_visible = false``, so a
  rating paired by a request during the sweep is simply skipped.
"""

from __future__ import annotations

import asyncio
import logging

from rideshare.config import settings
from rideshare.infrastructure.database import session_scope
from rideshare.infrastructure.locks import DistributedLock
from rideshare.infrastructure.redis_client import get_redis
from rideshare.services.ratings import RatingAggregator

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_reveal_loop() -> None:
    global _task, _stop_event
    if not settings.rating_reveal_enabled:
        logger.info("Rating reveal worker disabled")
        return
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Rating reveal worker started (interval=%ds, after=%dd)",
        settings.rating_reveal_interval_seconds,
        settings.rating_reveal_after_days,
    )


async def stop_reveal_loop() -> None:
    global _task
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
        _task = None
        logger.info("Rating reveal worker stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_reveal_cycle()
        except Exception:
            logger.exception("Unhandled error in rating reveal cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.rating_reveal_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_reveal_cycle(session_factory=None, redis=None) -> int:
    """Execute one sweep.  Returns the number of users whose rating changed."""
    lock = DistributedLock(redis or get_redis(), "rating_reveal", ttl_seconds=300)

    if not await lock.acquire():
        logger.debug("Lock held by another worker – skipping cycle")
        return 0

    try:
        async with session_scope(session_factory) as session:
            user_ids = await RatingAggregator(session).reveal_stale()
        if user_ids:
            logger.info("Rating reveal: recomputed %d user(s)", len(user_ids))
        return len(user_ids)
    finally:
        await lock.release()
