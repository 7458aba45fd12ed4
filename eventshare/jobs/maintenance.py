"""
Periodic maintenance.

Every job is a bulk statement in its own session and is safe to run while
the API is serving requests.

Run once from the command line::

    python -m eventshare.jobs.maintenance

or as a daily loop started from the app's startup hook when
``MAINTENANCE_LOOP_ENABLED`` is set.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Optional, Callable
from sqlalchemy.ext.asyncio import AsyncSession
from eventshare.core.logging import logger
from eventshare.core.security import utcnow
from eventshare.db.repositories import events as event_repo
from eventshare.db.repositories import feedback as feedback_repo
from eventshare.db.repositories import media as media_repo
from eventshare.db.repositories import push_tokens as push_token_repo
from eventshare.db.session import AsyncSessionLocal

RUN_HOUR = 3


def _cutoff(days_old: int) -> datetime:
    return utcnow() - timedelta(days=days_old)


async def cleanup_inactive_push_tokens(session: AsyncSession, days_old: int = 30) -> int:
    """Delete deactivated push tokens not updated for ``days_old`` days."""
    return await push_token_repo.delete_inactive_before(session, _cutoff(days_old))


async def deactivate_stale_push_tokens(session: AsyncSession, days_old: int = 90) -> int:
    """Deactivate tokens that have not been used for ``days_old`` days."""
    return await push_token_repo.deactivate_unused_before(session, _cutoff(days_old))


async def prune_closed_feedback(session: AsyncSession, days_old: int = 180) -> int:
    return await feedback_repo.delete_closed_before(session, _cutoff(days_old))


async def reconcile_participant_counts(session: AsyncSession) -> list:
    """Recompute event participant counters; returns the corrected event ids."""
    corrected = await event_repo.reconcile_participant_counts(session)
    if corrected:
        logger.warning(f"Corrected participant_count drift on {len(corrected)} events")
    return corrected


async def reconcile_media_likes(session: AsyncSession) -> list:
    corrected = await media_repo.reconcile_media_likes(session)
    if corrected:
        logger.warning(f"Corrected like counter drift on {len(corrected)} media items")
    return corrected


JOBS = (
    ("cleanup_inactive_push_tokens", cleanup_inactive_push_tokens),
    ("deactivate_stale_push_tokens", deactivate_stale_push_tokens),
    ("prune_closed_feedback", prune_closed_feedback),
    ("reconcile_participant_counts", reconcile_participant_counts),
    ("reconcile_media_likes", reconcile_media_likes),
)


async def run_maintenance_once(session_factory: Optional[Callable] = None) -> dict:
    """
    Run every job once, each in a fresh session. A failing job is logged and
    does not stop the others.
    """
    factory = session_factory or AsyncSessionLocal
    summary = {}
    for name, job in JOBS:
        async with factory() as session:
            try:
                result = await job(session)
            except Exception:
                logger.exception(f"Maintenance job {name} failed")
                await session.rollback()
                summary[name] = None
                continue
        summary[name] = len(result) if isinstance(result, list) else result
    logger.info(f"Maintenance summary: {summary}")
    return summary


async def _sleep_until_next_run(hour: int = RUN_HOUR) -> None:
    now = datetime.now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target = target + timedelta(days=1)
    await asyncio.sleep((target - now).total_seconds())


async def _loop_daily() -> None:
    while True:
        try:
            await _sleep_until_next_run()
            await run_maintenance_once()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Maintenance loop iteration failed")


def start_maintenance_loop() -> Optional[asyncio.Task]:
    """Schedule the daily loop on the running event loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return None
    return loop.create_task(_loop_daily())


def main() -> None:
    asyncio.run(run_maintenance_once())


if __name__ == "__main__":
    main()
