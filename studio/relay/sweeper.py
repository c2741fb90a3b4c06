import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .sessions import SessionStore

logger = logging.getLogger(__name__)

_JOB_ID = "sweep_sessions"

_scheduler: AsyncIOScheduler | None = None


def _get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


def sweep_sessions(sessions: SessionStore, max_age: float) -> int:
    removed = sessions.prune(max_age)
    if removed:
        logger.info("Swept %d inactive session(s)", len(removed))
    return len(removed)


def start_sweeper(sessions: SessionStore, max_age: float, interval: int) -> None:
    """Periodically drop relay sessions idle for longer than ``max_age``."""
    scheduler = _get_scheduler()
    scheduler.add_job(
        sweep_sessions,
        "interval",
        id=_JOB_ID,
        args=[sessions, max_age],
        seconds=interval,
        replace_existing=True,
        misfire_grace_time=interval,
    )
    scheduler.start()
    logger.info("Session sweeper started (every %ds, ttl %ds)", interval, int(max_age))


def stop_sweeper() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Session sweeper stopped")
    _scheduler = None
