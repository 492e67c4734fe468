"""Background worker: runs the periodic jobs on their cron schedules.

Run as a separate process:
    python -m sitepulse.worker
"""

import asyncio
import logging
import signal

from sitepulse.core.config import setup_logging
from sitepulse.db.session import AsyncSessionLocal, engine
from sitepulse.scheduler import build_scheduler

logger = logging.getLogger(__name__)

_shutdown = asyncio.Event()


def _handle_signal(*_):
    logger.info("Shutdown signal received")
    _shutdown.set()


async def run_worker() -> None:
    """Start the scheduler and block until a shutdown signal arrives."""
    setup_logging()
    logger.info("Starting scheduler worker")

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal)

    scheduler = build_scheduler(AsyncSessionLocal)
    scheduler.start()
    for job in scheduler.get_jobs():
        logger.info("Scheduled %s, next run at %s", job.id, job.next_run_time)

    await _shutdown.wait()

    scheduler.shutdown(wait=False)
    await engine.dispose()
    logger.info("Worker shut down cleanly")


if __name__ == "__main__":
    asyncio.run(run_worker())
