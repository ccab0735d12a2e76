"""Scheduling of the exporter's periodic polling loops."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


async def run_periodically(
    name: str,
    cycle: Callable[[], Awaitable[object]],
    interval_seconds: float,
) -> None:
    """Run ``cycle`` forever, sleeping ``interval_seconds`` after each run.

    An unexpected exception in one cycle is logged and the next cycle still
    runs; only cancellation ends the loop.
    """
    while True:
        try:
            await cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"{name}: cycle failed: {e}")

        await asyncio.sleep(interval_seconds)


class PollingScheduler:
    """Runs the exporter's polling loops as background asyncio tasks.

    Each loop is an independent task, so a slow or failing loop never holds
    up the others.
    """

    def __init__(self, loops: Dict[str, Callable[[], Awaitable[None]]]):
        """Initialize the scheduler.

        Args:
            loops: Task name to a coroutine function that runs until cancelled
        """
        self._loops = dict(loops)
        self._tasks: List[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        """Start one background task per loop."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(loop(), name=name)
            for name, loop in self._loops.items()
        ]
        logger.info(f"Scheduler started loops: {', '.join(self._loops)}")

    async def stop(self) -> None:
        """Cancel the loops and wait for them to finish."""
        if not self._running:
            return

        logger.info("Stopping scheduler")
        self._running = False

        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Loop {task.get_name()} ended with error: {e}")
        self._tasks = []

        logger.info("Scheduler stopped")

    def task(self, name: str) -> Optional[asyncio.Task]:
        """Returns the running task of a loop, if started."""
        for task in self._tasks:
            if task.get_name() == name:
                return task
        return None

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running
