"""Generic periodic task manager for background ticking."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .log import get_logger

logger = get_logger(__name__)


class TaskStatus(Enum):
    """Status of periodic task operations."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    ERROR = "error"


class TaskStats(BaseModel):
    """Statistics for periodic task execution."""

    executions: int = 0
    errors: int = 0
    consecutive_errors: int = 0
    last_execution_time: datetime | None = None
    start_time: datetime | None = None


class PeriodicTask(ABC):
    """Abstract base class for periodic tasks."""

    @abstractmethod
    async def execute(self) -> None:
        """Execute one iteration of the task."""
        pass

    async def on_start(self) -> None:
        """Called before the first iteration."""
        pass

    async def on_stop(self) -> None:
        """Called after the loop stops."""
        pass

    async def on_error(self, error: Exception) -> None:
        """Called when an iteration raises.

        Args:
            error: The exception that occurred
        """
        logger.error(f"Error in periodic task: {error}")


class PeriodicTaskManager:
    """Runs a periodic task on a fixed interval until stopped.

    The first execution happens one interval after ``start``.
    """

    def __init__(
        self,
        task: PeriodicTask,
        interval_seconds: float = 1.0,
        max_retries: int = 3,
    ):
        """Initialize the periodic task manager.

        Args:
            task: The periodic task to execute
            interval_seconds: Interval between task executions in seconds
            max_retries: Maximum number of consecutive errors before stopping
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.task = task
        self.interval_seconds = interval_seconds
        self.max_retries = max_retries

        self.status = TaskStatus.IDLE
        self._background_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self.stats = TaskStats()

    async def __aenter__(self) -> "PeriodicTaskManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.stop()

    @property
    def running(self) -> bool:
        return self._background_task is not None and not self._background_task.done()

    async def start(self) -> None:
        """Start the periodic loop."""
        if self.running:
            logger.warning("Periodic loop already running")
            return

        await self.task.on_start()
        self._stop_event.clear()
        self.stats.start_time = datetime.now()
        self.status = TaskStatus.RUNNING
        self._background_task = asyncio.create_task(self._periodic_loop())

    async def stop(self) -> None:
        """Stop the periodic loop and run task cleanup."""
        self._stop_event.set()

        if self._background_task and not self._background_task.done():
            self._background_task.cancel()
            try:
                await self._background_task
            except asyncio.CancelledError:
                pass
        self._background_task = None

        try:
            await self.task.on_stop()
        except Exception as e:
            logger.error(f"Error during task cleanup: {e}")

        if self.status != TaskStatus.ERROR:
            self.status = TaskStatus.STOPPED

    async def _periodic_loop(self) -> None:
        """Background loop for periodic task execution."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval_seconds
                )
                break
            except asyncio.TimeoutError:
                # Timeout means the interval elapsed
                pass

            try:
                await self.task.execute()
                self.stats.executions += 1
                self.stats.consecutive_errors = 0
                self.stats.last_execution_time = datetime.now()
            except Exception as e:
                self.stats.errors += 1
                self.stats.consecutive_errors += 1
                await self.task.on_error(e)

                if self.stats.consecutive_errors >= self.max_retries:
                    logger.error(
                        f"Too many consecutive errors ({self.max_retries}), "
                        f"stopping periodic loop"
                    )
                    self.status = TaskStatus.ERROR
                    break
