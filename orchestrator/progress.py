"""Synthetic progress estimation for stages of unknown duration.

Progress and elapsed time are purely observational: nothing in the
orchestrator waits on them or branches on their values.
"""

import random
from typing import TYPE_CHECKING

from .constants import (
    DEFAULT_PROGRESS_CEILING,
    ELAPSED_TICK_SECONDS,
    PROGRESS_MAX_STEP,
    PROGRESS_MIN_STEP,
    PROGRESS_TICK_SECONDS,
)
from .log import get_logger
from .periodic_task import PeriodicTask, PeriodicTaskManager

if TYPE_CHECKING:
    from .config import Settings

logger = get_logger(__name__)


class ProgressEstimator:
    """Monotonic, capped progress value for a running stage."""

    def __init__(
        self,
        ceiling: float = DEFAULT_PROGRESS_CEILING,
        min_step: float = PROGRESS_MIN_STEP,
        max_step: float = PROGRESS_MAX_STEP,
        rng: random.Random | None = None,
    ) -> None:
        if not 0 < ceiling < 100:
            raise ValueError("ceiling must be between 0 and 100 (exclusive)")
        if min_step < 0 or max_step < min_step:
            raise ValueError("steps must satisfy 0 <= min_step <= max_step")

        self.ceiling = ceiling
        self.min_step = min_step
        self.max_step = max_step
        self._rng = rng or random.Random()
        self._value = 0.0
        self._running = False

    @property
    def value(self) -> float:
        return self._value

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Reset progress to 0 for a new stage."""
        self._value = 0.0
        self._running = True

    def tick(self) -> float:
        """Advance by a small random step, never past the ceiling."""
        if self._running:
            step = self._rng.uniform(self.min_step, self.max_step)
            self._value = min(self._value + step, self.ceiling)
        return self._value

    def finish(self) -> float:
        """Snap progress to 100 when the stage completes."""
        self._running = False
        self._value = 100.0
        return self._value

    def stop(self) -> None:
        """Stop advancing without completing (failed or cancelled stage)."""
        self._running = False


class ElapsedCounter:
    """Whole seconds spent in the current stage."""

    def __init__(self) -> None:
        self._seconds = 0
        self._running = False

    @property
    def value(self) -> int:
        return self._seconds

    def start(self) -> None:
        self._seconds = 0
        self._running = True

    def tick(self) -> int:
        if self._running:
            self._seconds += 1
        return self._seconds

    def stop(self) -> None:
        self._running = False


class _TickTask(PeriodicTask):
    def __init__(self, target: ProgressEstimator | ElapsedCounter) -> None:
        self.target = target

    async def execute(self) -> None:
        self.target.tick()


class StageProgress:
    """Drives an estimator and an elapsed counter on fixed intervals."""

    def __init__(
        self,
        estimator: ProgressEstimator | None = None,
        elapsed: ElapsedCounter | None = None,
        tick_seconds: float = PROGRESS_TICK_SECONDS,
        elapsed_seconds: float = ELAPSED_TICK_SECONDS,
    ) -> None:
        self.estimator = estimator or ProgressEstimator()
        self.elapsed = elapsed or ElapsedCounter()
        self._progress_loop = PeriodicTaskManager(
            _TickTask(self.estimator), interval_seconds=tick_seconds
        )
        self._elapsed_loop = PeriodicTaskManager(
            _TickTask(self.elapsed), interval_seconds=elapsed_seconds
        )

    @property
    def value(self) -> float:
        return self.estimator.value

    @property
    def elapsed_seconds(self) -> int:
        return self.elapsed.value

    async def begin(self) -> None:
        """Start a new stage from 0% and 0s."""
        await self._stop_loops()
        self.estimator.start()
        self.elapsed.start()
        await self._progress_loop.start()
        await self._elapsed_loop.start()

    async def complete(self) -> None:
        """Finish the stage at 100%."""
        await self._stop_loops()
        self.estimator.finish()
        self.elapsed.stop()

    async def halt(self) -> None:
        """Stop the stage where it is (failure or cancellation)."""
        await self._stop_loops()
        self.estimator.stop()
        self.elapsed.stop()

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StageProgress":
        """Build a progress driver from the configured ceiling and intervals."""
        return cls(
            estimator=ProgressEstimator(ceiling=settings.progress_ceiling),
            tick_seconds=settings.progress_tick_seconds,
            elapsed_seconds=settings.elapsed_tick_seconds,
        )

    async def _stop_loops(self) -> None:
        if self._progress_loop.running:
            await self._progress_loop.stop()
        if self._elapsed_loop.running:
            await self._elapsed_loop.stop()
