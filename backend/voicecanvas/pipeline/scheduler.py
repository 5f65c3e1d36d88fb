"""
Adaptive debounced single-flight scheduler.

Wraps one async unit of work (a generation job) so that a fast stream of
requests only ever runs the latest one:

- ``enqueue(item)`` replaces any pending item and restarts the debounce
  timer with the current adaptive wait.
- When the timer fires, the pending item runs if nothing is in flight and
  the cooldown since the last completion has elapsed. Otherwise the item
  stays pending until the next enqueue or ``force_flush()``.
- Each run is tagged with the generation counter. A run whose tag is no
  longer current when it finishes leaves the job state alone.
- The wait adapts to the measured duration of each finished run.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from voicecanvas.config import (
    COOLDOWN_SECONDS,
    DEBOUNCE_BASE_SECONDS,
    DEBOUNCE_SLOW_SECONDS,
    FAST_THRESHOLD_SECONDS,
    SLOW_THRESHOLD_SECONDS,
)
from voicecanvas.ir.errors import GenerationCancelled
from voicecanvas.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class GenerationJob(Generic[T]):
    pending_item: Optional[T] = None
    in_flight: bool = False
    generation_counter: int = 0
    last_completed_at: Optional[float] = None
    current_wait: float = DEBOUNCE_BASE_SECONDS
    dropped_count: int = 0


class AdaptiveScheduler(Generic[T]):
    def __init__(
        self,
        worker: Callable[[T], Awaitable[Any]],
        base_wait: float = DEBOUNCE_BASE_SECONDS,
        slow_wait: float = DEBOUNCE_SLOW_SECONDS,
        slow_threshold: float = SLOW_THRESHOLD_SECONDS,
        fast_threshold: float = FAST_THRESHOLD_SECONDS,
        cooldown: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.worker = worker
        self.base_wait = base_wait
        self.slow_wait = slow_wait
        self.slow_threshold = slow_threshold
        self.fast_threshold = fast_threshold
        self.cooldown = cooldown
        self.clock = clock

        self.job: GenerationJob[T] = GenerationJob(current_wait=base_wait)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    # -------------------------
    # Public operations
    # -------------------------
    def enqueue(self, item: T) -> None:
        """Make ``item`` the pending item and restart the debounce timer.

        Must be called from the event loop thread.
        """
        if self.job.pending_item is not None:
            self.job.dropped_count += 1
            logger.debug("Dropped superseded pending item")
        self.job.pending_item = item

        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.job.current_wait, self._on_timer)

    def force_flush(self) -> bool:
        """Run the pending item now, ignoring debounce and cooldown.

        Still single-flight: returns False if a run is in flight or
        nothing is pending.
        """
        self._cancel_timer()
        return self._try_start(respect_cooldown=False)

    def cancel(self) -> bool:
        """Abort the in-flight run. The pending item, if any, is kept."""
        if self._task is None or self._task.done():
            return False
        # Invalidate the running tag so its completion is ignored
        self.job.generation_counter += 1
        self.job.in_flight = False
        self._task.cancel()
        logger.info("Cancelled in-flight generation job")
        return True

    def clear(self) -> None:
        """Cancel the pending timer and drop the pending item without running it."""
        self._cancel_timer()
        self.job.pending_item = None

    async def wait_idle(self) -> None:
        """Wait for the current run, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        """Session teardown: drop pending work and stop the current run."""
        self.clear()
        self.cancel()
        await self.wait_idle()
        self.job = GenerationJob(current_wait=self.base_wait)

    @property
    def pending(self) -> bool:
        return self.job.pending_item is not None

    @property
    def busy(self) -> bool:
        return self.job.in_flight

    # -------------------------
    # Internals
    # -------------------------
    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self._try_start(respect_cooldown=True)

    def _cooling_down(self) -> bool:
        if not self.cooldown or self.job.last_completed_at is None:
            return False
        return self.clock() - self.job.last_completed_at < self.cooldown

    def _try_start(self, respect_cooldown: bool) -> bool:
        if self.job.pending_item is None:
            return False
        if self.job.in_flight:
            logger.debug("Timer fired while busy; item stays pending")
            return False
        if respect_cooldown and self._cooling_down():
            logger.debug("Timer fired during cooldown; item stays pending")
            return False

        item = self.job.pending_item
        self.job.pending_item = None
        self.job.generation_counter += 1
        self.job.in_flight = True
        tag = self.job.generation_counter

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._execute(item, tag))
        return True

    async def _execute(self, item: T, tag: int) -> None:
        started = self.clock()
        finished = False
        try:
            await self.worker(item)
            finished = True
        except GenerationCancelled:
            logger.info("Generation job %d superseded", tag)
        except asyncio.CancelledError:
            logger.info("Generation job %d cancelled", tag)
            raise
        except Exception:
            logger.exception("Generation job %d failed", tag)
            finished = True
        finally:
            if finished:
                self._adapt(self.clock() - started)
            if tag == self.job.generation_counter:
                self.job.last_completed_at = self.clock()
                self.job.in_flight = False

    def _adapt(self, duration: float) -> None:
        previous = self.job.current_wait
        if duration > self.slow_threshold:
            self.job.current_wait = self.slow_wait
        elif duration < self.fast_threshold:
            self.job.current_wait = self.base_wait
        if self.job.current_wait != previous:
            logger.info(
                "Run took %.2fs; debounce wait %.2fs -> %.2fs",
                duration, previous, self.job.current_wait,
            )
