"""
Debounced, mutually exclusive generation trigger.

Calendar navigation fires many "visible range changed" events in a burst.
The trigger collapses a burst into one generation run and drops requests
that arrive while a run is in flight; the next navigation catches up.

States:
- IDLE: nothing pending
- DEBOUNCING: a run is scheduled; new requests restart the timer
- RUNNING: a run is in flight; new requests are dropped
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


class TriggerState(Enum):
    """Generation trigger states."""
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    RUNNING = "running"


class GenerationTrigger:
    """
    Debounce + re-entrancy guard around an async generation run.

    Examples:
        >>> trigger = GenerationTrigger(run_generation, delay=0.5)
        >>> for _ in range(5):
        ...     trigger.request(start, end)
        >>> await trigger.wait_idle()   # exactly one run happened
    """

    def __init__(
        self,
        run: Callable[..., Awaitable[Any]],
        delay: float = 0.5
    ):
        """
        Initialize the trigger.

        Args:
            run: Coroutine function performing one generation run
            delay: Debounce delay in seconds
        """
        self._run = run
        self.delay = delay
        self._state = TriggerState.IDLE
        self._task: Optional[asyncio.Task] = None
        self.runs_started = 0
        self.requests_dropped = 0
        self.last_result: Any = None

    @property
    def state(self) -> TriggerState:
        return self._state

    def request(self, *args, **kwargs) -> bool:
        """
        Ask for a generation run with the given arguments.

        Must be called from inside a running event loop.

        Returns:
            True if the request was scheduled, False if it was dropped
            because a run is in progress
        """
        if self._state == TriggerState.RUNNING:
            self.requests_dropped += 1
            logger.debug("Generation already running; request dropped")
            return False

        if self._state == TriggerState.DEBOUNCING and self._task is not None:
            self._task.cancel()
            logger.debug("Debounce timer restarted")

        self._state = TriggerState.DEBOUNCING
        self._task = asyncio.get_running_loop().create_task(self._debounced(args, kwargs))
        return True

    async def _debounced(self, args, kwargs):
        # a cancelled sleep means a newer request owns the state now
        await asyncio.sleep(self.delay)

        self._state = TriggerState.RUNNING
        self.runs_started += 1
        try:
            self.last_result = await self._run(*args, **kwargs)
        except Exception as e:
            logger.error(f"Generation run failed: {e}", exc_info=True)
            self.last_result = None
        finally:
            self._state = TriggerState.IDLE
            self._task = None

    async def wait_idle(self):
        """Wait until no run is pending or in flight."""
        while self._task is not None:
            task = self._task
            try:
                await task
            except asyncio.CancelledError:
                if self._task is task:
                    raise

    def cancel(self):
        """Drop a pending (not yet started) run."""
        if self._state == TriggerState.DEBOUNCING and self._task is not None:
            self._task.cancel()
            self._task = None
            self._state = TriggerState.IDLE
