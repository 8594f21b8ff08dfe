"""Retry, timeout, debounce and throttle primitives for network-facing calls.

Everything here runs on the caller's event loop. Nothing retries forever:
``retry`` is bounded by ``max_attempts`` and ``with_timeout`` only abandons the
wait, never the underlying request.
"""

import asyncio
import logging
import time
from functools import partial
from typing import Any, Awaitable, Callable, Optional, TypeVar

from swaphive.errors import RequestTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Operations whose result was abandoned by with_timeout but which are still running
_abandoned: set[asyncio.Future] = set()


async def sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Run an async operation, retrying with exponential backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per attempt
        max_attempts: Total number of attempts (at least 1)
        base_delay: Delay before the second attempt; doubles every attempt
        retry_on: Exception types that trigger another attempt

    Returns:
        The first successful result

    Raises:
        The last failure once attempts are exhausted, or immediately for
        exceptions outside ``retry_on``
    """
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts):
        try:
            return await operation()
        except retry_on as e:
            delay = base_delay * 2 ** (attempt - 1)
            logger.debug(
                f"Retry attempt {attempt}/{attempts} after {delay:.2f}s: "
                f"{type(e).__name__}: {e}"
            )
            await asyncio.sleep(delay)

    return await operation()


def _discard_result(future: asyncio.Future) -> None:
    _abandoned.discard(future)
    if not future.cancelled() and future.exception() is not None:
        logger.debug(f"Abandoned request finished with error: {future.exception()}")


async def with_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Race an awaitable against a timer.

    On timeout the underlying operation keeps running; its eventual result or
    error is discarded.

    Raises:
        RequestTimeoutError: If ``timeout`` seconds elapse first
    """
    task = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        _abandoned.add(task)
        task.add_done_callback(_discard_result)
        raise RequestTimeoutError(f"Request timeout after {timeout}s")


class Debouncer:
    """Trailing-edge debounce for an async function.

    Every call (re)starts the timer; only the last call of a burst runs. All
    callers of the burst receive that single run's result. Runs are
    serialized, so a later run never finishes before an earlier one.

    Example:
        load = Debouncer(fetch_balances, wait=0.5)
        snapshot = await load("alice")
    """

    def __init__(self, func: Callable[..., Awaitable[Any]], wait: float = 0.3):
        self.func = func
        self.wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._waiters: list[asyncio.Future] = []
        self._call_args: tuple[tuple, dict] = ((), {})
        self._running: set[asyncio.Task] = set()
        self._latest: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a call is waiting for its timer."""
        return self._handle is not None

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
            logger.debug(f"Debounced call to {self._name} superseded")

        future = self._enqueue(loop, args, kwargs)
        self._handle = loop.call_later(self.wait, self._fire)
        return future

    def call_now(self, *args: Any, **kwargs: Any) -> asyncio.Future:
        """Run immediately, absorbing any pending call of the current burst."""
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        future = self._enqueue(loop, args, kwargs)
        self._fire()
        return future

    def cancel(self) -> None:
        """Drop the pending call; its waiters are cancelled."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            waiter.cancel()

    @property
    def _name(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))

    def _enqueue(self, loop: asyncio.AbstractEventLoop, args: tuple, kwargs: dict) -> asyncio.Future:
        future = loop.create_future()
        self._waiters.append(future)
        self._call_args = (args, kwargs)
        return future

    def _fire(self) -> None:
        self._handle = None
        waiters, self._waiters = self._waiters, []
        args, kwargs = self._call_args

        task = asyncio.ensure_future(self._run_after(self._latest, args, kwargs))
        self._latest = task
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        task.add_done_callback(partial(self._settle, waiters))

    async def _run_after(self, previous: Optional[asyncio.Task], args: tuple, kwargs: dict) -> Any:
        # Runs never overlap; each starts once the one fired before it is done
        if previous is not None and not previous.done():
            logger.debug(f"Call to {self._name} waiting for the running call")
            await asyncio.wait([previous])
        return await self.func(*args, **kwargs)

    @staticmethod
    def _settle(waiters: list[asyncio.Future], task: asyncio.Task) -> None:
        error = None if task.cancelled() else task.exception()
        for waiter in waiters:
            if waiter.done():
                continue
            if task.cancelled():
                waiter.cancel()
            elif error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(task.result())


class Throttler:
    """Leading-edge throttle: at most one call per ``limit`` seconds.

    Calls arriving inside the window are dropped and return ``None``.
    """

    def __init__(
        self,
        func: Callable[..., Awaitable[Any]],
        limit: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.func = func
        self.limit = limit
        self._clock = clock
        self._last_call: Optional[float] = None

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        now = self._clock()
        if self._last_call is not None and now - self._last_call < self.limit:
            return None
        self._last_call = now
        return await self.func(*args, **kwargs)
