"""
Collapse concurrent calls for the same key into one shared call.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Dict, Tuple


class SingleFlight:
    """Per-key registry of in-flight calls.

    The first caller for a key starts the call in its own task; everyone who
    arrives before it settles awaits the same future. Waiters are shielded,
    so a cancelled waiter never cancels the shared call. Registration and
    removal happen without an intervening await, which makes them atomic on
    the event loop.
    """

    def __init__(self) -> None:
        self._calls: Dict[str, asyncio.Future] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._calls

    def __len__(self) -> int:
        return len(self._calls)

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """Run ``fn`` once per key, returning ``(result, shared)``."""
        future = self._calls.get(key)
        if future is not None:
            return await asyncio.shield(future), True

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        # Mark the outcome retrieved even if every waiter was cancelled.
        future.add_done_callback(_consume_outcome)
        self._calls[key] = future

        task = loop.create_task(self._run(key, future, fn))
        task.add_done_callback(functools.partial(self._on_task_done, key, future))
        self._tasks[key] = task
        return await asyncio.shield(future), False

    async def _run(self, key: str, future: asyncio.Future, fn: Callable[[], Awaitable[Any]]) -> None:
        try:
            result = await fn()
        except Exception as exc:
            self._settle(key, future)
            future.set_exception(exc)
        else:
            self._settle(key, future)
            future.set_result(result)

    def _on_task_done(self, key: str, future: asyncio.Future, task: asyncio.Task) -> None:
        # The task was cancelled before the call could settle the future.
        if not future.done():
            self._settle(key, future)
            future.cancel()

    def _settle(self, key: str, future: asyncio.Future) -> None:
        if self._calls.get(key) is future:
            del self._calls[key]
            self._tasks.pop(key, None)

    async def cancel_all(self) -> None:
        """Cancel every in-flight call, used on shutdown."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def _consume_outcome(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
