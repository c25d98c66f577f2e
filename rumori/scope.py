"""
Task scoping for views: everything a view starts is cancelled when it closes.
"""
import asyncio
from typing import Any, Coroutine, Optional, Set

from rumori.logger import get_logger

logger = get_logger("scope")


async def run_to_completion(coro: Coroutine[Any, Any, Any]) -> Any:
    """Await ``coro`` without letting a cancelled caller cut it short.

    Blocking client calls keep running in their worker thread after the
    awaiting task is cancelled. Here the step is allowed to settle first,
    then ``CancelledError`` propagates, so the caller cleans up against a
    known outcome.
    """
    task = asyncio.ensure_future(coro)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait([task])
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Step failed after cancellation: {task.exception()}")
        raise


class ViewScope:
    """Tracks tasks launched on behalf of one view."""

    def __init__(self, name: str = "view"):
        self.name = name
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def launch(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Schedule ``coro`` as a task owned by this scope."""
        if self._closed:
            coro.close()
            raise RuntimeError(f"Scope '{self.name}' is closed")
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def close(self) -> None:
        """Cancel every running task and wait for them to unwind."""
        self._closed = True
        tasks = [t for t in self._tasks if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.debug(f"Cancelled {len(tasks)} task(s) for scope '{self.name}'")
        self._tasks.clear()

    async def __aenter__(self) -> "ViewScope":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
