import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from service.core.exceptions import PipelineTimeoutError
from service.log import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _discard_result(task: asyncio.Task) -> None:
    # Retrieve the outcome so an abandoned task never logs "exception was never retrieved"
    if not task.cancelled():
        task.exception()


class TimeoutGuard(Generic[T]):
    """
    Races a coroutine against a wall-clock deadline.

    On expiry the task is cancelled and abandoned: the guard does not wait
    for it to unwind and its eventual result is discarded. The fallback
    factory supplies the value returned instead, and on_timeout receives
    the PipelineTimeoutError describing the expiry.
    """

    def __init__(
        self,
        timeout_seconds: float,
        fallback: Callable[[], T],
        on_timeout: Callable[[PipelineTimeoutError], None] | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.fallback = fallback
        self.on_timeout = on_timeout

    async def run(self, awaitable: Awaitable[T]) -> T:
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        task.cancel()
        task.add_done_callback(_discard_result)
        error = PipelineTimeoutError(f"Deadline of {self.timeout_seconds:g}s exceeded")
        logger.warning(f"{error}, returning fallback")
        if self.on_timeout is not None:
            self.on_timeout(error)
        return self.fallback()
