from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable


__all__: list[str] = ["InFlightCancelledError", "InFlightRegistry"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class InFlightCancelledError(Exception):
    """The shared computation was cancelled while callers were waiting for it."""


class InFlightRegistry:
    """Shares one computation between concurrent requests for the same key.

    The first caller for a key starts the computation as a task owned by the registry; every
    caller, the first included, awaits that task through ``asyncio.shield``. A caller that is
    cancelled only stops waiting, and the others still receive the value. The entry is removed
    as soon as the task settles, whatever the outcome, so a failed key is retryable at once.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[str]] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def __contains__(self, key: object) -> bool:
        return key in self._inflight

    async def component_load(self) -> None:
        logger.info("InFlightRegistry initialized successfully")

    async def component_teardown(self) -> None:
        """Cancel any pending in-flight computations and clear the state."""
        tasks: list[asyncio.Task[str]] = list(self._inflight.values())
        self._inflight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("InFlightRegistry torn down and in-flight state cleared")

    async def dedupe(self, key: str, compute: Callable[[], Awaitable[str]]) -> str:
        """Run ``compute`` once per key among concurrent callers.

        Args:
            key (str): Request key.
            compute (Callable[[], Awaitable[str]]): Produces the value when no request for the key
                is in flight.

        Returns:
            str: The value produced by the shared computation.

        Raises:
            InFlightCancelledError: If the shared computation was cancelled, e.g. by teardown.
            Exception: Whatever the shared computation raised.
        """
        # No suspension point between the lookup and the registration below.
        task: asyncio.Task[str] | None = self._inflight.get(key)
        if task is not None:
            logger.debug("In-flight translation detected for key: %s", key[:16])
        else:
            task = asyncio.create_task(self._run(compute), name=f"inflight:{key[:16]}")
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._settle(key, done))
            logger.debug("Marked in-flight start for key: %s", key[:16])

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current: asyncio.Task[object] | None = asyncio.current_task()
            if task.cancelled() and (current is None or current.cancelling() == 0):
                msg = "Translation request was cancelled"
                raise InFlightCancelledError(msg) from None
            raise

    @staticmethod
    async def _run(compute: Callable[[], Awaitable[str]]) -> str:
        return await compute()

    def _settle(self, key: str, task: asyncio.Task[str]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark retrieved so a failure nobody awaited does not warn at collection.
            task.exception()
