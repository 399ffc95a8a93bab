from __future__ import annotations

from typing import TYPE_CHECKING

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = ["Notifier"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class Notifier:
    """Fire-and-forget sink for user-facing messages such as engine switches.

    Without a sink, messages are written to the log. A failing sink never disturbs the caller.
    """

    def __init__(self, sink: Callable[[str], object] | None = None) -> None:
        self.sink: Callable[[str], object] | None = sink

    def notify(self, message: str) -> None:
        logger.info("Notification: %s", message)
        if self.sink is None:
            return
        try:
            self.sink(message)
        except Exception as err:  # noqa: BLE001
            logger.error("Notification sink failed: %s", err)
