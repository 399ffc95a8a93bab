from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LoggerUtils"]

type LevelType = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
LOGGER_NAMESPACE: Final[str] = "GameChatTranslator"

_CONSOLE_FORMAT: Final[str] = "%(message)s"
_CONSOLE_DEBUG_FORMAT: Final[str] = "%(levelname)s %(name)s: %(message)s"
_FILE_FORMAT: Final[str] = "%(asctime)s %(levelname)-8s %(lineno)4d %(name)-44s\t%(funcName)s\t%(message)s"
_ORIGINAL_SHOWWARNING: Final = warnings.showwarning


class LoggerUtils:
    """Process-wide logging setup for the translator.

    The first instantiation attaches a console handler (WARNING and above, message only) and,
    when a file name is given, a rotating file handler that records everything from DEBUG.
    Later instantiations return the same object and leave the handlers untouched.

    Modules obtain their loggers through ``get_logger(__name__)`` so that every record ends up
    under the ``GameChatTranslator`` namespace, which keeps library loggers (aiohttp, deepl)
    out of the translator's handlers.
    """

    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, filename: str | Path, *, use_null_console: bool = False) -> None:
        """Attach handlers to the namespace root logger.

        Args:
            filename (str | Path): Path of the log file. Empty disables file logging.
            use_null_console (bool): Use a NullHandler instead of writing to stderr.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(LOGGER_NAMESPACE)
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
        self.console_handler: logging.Handler | None = None
        self.file_handler: RotatingFileHandler | None = None

        if use_null_console or sys.stderr is None:
            self.root_logger.addHandler(NullHandler())
        else:
            self.console_handler = StreamHandler(sys.stderr)
            self.console_handler.setLevel(logging.WARNING)
            self.console_handler.setFormatter(Formatter(_CONSOLE_FORMAT))
            self.root_logger.addHandler(self.console_handler)

        filename = str(filename)
        if filename.strip():
            self._attach_file_handler(filename)
        else:
            self.root_logger.debug("No log file configured")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def _attach_file_handler(self, filename: str) -> None:
        try:
            self.file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as err:
            self.root_logger.error("Cannot open log file '%s': %s", filename, err)
            return

        self.file_handler.setLevel(logging.DEBUG)
        self.file_handler.setFormatter(Formatter(_FILE_FORMAT))
        self.root_logger.addHandler(self.file_handler)

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Route ``warnings.warn`` output into the log (signature of ``warnings.showwarning``)."""
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    def set_level(self, level: LevelType) -> None:
        """Set the namespace root level; unknown names fall back to INFO with a warning."""
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            self.root_logger.setLevel(level_map[level.upper()])
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified. Logging level set to 'INFO'.", level)

    def set_debug(self, enabled: bool) -> None:
        """Switch debug mode.

        In debug mode the root level drops to DEBUG and the console also shows INFO records,
        prefixed with level and logger name, so cache and batching decisions are visible.
        """
        self.set_level("DEBUG" if enabled else "INFO")
        if self.console_handler is None:
            return
        self.console_handler.setLevel(logging.INFO if enabled else logging.WARNING)
        self.console_handler.setFormatter(Formatter(_CONSOLE_DEBUG_FORMAT if enabled else _CONSOLE_FORMAT))

    @classmethod
    def reset(cls) -> None:
        """Detach and close every handler and forget the configuration."""
        root_logger: logging.Logger = logging.getLogger(LOGGER_NAMESPACE)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.setLevel(logging.NOTSET)
        warnings.showwarning = _ORIGINAL_SHOWWARNING
        cls._configured = False
        cls._instance = None

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return a logger below the translator namespace.

        Args:
            name (str | None): Child logger name, usually ``__name__``. None returns the namespace root.
        """
        return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}" if name else LOGGER_NAMESPACE)
