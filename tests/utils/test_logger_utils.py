from __future__ import annotations

import logging
import warnings
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

import pytest

from utils.logger_utils import LOGGER_NAMESPACE, LoggerUtils

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    LoggerUtils.reset()
    yield
    LoggerUtils.reset()


def test_get_logger_uses_namespace() -> None:
    assert LoggerUtils.get_logger("core.cache.store").name == f"{LOGGER_NAMESPACE}.core.cache.store"
    assert LoggerUtils.get_logger().name == LOGGER_NAMESPACE


def test_instance_is_configured_once(tmp_path: Path) -> None:
    first = LoggerUtils(tmp_path / "first.log")
    second = LoggerUtils(tmp_path / "second.log")

    assert first is second
    root_logger: logging.Logger = logging.getLogger(LOGGER_NAMESPACE)
    file_handlers = [h for h in root_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert not (tmp_path / "second.log").exists()


def test_file_handler_records_debug_messages(tmp_path: Path) -> None:
    log_file: Path = tmp_path / "gamechat.log"
    logger_utils = LoggerUtils(log_file, use_null_console=True)
    logger_utils.set_debug(True)

    LoggerUtils.get_logger("tests").debug("cache miss for %s", "Hello")
    assert logger_utils.file_handler is not None
    logger_utils.file_handler.flush()

    assert "cache miss for Hello" in log_file.read_text(encoding="utf-8")


def test_empty_filename_disables_file_logging() -> None:
    logger_utils = LoggerUtils("", use_null_console=True)

    assert logger_utils.file_handler is None


def test_set_debug_adjusts_console_handler() -> None:
    logger_utils = LoggerUtils("")
    assert logger_utils.console_handler is not None
    assert logger_utils.console_handler.level == logging.WARNING

    logger_utils.set_debug(True)
    assert logger_utils.root_logger.level == logging.DEBUG
    assert logger_utils.console_handler.level == logging.INFO

    logger_utils.set_debug(False)
    assert logger_utils.root_logger.level == logging.INFO
    assert logger_utils.console_handler.level == logging.WARNING


def test_unknown_level_falls_back_to_info() -> None:
    logger_utils = LoggerUtils("", use_null_console=True)

    logger_utils.set_level("VERBOSE")  # type: ignore[arg-type]

    assert logger_utils.root_logger.level == logging.INFO


def test_warning_to_log_writes_warning_record(caplog: pytest.LogCaptureFixture) -> None:
    logger_utils = LoggerUtils("", use_null_console=True)

    assert warnings.showwarning == logger_utils.warning_to_log
    with caplog.at_level(logging.WARNING, logger=LOGGER_NAMESPACE):
        logger_utils.warning_to_log("deprecated option", UserWarning, "gamechat.py", 12)

    assert "gamechat.py:12: UserWarning: deprecated option" in caplog.text
