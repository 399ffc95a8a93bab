"""Translate game dialogue read from standard input.

Each input line is one dialogue line. Translations are written to standard output in input
order; with ``--stream`` the translation is printed piece by piece as the engine produces it.
The translation cache is loaded at start and saved on exit.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import ConfigLoader, ConfigLoaderError
from core.shared_data import SharedData
from core.version import VERSION
from models.translation_models import TranslationConfig
from utils.file_utils import FileUtils
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from core.trans.pipeline import TranslationPipeline
    from models.config_models import Config

CFG_FILE: Final[str] = "gamechat.ini"

logger: logging.Logger = LoggerUtils.get_logger(__name__)


def check_python_version() -> None:
    """Check if Python version is 3.13 or later.

    Raises:
        RuntimeError: If Python version is below 3.13.
    """
    if sys.version_info < (3, 13):
        msg = "Python 3.13 or later is required"
        raise RuntimeError(msg)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments() -> argparse.Namespace:
    parser = _ArgumentParser(
        description="Translate game dialogue lines read from standard input",
        epilog="Example: python gamechat.py --engine GPT --stream < dialogue.txt",
    )
    parser.add_argument("--config", dest="config", metavar="INI_FILE", default=CFG_FILE, help="Configuration file")
    parser.add_argument("--engine", dest="engine", metavar="ENGINE", help="Override the primary translation engine")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--stream", dest="stream", action="store_true", help="Print translations incrementally")
    parser.add_argument(
        "--export-cache", dest="export_cache", metavar="FILE", help="Write a cache dump sorted by frequency on exit"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser.parse_args()


def load_config(args: argparse.Namespace) -> Config:
    """Load configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    config: Config = ConfigLoader(
        config_filename=args.config, script_name=script_name, engine=args.engine, debug=args.debug
    ).config
    config.GENERAL.VERSION = VERSION
    return config


def setup_logging(config: Config) -> None:
    log_file: str = str(FileUtils.resolve_path(config.GENERAL.LOG_FILE)) if config.GENERAL.LOG_FILE else ""
    logger_utils = LoggerUtils(log_file)
    if config.GENERAL.DEBUG:
        logger_utils.set_debug(True)


async def _print_in_order(queue: asyncio.Queue[asyncio.Task[str] | None]) -> None:
    while (task := await queue.get()) is not None:
        print(await task, flush=True)


async def _translate_lines(pipeline: TranslationPipeline, translation: TranslationConfig) -> None:
    """Translate lines concurrently so that lines of one dialogue box can share a batch."""
    queue: asyncio.Queue[asyncio.Task[str] | None] = asyncio.Queue()
    printer: asyncio.Task[None] = asyncio.create_task(_print_in_order(queue), name="gamechat_printer")
    try:
        while line := await asyncio.to_thread(sys.stdin.readline):
            if line.strip():
                queue.put_nowait(asyncio.create_task(pipeline.translate(line, translation, text_type="dialogue")))
    finally:
        queue.put_nowait(None)
        await printer


async def _stream_lines(pipeline: TranslationPipeline, translation: TranslationConfig) -> None:
    received: list[str] = []

    def on_delta(delta: str) -> None:
        received.append(delta)
        print(delta, end="", flush=True)

    while line := await asyncio.to_thread(sys.stdin.readline):
        if line.strip():
            received.clear()
            result: str = await pipeline.translate_stream(line, translation, text_type="dialogue", on_delta=on_delta)
            print(flush=True)
            # A stream that broke off returns its error message instead of the streamed text.
            if "".join(received) != result:
                print(f"[{result}]", file=sys.stderr, flush=True)


async def run(config: Config, args: argparse.Namespace) -> None:
    shared_data = SharedData(config, _notification_sink=lambda message: print(f"[{message}]", file=sys.stderr))
    await shared_data.async_init()
    translation: TranslationConfig = TranslationConfig.from_config(config)
    logger.info("Translating '%s' -> '%s' with %s", translation.from_lang, translation.to_lang, translation.engine_list)
    try:
        if args.stream:
            await _stream_lines(shared_data.pipeline, translation)
        else:
            await _translate_lines(shared_data.pipeline, translation)
    finally:
        if args.export_cache:
            await shared_data.cache_store.export_cache_detailed(FileUtils.resolve_path(args.export_cache))
        shared_data.cache_store.log_status()
        await shared_data.close()


async def main() -> None:
    check_python_version()
    args: argparse.Namespace = parse_arguments()
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return

    setup_logging(config)
    await run(config, args)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
    except (OSError, RuntimeError, ValueError) as err:
        print(f"\nFatal error: {err}", file=sys.stderr)
