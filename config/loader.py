"""Configuration file loader and validator.

Reads the INI file, coerces every value to the type of the matching field default in
``models.config_models.Config``, applies command-line overrides, and validates the result.
Problems are reported as ``ConfigLoaderError`` subclasses.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_TRANSLATION_ENGINES: Final[tuple[str, ...]] = ("DeepL", "GPT", "OpenRouter")
ALLOWED_MISMATCH_POLICIES: Final[tuple[str, ...]] = ("individual", "proportional")

# (section, key) pairs checked after loading
_NON_EMPTY_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("TRANSLATION", "ENGINE"),
    ("TRANSLATION", "FROM"),
    ("TRANSLATION", "TO"),
)
_POSITIVE_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("TRANSLATION", "TIMEOUT"),
    ("CACHE", "MAX_SIZE"),
    ("CACHE", "SESSION_MAX_SIZE"),
    ("CACHE", "PROMOTION_THRESHOLD"),
    ("CACHE", "PRELOAD_LENGTH_LIMIT"),
    ("BATCH", "ENGINE_MAX_SIZE"),
    ("BATCH", "ENGINE_MAX_LENGTH"),
    ("BATCH", "DIALOGUE_MAX_SIZE"),
)
_NON_NEGATIVE_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("CACHE", "DEMOTION_THRESHOLD"),
    ("CACHE", "SESSION_CLEANUP_INTERVAL"),
    ("CACHE", "AUTO_SAVE_INTERVAL"),
    ("BATCH", "ENGINE_WINDOW"),
    ("BATCH", "DIALOGUE_WINDOW"),
    ("LLM", "MAX_RETRIES"),
    ("LLM", "RETRY_INITIAL_DELAY"),
    ("LLM", "RETRY_MAX_DELAY"),
)


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Loads ``gamechat.ini`` into a ``Config`` object.

    Sections and keys missing from the file keep their defaults. Keys the application does
    not know are reported as warnings and otherwise ignored.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        engine (str | None): Optional override for the primary translation engine.
        debug (bool): Optional override enabling debug mode.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(self, *, config_filename: str, script_name: str, **args) -> None:
        self.config: Config = Config()
        parser: ConfigParser = self._read(config_filename, script_name)
        self._populate(parser)
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._apply_overrides(args)
        self._validate()

    @staticmethod
    def _read(config_filename: str, script_name: str) -> ConfigParser:
        msg: str
        if not Path(config_filename).exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser = ConfigParser()
        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None
        return parser

    def _populate(self, parser: ConfigParser) -> None:
        """Copy every known INI value into the matching ``Config`` field.

        Raises:
            ConfigFormatError: If a value cannot be coerced to the field type.
        """
        formatter = _ConfigFormatter(parser)
        known_sections: set[str] = {section.name for section in fields(self.config)}
        for section_name in parser.sections():
            if section_name not in known_sections:
                logger.warning("Unknown configuration section: '%s'", section_name)

        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Skipping undefined section: '%s'", section.name)
                continue

            target: Any = getattr(self.config, section.name)
            known_keys: set[str] = {key.name for key in fields(target)}
            for option in parser.options(section.name):
                if option.upper() not in known_keys:
                    logger.warning("Unknown configuration key: '%s.%s'", section.name, option)

            for key in fields(target):
                if parser.has_option(section.name, key.name):
                    default: Any = getattr(target, key.name)
                    setattr(target, key.name, formatter.convert(section.name, key.name, default))

    def _apply_overrides(self, args: dict[str, Any]) -> None:
        if args.get("engine") is not None:
            logger.info("Primary engine overridden from the command line: '%s'", args["engine"])
            self.config.TRANSLATION.ENGINE = args["engine"]
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True

    def _value(self, section_name: str, key_name: str) -> Any:
        return getattr(getattr(self.config, section_name), key_name)

    def _validate(self) -> None:
        """Check engine names, required values, numeric ranges, and enumerations.

        Unknown engine names only produce a warning, since engines can be registered at runtime.

        Raises:
            ConfigValueError: If a value is empty, out of range, or not an allowed choice.
        """
        msg: str
        translation = self.config.TRANSLATION
        for engine in (translation.ENGINE, translation.ENGINE_ALTERNATE):
            if engine and engine not in ALLOWED_TRANSLATION_ENGINES:
                logger.warning("Unknown translation engine '%s'; it must be registered before use", engine)

        for section_name, key_name in _NON_EMPTY_FIELDS:
            if not self._value(section_name, key_name):
                msg = f"'{section_name}.{key_name}' must not be empty"
                raise ConfigValueError(msg)

        for section_name, key_name in _POSITIVE_FIELDS:
            value: float = self._value(section_name, key_name)
            if value <= 0:
                msg = f"'{section_name}.{key_name}' must be greater than zero: {value}"
                raise ConfigValueError(msg)

        for section_name, key_name in _NON_NEGATIVE_FIELDS:
            value = self._value(section_name, key_name)
            if value < 0:
                msg = f"'{section_name}.{key_name}' must not be negative: {value}"
                raise ConfigValueError(msg)

        policy: str = self.config.BATCH.MISMATCH_POLICY
        if policy not in ALLOWED_MISMATCH_POLICIES:
            msg = (
                f"Unsupported value used for 'BATCH.MISMATCH_POLICY': {policy} "
                f"(choose from {', '.join(ALLOWED_MISMATCH_POLICIES)})"
            )
            raise ConfigValueError(msg)

        cache = self.config.CACHE
        if cache.DEMOTION_THRESHOLD > cache.PROMOTION_THRESHOLD:
            logger.warning(
                "CACHE.DEMOTION_THRESHOLD (%d) exceeds CACHE.PROMOTION_THRESHOLD (%d); "
                "promoted entries will be demoted by the next sweep",
                cache.DEMOTION_THRESHOLD,
                cache.PROMOTION_THRESHOLD,
            )


class _ConfigFormatter:
    """Converts INI strings to the type of the field default (bool, int, float, str, list)."""

    def __init__(self, parser: ConfigParser) -> None:
        self.parser: ConfigParser = parser

    def convert(self, section_name: str, key_name: str, default: Any) -> Any:
        """Convert one INI value to the type of ``default``.

        Scalars accept optional surrounding quotes, and numbers may carry a ``%`` affix.
        Anything else is read as a Python literal and must match the default's type.

        Raises:
            ConfigValueError: If the value cannot be read as the expected scalar type.
            ConfigFormatError: If a literal value has invalid syntax.
            ConfigTypeError: If a literal value has a different type than the default.
        """
        converters: dict[type[Any], Callable[[str, str], Any]] = {
            bool: self.parser.getboolean,
            int: lambda s, k: int(float(self._unquote(s, k, "%"))),
            float: lambda s, k: float(self._unquote(s, k, "%")),
            str: self._unquote,
        }
        field_name: str = f"{section_name}.{key_name}"
        converter: Callable[[str, str], Any] | None = converters.get(type(default))
        if converter is not None:
            try:
                return converter(section_name, key_name)
            except ValueError as err:
                msg = f"Invalid value for {field_name}: {err}"
                raise ConfigValueError(msg) from err

        raw: str = self.parser.get(section_name, key_name)
        try:
            value: Any = ast.literal_eval(raw)
        except ValueError as err:
            msg = f"Invalid literal for {field_name}: {raw}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {field_name}: {raw}"
            raise ConfigFormatError(msg) from err

        if not isinstance(value, type(default)):
            msg = f"'{field_name}' must be a {type(default).__name__}: {value!r}"
            raise ConfigTypeError(msg)
        return value

    def _unquote(self, section_name: str, key_name: str, *affixes: str) -> str:
        value: str = self.parser.get(section_name, key_name).strip()
        for quote in ("'", '"'):
            if len(value) >= 2 and value.startswith(quote) and value.endswith(quote):
                value = value[1:-1]
                break
        for affix in affixes:
            value = value.removeprefix(affix).removesuffix(affix)
        return value
