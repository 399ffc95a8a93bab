"""Configuration loading and validation.

This package provides utilities for loading, parsing, and validating configuration
settings from the gamechat.ini file.
"""

from config.loader import (
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigLoaderError,
    ConfigTypeError,
    ConfigValueError,
)

__all__: list[str] = [
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]
