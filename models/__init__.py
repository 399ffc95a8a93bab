"""Data models for the game chat translator.

This package contains dataclass definitions for configuration, translation requests, batching,
and cache records, and the regular expression patterns used for text normalization.
"""

from __future__ import annotations

from models.cache_models import CachedTranslation, CacheSettings, CacheStatistics
from models.config_models import Config
from models.re_models import (
    FULL_WIDTH_ASCII_PATTERN,
    LINE_BREAK_PATTERN,
    LINE_BREAK_TAG_PATTERN,
)
from models.translation_models import (
    BatchItem,
    BatchStatistics,
    PlaceholderTable,
    TextType,
    TranslationConfig,
)

__all__: list[str] = [
    "FULL_WIDTH_ASCII_PATTERN",
    "LINE_BREAK_PATTERN",
    "LINE_BREAK_TAG_PATTERN",
    "BatchItem",
    "BatchStatistics",
    "CacheSettings",
    "CacheStatistics",
    "CachedTranslation",
    "Config",
    "PlaceholderTable",
    "TextType",
    "TranslationConfig",
]
