from __future__ import annotations

import hashlib
import re
from functools import lru_cache
from typing import TYPE_CHECKING, Final

import opencc

from models.re_models import (
    FULL_WIDTH_ASCII_PATTERN,
    LINE_BREAK_PATTERN,
    LINE_BREAK_TAG_PATTERN,
)

if TYPE_CHECKING:
    from re import Match

    from models.translation_models import PlaceholderTable

__all__: list[str] = ["StringUtils"]

FULL_WIDTH_OFFSET: Final[int] = 0xFEE0
IDEOGRAPHIC_SPACE: Final[str] = "\u3000"

# Target language (lowercase) -> OpenCC conversion profile
CHINESE_SCRIPT_PROFILES: Final[dict[str, str]] = {
    "zh-tw": "s2t.json",
    "zh-hant": "s2t.json",
    "zh-cn": "t2s.json",
    "zh-hans": "t2s.json",
}


@lru_cache(maxsize=None)
def _chinese_converter(profile: str) -> opencc.OpenCC:
    return opencc.OpenCC(profile)


class StringUtils:
    """Utility class for dialogue text manipulation.

    Provides static methods for line break removal, key normalization, hashing,
    full-width to half-width conversion, Chinese script conversion, and placeholder code restoration.
    """

    @staticmethod
    def ensure_str(value: str | None) -> str:
        """Ensure that the value is a string, returning an empty string if None.

        Note: Does not use strip() so that significant whitespace survives.

        Args:
            value (str | None): The value to ensure as a string.

        Returns:
            str: The value as a string, or empty string if None.
        """
        if not isinstance(value, str):
            value = str(value) if value is not None else ""
        return value

    @staticmethod
    def compress_blanks(value: str) -> str:
        """Collapse whitespace runs into single spaces and trim both ends."""
        value = StringUtils.ensure_str(value)
        return " ".join(value.split())

    @staticmethod
    def strip_line_breaks(value: str) -> str:
        """Remove carriage returns and line feeds without touching other whitespace."""
        return LINE_BREAK_PATTERN.sub("", StringUtils.ensure_str(value))

    @staticmethod
    def normalize_for_key(text: str) -> str:
        """Normalize dialogue text for cache key derivation.

        Line breaks are removed, the text is trimmed and lowercased, whitespace runs are collapsed
        to one space, and literal ``[r]`` tags are dropped.

        Args:
            text (str): Raw dialogue text.

        Returns:
            str: Normalized text.
        """
        normalized: str = StringUtils.compress_blanks(StringUtils.strip_line_breaks(text)).lower()
        return LINE_BREAK_TAG_PATTERN.sub("", normalized)

    @staticmethod
    def hash_text(value: str) -> str:
        """Return the SHA-256 hex digest of a UTF-8 string."""
        return hashlib.sha256(value.encode("utf-8")).hexdigest()

    @staticmethod
    def full_to_half(text: str) -> str:
        """Convert full-width ASCII forms and the ideographic space to their half-width counterparts.

        Args:
            text (str): Text possibly containing full-width Latin letters, digits, or punctuation.

        Returns:
            str: Converted text.
        """

        def _shift(match: Match[str]) -> str:
            return chr(ord(match.group(0)) - FULL_WIDTH_OFFSET)

        text = StringUtils.ensure_str(text)
        return FULL_WIDTH_ASCII_PATTERN.sub(_shift, text).replace(IDEOGRAPHIC_SPACE, " ")

    @staticmethod
    def convert_chinese_script(text: str, to_lang: str) -> str:
        """Convert Chinese text to the script of the target language.

        Traditional targets (``zh-TW``, ``zh-Hant``) get Simplified characters converted to
        Traditional ones, and Simplified targets (``zh-CN``, ``zh-Hans``) the reverse. Text for
        any other target language is returned unchanged.

        Args:
            text (str): Translated text.
            to_lang (str): Target language code, matched case-insensitively.

        Returns:
            str: Converted text.
        """
        text = StringUtils.ensure_str(text)
        profile: str | None = CHINESE_SCRIPT_PROFILES.get(StringUtils.ensure_str(to_lang).lower())
        if not text or profile is None:
            return text
        return _chinese_converter(profile).convert(text)

    @staticmethod
    def restore_placeholder_codes(text: str, table: PlaceholderTable | None) -> str:
        """Collapse repeated placeholder codes into one uppercase token.

        Translation engines sometimes duplicate or lowercase the short codes that stand in for
        proper nouns (e.g. ``"cc"`` for ``"C"``). Each code in the table is matched
        case-insensitively as a run and replaced by the canonical uppercase code.

        Args:
            text (str): Translated text.
            table (PlaceholderTable | None): Ordered ``[code, replacement]`` pairs.

        Returns:
            str: Text with placeholder codes restored.
        """
        text = StringUtils.ensure_str(text)
        if not table:
            return text

        for entry in table:
            code: str = StringUtils.ensure_str(entry[0]) if entry else ""
            if not code:
                continue
            text = re.sub(f"(?:{re.escape(code)})+", code.upper(), text, flags=re.IGNORECASE)
        return text

    @staticmethod
    def preview(value: str, limit: int = 40) -> str:
        """Shorten text for log output."""
        value = StringUtils.ensure_str(value)
        if len(value) <= limit:
            return value
        return value[:limit] + "..."
