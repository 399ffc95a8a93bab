from __future__ import annotations

import json
from typing import TYPE_CHECKING, Final

from utils.logger_utils import LoggerUtils
from utils.string_utils import StringUtils

if TYPE_CHECKING:
    import logging

    from models.translation_models import PlaceholderTable, TextType, TranslationConfig

__all__: list[str] = ["RequestKeyBuilder"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

NO_TABLE: Final[str] = "no-table"


class RequestKeyBuilder:
    """Derive content-addressed cache keys for translation requests.

    A key has the form ``engine:textHash:tableHash:targetLanguage:type``. Two requests that
    differ only in case, surrounding whitespace, line breaks, or ``[r]`` tags share a key.
    """

    @staticmethod
    def hash_table(table: PlaceholderTable | None) -> str:
        """Hash a placeholder table by content.

        The table is serialized to canonical JSON (array order preserved, no extra whitespace),
        so equal structures hash equally regardless of identity.

        Args:
            table (PlaceholderTable | None): Ordered ``[code, replacement]`` pairs.

        Returns:
            str: SHA-256 hex digest, ``"no-table"`` for an empty or absent table, or
                ``"len-<n>"`` if the table cannot be serialized.
        """
        if not table:
            return NO_TABLE
        try:
            serialized: str = json.dumps(table, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as err:
            logger.warning("Placeholder table could not be serialized, using its length: %s", err)
            return f"len-{len(table)}"
        return StringUtils.hash_text(serialized)

    @staticmethod
    def build_key(
        text: str,
        translation: TranslationConfig,
        table: PlaceholderTable | None = None,
        text_type: TextType = "sentence",
    ) -> str:
        """Build the cache key for one request.

        Args:
            text (str): Source text.
            translation (TranslationConfig): Request settings (engine and target language are used).
            table (PlaceholderTable | None): Placeholder table of the request.
            text_type (TextType): Kind of text.

        Returns:
            str: Cache key.
        """
        text_hash: str = StringUtils.hash_text(StringUtils.normalize_for_key(text))
        table_hash: str = RequestKeyBuilder.hash_table(table)
        return ":".join([translation.engine, text_hash, table_hash, translation.to_lang, text_type or "sentence"])
