"""Regular expressions for dialogue text normalization.

Patterns for line breaks, the in-game line break tag, and full-width ASCII.
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Final

__all__: list[str] = [
    "FULL_WIDTH_ASCII_PATTERN",
    "LINE_BREAK_PATTERN",
    "LINE_BREAK_TAG_PATTERN",
]

# Carriage returns and line feeds emitted by chat capture
# Example: "Hello\r\nthere" -> "Hellothere"
LINE_BREAK_PATTERN: Final[Pattern[str]] = re.compile(r"[\r\n]")

# Literal line break placeholder inserted by the dialogue capture
# Example: "First line[r]second line"
LINE_BREAK_TAG_PATTERN: Final[Pattern[str]] = re.compile(r"\[r\]")

# Full-width forms of printable ASCII (U+FF01 to U+FF5E)
# Example: "ＡＢＣ！" -> "ABC!"
FULL_WIDTH_ASCII_PATTERN: Final[Pattern[str]] = re.compile(r"[\uFF01-\uFF5E]")
