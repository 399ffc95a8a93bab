"""Translation engine implementations.

Importing this package registers every concrete engine with ``TransInterface.registered``.

Modules:
- DeeplTranslation: DeepL through the official client library.
- GPTTranslation / OpenRouterTranslation: OpenAI-compatible chat-completions endpoints
  with streaming support, sharing OpenAICompatTranslation.
"""

from core.trans.engines.trans_deepl import DeeplTranslation
from core.trans.engines.trans_openai_compat import (
    GPTTranslation,
    OpenAICompatTranslation,
    OpenRouterTranslation,
)

__all__: list[str] = [
    "DeeplTranslation",
    "GPTTranslation",
    "OpenAICompatTranslation",
    "OpenRouterTranslation",
]
