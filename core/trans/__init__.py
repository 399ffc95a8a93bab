"""Translation engines, batching, and the translation pipeline.

This package provides the engine interface and registry, the DeepL and OpenAI-compatible engine
adapters, the engine-level and dialogue line batchers, and the pipeline that ties them together.
"""

from core.trans.dialogue_batcher import DialogueLineBatcher
from core.trans.engine_batcher import EngineBatcher
from core.trans.interface import (
    BatcherShutdownError,
    BatchMisalignmentError,
    EngineNotFoundError,
    EnginesExhaustedError,
    NotSupportedLanguagesError,
    Result,
    StreamingTransInterface,
    TransInterface,
    TranslateExceptionError,
    TranslationQuotaExceededError,
    TranslationRateLimitError,
    TranslationServerError,
    TranslationTimeoutError,
)
from core.trans.pipeline import TranslationPipeline
from core.trans.registry import EngineRegistry

__all__: list[str] = [
    "BatchMisalignmentError",
    "BatcherShutdownError",
    "DialogueLineBatcher",
    "EngineBatcher",
    "EngineNotFoundError",
    "EngineRegistry",
    "EnginesExhaustedError",
    "NotSupportedLanguagesError",
    "Result",
    "StreamingTransInterface",
    "TransInterface",
    "TranslateExceptionError",
    "TranslationPipeline",
    "TranslationQuotaExceededError",
    "TranslationRateLimitError",
    "TranslationServerError",
    "TranslationTimeoutError",
]
