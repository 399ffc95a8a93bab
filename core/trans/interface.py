"""Engine contract for the translation pipeline.

Every engine adapter subclasses ``TransInterface`` (or ``StreamingTransInterface`` when it can
reveal output incrementally) and returns a ``Result``. The exceptions below are the only ones
the batchers and the pipeline expect to see from an engine.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

    from models.config_models import Config
    from models.translation_models import TextType

__all__: list[str] = [
    "BatchMisalignmentError",
    "BatcherShutdownError",
    "EngineAttributes",
    "EngineNotFoundError",
    "EnginesExhaustedError",
    "NotSupportedLanguagesError",
    "Result",
    "StreamingTransInterface",
    "TransInterface",
    "TranslateExceptionError",
    "TranslationQuotaExceededError",
    "TranslationRateLimitError",
    "TranslationServerError",
    "TranslationTimeoutError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


@dataclass
class EngineAttributes:
    """Engine-specific capabilities and behavior flags.

    Attributes:
        name (str): Display name of the translation engine.
        supports_streaming (bool): Whether the engine can emit incremental output.
        accepts_multi_segment (bool): Whether the engine translates separator-joined segments reliably.
    """

    name: str
    supports_streaming: bool = False
    accepts_multi_segment: bool = False


@dataclass
class Result:
    """What an engine returns for one request.

    Attributes:
        text (str | None): Translated text. None when the engine produced nothing.
        detected_source_lang (str | None): Detected source language code, if the engine reports one.
        metadata (dict[str, str] | None): Engine-specific metadata (e.g., model, token usage).
    """

    text: str | None = None
    detected_source_lang: str | None = None
    metadata: dict[str, str] | None = None

    def __str__(self) -> str:
        if self.text is None:
            return ""
        return self.text


class TranslateExceptionError(Exception):
    """An error occurred during the translation process."""


class NotSupportedLanguagesError(TranslateExceptionError):
    """An unsupported language code was specified."""


class TranslationQuotaExceededError(TranslateExceptionError):
    """The translatable character quota has been exceeded."""


class TranslationRateLimitError(TranslateExceptionError):
    """The translation request was rate-limited by the API (HTTP 429)."""


class TranslationServerError(TranslateExceptionError):
    """The translation service answered with a server-side error (HTTP 5xx)."""


class TranslationTimeoutError(TranslateExceptionError):
    """The engine did not answer within the configured timeout."""


class EngineNotFoundError(TranslateExceptionError):
    """No engine is registered under the requested name."""


class EnginesExhaustedError(TranslateExceptionError):
    """Every engine of the fallback chain failed."""


class BatchMisalignmentError(TranslateExceptionError):
    """A combined translation did not split back into one segment per request."""


class BatcherShutdownError(TranslateExceptionError):
    """A queued request was dropped because the application is shutting down."""


class TransInterface(ABC):
    """Abstract base class for translation engines.

    Concrete engines register themselves under their distinguished name when the class is
    defined. Classes whose ``fetch_engine_name()`` returns an empty string are treated as
    intermediate bases and are not registered.

    Attributes:
        registered (ClassVar[dict[str, type[TransInterface]]]): Registered engine classes by name.
    """

    registered: ClassVar[dict[str, type[TransInterface]]] = {}

    def __init_subclass__(cls, **kwargs) -> None:
        """Register the subclass under its distinguished name.

        Raises:
            TypeError: If the subclass does not provide ``fetch_engine_name``.
            ValueError: If another engine is already registered under the same name.
        """
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "fetch_engine_name") or not callable(cls.fetch_engine_name):
            msg = "Subclasses of TransInterface must implement the static method fetch_engine_name()."
            raise TypeError(msg)

        name: str = cls.fetch_engine_name()
        if not isinstance(name, str) or name == "":
            return

        if name in cls.registered:
            msg: str = f"A translation engine with the name '{name}' is already registered."
            raise ValueError(msg)

        cls.registered[name] = cls

    def __init__(self) -> None:
        self._engine_attributes: EngineAttributes | None = None

    @property
    def engine_attributes(self) -> EngineAttributes:
        if self._engine_attributes is None:
            msg = "Engine attributes have not been set."
            raise RuntimeError(msg)
        return self._engine_attributes

    @engine_attributes.setter
    def engine_attributes(self, attributes: EngineAttributes) -> None:
        if self._engine_attributes is not None:
            msg = "Engine attributes can only be set once during initialization."
            raise RuntimeError(msg)
        self._engine_attributes = attributes

    @property
    def engine_name(self) -> str:
        return self.engine_attributes.name

    @property
    def supports_streaming(self) -> bool:
        """Whether ``translation_stream`` can be used with this engine."""
        return isinstance(self, StreamingTransInterface) and self.engine_attributes.supports_streaming

    @property
    def is_available(self) -> bool:
        """Check if the engine can currently accept requests.

        Engines that track quotas or authentication state override this.
        """
        return True

    def is_transient_error(self, err: Exception) -> bool:
        """Check if the given exception is worth retrying on another engine.

        Args:
            err (Exception): Exception raised during translation.

        Returns:
            bool: True for rate limiting, server errors, and timeouts.
        """
        return isinstance(err, (TranslationRateLimitError, TranslationServerError, TranslationTimeoutError))

    @staticmethod
    @abstractmethod
    def fetch_engine_name() -> str:
        """Fetch the distinguished name of the translation engine.

        Called during class registration in ``__init_subclass__``, so the implementation must be
        usable at class definition time.

        Returns:
            str: The distinguished name of the translation engine.
        """
        raise NotImplementedError

    @abstractmethod
    def initialize(self, config: Config) -> None:
        """Initialize the translation engine with the given configuration.

        Args:
            config (Config): Application configuration.
        """
        raise NotImplementedError

    @abstractmethod
    async def translation(
        self, content: str, tgt_lang: str, src_lang: str | None = None, text_type: TextType = "sentence"
    ) -> Result:
        """Translate one request.

        ``content`` may be several segments joined by the engine-batch separator; engines that
        declare ``accepts_multi_segment`` must keep the separator intact.

        Args:
            content (str): Text to be translated.
            tgt_lang (str): Target language code.
            src_lang (str | None): Source language code. If None, auto-detect.
            text_type (TextType): Kind of text; prompt-driven engines adjust their instructions.

        Returns:
            Result: Translation result with translated text.

        Raises:
            NotSupportedLanguagesError: If the specified language is not supported.
            TranslationQuotaExceededError: If the character quota has been exceeded.
            TranslationRateLimitError: If the request is rate-limited by the API.
            TranslateExceptionError: If translation fails.
        """
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        """Release network resources held by the engine."""
        raise NotImplementedError

    def get_authentication_key(self) -> str:
        """Return the API key from ``<ENGINE>_API_OAUTH`` (e.g. ``DEEPL_API_OAUTH``), or an empty string."""
        return os.getenv(f"{self.fetch_engine_name().upper()}_API_OAUTH", "")


class StreamingTransInterface(TransInterface):
    """Translation engine that can reveal its output incrementally."""

    @staticmethod
    def fetch_engine_name() -> str:
        return ""

    @abstractmethod
    def translation_stream(
        self, content: str, tgt_lang: str, src_lang: str | None = None, text_type: TextType = "sentence"
    ) -> AsyncIterator[str]:
        """Translate input text, yielding only the newly produced part of the output each time.

        Implementations are async generators. Concatenating every yielded delta gives the
        complete translation.

        Raises:
            TranslateExceptionError: If translation fails.
        """
        raise NotImplementedError
