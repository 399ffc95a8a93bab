from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, ClassVar, Final

from deepl import DeepLClient, Language, TextResult
from deepl.exceptions import (
    AuthorizationException,
    ConnectionException,
    DeepLException,
    QuotaExceededException,
    TooManyRequestsException,
)

from core.trans.interface import (
    EngineAttributes,
    NotSupportedLanguagesError,
    Result,
    TransInterface,
    TranslateExceptionError,
    TranslationQuotaExceededError,
    TranslationRateLimitError,
    TranslationServerError,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.config_models import Config
    from models.translation_models import TextType


__all__: list[str] = ["DeeplTranslation"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_CONTEXT_HINTS: Final[dict[str, str]] = {
    "dialogue": "Spoken lines of video game characters.",
    "name": "Name of a video game character or place.",
}

# Checked in order; the first matching DeepL exception decides the error type.
_ERROR_MAP: Final[tuple[tuple[type[Exception], type[TranslateExceptionError], str], ...]] = (
    (QuotaExceededException, TranslationQuotaExceededError, "DeepL quota exceeded"),
    (AuthorizationException, TranslateExceptionError, "DeepL authorization failed, check DEEPL_API_OAUTH"),
    (TooManyRequestsException, TranslationRateLimitError, "DeepL rate limit reached"),
    (ConnectionException, TranslationServerError, "Cannot connect to the DeepL server"),
)


class DeeplTranslation(TransInterface):
    _source_codes: ClassVar[dict[str, str]] = {}  # Mapping of source language codes to DeepL's format
    _target_codes: ClassVar[dict[str, str]] = {}  # Mapping of target language codes to DeepL's format

    def __init__(self) -> None:
        super().__init__()
        self.__inst: DeepLClient | None = None
        self.__available: bool = False
        self._generate_langcode_mappings()

    def _generate_langcode_mappings(self) -> None:
        """Generate language code mappings for DeepL source and target codes.

        The first part of each DeepL language constant (e.g. 'en' of 'en-US') maps to the
        uppercase code DeepL expects. Chinese variants map to DeepL's unified 'ZH'.
        """
        language_constants: dict[str, str] = {
            name: value for name, value in vars(Language).items() if isinstance(value, str) and name.isupper()
        }

        for code in language_constants.values():
            base_code: str = code.split("-")[0].lower()
            DeeplTranslation._source_codes[base_code] = base_code.upper()
            DeeplTranslation._target_codes.setdefault(base_code, code.upper())
            DeeplTranslation._target_codes[code.lower()] = code.upper()

        for zh_variant in ("zh-cn", "zh-tw", "zh"):
            DeeplTranslation._source_codes[zh_variant] = "ZH"
        DeeplTranslation._target_codes["zh-cn"] = "ZH-HANS"
        DeeplTranslation._target_codes["zh-tw"] = "ZH-HANT"
        DeeplTranslation._target_codes["zh"] = "ZH"

        logger.debug("Language code mapping generated for DeepL.")

    @property
    def _inst(self) -> DeepLClient:
        if self.__inst is None:
            msg = "The DeepL instance is not initialised"
            raise TranslateExceptionError(msg)
        return self.__inst

    @property
    def is_available(self) -> bool:
        return self.__inst is not None and self.__available

    @staticmethod
    def fetch_engine_name() -> str:
        return "DeepL"

    def initialize(self, config: Config) -> None:
        """Initializes the DeepL translation client.

        Authentication happens on the first API call, so an invalid key surfaces later as a
        translation error rather than here.

        Args:
            config (Config): Application configuration (unused).

        Raises:
            RuntimeError: If the DeepL client cannot be created.
            TranslateExceptionError: If no authentication key is set.
        """
        logger.debug("'%s' Initialization start", self.__class__.__name__)
        _ = config  # Indicate unused.

        self.engine_attributes = EngineAttributes(name="DeepL", accepts_multi_segment=True)
        auth_key: str = self.get_authentication_key()
        if not auth_key:
            msg = "DeepL authentication key is not set (DEEPL_API_OAUTH)"
            raise TranslateExceptionError(msg)
        try:
            self.__inst = DeepLClient(auth_key)
        except (AttributeError, ValueError) as err:
            logger.critical(err)
            msg = "An error occurred while creating the DeepL client instance"
            raise RuntimeError(msg) from err
        self.__available = True

    def _convert_langs(self, src_lang: str | None, tgt_lang: str) -> tuple[str | None, str]:
        try:
            _src_lang: str | None = DeeplTranslation._source_codes[src_lang.lower()] if src_lang else None
            _tgt_lang: str = DeeplTranslation._target_codes[tgt_lang.lower()]
        except KeyError:
            msg: str = (
                f"Languages not supported by DeepL. Source language: '{src_lang}'. Target language: '{tgt_lang}'."
            )
            raise NotSupportedLanguagesError(msg) from None
        return _src_lang, _tgt_lang

    async def translation(
        self, content: str, tgt_lang: str, src_lang: str | None = None, text_type: TextType = "sentence"
    ) -> Result:
        """Translate ``content`` with DeepL in a worker thread.

        Dialogue lines and character names are sent with a short ``context`` hint; DeepL uses it
        to pick register and does not translate it or bill for it.

        Raises:
            NotSupportedLanguagesError: If DeepL does not know one of the language codes.
            TranslationQuotaExceededError: If the account's character quota is used up.
            TranslationRateLimitError: If DeepL rejects the request with HTTP 429.
            TranslationServerError: If the DeepL server cannot be reached.
            TranslateExceptionError: For authorization failures and any other DeepL error.
        """
        _src_lang, _tgt_lang = self._convert_langs(src_lang, tgt_lang)
        options: dict[str, Any] = {"source_lang": _src_lang, "target_lang": _tgt_lang, "preserve_formatting": True}
        if (context := _CONTEXT_HINTS.get(text_type)) is not None:
            options["context"] = context

        try:
            results: TextResult | list[TextResult] = await asyncio.to_thread(
                self._inst.translate_text, content, **options
            )
        except (DeepLException, ValueError, TypeError) as err:
            raise self._map_error(err) from err

        logger.info("DeepL translated %d characters (%s > %s)", len(content), _src_lang or "auto", _tgt_lang)
        return self._build_result(results)

    def _map_error(self, err: Exception) -> TranslateExceptionError:
        if isinstance(err, QuotaExceededException):
            self.__available = False
            logger.warning("DeepL quota exceeded; engine disabled for this session")
        for exc_type, error_type, message in _ERROR_MAP:
            if isinstance(err, exc_type):
                return error_type(f"{message}: {err}")
        return TranslateExceptionError(f"DeepL translation failed: {err}")

    def _build_result(self, results: TextResult | list[TextResult]) -> Result:
        if isinstance(results, list):
            if not results:
                msg = "DeepL returned an empty result list"
                raise TranslateExceptionError(msg)
            text_result: TextResult = results[0]
        else:
            text_result = results

        return Result(
            text=text_result.text,
            detected_source_lang=(text_result.detected_source_lang or "").lower() or None,
            metadata={"engine": "DeepL"},
        )

    async def close(self) -> None:
        self.__available = False
        if self.__inst is not None:
            await asyncio.to_thread(self.__inst.close)
        self.__inst = None
        logger.debug("DeepL client closed")
