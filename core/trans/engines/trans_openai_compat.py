"""Translation engines for OpenAI-compatible chat-completions endpoints.

Both non-streaming requests and Server-Sent Events streaming are supported. The stream is
read line by line: every ``data: `` line carries one JSON chunk whose
``choices[0].delta.content`` holds the next piece of the translation, and ``data: [DONE]``
ends the stream.
"""

from __future__ import annotations

import asyncio
import json
import random
from json import JSONDecodeError
from typing import TYPE_CHECKING, Any, ClassVar, Final

import aiohttp

from core.trans.interface import (
    EngineAttributes,
    Result,
    StreamingTransInterface,
    TranslateExceptionError,
    TranslationRateLimitError,
    TranslationServerError,
    TranslationTimeoutError,
)
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import AsyncIterator

    from models.config_models import Config
    from models.translation_models import TextType

__all__: list[str] = ["GPTTranslation", "OpenAICompatTranslation", "OpenRouterTranslation"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

SSE_DATA_PREFIX: Final[str] = "data: "
SSE_DONE: Final[str] = "[DONE]"
BACKOFF_MULTIPLIER: Final[float] = 2.0
BACKOFF_JITTER: Final[float] = 0.3  # up to 30% of the base delay


class OpenAICompatTranslation(StreamingTransInterface):
    """Base class for engines speaking the OpenAI chat-completions protocol.

    Subclasses provide the engine name and pick their endpoint and model from the ``[LLM]``
    configuration section.
    """

    PROMPTS: ClassVar[dict[str, str]] = {
        "sentence": (
            "You are a professional game translator. Translate the user's text from {source} to {target}. "
            "Keep the tone of the original and every line break. "
            "Reply with the translation only, without notes or quotation marks."
        ),
        "dialogue": (
            "You are a professional game translator. Translate this line of in-game dialogue from {source} "
            "to {target} so that it sounds natural when spoken by the character. "
            "Keep every line break and separator line unchanged. Reply with the translation only."
        ),
        "name": (
            "Translate this character or place name from {source} to {target}. "
            "Reply with the name only, without explanations."
        ),
    }

    def __init__(self) -> None:
        super().__init__()
        self.url: str = ""
        self.model: str = ""
        self.temperature: float = 0.7
        self.max_retries: int = 2
        self.retry_initial_delay: float = 1.0
        self.retry_max_delay: float = 5.0
        self.__api_key: str = ""
        self.__session: aiohttp.ClientSession | None = None

    @property
    def _session(self) -> aiohttp.ClientSession:
        """Return the current session, creating one if it has not been created or was closed."""
        if self.__session is None or self.__session.closed:
            self.__session = aiohttp.ClientSession()
        return self.__session

    @property
    def is_available(self) -> bool:
        return bool(self.__api_key and self.url and self.model)

    def _endpoint(self, config: Config) -> tuple[str, str]:
        """Return the ``(url, model)`` pair for this engine."""
        raise NotImplementedError

    def initialize(self, config: Config) -> None:
        """Read endpoint settings and the API key.

        Raises:
            TranslateExceptionError: If no API key is set.
        """
        logger.debug("'%s' Initialization start", self.__class__.__name__)
        self.engine_attributes = EngineAttributes(name=self.fetch_engine_name(), supports_streaming=True)
        self.url, self.model = self._endpoint(config)
        self.temperature = config.LLM.TEMPERATURE
        self.max_retries = config.LLM.MAX_RETRIES
        self.retry_initial_delay = config.LLM.RETRY_INITIAL_DELAY
        self.retry_max_delay = config.LLM.RETRY_MAX_DELAY
        self.__api_key = self.get_authentication_key()
        if not self.__api_key:
            name: str = self.fetch_engine_name()
            msg: str = f"API key for '{name}' is not set ({name.upper()}_API_OAUTH)"
            raise TranslateExceptionError(msg)

    def build_prompt(self, tgt_lang: str, src_lang: str | None, text_type: TextType) -> str:
        template: str = self.PROMPTS.get(text_type, self.PROMPTS["sentence"])
        return template.format(source=src_lang or "the detected language", target=tgt_lang)

    def _build_payload(
        self, content: str, tgt_lang: str, src_lang: str | None, text_type: TextType, *, stream: bool
    ) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.build_prompt(tgt_lang, src_lang, text_type)},
                {"role": "user", "content": content},
            ],
            "temperature": self.temperature,
            "stream": stream,
        }

    def _build_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.__api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _build_body_preview(body: str, limit: int = 500) -> str:
        body_preview: str = body.strip().replace("\n", "\\n")
        if len(body_preview) > limit:
            return f"{body_preview[:limit]}..."
        return body_preview

    def _raise_for_status(self, status: int, reason: str | None, body: str) -> None:
        if status < 300:
            return
        status_reason: str = f"{status} {reason}".strip() if reason else str(status)
        msg: str = f"HTTP {status_reason} from {self.url}. Body: {self._build_body_preview(body)}"
        if status == 429:
            raise TranslationRateLimitError(msg)
        if status >= 500:
            raise TranslationServerError(msg)
        raise TranslateExceptionError(msg)

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt + 1``: exponential, jittered, capped."""
        base: float = self.retry_initial_delay * BACKOFF_MULTIPLIER**attempt
        return min(base + random.uniform(0.0, BACKOFF_JITTER * base), self.retry_max_delay)  # noqa: S311

    async def translation(
        self, content: str, tgt_lang: str, src_lang: str | None = None, text_type: TextType = "sentence"
    ) -> Result:
        """Translate ``content`` with one chat-completions request.

        Rate limiting, server errors, and timeouts are retried up to ``max_retries`` times with
        exponential backoff. Other errors are raised at once.

        Raises:
            TranslationRateLimitError: If the endpoint still answers HTTP 429 after the retries.
            TranslationServerError: If the endpoint still fails with 5xx or cannot be reached.
            TranslationTimeoutError: If the request still times out after the retries.
            TranslateExceptionError: For other HTTP errors and unknown response formats.
        """
        payload: dict[str, Any] = self._build_payload(content, tgt_lang, src_lang, text_type, stream=False)
        attempt: int = 0
        while True:
            try:
                body: str = await self._post(payload)
                break
            except TranslateExceptionError as err:
                if attempt >= self.max_retries or not self.is_transient_error(err):
                    raise
                delay: float = self.backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    "'%s' request failed (%s), retry %d/%d in %.2f seconds",
                    self.fetch_engine_name(),
                    err,
                    attempt,
                    self.max_retries,
                    delay,
                )
                await asyncio.sleep(delay)

        try:
            data: dict[str, Any] = json.loads(body)
            text: str = data["choices"][0]["message"]["content"]
        except (JSONDecodeError, KeyError, IndexError, TypeError) as err:
            msg = "Unknown response format from the chat-completions endpoint"
            raise TranslateExceptionError(msg) from err

        usage: dict[str, Any] = data.get("usage") or {}
        logger.debug("Total tokens: %s", usage.get("total_tokens"))
        return Result(
            text=text.strip(),
            metadata={"engine": self.fetch_engine_name(), "model": str(data.get("model", self.model))},
        )

    async def _post(self, payload: dict[str, Any]) -> str:
        try:
            async with self._session.post(self.url, json=payload, headers=self._build_headers()) as response:
                body: str = await response.text()
                self._raise_for_status(response.status, response.reason, body)
        except TimeoutError:
            msg = f"Timeout occurred while waiting for '{self.fetch_engine_name()}'"
            raise TranslationTimeoutError(msg) from None
        except aiohttp.ClientError as err:
            raise TranslationServerError(err) from None
        return body

    async def translation_stream(
        self, content: str, tgt_lang: str, src_lang: str | None = None, text_type: TextType = "sentence"
    ) -> AsyncIterator[str]:
        payload: dict[str, Any] = self._build_payload(content, tgt_lang, src_lang, text_type, stream=True)
        try:
            async with self._session.post(self.url, json=payload, headers=self._build_headers()) as response:
                if response.status >= 300:
                    self._raise_for_status(response.status, response.reason, await response.text())
                async for raw_line in response.content:
                    delta: str | None = self.parse_sse_line(raw_line.decode("utf-8", errors="replace"))
                    if delta is None:
                        break
                    if delta:
                        yield delta
        except TimeoutError:
            msg = f"Timeout occurred while streaming from '{self.fetch_engine_name()}'"
            raise TranslationTimeoutError(msg) from None
        except aiohttp.ClientError as err:
            raise TranslationServerError(err) from None

    @staticmethod
    def parse_sse_line(line: str) -> str | None:
        """Extract the content delta carried by one SSE line.

        Args:
            line (str): A raw line of the event stream.

        Returns:
            str | None: The delta text, an empty string for lines without content,
                or None when the stream is finished.
        """
        line = line.strip()
        if not line.startswith(SSE_DATA_PREFIX):
            return ""
        data: str = line[len(SSE_DATA_PREFIX) :].strip()
        if data == SSE_DONE:
            return None
        try:
            chunk: dict[str, Any] = json.loads(data)
            return chunk["choices"][0]["delta"].get("content") or ""
        except (JSONDecodeError, KeyError, IndexError, TypeError, AttributeError):
            logger.debug("Skipping malformed stream chunk: %s", data)
            return ""

    async def close(self) -> None:
        logger.debug("'%s': 'termination process'", self.__class__.__name__)
        if self.__session is not None and not self.__session.closed:
            await self.__session.close()
        self.__session = None


class GPTTranslation(OpenAICompatTranslation):
    @staticmethod
    def fetch_engine_name() -> str:
        return "GPT"

    def _endpoint(self, config: Config) -> tuple[str, str]:
        return config.LLM.GPT_URL, config.LLM.GPT_MODEL


class OpenRouterTranslation(OpenAICompatTranslation):
    @staticmethod
    def fetch_engine_name() -> str:
        return "OpenRouter"

    def _endpoint(self, config: Config) -> tuple[str, str]:
        return config.LLM.OPENROUTER_URL, config.LLM.OPENROUTER_MODEL
