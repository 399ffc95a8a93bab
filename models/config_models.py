"""Configuration data models for the translation pipeline.

Each data class corresponds to one section of the INI configuration file. Field names match
the INI keys; defaults are used for keys that are absent from the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__: list[str] = [
    "Batch",
    "Cache",
    "Config",
    "General",
    "LLM",
    "Translation",
]


@dataclass
class General:
    DEBUG: bool = False
    VERSION: str = ""
    SCRIPT_NAME: str = ""
    LOG_FILE: str = ""


@dataclass
class Translation:
    ENGINE: str = "DeepL"
    ENGINE_ALTERNATE: str = ""
    AUTO_CHANGE: bool = True
    FROM: str = "en"
    TO: str = "zh-CN"
    MULTILINE_BATCHING: bool = True
    STREAMING: bool = True
    TIMEOUT: float = 30.0


@dataclass
class Cache:
    PATH: str = "translation-cache.json"
    MAX_SIZE: int = 10000
    SESSION_MAX_SIZE: int = 500
    PROMOTION_THRESHOLD: int = 3
    DEMOTION_THRESHOLD: int = 2
    SESSION_CLEANUP_INTERVAL: float = 600.0  # seconds
    AUTO_SAVE_INTERVAL: float = 300.0  # seconds
    PRELOAD_LENGTH_LIMIT: int = 200
    PRELOAD_FILE: str = ""


@dataclass
class Batch:
    ENGINE_WINDOW: float = 0.03  # seconds
    ENGINE_MAX_SIZE: int = 10
    ENGINE_MAX_LENGTH: int = 1000
    BATCHABLE_ENGINES: list[str] = field(default_factory=lambda: ["Baidu", "Youdao", "Papago", "DeepL"])
    MISMATCH_POLICY: str = "individual"
    DIALOGUE_ENABLED: bool = True
    DIALOGUE_WINDOW: float = 0.1  # seconds
    DIALOGUE_MAX_SIZE: int = 10


@dataclass
class LLM:
    GPT_URL: str = "https://api.openai.com/v1/chat/completions"
    GPT_MODEL: str = "gpt-4o-mini"
    OPENROUTER_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    OPENROUTER_MODEL: str = "openrouter/auto"
    TEMPERATURE: float = 0.7
    MAX_RETRIES: int = 2
    RETRY_INITIAL_DELAY: float = 1.0  # seconds
    RETRY_MAX_DELAY: float = 5.0  # seconds


@dataclass
class Config:
    GENERAL: General = field(default_factory=General)
    TRANSLATION: Translation = field(default_factory=Translation)
    CACHE: Cache = field(default_factory=Cache)
    BATCH: Batch = field(default_factory=Batch)
    LLM: LLM = field(default_factory=LLM)
