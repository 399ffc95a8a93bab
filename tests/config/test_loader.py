from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from config.loader import ConfigFileNotFoundError, ConfigFormatError, ConfigLoader, ConfigTypeError, ConfigValueError
from models.translation_models import TranslationConfig


def _write_ini(tmp_path: Path, content: str) -> Path:
    ini_path: Path = tmp_path / "gamechat.ini"
    ini_path.write_text(dedent(content), encoding="utf-8")
    return ini_path


def test_config_loader_raises_for_missing_file(tmp_path: Path) -> None:
    ini_path: Path = tmp_path / "missing.ini"
    with pytest.raises(ConfigFileNotFoundError):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_config_loader_reads_sections_and_coerces_types(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        ENGINE = "GPT"
        ENGINE_ALTERNATE = 'DeepL'
        AUTO_CHANGE = yes
        FROM = ja
        TO = "zh-TW"
        TIMEOUT = 12

        [CACHE]
        MAX_SIZE = "2000"
        PROMOTION_THRESHOLD = 5
        SESSION_CLEANUP_INTERVAL = 30.5

        [BATCH]
        BATCHABLE_ENGINES = ["Baidu", "DeepL"]
        MISMATCH_POLICY = proportional
        DIALOGUE_ENABLED = False
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.TRANSLATION.ENGINE == "GPT"
    assert config.TRANSLATION.ENGINE_ALTERNATE == "DeepL"
    assert config.TRANSLATION.AUTO_CHANGE is True
    assert config.TRANSLATION.FROM == "ja"
    assert config.TRANSLATION.TO == "zh-TW"
    assert config.TRANSLATION.TIMEOUT == 12.0
    assert config.CACHE.MAX_SIZE == 2000
    assert config.CACHE.PROMOTION_THRESHOLD == 5
    assert config.CACHE.SESSION_CLEANUP_INTERVAL == 30.5
    assert config.BATCH.BATCHABLE_ENGINES == ["Baidu", "DeepL"]
    assert config.BATCH.MISMATCH_POLICY == "proportional"
    assert config.BATCH.DIALOGUE_ENABLED is False
    assert config.GENERAL.SCRIPT_NAME == "test"


def test_absent_sections_keep_defaults(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        DEBUG = False
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.TRANSLATION.ENGINE == "DeepL"
    assert config.CACHE.MAX_SIZE == 10000
    assert config.CACHE.SESSION_MAX_SIZE == 500
    assert config.BATCH.ENGINE_WINDOW == 0.03
    assert config.BATCH.MISMATCH_POLICY == "individual"


def test_command_line_overrides(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [GENERAL]
        DEBUG = False

        [TRANSLATION]
        ENGINE = "DeepL"
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test", engine="OpenRouter", debug=True).config

    assert config.TRANSLATION.ENGINE == "OpenRouter"
    assert config.GENERAL.DEBUG is True


def test_translation_config_from_loaded_config(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        ENGINE = "GPT"
        ENGINE_ALTERNATE = "GPT"
        FROM = "en"
        TO = "ko"
        MULTILINE_BATCHING = off
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config
    translation: TranslationConfig = TranslationConfig.from_config(config)

    assert translation.engine_list == ["GPT"]
    assert translation.to_lang == "ko"
    assert translation.multiline_batching is False


def test_unknown_engine_only_warns(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [TRANSLATION]
        ENGINE = "Papago"
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.TRANSLATION.ENGINE == "Papago"


@pytest.mark.parametrize(
    ("content", "error_type"),
    [
        ("[BATCH]\nMISMATCH_POLICY = guess\n", ConfigValueError),
        ("[TRANSLATION]\nTO = \n", ConfigValueError),
        ("[CACHE]\nMAX_SIZE = 0\n", ConfigValueError),
        ("[BATCH]\nDIALOGUE_WINDOW = -0.5\n", ConfigValueError),
        ("[LLM]\nMAX_RETRIES = -1\n", ConfigValueError),
        ("[TRANSLATION]\nENGINE = \n", ConfigValueError),
        ("[CACHE]\nMAX_SIZE = many\n", ConfigValueError),
        ("[TRANSLATION]\nAUTO_CHANGE = maybe\n", ConfigValueError),
        ("[BATCH]\nBATCHABLE_ENGINES = [\"Baidu\"\n", ConfigFormatError),
        ("[BATCH]\nBATCHABLE_ENGINES = \"Baidu\"\n", ConfigTypeError),
    ],
)
def test_invalid_values_are_rejected(tmp_path: Path, content: str, error_type: type[Exception]) -> None:
    ini_path: Path = _write_ini(tmp_path, content)

    with pytest.raises(error_type):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_malformed_file_raises_format_error(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(tmp_path, "not an ini file\n")

    with pytest.raises(ConfigFormatError):
        ConfigLoader(config_filename=str(ini_path), script_name="test")


def test_unknown_keys_and_sections_are_ignored(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [CACHE]
        MAX_SIZE = 42
        COLOUR = blue

        [EXTRA]
        ANYTHING = 1
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.CACHE.MAX_SIZE == 42
    assert not hasattr(config.CACHE, "COLOUR")


def test_percent_affix_is_accepted_for_numbers(tmp_path: Path) -> None:
    ini_path: Path = _write_ini(
        tmp_path,
        """
        [LLM]
        TEMPERATURE = "0.2%"
        """,
    )

    config = ConfigLoader(config_filename=str(ini_path), script_name="test").config

    assert config.LLM.TEMPERATURE == 0.2


def test_bundled_sample_configuration_loads() -> None:
    sample: Path = Path(__file__).resolve().parents[2] / "gamechat.ini"

    config = ConfigLoader(config_filename=str(sample), script_name="gamechat.py").config

    assert config.TRANSLATION.ENGINE == "DeepL"
    assert config.TRANSLATION.ENGINE_ALTERNATE == "GPT"
    assert config.GENERAL.LOG_FILE == "gamechat.log"
