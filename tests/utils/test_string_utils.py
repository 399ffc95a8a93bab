from __future__ import annotations

import pytest

from utils.string_utils import StringUtils


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, ""), ("text", "text"), (12, "12"), ("  spaced  ", "  spaced  ")],
)
def test_ensure_str(value: object, expected: str) -> None:
    assert StringUtils.ensure_str(value) == expected  # type: ignore[arg-type]


def test_strip_line_breaks_keeps_other_whitespace() -> None:
    assert StringUtils.strip_line_breaks("Hello\r\n  world\n") == "Hello  world"


def test_compress_blanks() -> None:
    assert StringUtils.compress_blanks("  a \t b\n c ") == "a b c"


def test_normalize_for_key() -> None:
    assert StringUtils.normalize_for_key("  First[r]LINE\r\n  second  ") == "firstline second"


def test_hash_text_is_sha256_hex() -> None:
    digest: str = StringUtils.hash_text("hello")
    assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_full_to_half_converts_ascii_forms_and_ideographic_space() -> None:
    assert StringUtils.full_to_half("ＡＢＣ　１２３！") == "ABC 123!"
    assert StringUtils.full_to_half("你好，世界") == "你好,世界"


def test_full_to_half_leaves_other_text_untouched() -> None:
    assert StringUtils.full_to_half("日本語テキスト") == "日本語テキスト"


def test_restore_placeholder_codes_collapses_runs() -> None:
    table: list[list[str]] = [["CC", "Claire"], ["D", "Dan"]]
    assert StringUtils.restore_placeholder_codes("cccc met dd, then Dd", table) == "CC met D, then D"


def test_restore_placeholder_codes_without_table() -> None:
    assert StringUtils.restore_placeholder_codes("cc", None) == "cc"
    assert StringUtils.restore_placeholder_codes("cc", []) == "cc"


def test_restore_placeholder_codes_skips_blank_codes() -> None:
    assert StringUtils.restore_placeholder_codes("abc", [["", "x"]]) == "abc"


def test_preview_truncates_long_text() -> None:
    assert StringUtils.preview("a" * 50, limit=10) == "a" * 10 + "..."
    assert StringUtils.preview("short") == "short"


@pytest.mark.parametrize(
    ("text", "to_lang", "expected"),
    [
        ("汉字", "zh-TW", "漢字"),
        ("汉字", "ZH-HANT", "漢字"),
        ("漢字", "zh-CN", "汉字"),
        ("漢字", "zh-Hans", "汉字"),
        ("漢字", "ja", "漢字"),
        ("", "zh-TW", ""),
    ],
)
def test_convert_chinese_script(text: str, to_lang: str, expected: str) -> None:
    assert StringUtils.convert_chinese_script(text, to_lang) == expected
