from __future__ import annotations

import json
from pathlib import Path

import pytest

from utils.file_utils import FileMissingError, FileUtils, FileWriteError, UnsupportedFileFormatError


def test_resolve_path_expands_environment_and_relative_paths(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("GAMECHAT_DIR", str(tmp_path))
    monkeypatch.chdir(tmp_path)

    assert FileUtils.resolve_path("$GAMECHAT_DIR/cache.json") == (tmp_path / "cache.json").resolve()
    assert FileUtils.resolve_path("relative.json") == (tmp_path / "relative.json").resolve()


def test_validate_file_path(tmp_path: Path) -> None:
    json_path: Path = tmp_path / "data.json"
    json_path.write_text("[]", encoding="utf-8")
    text_path: Path = tmp_path / "data.txt"
    text_path.write_text("", encoding="utf-8")

    FileUtils.validate_file_path(json_path, ".json")
    with pytest.raises(UnsupportedFileFormatError):
        FileUtils.validate_file_path(text_path, [".json"])
    with pytest.raises(FileMissingError):
        FileUtils.validate_file_path(tmp_path / "missing.json", ".json")


def test_read_json_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileMissingError):
        FileUtils.read_json(tmp_path / "missing.json")


def test_write_json_atomic_replaces_file_and_leaves_no_temporaries(tmp_path: Path) -> None:
    target: Path = tmp_path / "nested" / "cache.json"
    FileUtils.write_json_atomic(target, [["k", {"translation": "旧"}]])
    FileUtils.write_json_atomic(target, [["k", {"translation": "新"}]])

    assert FileUtils.read_json(target) == [["k", {"translation": "新"}]]
    assert "新" in target.read_text(encoding="utf-8")
    assert [p.name for p in target.parent.iterdir()] == ["cache.json"]


def test_write_json_atomic_keeps_old_file_on_encoding_error(tmp_path: Path) -> None:
    target: Path = tmp_path / "cache.json"
    target.write_text(json.dumps(["old"]), encoding="utf-8")

    with pytest.raises(FileWriteError):
        FileUtils.write_json_atomic(target, [object()])

    assert FileUtils.read_json(target) == ["old"]
    assert [p.name for p in tmp_path.iterdir()] == ["cache.json"]
