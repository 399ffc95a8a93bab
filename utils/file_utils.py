from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

__all__: list[str] = [
    "FileMissingError",
    "FileUtils",
    "FileUtilsError",
    "FileWriteError",
    "UnsupportedFileFormatError",
]


class FileUtils:
    """Utility class for file operations with safety checks.

    Provides methods to resolve paths, validate file types, and read or atomically
    replace JSON documents.
    """

    @staticmethod
    def resolve_path(path: str | Path, *, strict: bool = False) -> Path:
        """Convert a user-input path to an absolute path safely.

        Expands environment variables (e.g., $HOME, %APPDATA%), expands ~ to the home directory,
        and resolves relative paths based on the current working directory.

        Args:
            path (str | Path): The input path (e.g., "~/cache/$APP_ENV/translation-cache.json").
            strict (bool): Whether to raise an exception if the path does not exist. Defaults to False.

        Returns:
            Path: The converted absolute `Path` object.
        """
        path_str = str(path)
        expanded: str = os.path.expandvars(path_str)
        user_expanded: Path = Path(expanded).expanduser()

        resolved_path: Path
        if user_expanded.is_absolute():
            resolved_path = user_expanded.resolve(strict=strict)
        else:
            resolved_path = (Path.cwd() / user_expanded).resolve(strict=strict)
        return resolved_path

    @staticmethod
    def validate_file_path(file_path: Path, suffix: list[str] | str) -> None:
        """Validate that a file exists and has an allowed suffix.

        Args:
            file_path (Path): The path to the file to validate.
            suffix (list[str] | str): Allowed file suffix(es) (e.g., [".json"] or ".json").

        Raises:
            FileMissingError: If the file does not exist.
            UnsupportedFileFormatError: If the file's suffix is not in the allowed list.
        """

        if isinstance(suffix, str):
            suffix = [suffix]

        if not file_path.exists():
            msg = f"File does not exist: {file_path}"
            raise FileMissingError(msg)
        if file_path.suffix.lower() not in [s.lower() for s in suffix]:
            msg = f"Unsupported file format: '{file_path.suffix}'. Supported formats are: {', '.join(suffix)}"
            raise UnsupportedFileFormatError(msg)

    @staticmethod
    def read_json(file_path: Path) -> Any:
        """Read and decode a whole JSON document.

        Raises:
            FileMissingError: If the file does not exist.
            json.JSONDecodeError: If the content is not valid JSON.
        """
        try:
            with file_path.open(encoding="utf-8") as fp:
                return json.load(fp)
        except FileNotFoundError as err:
            msg = f"File does not exist: {file_path}"
            raise FileMissingError(msg) from err

    @staticmethod
    def write_json_atomic(file_path: Path, data: Any, *, indent: int | None = None) -> None:
        """Replace ``file_path`` with the JSON encoding of ``data``.

        The document is written to a temporary file in the same directory and renamed over the
        target, so readers never observe a partially written file.

        Raises:
            FileWriteError: If the directory cannot be created or the file cannot be written.
        """
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{file_path.name}.", suffix=".tmp", dir=file_path.parent)
        except OSError as err:
            msg = f"Cannot create a temporary file next to: {file_path}"
            raise FileWriteError(msg) from err

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                json.dump(data, fp, ensure_ascii=False, indent=indent)
                fp.flush()
                os.fsync(fp.fileno())
            tmp_path.replace(file_path)
        except (OSError, TypeError, ValueError) as err:
            tmp_path.unlink(missing_ok=True)
            msg = f"Failed to write JSON file: {file_path}"
            raise FileWriteError(msg) from err


class FileUtilsError(Exception):
    """Custom exception for FileUtils-related errors."""


class FileMissingError(FileUtilsError):
    """Custom exception for file missing errors."""


class FileWriteError(FileUtilsError):
    """Custom exception for file write errors."""


class UnsupportedFileFormatError(FileUtilsError):
    """Custom exception for unsupported file format errors."""
