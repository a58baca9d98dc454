"""Shared async file-system helpers for the Modularisan core.

Every helper offloads its blocking call with :func:`asyncio.to_thread` so
callers can ``await`` them in sequence.  ``OSError`` never escapes: it is
wrapped in :class:`~modularisan.errors.FileSystemError` carrying the path
that was being touched.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from pathlib import Path
from typing import Any

from .errors import FileSystemError

# ---------------------------------------------------------------------------
# Existence checks
# ---------------------------------------------------------------------------


async def path_exists(path: str | Path) -> bool:
    """Return ``True`` if *path* exists.  Never raises."""
    try:
        return await asyncio.to_thread(Path(path).exists)
    except OSError:
        return False


async def is_dir(path: str | Path) -> bool:
    try:
        return await asyncio.to_thread(Path(path).is_dir)
    except OSError:
        return False


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------


async def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist.

    Args:
        path: Directory path.

    Returns:
        The ``Path`` object.

    Raises:
        FileSystemError: If the directory cannot be created.
    """
    dir_path = Path(path)
    try:
        await asyncio.to_thread(dir_path.mkdir, parents=True, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f"Failed to create directory: {dir_path}", dir_path) from exc
    return dir_path


async def list_subdirectories(path: str | Path) -> list[Path]:
    """Return the immediate, non-hidden subdirectories of *path*, sorted by name."""
    dir_path = Path(path)

    def _scan() -> list[Path]:
        return sorted(
            entry
            for entry in dir_path.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    try:
        return await asyncio.to_thread(_scan)
    except OSError as exc:
        raise FileSystemError(f"Failed to read directory: {dir_path}", dir_path) from exc


async def remove_tree(path: str | Path) -> None:
    """Recursively delete *path*."""
    target = Path(path)
    try:
        await asyncio.to_thread(shutil.rmtree, target)
    except OSError as exc:
        raise FileSystemError(f"Failed to remove directory: {target}", target) from exc


# ---------------------------------------------------------------------------
# Text files
# ---------------------------------------------------------------------------


async def read_text(path: str | Path) -> str:
    file_path = Path(path)
    try:
        return await asyncio.to_thread(file_path.read_text, encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Failed to read file: {file_path}", file_path) from exc


async def write_text(path: str | Path, content: str) -> Path:
    """Write *content* to *path*, creating parent directories first."""
    file_path = Path(path)
    try:
        await asyncio.to_thread(_write_file, file_path, content)
    except OSError as exc:
        raise FileSystemError(f"Failed to write file: {file_path}", file_path) from exc
    return file_path


async def append_text(path: str | Path, content: str) -> Path:
    file_path = Path(path)

    def _append() -> None:
        with file_path.open("a", encoding="utf-8") as handle:
            handle.write(content)

    try:
        await asyncio.to_thread(_append)
    except OSError as exc:
        raise FileSystemError(f"Failed to append to file: {file_path}", file_path) from exc
    return file_path


async def remove_file(path: str | Path) -> None:
    file_path = Path(path)
    try:
        await asyncio.to_thread(file_path.unlink)
    except OSError as exc:
        raise FileSystemError(f"Failed to remove file: {file_path}", file_path) from exc


# ---------------------------------------------------------------------------
# JSON I/O
# ---------------------------------------------------------------------------


async def load_json(path: str | Path) -> Any:
    """Load and parse a JSON file.

    Raises:
        FileSystemError: If the file cannot be read.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    raw = await read_text(path)
    return json.loads(raw)


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> Path:
    """Save data as pretty-printed JSON with a trailing newline."""
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str) + "\n"
    return await write_text(path, content)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
