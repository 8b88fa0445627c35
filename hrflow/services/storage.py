from __future__ import annotations

import re
import uuid
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

from fastapi.concurrency import run_in_threadpool

from hrflow.config import get_settings

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._\- ]")
_MAX_NAME_LENGTH = 255
_FALLBACK_NAME = "upload.bin"


@runtime_checkable
class FileStore(Protocol):
    """Interface for the fulfillment artifact store. The engine only keeps the returned path."""

    async def store(self, data: bytes, filename: str, folder: str) -> str:
        """Persist the bytes and return a store-relative path."""
        ...

    def url(self, path: str) -> str:
        """Public URL for a stored path."""
        ...


def _safe_name(filename: str) -> str:
    """Basename only, restricted to letters, digits, ``._-`` and spaces, at most 255 characters."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip().lstrip(".-")
    if not name:
        return _FALLBACK_NAME
    if len(name) > _MAX_NAME_LENGTH:
        stem, dot, ext = name.rpartition(".")
        if dot and stem and len(ext) < _MAX_NAME_LENGTH - 1:
            name = f"{stem[: _MAX_NAME_LENGTH - len(ext) - 1]}.{ext}"
        else:
            name = name[:_MAX_NAME_LENGTH]
    return name


def _write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


class LocalFileStore:
    """Stores files under a local directory."""

    def __init__(self, root: str | Path, base_url: str) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    async def store(self, data: bytes, filename: str, folder: str) -> str:
        relative = PurePosixPath(folder) / f"{uuid.uuid4().hex}_{_safe_name(filename)}"
        await run_in_threadpool(_write, self._root / relative, data)
        return str(relative)

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path}"


class InMemoryFileStore:
    """Keeps files in a dict. Used in tests."""

    def __init__(self, base_url: str = "memory://") -> None:
        self.files: dict[str, bytes] = {}
        self._base_url = base_url

    async def store(self, data: bytes, filename: str, folder: str) -> str:
        path = str(PurePosixPath(folder) / f"{uuid.uuid4().hex}_{_safe_name(filename)}")
        self.files[path] = data
        return path

    def url(self, path: str) -> str:
        return f"{self._base_url}{path}"


_file_store: FileStore | None = None


def get_file_store() -> FileStore:
    """FastAPI dependency for the file store."""
    global _file_store
    if _file_store is None:
        settings = get_settings()
        _file_store = LocalFileStore(settings.storage_root, settings.storage_base_url)
    return _file_store


def set_file_store(store: FileStore | None) -> None:
    """Override the store (for testing or production wiring)."""
    global _file_store
    _file_store = store
