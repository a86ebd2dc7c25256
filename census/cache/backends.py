"""
Census Cache - Key-Value Backends

Storage backends for cached tree snapshots. A backend stores opaque
bytes under string keys; CacheStore owns the entry format.

FileBackend writes each value to a temporary file in the target
directory and promotes it with os.replace, so a failed write leaves any
previous value untouched.
"""

from __future__ import annotations

import hashlib
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from census.schemas.errors import CacheWriteError


_SAFE_KEY_RE = re.compile(r"^[0-9A-Za-z_.-]+$")
_ENTRY_SUFFIX = ".json"


@runtime_checkable
class KeyValueBackend(Protocol):
    """Minimal persistence interface used by CacheStore."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> list[str]:
        ...


class MemoryBackend:
    """Process-local backend. Contents are lost when the process exits."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class FileBackend:
    """
    One file per key inside a directory.

    Keys made of [0-9A-Za-z_.-] are used as file names directly; any
    other key is stored under a sha256-derived name.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _file_name(key: str) -> str:
        if _SAFE_KEY_RE.match(key):
            return key + _ENTRY_SUFFIX
        return "k-" + hashlib.sha256(key.encode("utf-8")).hexdigest() + _ENTRY_SUFFIX

    def _path(self, key: str) -> Path:
        return self.directory / self._file_name(key)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, value: bytes) -> None:
        target = self._path(key)
        tmp_name: Optional[str] = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=self.directory,
                prefix=".tmp-",
                suffix=_ENTRY_SUFFIX,
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(value)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheWriteError(f"Failed to persist cache entry: {e}", root_key=key) from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> list[str]:
        return sorted(
            p.name[: -len(_ENTRY_SUFFIX)]
            for p in self.directory.glob("*" + _ENTRY_SUFFIX)
            if not p.name.startswith(".tmp-")
        )


__all__ = [
    "KeyValueBackend",
    "MemoryBackend",
    "FileBackend",
]
