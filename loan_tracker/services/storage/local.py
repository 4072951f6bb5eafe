"""
Local Key-Value Backends

InMemoryBackend: a dict; used by tests and by the "memory" backend
setting for throwaway sessions.

JsonFileBackend: one JSON object on disk mapping key to value string,
the file-based equivalent of browser local storage.

TRADEOFFS:
- The whole file is read and rewritten on every operation (fine for
  a personal ledger, not for large data)
- Writes go to a temporary file first and are moved into place, so a
  crash never leaves a half-written store
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from loan_tracker.services.storage.interface import (
    KeyValueBackend,
    StorageError,
    StoreUnreadableError,
)


class InMemoryBackend(KeyValueBackend):
    """Dictionary-backed store. Not shared between processes."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileBackend(KeyValueBackend):
    """
    Single JSON file store.

    The parent directory is created on first write.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        """Read the whole mapping; a missing file is an empty store."""
        if not self._path.exists():
            return {}

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreUnreadableError(None, f"Cannot read store file {self._path}: {e}")

        if not raw.strip():
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StoreUnreadableError(None, f"Store file {self._path} is not valid JSON: {e}")

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise StoreUnreadableError(
                None, f"Store file {self._path} is not a key-value mapping"
            )

        return data

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write store file {self._path}: {e}")

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> bool:
        data = self._load()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def keys(self) -> list[str]:
        return list(self._load())
