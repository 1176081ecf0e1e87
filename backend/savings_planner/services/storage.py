"""Key-value persistence boundary.

Core code only needs string keys mapped to string values. Two backends:
- in-memory, for tests and throwaway runs
- one JSON file per key on disk, rewritten atomically on every `set`
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]+")


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore:
    """Stores each key in `<directory>/<key>.json`."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        safe = _SAFE_KEY.sub("_", key).strip("_")
        if not safe:
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}") from exc

    def set(self, key: str, value: str) -> None:
        # Blocking write and fsync. Routes call this on the event loop thread, so
        # mutations stay serialized; keep values small.
        path = self._path_for(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # Write beside the target, then swap, so readers never see a partial file.
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {path}") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}") from exc


def read_json(store: KeyValueStore, key: str) -> Any | None:
    """Load a JSON value; missing, unreadable or malformed values come back as None."""
    try:
        raw = store.get(key)
    except StorageError:
        logger.exception("storage_read_failed", key=key)
        return None

    if raw is None:
        return None

    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("storage_value_malformed", key=key)
        return None


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    """Serialize and overwrite `key`. Raises StorageError on failure."""
    try:
        payload = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise StorageError(f"Value for {key!r} is not JSON serializable") from exc
    store.set(key, payload)
