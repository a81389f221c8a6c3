"""
Key-Value File — JSON-backed key-value persistence.

The whole store lives in memory and is dumped on request to a single
JSON object file. Dumps are atomic (write to temp, then rename).

## Errors

- StoreLoadError: the file exists but cannot be read or parsed (fatal)
- StoreWriteError: a dump failed (recoverable, the caller decides)
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for storage errors."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class StoreLoadError(StoreError):
    """The store file exists but is unreadable or corrupt."""


class StoreWriteError(StoreError):
    """The store could not be written to disk."""


class KeyValueFile:
    """
    In-memory key-value map persisted as a JSON object.

    Usage:
        db = KeyValueFile.load_or_create(Path("bindings.json"))
        db.set("s-100", 42)
        db.dump()
    """

    def __init__(self, path: Path, data: Optional[Dict[str, Any]] = None):
        self.path = path
        self._data: Dict[str, Any] = data if data is not None else {}

    @classmethod
    def load(cls, path: Path) -> "KeyValueFile":
        """
        Load an existing store file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            StoreLoadError: If the file is unreadable or not a JSON object
        """
        logger.debug(f"Loading store from {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise
        except (OSError, ValueError) as e:
            raise StoreLoadError(path, str(e)) from e

        if not isinstance(data, dict):
            raise StoreLoadError(path, f"expected a JSON object, got {type(data).__name__}")

        logger.debug(f"Store loaded: {len(data)} keys")
        return cls(path, data)

    @classmethod
    def load_or_create(cls, path: Path) -> "KeyValueFile":
        """
        Load the store, or create an empty one if the file is absent.

        A freshly created store is dumped immediately so that the next
        load succeeds.
        """
        try:
            return cls.load(path)
        except FileNotFoundError:
            logger.info(f"Store file {path} not found, creating an empty one")
            db = cls(path)
            try:
                db.dump()
            except StoreWriteError as e:
                raise StoreLoadError(path, f"cannot create store: {e}") from e
            return db

    def get(self, key: str) -> Any:
        """Return a deep copy of the value stored at key, or None."""
        value = self._data.get(key)
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def rem(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        existed = key in self._data
        self._data.pop(key, None)
        return existed

    def keys(self):
        return list(self._data.keys())

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the full contents."""
        return copy.deepcopy(self._data)

    def restore(self, data: Dict[str, Any]) -> None:
        """Replace the in-memory contents with a previous snapshot."""
        self._data = copy.deepcopy(data)

    def dump(self) -> None:
        """
        Write the store to disk.

        Uses atomic write (write to temp, then rename) to prevent corruption.

        Raises:
            StoreWriteError: If the file could not be written
        """
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=4)
                f.write("\n")
            temp_path.replace(self.path)
        except OSError as e:
            raise StoreWriteError(self.path, str(e)) from e
        logger.debug(f"Store dumped: {len(self._data)} keys → {self.path.name}")
