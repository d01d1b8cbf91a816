from __future__ import annotations

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..exceptions import StorageError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(ABC):
    """Durable key-value store holding JSON-serializable records."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the raw text stored under ``key``, or None if absent.

        Raises StorageError if the store cannot be read.
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Raises StorageError on failure; the previous value must survive.
        """

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if something was deleted."""


class JsonFileStore(KeyValueStore):
    """Filesystem-backed store: one ``<key>.json`` file per record.

    Writes go to a temporary file which is fsynced and then moved over the
    target with ``os.replace`` so a crash never leaves a partial record.
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise StorageError(f"Invalid store key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return f.read()
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            logger.debug("Writing record %s to temporary file: %s", key, tmp_path)
            with tmp_path.open("w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc
        return True


class InMemoryStore(KeyValueStore):
    """Test/deterministic store that holds records in memory only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = value if isinstance(value, str) else json.dumps(value)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None
