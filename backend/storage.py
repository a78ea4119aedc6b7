"""
CollaboraX — Durable key-value storage

Stands in for browser local storage: string values under fixed keys.
Two backends: a directory of files (one file per key) and an in-memory
dict with an optional byte quota.
"""

import os
import logging
import tempfile
from typing import Dict, Optional

from errors import StorageError, StorageQuotaExceeded

logger = logging.getLogger("collaborax.storage")


class KeyValueStorage:
    """Interface for the durable blob store"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage. Raises StorageQuotaExceeded past quota_bytes."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def _used_bytes(self, excluding: Optional[str] = None) -> int:
        return sum(
            len(k.encode("utf-8")) + len(v.encode("utf-8"))
            for k, v in self._data.items()
            if k != excluding
        )

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            needed = self._used_bytes(excluding=key) + len(key.encode("utf-8")) + len(value.encode("utf-8"))
            if needed > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing '{key}' needs {needed} bytes, quota is {self.quota_bytes}"
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


class FileStorage(KeyValueStorage):
    """One UTF-8 file per key inside a directory, replaced atomically on write"""

    def __init__(self, directory: str):
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return os.path.join(self.directory, safe)

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Could not write '{key}': {e}") from e
        logger.debug(f"Wrote {len(value)} chars to {path}")

    def remove(self, key: str) -> None:
        try:
            os.unlink(self._path(key))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove '{key}': {e}") from e
