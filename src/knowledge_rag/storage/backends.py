"""Storage roots — key-addressable byte stores holding persisted units.

Adding a new backend (S3, a database table …) only requires subclassing
:class:`StorageRoot` and implementing the three abstract methods.  The
document store above it is backend-agnostic.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

_VALID_KEY = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]*$")


def is_valid_key(key: str) -> bool:
    return bool(_VALID_KEY.match(key)) and ".." not in key


def validate_key(key: str) -> str:
    """Reject keys that could escape the root (``..``, separators, empties)."""
    if not is_valid_key(key):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


class StorageRoot(ABC):
    """Backend-agnostic key/value interface.

    ``put`` must be atomic per key: a concurrent ``get`` observes either the
    previous value or the complete new one.
    """

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def put(self, key: str, data: bytes) -> None:
        """Store *data* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under *key*.

        Raises ``KeyError`` when the key does not exist (including when it
        was removed since it was listed).
        """
        ...

    @abstractmethod
    def list_keys(self) -> list[str]:
        """Return every key currently stored.

        Raises ``OSError`` when the root itself cannot be enumerated.
        """
        ...

    # -- optional overrides ---------------------------------------------------

    def health_check(self) -> bool:
        """Return ``True`` when the root can be enumerated."""
        try:
            self.list_keys()
            return True
        except OSError:
            logger.warning("%s health-check failed", type(self).__name__, exc_info=True)
            return False


class LocalDirectoryRoot(StorageRoot):
    """One ``<key>.json`` file per key inside a directory.

    Writes go to a temporary file in the same directory which is then
    renamed over the target with :func:`os.replace`, so readers never see a
    half-written file.

    Parameters
    ----------
    path:
        Directory holding the files.
    create:
        Create *path* (and parents) if it does not exist yet.
    """

    suffix = ".json"

    def __init__(self, path: str | Path, *, create: bool = True) -> None:
        self.path = Path(path)
        if create:
            self.path.mkdir(parents=True, exist_ok=True)

    def _file_for(self, key: str) -> Path:
        return self.path / f"{validate_key(key)}{self.suffix}"

    def put(self, key: str, data: bytes) -> None:
        target = self._file_for(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.path)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> bytes:
        try:
            return self._file_for(key).read_bytes()
        except FileNotFoundError:
            raise KeyError(key) from None

    def list_keys(self) -> list[str]:
        if not self.path.is_dir():
            raise FileNotFoundError(f"storage directory {self.path} does not exist")
        keys: list[str] = []
        for entry in os.scandir(self.path):
            if not entry.is_file() or not entry.name.endswith(self.suffix) or entry.name.startswith("."):
                continue
            key = entry.name[: -len(self.suffix)]
            if not is_valid_key(key):
                logger.warning("Ignoring %s in %s: not a valid storage key", entry.name, self.path)
                continue
            keys.append(key)
        return sorted(keys)

    def __repr__(self) -> str:
        return f"LocalDirectoryRoot({str(self.path)!r})"


class InMemoryRoot(StorageRoot):
    """Thread-safe dict-backed root for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, bytes] | None = None) -> None:
        self._data: dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes) -> None:
        validate_key(key)
        with self._lock:
            self._data[key] = bytes(data)

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._data[key]

    def list_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)
