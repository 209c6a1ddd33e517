"""
Key/value storage backends for scan checkpoints.

The checkpoint store only needs get/set/delete of opaque bytes, so any
persistent medium can back it.
"""

import hashlib
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised by a backend when the underlying medium fails."""


class KeyValueStore(ABC):
    """Contract for checkpoint persistence backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key. Deleting an absent key is not an error."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for tests and embedding."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data)


class FileKeyValueStore(KeyValueStore):
    """One file per key in a state directory, written atomically."""

    def __init__(self, state_dir: str = "autoscan_state"):
        """
        Initialize store with state directory.

        Args:
            state_dir: Directory to store checkpoint files
        """
        self.state_dir = Path(state_dir)
        self._ensure_dir()

    def _ensure_dir(self):
        """Ensure state directory exists."""
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """File holding the value for key. Keys are hashed so any string is a safe name."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.state_dir / f"{digest}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        path = self.path_for(key)
        # Atomic write: write to a temp file unique to this call, then replace
        temp_file = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.state_dir, prefix=f"{path.stem}.", suffix=".tmp", delete=False
            ) as f:
                temp_file = Path(f.name)
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            temp_file.replace(path)
        except OSError as e:
            if temp_file is not None and temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    logger.debug("Could not remove temp file %s", temp_file)
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e
