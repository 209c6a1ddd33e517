"""
Checkpoint persistence for resumable scans.
Validates stored state on load and clears corrupt entries.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..kv_storage import KeyValueStore
from ..models import AutoScanState
from ..utils import get_storage_key

logger = logging.getLogger(__name__)


class CheckpointStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    CORRUPT = "corrupt"


@dataclass
class CheckpointRead:
    """Tagged result of reading a checkpoint."""
    status: CheckpointStatus
    state: Optional[AutoScanState] = None


class CheckpointStore:
    """Saves, loads and clears scan state per deck/source pair."""

    def __init__(self, store: KeyValueStore):
        """
        Args:
            store: Backend holding the serialized checkpoints
        """
        self.store = store

    def save(self, deck_id: str, source_id: str, state: AutoScanState):
        """
        Persist state. Write failures are logged, never raised.

        Raises:
            ValueError: If deck_id or source_id is empty
        """
        key = get_storage_key(deck_id, source_id)
        try:
            self.store.set(key, state.to_json())
        except Exception as e:
            logger.warning("Failed to save checkpoint %s: %s", key, e)

    def read(self, deck_id: str, source_id: str) -> CheckpointRead:
        """
        Read and validate the checkpoint.

        Corrupt payloads (bad JSON, wrong shape, non-object values) are
        cleared so later reads report absent.
        """
        key = get_storage_key(deck_id, source_id)
        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning("Failed to read checkpoint %s: %s", key, e)
            return CheckpointRead(CheckpointStatus.ABSENT)

        if raw is None:
            return CheckpointRead(CheckpointStatus.ABSENT)

        try:
            state = AutoScanState.model_validate_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Corrupted checkpoint %s, clearing: %s", key, e)
            self._clear_key(key)
            return CheckpointRead(CheckpointStatus.CORRUPT)

        return CheckpointRead(CheckpointStatus.OK, state)

    def load(self, deck_id: str, source_id: str) -> Optional[AutoScanState]:
        """
        Load a valid checkpoint.

        Returns:
            AutoScanState if present and valid, None otherwise
        """
        return self.read(deck_id, source_id).state

    def clear(self, deck_id: str, source_id: str):
        """Remove the checkpoint. Failures are logged, never raised."""
        self._clear_key(get_storage_key(deck_id, source_id))

    def _clear_key(self, key: str):
        try:
            self.store.delete(key)
        except Exception as e:
            logger.warning("Failed to clear checkpoint %s: %s", key, e)
