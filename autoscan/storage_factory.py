"""
Storage factory to create the checkpoint backend and collaborators from the environment.
Backend is selected with AUTOSCAN_STATE_BACKEND: file (default), sql or supabase.
"""

import os

from .kv_storage import FileKeyValueStore, KeyValueStore
from .resilience.checkpoint_store import CheckpointStore

VALID_BACKENDS = ['file', 'sql', 'supabase']
DEFAULT_STATE_DIR = 'autoscan_state'


def _require_supabase_env():
    supabase_url = os.getenv('SUPABASE_URL')
    supabase_key = os.getenv('SUPABASE_KEY')

    if not supabase_url or not supabase_key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_KEY environment variables must be set. "
            "Check your .env file."
        )
    return supabase_url, supabase_key


def create_kv_store(backend: str = None) -> KeyValueStore:
    """
    Create the key/value store holding checkpoints.

    Args:
        backend: Override for AUTOSCAN_STATE_BACKEND

    Raises:
        ValueError: If the backend is unknown or its variables are not set
    """
    backend = (backend or os.getenv('AUTOSCAN_STATE_BACKEND') or 'file').lower()
    state_dir = os.getenv('AUTOSCAN_STATE_DIR') or DEFAULT_STATE_DIR

    if backend == 'file':
        return FileKeyValueStore(state_dir)

    if backend == 'sql':
        from .kv_storage_db import SqlKeyValueStore
        database_url = os.getenv('AUTOSCAN_DB_URL') or f"sqlite:///{state_dir}/checkpoints.db"
        return SqlKeyValueStore(database_url)

    if backend == 'supabase':
        from .supabase_rest_storage import SupabaseRestKeyValueStore
        supabase_url, supabase_key = _require_supabase_env()
        return SupabaseRestKeyValueStore(supabase_url, supabase_key)

    raise ValueError(f"Invalid state backend: {backend}. Must be one of {VALID_BACKENDS}")


def create_checkpoint_store(backend: str = None) -> CheckpointStore:
    """Create a CheckpointStore over the configured backend."""
    return CheckpointStore(create_kv_store(backend))


def create_draft_persister():
    """
    Create the Supabase REST draft persister.

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_KEY is not set
    """
    from .supabase_rest_storage import SupabaseRestDraftPersister
    supabase_url, supabase_key = _require_supabase_env()
    return SupabaseRestDraftPersister(supabase_url, supabase_key)


def create_draft_generator():
    """
    Create the OpenAI draft generator.

    Raises:
        ValueError: If OPENAI_API_KEY is not set
    """
    from .draft_generator import OpenAIDraftGenerator
    return OpenAIDraftGenerator(
        api_key=os.getenv('OPENAI_API_KEY'),
        model=os.getenv('AUTOSCAN_MODEL')
    )
