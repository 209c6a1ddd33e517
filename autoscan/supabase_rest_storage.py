"""
Supabase REST API storage for the auto-scan loop.
Holds the checkpoint key/value table and the bulk card insert, both over
HTTPS instead of a direct PostgreSQL connection.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

import requests

from .interfaces import DraftPersister
from .kv_storage import KeyValueStore, StorageError
from .models import McqDraft, PersistResult

logger = logging.getLogger(__name__)


class SupabaseRestClient:
    """Shared connection settings for Supabase REST tables."""

    def __init__(self, url: str = None, key: str = None, timeout: float = 10):
        """
        Initialize Supabase REST access.

        Args:
            url: Supabase project URL (e.g., https://xxx.supabase.co)
            key: Supabase API key (anon or service role key)
            timeout: Per-request timeout in seconds
        """
        self.url = (url or os.getenv('SUPABASE_URL', '')).rstrip('/')
        self.key = key or os.getenv('SUPABASE_KEY', '')
        self.timeout = timeout

        if not self.url or not self.key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")

        self.headers = {
            'apikey': self.key,
            'Authorization': f'Bearer {self.key}',
            'Content-Type': 'application/json',
            'Prefer': 'return=representation'
        }

        self.base_url = f"{self.url}/rest/v1"

    def table_url(self, table: str) -> str:
        return f"{self.base_url}/{table}"


class SupabaseRestKeyValueStore(KeyValueStore):
    """Checkpoint storage in a Supabase table (key text primary key, value text)."""

    TABLE = 'autoscan_checkpoints'

    def __init__(self, url: str = None, key: str = None, client: Optional[SupabaseRestClient] = None):
        self.client = client or SupabaseRestClient(url, key)

    def get(self, key: str) -> Optional[bytes]:
        try:
            response = requests.get(
                self.client.table_url(self.TABLE),
                headers=self.client.headers,
                params={'key': f'eq.{key}', 'select': 'value'},
                timeout=self.client.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Network error reading checkpoint: {e}") from e

        if response.status_code not in (200, 206):
            raise StorageError(f"Failed to read checkpoint: HTTP {response.status_code}")

        data = response.json()
        if not data:
            return None
        value = data[0].get('value')
        return value.encode('utf-8') if isinstance(value, str) else None

    def set(self, key: str, value: bytes) -> None:
        try:
            text = value.decode('utf-8')
        except UnicodeDecodeError as e:
            raise StorageError(f"Checkpoint payload is not UTF-8: {e}") from e

        upsert_headers = {
            **self.client.headers,
            'Prefer': 'resolution=merge-duplicates,return=minimal'
        }
        try:
            response = requests.post(
                self.client.table_url(self.TABLE),
                headers=upsert_headers,
                json={
                    'key': key,
                    'value': text,
                    'updated_at': datetime.now(timezone.utc).isoformat()
                },
                timeout=self.client.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Network error writing checkpoint: {e}") from e

        if response.status_code not in (200, 201, 204):
            raise StorageError(f"Failed to write checkpoint: HTTP {response.status_code}")

    def delete(self, key: str) -> None:
        try:
            response = requests.delete(
                self.client.table_url(self.TABLE),
                headers={**self.client.headers, 'Prefer': 'return=minimal'},
                params={'key': f'eq.{key}'},
                timeout=self.client.timeout
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Network error deleting checkpoint: {e}") from e

        if response.status_code not in (200, 202, 204):
            raise StorageError(f"Failed to delete checkpoint: HTTP {response.status_code}")


def merge_tags(draft_tags: List[str], session_tags: List[str]) -> List[str]:
    """Union of draft and session tags, first occurrence wins."""
    merged = []
    seen = set()
    for tag in list(draft_tags) + list(session_tags):
        name = tag.strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            merged.append(name)
    return merged


class SupabaseRestDraftPersister(DraftPersister):
    """Bulk-inserts accepted drafts into the card_templates table."""

    TABLE = 'card_templates'

    def __init__(self, url: str = None, key: str = None, client: Optional[SupabaseRestClient] = None):
        self.client = client or SupabaseRestClient(url, key, timeout=30)

    def _to_row(self, deck_id: str, draft: McqDraft, session_tags: List[str]) -> Dict[str, Any]:
        return {
            'deck_template_id': deck_id,
            'stem': draft.stem,
            'options': draft.options,
            'correct_index': draft.correct_index,
            'explanation': draft.explanation,
            'tags': merge_tags(draft.tags, session_tags),
        }

    def persist_drafts(self, deck_id: str, drafts: List[McqDraft], session_tags: List[str]) -> PersistResult:
        """
        Insert all drafts in one request.

        Args:
            deck_id: Target deck template ID
            drafts: Validated drafts to store
            session_tags: Tags applied to every card of this session

        Returns:
            PersistResult with the number of cards created
        """
        if not drafts:
            return PersistResult(ok=True, created_count=0)

        rows = [self._to_row(deck_id, draft, session_tags) for draft in drafts]

        try:
            response = requests.post(
                self.client.table_url(self.TABLE),
                headers={**self.client.headers, 'Prefer': 'return=minimal'},
                json=rows,
                timeout=self.client.timeout
            )
        except requests.exceptions.Timeout:
            return PersistResult(ok=False, error="Request timeout")
        except requests.exceptions.RequestException as e:
            return PersistResult(ok=False, error=f"Network error - {e}")

        if response.status_code not in (200, 201, 204):
            return PersistResult(
                ok=False,
                error=f"HTTP {response.status_code}: {response.text[:200]}"
            )

        logger.debug("Inserted %d cards into deck %s", len(rows), deck_id)
        return PersistResult(ok=True, created_count=len(rows))
