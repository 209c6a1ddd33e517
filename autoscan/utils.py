"""
Shared utility functions for the auto-scan loop.
"""

import time
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote


STORAGE_KEY_PREFIX = 'autoscan_state'


def get_storage_key(deck_id: str, source_id: str) -> str:
    """
    Build the checkpoint key for a deck/source pair.

    Each identifier is percent-encoded before joining, so two different
    pairs can never produce the same key.

    Args:
        deck_id: Target deck identifier
        source_id: Source document identifier

    Returns:
        Storage key (e.g., autoscan_state:deck-1:source-9)

    Raises:
        ValueError: If either identifier is empty or not a string
    """
    for name, value in (('deck_id', deck_id), ('source_id', source_id)):
        if not isinstance(value, str) or not value:
            raise ValueError(f"{name} must be a non-empty string, got {value!r}")

    return f"{STORAGE_KEY_PREFIX}:{quote(deck_id, safe='')}:{quote(source_id, safe='')}"


def combine_page_text(text: str, next_text: str, next_page_number: int) -> str:
    """
    Append the following page's text after a delimiter naming that page.

    Args:
        text: Text of the current page
        next_text: Text of the following page
        next_page_number: Page number of the following page

    Returns:
        Combined text containing both inputs unchanged
    """
    return f"{text}\n\n--- Page {next_page_number} ---\n{next_text}"


def validate_page_range(start_page: int, end_page: int, total_pages: int) -> Optional[str]:
    """
    Validate a scan page range.

    Returns:
        Error message if invalid, None if valid
    """
    if start_page < 1:
        return 'Start page must be at least 1'
    if end_page > total_pages:
        return f'End page cannot exceed {total_pages}'
    if start_page > end_page:
        return 'Start page cannot be greater than end page'
    return None


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()
