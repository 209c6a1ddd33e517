"""
Diagnostic export of a scan session: skipped pages, stats and scope.
"""

from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .models import AutoScanState, AutoScanStats, SkippedPage
from .utils import utc_now_iso


class SessionLog(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    skipped_pages: List[SkippedPage]
    stats: AutoScanStats
    timestamp: str
    deck_id: str
    source_id: str


def _session_log(state: AutoScanState, deck_id: str, source_id: str) -> SessionLog:
    return SessionLog(
        skipped_pages=[page.model_copy() for page in state.skipped_pages],
        stats=state.stats.model_copy(),
        timestamp=utc_now_iso(),
        deck_id=deck_id,
        source_id=source_id,
    )


def build_log(state: AutoScanState, deck_id: str, source_id: str) -> dict:
    """
    Build the export document for a state without touching it.

    Returns:
        Dict keyed skippedPages, stats, timestamp, deckId, sourceId
    """
    return _session_log(state, deck_id, source_id).model_dump(mode="json", by_alias=True)


def export_log(state: AutoScanState, deck_id: str, source_id: str) -> str:
    """Export the session log as indented JSON."""
    return _session_log(state, deck_id, source_id).model_dump_json(by_alias=True, indent=2)


def write_log(path: Union[str, Path], state: AutoScanState, deck_id: str, source_id: str) -> Path:
    """Write the session log to path, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(export_log(state, deck_id, source_id), encoding="utf-8")
    return path
