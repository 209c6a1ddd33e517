"""
Page text acquisition from PDF files using PyMuPDF.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import pymupdf

from .interfaces import PageTextSource

logger = logging.getLogger(__name__)


class PdfPageTextSource(PageTextSource):
    """Serves page text for registered PDF files, keyed by source ID."""

    def __init__(self, documents: Optional[Dict[str, str]] = None):
        """
        Args:
            documents: Mapping of source ID to PDF file path
        """
        self._paths: Dict[str, Path] = {}
        self._open: Dict[str, "pymupdf.Document"] = {}
        self._lock = threading.Lock()
        for source_id, path in (documents or {}).items():
            self.register(source_id, path)

    def register(self, source_id: str, path: str):
        pdf_path = Path(path)
        if not pdf_path.exists():
            raise ValueError(f"PDF not found for source {source_id}: {pdf_path}")
        self._paths[source_id] = pdf_path

    def _document(self, source_id: str) -> "pymupdf.Document":
        with self._lock:
            doc = self._open.get(source_id)
            if doc is None:
                if source_id not in self._paths:
                    raise KeyError(f"Unknown source: {source_id}")
                doc = pymupdf.open(str(self._paths[source_id]))
                self._open[source_id] = doc
                logger.info("Opened %s (%d pages)", self._paths[source_id].name, len(doc))
            return doc

    def get_page_count(self, source_id: str) -> int:
        return len(self._document(source_id))

    def get_page_text(self, source_id: str, page_number: int) -> str:
        doc = self._document(source_id)
        if not 1 <= page_number <= len(doc):
            raise IndexError(f"Page {page_number} out of range (1-{len(doc)})")
        return doc[page_number - 1].get_text()

    def close(self):
        """Close all open documents."""
        with self._lock:
            for doc in self._open.values():
                doc.close()
            self._open.clear()
