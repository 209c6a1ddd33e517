"""
Contracts for the external collaborators of the scan loop.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from .models import GenerationResult, McqDraft, PersistResult


@dataclass(frozen=True)
class GenerationContext:
    """Per-call context for draft generation."""
    deck_id: str
    page_number: int
    mode: str = 'extract'
    default_tags: List[str] = field(default_factory=list)


class PageTextSource(ABC):
    """Provides the text of individual pages of a source document."""

    @abstractmethod
    def get_page_count(self, source_id: str) -> int:
        pass

    @abstractmethod
    def get_page_text(self, source_id: str, page_number: int) -> str:
        """
        Return the text of a 1-based page.
        Failures are raised and surface as page errors.
        """
        pass


class DraftGenerator(ABC):
    """Turns page text into draft questions."""

    @abstractmethod
    def generate_drafts(self, text: str, context: GenerationContext) -> GenerationResult:
        """
        Generate drafts from text.
        An ok result with zero drafts is a valid, empty answer.
        """
        pass


class DraftPersister(ABC):
    """Stores accepted drafts in the target deck."""

    @abstractmethod
    def persist_drafts(self, deck_id: str, drafts: List[McqDraft], session_tags: List[str]) -> PersistResult:
        pass
