"""
Single-page work unit: text acquisition, draft generation, persistence,
and outcome classification.
"""

import logging
from typing import List, Optional

from .interfaces import DraftGenerator, DraftPersister, GenerationContext, PageTextSource
from .models import OutcomeKind, PageOutcome
from .utils import combine_page_text

logger = logging.getLogger(__name__)


class PageProcessor:
    """Runs one page through generation and persistence."""

    def __init__(
        self,
        text_source: PageTextSource,
        generator: DraftGenerator,
        persister: DraftPersister,
        deck_id: str,
        source_id: str,
        ai_mode: str = 'extract',
        default_tags: Optional[List[str]] = None,
        session_tags: Optional[List[str]] = None,
        min_text_length: int = 50
    ):
        self.text_source = text_source
        self.generator = generator
        self.persister = persister
        self.deck_id = deck_id
        self.source_id = source_id
        self.ai_mode = ai_mode
        self.default_tags = list(default_tags or [])
        self.session_tags = list(session_tags or [])
        self.min_text_length = min_text_length

    def get_text(self, page_number: int, total_pages: int, include_next_page: bool = False) -> str:
        """
        Acquire the text for a page, optionally followed by the next page.

        The next page is only appended when one exists.
        """
        text = self.text_source.get_page_text(self.source_id, page_number)
        if include_next_page and page_number < total_pages:
            next_text = self.text_source.get_page_text(self.source_id, page_number + 1)
            text = combine_page_text(text, next_text, page_number + 1)
        return text

    def process(self, page_number: int, total_pages: int, include_next_page: bool = False) -> PageOutcome:
        """
        Process one page and classify the result.

        Args:
            page_number: 1-based page to process
            total_pages: Page count of the source document
            include_next_page: Append the following page's text

        Returns:
            PageOutcome (success, empty_success or error)
        """
        try:
            text = self.get_text(page_number, total_pages, include_next_page)
        except Exception as e:
            return PageOutcome(kind=OutcomeKind.ERROR, error=f"Text extraction failed: {e}")

        if len(text.strip()) < self.min_text_length:
            logger.info("Page %d has too little text, nothing to generate", page_number)
            return PageOutcome(kind=OutcomeKind.EMPTY_SUCCESS)

        context = GenerationContext(
            deck_id=self.deck_id,
            page_number=page_number,
            mode=self.ai_mode,
            default_tags=self.default_tags
        )
        try:
            generated = self.generator.generate_drafts(text, context)
        except Exception as e:
            return PageOutcome(kind=OutcomeKind.ERROR, error=f"Generation failed: {e}")

        if not generated.ok:
            return PageOutcome(kind=OutcomeKind.ERROR, error=generated.error or "Generation failed")

        if not generated.drafts:
            return PageOutcome(kind=OutcomeKind.EMPTY_SUCCESS)

        try:
            persisted = self.persister.persist_drafts(self.deck_id, generated.drafts, self.session_tags)
        except Exception as e:
            return PageOutcome(kind=OutcomeKind.ERROR, error=f"Save failed: {e}")

        if not persisted.ok:
            return PageOutcome(kind=OutcomeKind.ERROR, error=persisted.error or "Save failed")

        if persisted.created_count == 0:
            return PageOutcome(kind=OutcomeKind.EMPTY_SUCCESS)

        return PageOutcome(kind=OutcomeKind.SUCCESS, cards_created=persisted.created_count)
