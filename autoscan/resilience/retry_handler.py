"""
Per-page retry policy: one retry, then skip.
"""

import logging
import time
from typing import Optional, TYPE_CHECKING

from ..config import RetryConfig
from ..models import OutcomeKind, PageOutcome, PageResult

if TYPE_CHECKING:
    from ..page_processor import PageProcessor

logger = logging.getLogger(__name__)


class RetryHandler:
    """Runs a page at most twice and reports its terminal outcome."""

    MAX_ATTEMPTS = 2  # initial attempt + one retry

    def __init__(self, config: Optional[RetryConfig] = None, sleep=time.sleep):
        """
        Initialize retry handler.

        Args:
            config: RetryConfig instance, uses defaults if None
            sleep: Function used to wait between attempts
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def run_page(
        self,
        processor: "PageProcessor",
        page_number: int,
        total_pages: int,
        include_next_page: bool = False
    ) -> PageResult:
        """
        Process a page with one retry on error.

        Args:
            processor: PageProcessor to run
            page_number: Page to process
            total_pages: Page count of the document
            include_next_page: Passed through to the processor

        Returns:
            PageResult; succeeded is False only after two error outcomes
        """
        last_error = None

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                outcome = processor.process(page_number, total_pages, include_next_page)
            except Exception as e:
                outcome = PageOutcome(kind=OutcomeKind.ERROR, error=str(e) or type(e).__name__)

            if outcome.succeeded:
                if attempt > 1:
                    logger.info("Page %d succeeded on retry", page_number)
                return PageResult(
                    page_number=page_number,
                    succeeded=True,
                    attempts=attempt,
                    cards_created=outcome.cards_created
                )

            last_error = outcome.error or "Unknown error"
            logger.warning(
                "Page %d attempt %d/%d failed: %s",
                page_number, attempt, self.MAX_ATTEMPTS, last_error
            )

            # Don't sleep after last attempt
            if attempt < self.MAX_ATTEMPTS and self.config.retry_delay > 0:
                self._sleep(self.config.retry_delay)

        return PageResult(
            page_number=page_number,
            succeeded=False,
            attempts=self.MAX_ATTEMPTS,
            reason=last_error
        )
