"""
Consecutive-skip circuit breaker.
Halts the scan after too many pages in a row exhaust their retries.
"""

import logging

from ..models import AutoScanState, MAX_CONSECUTIVE_ERRORS

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Tracks consecutive skips on the scan state and trips at a threshold."""

    def __init__(self, threshold: int = MAX_CONSECUTIVE_ERRORS):
        if not 1 <= threshold <= MAX_CONSECUTIVE_ERRORS:
            raise ValueError(f"threshold must be between 1 and {MAX_CONSECUTIVE_ERRORS}")
        self.threshold = threshold

    def record_success(self, state: AutoScanState):
        """Any success closes the streak."""
        state.consecutive_errors = 0

    def record_skip(self, state: AutoScanState) -> bool:
        """
        Count a skipped page.

        Returns:
            True if the breaker tripped on this skip
        """
        state.consecutive_errors += 1
        if self.is_open(state):
            logger.error(
                "Circuit breaker tripped after %d consecutive skipped pages",
                state.consecutive_errors
            )
            return True
        return False

    def is_open(self, state: AutoScanState) -> bool:
        return state.consecutive_errors >= self.threshold

    def rearm(self, state: AutoScanState):
        """Reset a tripped breaker on explicit user resume."""
        if self.is_open(state):
            logger.info("Re-arming circuit breaker on resume (was %d)", state.consecutive_errors)
            state.consecutive_errors = 0
