"""Tests for the retry policy and circuit breaker."""

from unittest.mock import MagicMock

import pytest

from autoscan.config import RetryConfig
from autoscan.models import AutoScanState, OutcomeKind, PageOutcome
from autoscan.resilience.circuit_breaker import CircuitBreaker
from autoscan.resilience.retry_handler import RetryHandler


def scripted_processor(*outcomes):
    processor = MagicMock()
    processor.process.side_effect = list(outcomes)
    return processor


ERROR = PageOutcome(kind=OutcomeKind.ERROR, error="boom")


class TestRetryHandler:
    """Test RetryHandler.run_page()."""

    def test_success_first_try(self):
        processor = scripted_processor(PageOutcome(kind=OutcomeKind.SUCCESS, cards_created=4))
        result = RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 2, 10)
        assert result.succeeded
        assert result.attempts == 1
        assert result.cards_created == 4
        processor.process.assert_called_once_with(2, 10, False)

    def test_success_on_retry(self):
        processor = scripted_processor(ERROR, PageOutcome(kind=OutcomeKind.SUCCESS, cards_created=2))
        result = RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 2, 10)
        assert result.succeeded
        assert result.attempts == 2
        assert result.cards_created == 2

    def test_empty_success_is_not_retried(self):
        processor = scripted_processor(PageOutcome(kind=OutcomeKind.EMPTY_SUCCESS))
        result = RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 1, 1)
        assert result.succeeded
        assert processor.process.call_count == 1

    def test_two_errors_skip_page(self):
        processor = scripted_processor(ERROR, PageOutcome(kind=OutcomeKind.ERROR, error="still broken"))
        result = RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 3, 10)
        assert not result.succeeded
        assert result.attempts == 2
        assert result.reason == "still broken"
        assert processor.process.call_count == 2

    def test_exceptions_count_as_errors(self):
        processor = scripted_processor(RuntimeError("socket closed"), RuntimeError("socket closed"))
        result = RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 1, 1)
        assert not result.succeeded
        assert result.reason == "socket closed"

    def test_sleeps_between_attempts_only(self):
        sleep = MagicMock()
        processor = scripted_processor(ERROR, ERROR)
        RetryHandler(RetryConfig(retry_delay=1.5), sleep=sleep).run_page(processor, 1, 1)
        sleep.assert_called_once_with(1.5)

    def test_passes_include_next_page(self):
        processor = scripted_processor(PageOutcome(kind=OutcomeKind.SUCCESS, cards_created=1))
        RetryHandler(RetryConfig(retry_delay=0)).run_page(processor, 4, 9, include_next_page=True)
        processor.process.assert_called_once_with(4, 9, True)


class TestCircuitBreaker:
    """Test CircuitBreaker bookkeeping on the state."""

    def test_trips_on_third_consecutive_skip(self):
        breaker = CircuitBreaker()
        state = AutoScanState.fresh(total_pages=10)
        assert breaker.record_skip(state) is False
        assert breaker.record_skip(state) is False
        assert breaker.record_skip(state) is True
        assert state.consecutive_errors == 3
        assert breaker.is_open(state)

    def test_success_resets_streak(self):
        breaker = CircuitBreaker()
        state = AutoScanState.fresh(total_pages=10)
        breaker.record_skip(state)
        breaker.record_skip(state)
        breaker.record_success(state)
        assert state.consecutive_errors == 0
        assert breaker.record_skip(state) is False

    def test_rearm_only_when_open(self):
        breaker = CircuitBreaker()
        state = AutoScanState.fresh(total_pages=10)
        breaker.record_skip(state)
        breaker.rearm(state)
        assert state.consecutive_errors == 1

        breaker.record_skip(state)
        breaker.record_skip(state)
        breaker.rearm(state)
        assert state.consecutive_errors == 0

    def test_lower_threshold(self):
        breaker = CircuitBreaker(threshold=1)
        state = AutoScanState.fresh(total_pages=10)
        assert breaker.record_skip(state) is True

    @pytest.mark.parametrize("threshold", [0, 4])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ValueError):
            CircuitBreaker(threshold=threshold)
