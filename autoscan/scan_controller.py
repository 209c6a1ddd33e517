"""
Main orchestrator for the auto-scan loop.
Walks a source document page by page, applies the retry policy and circuit
breaker, and checkpoints after every state change.
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Set

from .config import ScanConfig
from .interfaces import PageTextSource
from .models import AutoScanState, PageResult, ScanResult, ScanStatus, SkippedPage
from .page_processor import PageProcessor
from .resilience.checkpoint_store import CheckpointStore
from .resilience.circuit_breaker import CircuitBreaker
from .resilience.retry_handler import RetryHandler
from .utils import get_storage_key, now_ms, validate_page_range

logger = logging.getLogger(__name__)

# Scope keys with a running loop in this process
_active_scopes: Set[str] = set()
_active_lock = threading.Lock()


class ScanAlreadyRunningError(RuntimeError):
    """Raised when start() is called for a scope that is already scanning."""


class ScanController:
    """State machine driving one deck/source scan."""

    def __init__(
        self,
        config: ScanConfig,
        checkpoints: CheckpointStore,
        processor: PageProcessor,
        text_source: Optional[PageTextSource] = None,
        retry_handler: Optional[RetryHandler] = None,
        breaker: Optional[CircuitBreaker] = None,
        on_change: Optional[Callable[[AutoScanState], None]] = None
    ):
        """
        Initialize controller with its collaborators.

        Args:
            config: ScanConfig for this deck/source pair
            checkpoints: CheckpointStore for resumable state
            processor: PageProcessor used for every page
            text_source: Page count provider, defaults to the processor's
            retry_handler: Retry policy, built from config.retry if None
            breaker: Circuit breaker, default threshold if None
            on_change: Called with a copy of the state after each persisted change
        """
        self.config = config
        self.checkpoints = checkpoints
        self.processor = processor
        self.text_source = text_source or processor.text_source
        self.retry_handler = retry_handler or RetryHandler(config.retry)
        self.breaker = breaker or CircuitBreaker()
        self.on_change = on_change

        self._lock = threading.RLock()
        self._state: Optional[AutoScanState] = None
        self._status = ScanStatus.IDLE
        self._stop_requested = False
        self._breaker_tripped = False
        self._discard = False
        self._persisting = False
        self._dirty = False
        self._started_at: Optional[str] = None
        self._start_page = 1
        self._end_page = 0

    @property
    def status(self) -> ScanStatus:
        return self._status

    @property
    def state(self) -> Optional[AutoScanState]:
        """Snapshot of the in-memory state."""
        with self._lock:
            return self._state.model_copy(deep=True) if self._state else None

    @property
    def scope_key(self) -> str:
        return get_storage_key(self.config.deck_id, self.config.source_id)

    def resumable_page(self) -> Optional[int]:
        """Page a resume would continue from, or None without a valid checkpoint."""
        saved = self.checkpoints.load(self.config.deck_id, self.config.source_id)
        return saved.current_page if saved else None

    def start(self, resume: bool = True, start_page: Optional[int] = None, end_page: Optional[int] = None) -> ScanResult:
        """
        Start or resume a scan and run it until it completes, pauses, or stops.

        Args:
            resume: Continue from the saved checkpoint when one exists
            start_page: First page of a fresh scan (ignored when resuming)
            end_page: Last page to scan, defaults to the document's last page

        Returns:
            ScanResult with statistics and final status

        Raises:
            ScanAlreadyRunningError: If this deck/source pair is already scanning
            ValueError: If the identifiers or the page range are invalid
        """
        key = self.scope_key
        with _active_lock:
            if key in _active_scopes:
                raise ScanAlreadyRunningError(f"A scan is already running for {key}")
            _active_scopes.add(key)

        try:
            self._prepare(resume, start_page, end_page)
            return self._run_loop()
        finally:
            with _active_lock:
                _active_scopes.discard(key)

    def _prepare(self, resume: bool, start_page: Optional[int], end_page: Optional[int]):
        """Load or initialize state and persist it as scanning."""
        deck_id, source_id = self.config.deck_id, self.config.source_id
        saved = self.checkpoints.load(deck_id, source_id) if resume else None
        end_page = end_page if end_page is not None else self.config.end_page

        if saved is not None:
            if start_page is not None:
                logger.info("Resuming at page %d, ignoring start page %d", saved.current_page, start_page)
            state = saved
            self.breaker.rearm(state)
            total_pages = state.total_pages
            end = end_page if end_page is not None else total_pages
            error = validate_page_range(1, end, total_pages)
            if error:
                raise ValueError(error)
            if end < min(state.current_page, total_pages):
                raise ValueError(
                    f"End page {end} is before the resume page {state.current_page}; "
                    "use a fresh start to rescan earlier pages"
                )
            logger.info(
                "Resuming from page %d: %d cards, %d skipped",
                state.current_page, state.stats.cards_created, len(state.skipped_pages)
            )
        else:
            if resume:
                logger.info("No saved progress, starting from page 1")
                first = 1
            else:
                first = start_page if start_page is not None else (self.config.start_page or 1)
            total_pages = self.text_source.get_page_count(source_id)
            if total_pages < 1:
                raise ValueError(f"Source {source_id} has no pages")
            end = end_page if end_page is not None else total_pages
            error = validate_page_range(first, end, total_pages)
            if error:
                raise ValueError(error)
            state = AutoScanState.fresh(total_pages, first)

        with self._lock:
            state.is_scanning = True
            self._state = state
            self._status = ScanStatus.SCANNING
            self._stop_requested = False
            self._breaker_tripped = False
            self._discard = False
            self._started_at = datetime.now().isoformat()
            self._start_page = state.current_page
            self._end_page = end
            self._persist()

    def _run_loop(self) -> ScanResult:
        """Process pages in order until the range ends or the run is halted."""
        try:
            while True:
                with self._lock:
                    if self._discard:
                        break
                    page = self._state.current_page
                    if page > self._end_page:
                        self._complete()
                        break
                    if not self._state.is_scanning:
                        break
                    total_pages = self._state.total_pages

                logger.info("Scanning page %d of %d", page, self._end_page)
                result = self.retry_handler.run_page(
                    self.processor, page, total_pages, self.config.include_next_page
                )

                with self._lock:
                    tripped = self._apply_result(result)
                    self._persist()
                    if tripped:
                        self._breaker_tripped = True
                        self._status = ScanStatus.STOPPED
                        break
                    self._state.current_page += 1
                    self._persist()
        except Exception:
            logger.exception("Scan loop aborted on page %s", self._state.current_page)
            with self._lock:
                self._status = ScanStatus.STOPPED
            raise

        with self._lock:
            if self._discard:
                return self._finish_reset()
            if self._status == ScanStatus.SCANNING:
                self._status = ScanStatus.STOPPED if self._stop_requested else ScanStatus.PAUSED
        return self._create_result()

    def _finish_reset(self) -> ScanResult:
        """Drop the state of a run that was reset while scanning."""
        self._status = ScanStatus.IDLE
        self.checkpoints.clear(self.config.deck_id, self.config.source_id)
        result = self._create_result()
        self._state = None
        logger.info("Scan reset, progress discarded")
        return result

    def _apply_result(self, result: PageResult) -> bool:
        """
        Fold one terminal page outcome into the state.

        Returns:
            True if the circuit breaker tripped
        """
        state = self._state
        state.stats.pages_processed += 1

        if result.succeeded:
            state.stats.cards_created += result.cards_created
            self.breaker.record_success(state)
            logger.info("Page %d done: +%d cards", result.page_number, result.cards_created)
            return False

        reason = (result.reason or "").strip()[:500] or "Unknown error"
        state.stats.errors_count += 1
        state.skipped_pages.append(SkippedPage(page_number=result.page_number, reason=reason))
        logger.warning("Skipped page %d after %d attempts: %s", result.page_number, result.attempts, reason)

        tripped = self.breaker.record_skip(state)
        if tripped:
            state.is_scanning = False
        return tripped

    def _complete(self):
        """Finish the session and drop its checkpoint."""
        self._state.is_scanning = False
        self._status = ScanStatus.COMPLETED
        self.checkpoints.clear(self.config.deck_id, self.config.source_id)
        logger.info(
            "Scan complete: %d cards from %d pages, %d skipped",
            self._state.stats.cards_created,
            self._state.stats.pages_processed,
            len(self._state.skipped_pages)
        )
        self._notify()

    def _persist(self):
        """
        Stamp and checkpoint the current state.

        A call re-entering while a save is on the stack (a signal handler
        pausing mid-write) only marks the state dirty; the outer call saves
        again once its own write has finished.
        """
        if self._discard:
            return
        if self._persisting:
            self._dirty = True
            return

        self._persisting = True
        try:
            while True:
                self._dirty = False
                self._state.last_updated = now_ms()
                self.checkpoints.save(self.config.deck_id, self.config.source_id, self._state)
                self._notify()
                if not self._dirty or self._discard:
                    break
        finally:
            self._persisting = False

    def _notify(self):
        if self.on_change is None:
            return
        try:
            self.on_change(self._state.model_copy(deep=True))
        except Exception:
            logger.exception("Progress observer failed")

    def pause(self) -> Optional[AutoScanState]:
        """
        Pause the scan, persisting immediately.
        A page already in flight finishes and is recorded first.

        Returns:
            Snapshot of the paused state, or None if there is nothing to pause
        """
        return self._halt(ScanStatus.PAUSED)

    def stop(self) -> Optional[AutoScanState]:
        """
        Stop the scan, persisting immediately. The checkpoint stays resumable.

        Returns:
            Snapshot of the stopped state, or None if there is nothing to stop
        """
        return self._halt(ScanStatus.STOPPED)

    def _halt(self, status: ScanStatus) -> Optional[AutoScanState]:
        with self._lock:
            if self._state is None or self._status in (ScanStatus.IDLE, ScanStatus.COMPLETED):
                return None
            self._state.is_scanning = False
            if status == ScanStatus.STOPPED:
                self._stop_requested = True
            if self._status in (ScanStatus.SCANNING, ScanStatus.PAUSED):
                self._status = status
            self._persist()
            logger.info("Scan %s at page %d", status.value, self._state.current_page)
            return self._state.model_copy(deep=True)

    def reset(self):
        """Discard all progress for this deck/source pair."""
        with self._lock:
            if self._status == ScanStatus.SCANNING:
                # Running loop exits after the in-flight page without saving
                self._state.is_scanning = False
                self._discard = True
            else:
                self._state = None
                self._status = ScanStatus.IDLE
            self.checkpoints.clear(self.config.deck_id, self.config.source_id)
            logger.info("Scan progress reset")

    def get_status(self) -> dict:
        """
        Get current scan status and statistics.

        Returns:
            Dict with status info
        """
        with self._lock:
            state = self._state
            if state is None:
                return {
                    'status': self._status.value,
                    'current_page': None,
                    'total_pages': None,
                    'stats': None,
                    'skipped': 0,
                    'consecutive_errors': 0,
                    'breaker_tripped': False
                }
            return {
                'status': self._status.value,
                'current_page': state.current_page,
                'total_pages': state.total_pages,
                'stats': state.stats.model_dump(),
                'skipped': len(state.skipped_pages),
                'consecutive_errors': state.consecutive_errors,
                'breaker_tripped': self._breaker_tripped
            }

    def _create_result(self) -> ScanResult:
        """Create ScanResult with calculated fields."""
        completed_at = datetime.now().isoformat()
        state = self._state

        # Calculate duration
        duration = 0.0
        if self._started_at:
            start = datetime.fromisoformat(self._started_at)
            end = datetime.fromisoformat(completed_at)
            duration = (end - start).total_seconds()

        # Calculate cards per hour
        cards_per_hour = 0.0
        if duration > 0:
            cards_per_hour = state.stats.cards_created / (duration / 3600)

        return ScanResult(
            status=self._status,
            deck_id=self.config.deck_id,
            source_id=self.config.source_id,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
            start_page=self._start_page,
            current_page=state.current_page,
            total_pages=state.total_pages,
            stats=state.stats.model_copy(),
            skipped_pages=[page.model_copy() for page in state.skipped_pages],
            breaker_tripped=self._breaker_tripped,
            duration_seconds=duration,
            cards_per_hour=cards_per_hour
        )
