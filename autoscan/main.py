"""
Main entry point for the auto-scan ingestion loop.
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .config import RetryConfig, ScanConfig, VALID_AI_MODES
from .models import ScanResult, ScanStatus
from .page_processor import PageProcessor
from .page_source import PdfPageTextSource
from .resilience.checkpoint_store import CheckpointStatus, CheckpointStore
from .scan_controller import ScanAlreadyRunningError, ScanController
from .session_log import write_log
from .storage_factory import create_checkpoint_store, create_draft_generator, create_draft_persister


# Global controller for signal handling
_controller: Optional[ScanController] = None
_signals_received = 0


def signal_handler(signum, frame):
    """Pause on the first SIGINT/SIGTERM, exit on the second."""
    global _signals_received
    _signals_received += 1

    if _controller is None or _signals_received > 1:
        print("\nExiting immediately...")
        sys.exit(130)

    print("\n\n" + "=" * 60)
    print("STOP SIGNAL RECEIVED - PAUSING AFTER CURRENT PAGE")
    print("=" * 60)
    _controller.pause()
    print("Progress saved. Press Ctrl+C again to exit without waiting.")


def load_environment():
    """Load variables from a .env file in the working directory, if any."""
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path)
        print("✓ Loaded environment from .env")
    else:
        print("Using environment variables from system")


def show_status(checkpoints: CheckpointStore, deck_id: str, source_id: str) -> int:
    read = checkpoints.read(deck_id, source_id)
    if read.status == CheckpointStatus.ABSENT:
        print(f"No saved progress for {deck_id}/{source_id}")
        return 0
    if read.status == CheckpointStatus.CORRUPT:
        print(f"Saved progress for {deck_id}/{source_id} was corrupt and has been cleared")
        return 0

    state = read.state
    print("=" * 60)
    print("SAVED PROGRESS")
    print("=" * 60)
    print(f"Resume page: {state.current_page} / {state.total_pages}")
    print(f"Running:     {state.is_scanning}")
    print(f"Cards:       {state.stats.cards_created}")
    print(f"Processed:   {state.stats.pages_processed}")
    print(f"Errors:      {state.stats.errors_count}")
    print(f"Skipped:     {len(state.skipped_pages)}")
    print(f"Streak:      {state.consecutive_errors} consecutive errors")
    return 0


def export_session(checkpoints: CheckpointStore, deck_id: str, source_id: str, path: str) -> int:
    state = checkpoints.load(deck_id, source_id)
    if state is None:
        print(f"No saved progress for {deck_id}/{source_id}, nothing to export")
        return 1
    written = write_log(path, state, deck_id, source_id)
    print(f"✓ Session log written to {written}")
    return 0


def print_summary(result: ScanResult):
    titles = {
        ScanStatus.COMPLETED: "SCAN COMPLETE",
        ScanStatus.PAUSED: "SCAN PAUSED",
        ScanStatus.STOPPED: "SCAN STOPPED",
        ScanStatus.IDLE: "SCAN RESET",
    }
    print("\n" + "=" * 60)
    print(titles.get(result.status, "SCAN FINISHED"))
    print("=" * 60)
    print(f"Deck:        {result.deck_id}")
    print(f"Source:      {result.source_id}")
    print(f"Pages:       {result.start_page} -> {result.current_page} of {result.total_pages}")
    print(f"Duration:    {result.duration_seconds / 60:.1f} minutes")
    print(f"Cards:       {result.stats.cards_created}")
    print(f"Processed:   {result.stats.pages_processed}")
    print(f"Errors:      {result.stats.errors_count}")
    print(f"Speed:       {result.cards_per_hour:.1f} cards/hour")

    if result.breaker_tripped:
        print("\nStopped after too many consecutive failed pages. Resume to retry.")
    elif result.status in (ScanStatus.PAUSED, ScanStatus.STOPPED):
        print(f"\nResume with the same --deck/--source to continue at page {result.current_page}.")

    if result.skipped_pages:
        print(f"\nSkipped pages ({len(result.skipped_pages)}):")
        for skipped in result.skipped_pages[:10]:
            print(f"  - page {skipped.page_number}: {skipped.reason[:50]}")
        if len(result.skipped_pages) > 10:
            print(f"  ... and {len(result.skipped_pages) - 10} more")


def run_scan(args, checkpoints: CheckpointStore) -> int:
    """Run a scan with ScanController."""
    global _controller

    if not args.pdf:
        print("✗ --pdf is required to scan")
        return 2

    config = ScanConfig(
        deck_id=args.deck,
        source_id=args.source,
        include_next_page=args.include_next_page,
        ai_mode=args.mode,
        default_tags=args.default_tag or [],
        session_tags=args.tag or [],
        retry=RetryConfig(retry_delay=args.retry_delay)
    )

    text_source = PdfPageTextSource({args.source: args.pdf})
    processor = PageProcessor(
        text_source=text_source,
        generator=create_draft_generator(),
        persister=create_draft_persister(),
        deck_id=config.deck_id,
        source_id=config.source_id,
        ai_mode=config.ai_mode,
        default_tags=config.default_tags,
        session_tags=config.session_tags,
        min_text_length=config.min_text_length
    )
    _controller = ScanController(config, checkpoints, processor, text_source)

    resume = not args.no_resume
    saved_page = _controller.resumable_page() if resume else None
    if saved_page is not None:
        print(f"Resuming from page {saved_page}")
        if args.start_page is not None:
            print("  (--start-page is ignored when resuming; use --no-resume to start over)")

    # Set up signal handlers
    signal.signal(signal.SIGINT, signal_handler)
    # SIGTERM is not reliably available on Windows
    if hasattr(signal, 'SIGTERM') and sys.platform != 'win32':
        signal.signal(signal.SIGTERM, signal_handler)

    try:
        result = _controller.start(resume=resume, start_page=args.start_page, end_page=args.end_page)
    except ScanAlreadyRunningError as e:
        print(f"✗ {e}")
        return 1
    finally:
        text_source.close()

    print_summary(result)
    return 1 if result.status == ScanStatus.STOPPED else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Auto-scan a PDF into multiple-choice card drafts',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan a document (resumes automatically)
  autoscan --deck biology --source ch3 --pdf chapter3.pdf

  # Start over from page 10, ignoring saved progress
  autoscan --deck biology --source ch3 --pdf chapter3.pdf --no-resume --start-page 10

  # Generate new questions with two pages of context, tagging every card
  autoscan --deck biology --source ch3 --pdf chapter3.pdf --mode generate --include-next-page --tag ch3

  # Inspect and manage saved progress
  autoscan --deck biology --source ch3 --status
  autoscan --deck biology --source ch3 --export logs/ch3.json
  autoscan --deck biology --source ch3 --reset
"""
    )

    # Scope
    parser.add_argument('--deck', required=True, help='Target deck ID')
    parser.add_argument('--source', required=True, help='Source document ID')
    parser.add_argument('--pdf', type=str, help='Path of the source PDF (required to scan)')

    # Resume control
    parser.add_argument(
        '--no-resume',
        action='store_true',
        help='Start fresh instead of resuming from saved progress'
    )
    parser.add_argument('--start-page', type=int, help='First page of a fresh scan (default: 1)')
    parser.add_argument('--end-page', type=int, help='Last page to scan (default: last page)')

    # Page handling
    parser.add_argument(
        '--include-next-page',
        action='store_true',
        help='Send each page together with the following page'
    )
    parser.add_argument(
        '--mode',
        type=str,
        default='extract',
        choices=VALID_AI_MODES,
        help='extract existing questions or generate new ones (default: extract)'
    )
    parser.add_argument('--tag', action='append', help='Tag added to every saved card (repeatable)')
    parser.add_argument('--default-tag', action='append', help='Tag suggested to the generator (repeatable)')

    # Retry settings
    parser.add_argument(
        '--retry-delay',
        type=float,
        default=1.0,
        help='Seconds to wait before retrying a failed page (default: 1.0)'
    )

    # Maintenance
    parser.add_argument('--status', action='store_true', help='Show saved progress and exit')
    parser.add_argument('--export', metavar='PATH', help='Write the session log of saved progress and exit')
    parser.add_argument('--reset', action='store_true', help='Discard saved progress and exit')

    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
    load_environment()

    try:
        checkpoints = create_checkpoint_store()

        if args.status:
            return show_status(checkpoints, args.deck, args.source)
        if args.export:
            return export_session(checkpoints, args.deck, args.source, args.export)
        if args.reset:
            checkpoints.clear(args.deck, args.source)
            print(f"✓ Cleared saved progress for {args.deck}/{args.source}")
            return 0

        return run_scan(args, checkpoints)
    except ValueError as e:
        print(f"✗ {e}")
        return 2


if __name__ == '__main__':
    sys.exit(main())
