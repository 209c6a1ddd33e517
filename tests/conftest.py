"""Shared fixtures: in-memory storage and fakes for the three collaborators."""

from typing import Callable, Dict, List, Optional

import pytest

from autoscan.config import RetryConfig, ScanConfig
from autoscan.interfaces import DraftGenerator, DraftPersister, GenerationContext, PageTextSource
from autoscan.kv_storage import MemoryKeyValueStore
from autoscan.models import GenerationResult, McqDraft, PersistResult
from autoscan.page_processor import PageProcessor
from autoscan.resilience.checkpoint_store import CheckpointStore
from autoscan.resilience.retry_handler import RetryHandler
from autoscan.scan_controller import ScanController

DECK_ID = "deck-1"
SOURCE_ID = "source-1"


def page_text(page_number: int) -> str:
    return f"Page {page_number}: " + "the mitochondria is the powerhouse of the cell. " * 3


def make_draft(stem: str = "What is 2 + 2?", tags: Optional[List[str]] = None) -> McqDraft:
    return McqDraft(stem=stem, options=["3", "4", "5"], correct_index=1, tags=tags or [])


class FakeTextSource(PageTextSource):
    """Serves canned page text; pages listed in failing raise on read."""

    def __init__(self, total_pages: int = 5, texts: Optional[Dict[int, str]] = None):
        self.total_pages = total_pages
        self.texts = texts or {}
        self.failing = set()
        self.reads: List[int] = []

    def get_page_count(self, source_id: str) -> int:
        return self.total_pages

    def get_page_text(self, source_id: str, page_number: int) -> str:
        self.reads.append(page_number)
        if page_number in self.failing:
            raise IOError(f"cannot read page {page_number}")
        return self.texts.get(page_number, page_text(page_number))


class ScriptedGenerator(DraftGenerator):
    """
    Returns scripted results per page, one per call, then falls back to a
    single-draft success. Script entries may be exceptions to raise.
    """

    def __init__(self):
        self.script: Dict[int, list] = {}
        self.calls: List[int] = []
        self.contexts: List[GenerationContext] = []
        self.on_call: Optional[Callable[[int], None]] = None
        self.default: Optional[GenerationResult] = None

    def fail_page(self, page_number: int, times: int = 2, error: str = "model overloaded"):
        self.script.setdefault(page_number, []).extend(
            [GenerationResult(ok=False, error=error)] * times
        )

    def fail_always(self, error: str = "model overloaded"):
        self.default = GenerationResult(ok=False, error=error)

    def generate_drafts(self, text: str, context: GenerationContext) -> GenerationResult:
        page = context.page_number
        self.calls.append(page)
        self.contexts.append(context)
        if self.on_call:
            self.on_call(page)

        queued = self.script.get(page)
        if queued:
            result = queued.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        if self.default is not None:
            return self.default
        return GenerationResult(ok=True, drafts=[make_draft(f"Question from page {page}")])


class RecordingPersister(DraftPersister):
    """Accepts every draft unless told to fail."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.error: Optional[str] = None

    def persist_drafts(self, deck_id: str, drafts: List[McqDraft], session_tags: List[str]) -> PersistResult:
        self.calls.append((deck_id, list(drafts), list(session_tags)))
        if self.error:
            return PersistResult(ok=False, error=self.error)
        return PersistResult(ok=True, created_count=len(drafts))


@pytest.fixture
def memory_kv():
    return MemoryKeyValueStore()


@pytest.fixture
def checkpoints(memory_kv):
    return CheckpointStore(memory_kv)


@pytest.fixture
def text_source():
    return FakeTextSource(total_pages=5)


@pytest.fixture
def generator():
    return ScriptedGenerator()


@pytest.fixture
def persister():
    return RecordingPersister()


@pytest.fixture
def processor(text_source, generator, persister):
    return PageProcessor(
        text_source=text_source,
        generator=generator,
        persister=persister,
        deck_id=DECK_ID,
        source_id=SOURCE_ID
    )


@pytest.fixture
def make_controller(checkpoints, processor):
    """Build a controller over the shared fakes; extra kwargs go to ScanController."""

    def _make(deck_id: str = DECK_ID, source_id: str = SOURCE_ID, **kwargs) -> ScanController:
        config = ScanConfig(deck_id=deck_id, source_id=source_id, retry=RetryConfig(retry_delay=0))
        kwargs.setdefault("retry_handler", RetryHandler(config.retry, sleep=lambda _: None))
        return ScanController(config, checkpoints, processor, **kwargs)

    return _make
