"""Tests for autoscan/page_processor.py."""

import pytest

from autoscan.models import GenerationResult, OutcomeKind
from autoscan.page_processor import PageProcessor

from conftest import DECK_ID, FakeTextSource, page_text


class TestProcess:
    """Test PageProcessor.process() classification."""

    def test_success_reports_created_cards(self, processor, persister):
        outcome = processor.process(1, 5)
        assert outcome.kind == OutcomeKind.SUCCESS
        assert outcome.cards_created == 1
        assert persister.calls[0][0] == DECK_ID

    def test_zero_drafts_is_empty_success(self, processor, generator, persister):
        generator.script[1] = [GenerationResult(ok=True, drafts=[])]
        outcome = processor.process(1, 5)
        assert outcome.kind == OutcomeKind.EMPTY_SUCCESS
        assert outcome.cards_created == 0
        assert persister.calls == []

    @pytest.mark.parametrize("text", ["", "   \n\t ", "Too short to bother."])
    def test_short_text_skips_generator(self, generator, persister, text):
        source = FakeTextSource(total_pages=3, texts={2: text})
        processor = PageProcessor(source, generator, persister, DECK_ID, "src")
        outcome = processor.process(2, 3)
        assert outcome.kind == OutcomeKind.EMPTY_SUCCESS
        assert generator.calls == []

    def test_generation_failure_is_error(self, processor, generator):
        generator.fail_page(1, times=1, error="rate limited")
        outcome = processor.process(1, 5)
        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error == "rate limited"

    def test_generator_exception_is_error(self, processor, generator):
        generator.script[1] = [ConnectionError("connection reset")]
        outcome = processor.process(1, 5)
        assert outcome.kind == OutcomeKind.ERROR
        assert "connection reset" in outcome.error

    def test_persist_failure_is_error(self, processor, persister):
        persister.error = "HTTP 500: boom"
        outcome = processor.process(1, 5)
        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error == "HTTP 500: boom"

    def test_text_failure_is_error(self, processor, text_source, generator):
        text_source.failing.add(3)
        outcome = processor.process(3, 5)
        assert outcome.kind == OutcomeKind.ERROR
        assert outcome.error.startswith("Text extraction failed")
        assert generator.calls == []

    def test_session_tags_passed_to_persister(self, text_source, generator, persister):
        processor = PageProcessor(
            text_source, generator, persister, DECK_ID, "src",
            default_tags=["bio"], session_tags=["chapter-3"]
        )
        processor.process(1, 5)
        assert persister.calls[0][2] == ["chapter-3"]
        assert generator.contexts[0].default_tags == ["bio"]
        assert generator.contexts[0].page_number == 1


class TestGetText:
    """Test page text acquisition with the next page appended."""

    def test_single_page(self, processor):
        assert processor.get_text(2, 5) == page_text(2)

    def test_next_page_appended(self, processor):
        text = processor.get_text(2, 5, include_next_page=True)
        assert text == f"{page_text(2)}\n\n--- Page 3 ---\n{page_text(3)}"

    def test_last_page_has_no_next(self, processor, text_source):
        assert processor.get_text(5, 5, include_next_page=True) == page_text(5)
        assert text_source.reads == [5]
