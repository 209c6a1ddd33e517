"""Tests for autoscan/page_source.py."""

import pymupdf
import pytest

from autoscan.page_source import PdfPageTextSource


@pytest.fixture
def pdf_path(tmp_path):
    path = tmp_path / "chapter.pdf"
    doc = pymupdf.open()
    for number in (1, 2, 3):
        page = doc.new_page()
        page.insert_text((72, 72), f"Content of page {number}")
    doc.save(str(path))
    doc.close()
    return path


class TestPdfPageTextSource:
    """Test PdfPageTextSource against a generated PDF."""

    def test_page_count(self, pdf_path):
        source = PdfPageTextSource({"ch1": str(pdf_path)})
        assert source.get_page_count("ch1") == 3
        source.close()

    def test_page_text_is_one_based(self, pdf_path):
        source = PdfPageTextSource({"ch1": str(pdf_path)})
        assert "Content of page 1" in source.get_page_text("ch1", 1)
        assert "Content of page 3" in source.get_page_text("ch1", 3)
        source.close()

    @pytest.mark.parametrize("page_number", [0, 4])
    def test_out_of_range(self, pdf_path, page_number):
        source = PdfPageTextSource({"ch1": str(pdf_path)})
        with pytest.raises(IndexError):
            source.get_page_text("ch1", page_number)
        source.close()

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            PdfPageTextSource({"ch1": str(tmp_path / "missing.pdf")})

    def test_unknown_source(self):
        with pytest.raises(KeyError):
            PdfPageTextSource().get_page_count("nope")

    def test_uses_pymupdf_module(self):
        import autoscan.page_source as page_source
        assert page_source.pymupdf is pymupdf
        assert not hasattr(page_source, "fitz")
