"""
Tests for PDF text extraction and cleanup.
"""
import pytest
from pypdf import PdfWriter

from services.pdf_parser import PdfParseError, clean_text, extract_and_clean, extract_text


class TestCleanText:
    def test_collapses_whitespace(self):
        assert clean_text('Grandma   Jo\t\tPie\n\n\n\n  2 cups   flour  ') == 'Grandma Jo Pie\n\n2 cups flour'

    def test_empty(self):
        assert clean_text('') == ''
        assert clean_text(None) == ''


class TestExtractText:
    def test_blank_pdf_has_no_text(self, tmp_path):
        path = tmp_path / 'scan.pdf'
        writer = PdfWriter()
        writer.add_blank_page(width=612, height=792)
        with open(path, 'wb') as f:
            writer.write(f)
        assert extract_and_clean(str(path)) == ''

    def test_not_a_pdf(self, tmp_path):
        path = tmp_path / 'fake.pdf'
        path.write_bytes(b'this is plain text pretending to be a pdf')
        with pytest.raises(PdfParseError, match='PDF parsing failed'):
            extract_text(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(PdfParseError):
            extract_text(str(tmp_path / 'missing.pdf'))
