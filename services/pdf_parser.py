"""
PDF Text Extraction

Pulls the text layer out of uploaded recipe PDFs with pypdf. Scanned
(image-only) PDFs have no text layer and come back empty.
"""

import re

from pypdf import PdfReader
from pypdf.errors import PdfReadError

_SPACES = re.compile(r'[ \t]+')
_BLANK_LINES = re.compile(r'\n{3,}')


class PdfParseError(Exception):
    pass


def extract_text(file_path):
    """Concatenate the text of every page."""
    try:
        reader = PdfReader(file_path)
        return '\n'.join(page.extract_text() or '' for page in reader.pages)
    except (PdfReadError, OSError, ValueError) as e:
        raise PdfParseError(f'PDF parsing failed: {e}')


def clean_text(text):
    """Collapse runs of spaces and blank lines and trim every line."""
    if not text:
        return ''
    text = _SPACES.sub(' ', text)
    text = _BLANK_LINES.sub('\n\n', text)
    return '\n'.join(line.strip() for line in text.split('\n')).strip()


def extract_and_clean(file_path):
    return clean_text(extract_text(file_path))
