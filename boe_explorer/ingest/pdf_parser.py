"""
Text extraction for registry (BORME) province PDFs.

PyPDF2 handles almost every registry PDF; pdfplumber is the fallback for
the few it returns empty. Line breaks and leading whitespace are kept
because the registry parser uses them to spot running headers and
province banners.
"""

import logging
from io import BytesIO
from typing import Callable, List, Optional, Tuple

import PyPDF2
import pdfplumber

logger = logging.getLogger(__name__)


def _pypdf2_pages(pdf_bytes: bytes) -> List[str]:
    reader = PyPDF2.PdfReader(BytesIO(pdf_bytes))
    if reader.is_encrypted:
        reader.decrypt('')
    return [page.extract_text() or '' for page in reader.pages]


def _pdfplumber_pages(pdf_bytes: bytes) -> List[str]:
    with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
        return [page.extract_text() or '' for page in pdf.pages]


class PDFParser:
    """
    Extract plain text from a PDF held in memory.

    Args:
        min_chars: Shortest result accepted from a backend before trying the next
    """

    BACKENDS: List[Tuple[str, Callable[[bytes], List[str]]]] = [
        ('PyPDF2', _pypdf2_pages),
        ('pdfplumber', _pdfplumber_pages),
    ]

    def __init__(self, min_chars: int = 100):
        self.min_chars = min_chars

    def extract_text(self, pdf_bytes: bytes) -> Optional[str]:
        """Page texts joined by newlines, or None when no backend yields enough text."""
        for name, backend in self.BACKENDS:
            try:
                pages = backend(pdf_bytes)
            except Exception as e:  # both libraries raise assorted types on damaged files
                logger.debug(f"{name} could not read PDF: {type(e).__name__}: {e}")
                continue

            text = '\n'.join(page for page in pages if page).replace('\r\n', '\n')
            if len(text.strip()) > self.min_chars:
                logger.debug(f"{name}: {len(pages)} pages, {len(text)} chars")
                return text
            logger.debug(f"{name} returned {len(text.strip())} chars, trying next backend")

        logger.warning("PDF text extraction failed with every backend")
        return None
