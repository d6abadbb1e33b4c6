import io
import logging
from typing import Optional

import pdfplumber

logger = logging.getLogger(__name__)


class DocumentExtractionError(RuntimeError): ...


class PdfTextExtractor:
    def __init__(self, max_pages: Optional[int] = None):
        """
        Plain text extraction with pdfplumber. Scanned PDFs without a text
        layer come back empty; no OCR is attempted.
        """
        self.max_pages = max_pages

    def extract_text(self, data: bytes) -> str:
        """Page texts joined by newlines, in page order."""
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                pages = pdf.pages if self.max_pages is None else pdf.pages[:self.max_pages]
                page_texts = [page.extract_text() or "" for page in pages]
        except Exception as e:
            raise DocumentExtractionError(f"Could not read PDF: {e}") from e

        logger.info(f"Extracted text from {len(page_texts)} PDF pages")
        return "\n".join(page_texts)
