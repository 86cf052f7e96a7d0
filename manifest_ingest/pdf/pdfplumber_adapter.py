import io

import pdfplumber

from manifest_ingest.pdf.base import BasePdfExtractor
from manifest_ingest.pdf.exceptions import PdfExtractionError


class PdfPlumberAdapter(BasePdfExtractor):
    """Extracts text from PDF using pdfplumber, keeping the visual layout of tables."""

    def __init__(self, layout: bool = True) -> None:
        self._layout = layout

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [page.extract_text(layout=self._layout) or "" for page in pdf.pages]
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber extraction failed: {exc}") from exc
        return "\n".join(page.rstrip() for page in pages).strip()
