from manifest_ingest.extraction.exceptions import ExtractionError


class PdfExtractionError(ExtractionError):
    """Raised when text cannot be read out of a PDF."""
