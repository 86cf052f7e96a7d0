from abc import ABC, abstractmethod

from manifest_ingest.extraction.models import ExtractedManifest


class BaseManifestExtractor(ABC):
    """Contract for turning one raw document into an extracted manifest."""

    @abstractmethod
    def extract(self, pdf_bytes: bytes) -> ExtractedManifest:
        """Extract manifest header data and deliveries from a document.

        Raises:
            ExtractionError: on any failure, including unreadable PDFs.
        """
