from collections.abc import Generator
from contextlib import contextmanager

from manifest_ingest.logging.logger import Log
from manifest_ingest.processor.exceptions import FileReadError, ItemTooLargeError
from manifest_ingest.processor.models import BatchItem, PdfValidation

PDF_SIGNATURE = b"%PDF"


class FileLoader:
    """Reads batch items from disk and releases temporary ones."""

    def __init__(self, max_size_bytes: int | None = None) -> None:
        self._max_size_bytes = max_size_bytes

    @contextmanager
    def open(self, item: BatchItem) -> Generator[bytes, None, None]:
        """Yield the item's bytes; the item is released on every exit path."""
        try:
            yield self.load(item)
        finally:
            self.release(item)

    def load(self, item: BatchItem) -> bytes:
        """Read item bytes from disk.

        Raises:
            ItemTooLargeError: if the item exceeds the configured size limit.
            FileReadError: if the file is missing or unreadable.
        """
        if self._max_size_bytes is not None and item.size_bytes > self._max_size_bytes:
            raise ItemTooLargeError(
                f"{item.filename} is {item.size_bytes} bytes; "
                f"limit is {self._max_size_bytes} bytes"
            )
        try:
            return item.path.read_bytes()
        except OSError as exc:
            raise FileReadError(f"Cannot read {item.filename}: {exc}") from exc

    def release(self, item: BatchItem) -> None:
        if not item.temporary:
            return
        try:
            item.path.unlink(missing_ok=True)
        except OSError as exc:
            Log.warning(f"Failed to clean up {item.filename}: {exc}")

    def validate_pdf(self, item: BatchItem) -> PdfValidation:
        """Check name and signature of a would-be PDF without extracting it."""
        try:
            if not item.filename.lower().endswith(".pdf"):
                return PdfValidation(valid=False, filename=item.filename, reason="File is not a PDF")
            try:
                with item.path.open("rb") as fh:
                    head = fh.read(len(PDF_SIGNATURE))
            except OSError as exc:
                return PdfValidation(
                    valid=False,
                    filename=item.filename,
                    reason=f"Error reading file: {exc}",
                )
            if head != PDF_SIGNATURE:
                return PdfValidation(
                    valid=False, filename=item.filename, reason="File is not a valid PDF"
                )
            return PdfValidation(
                valid=True, filename=item.filename, file_size_bytes=item.size_bytes
            )
        finally:
            self.release(item)
