class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class BatchValidationError(ProcessorError):
    """Raised when a submission is malformed, e.g. it carries no items."""


class FatalBatchError(ProcessorError):
    """An error that escaped per-item isolation and ends the batch early."""


class ItemTooLargeError(ProcessorError):
    """Raised when an item exceeds the configured upload size."""


class FileReadError(ProcessorError):
    """Raised when an item's file cannot be read from disk."""
