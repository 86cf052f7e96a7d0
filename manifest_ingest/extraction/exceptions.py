class ExtractionError(Exception):
    """Raised when a document cannot be turned into a manifest."""


class ExtractionValidationError(ExtractionError):
    """Raised when extractor output is not shaped like a manifest."""


class ExtractionNetworkError(ExtractionError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""
