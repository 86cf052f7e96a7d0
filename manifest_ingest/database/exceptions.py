class StorageError(Exception):
    """Raised when a repository operation fails; its transaction is already rolled back."""


class DatabaseUnavailableError(Exception):
    """Raised when the connection pool is closed or was never opened.

    Deliberately not a StorageError: per-item handlers only absorb StorageError.
    """
