from unittest.mock import MagicMock

import pytest


@pytest.fixture()
def mock_db() -> tuple[MagicMock, MagicMock, MagicMock]:
    """A mock Database whose connection() yields a mock connection and cursor.

    Returns (db, conn, cursor).
    """
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value.__enter__ = MagicMock(return_value=mock_cursor)
    mock_conn.cursor.return_value.__exit__ = MagicMock(return_value=False)
    db = MagicMock()
    db.connection.return_value.__enter__ = MagicMock(return_value=mock_conn)
    db.connection.return_value.__exit__ = MagicMock(return_value=False)
    return db, mock_conn, mock_cursor
