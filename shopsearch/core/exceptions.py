"""Typed errors raised by the search engine.

The engine never builds transport responses itself. Each error carries an
HTTP-style status so the API layer can translate it without inspecting the
message.
"""

from fastapi import status


class SearchError(Exception):
    """Base class for every error the search engine surfaces to callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class SearchValidationError(SearchError):
    """A filter or parameter is missing, malformed or out of range."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class SearchNotFoundError(SearchError):
    """A referenced product or category does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class CatalogUnavailableError(SearchError):
    """The catalog store could not answer a read."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Catalog is temporarily unavailable") -> None:
        super().__init__(message)
