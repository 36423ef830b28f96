"""
Domain exceptions for the URL shortener.

Each exception carries the HTTP status and the error name the API layer
reports, so routes can let them propagate and main.py maps them in one place.
"""

from typing import Optional


class ShortenerError(Exception):
    """Base class for every error the service surfaces to clients."""

    status_code: int = 500
    error: str = "Internal"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail()
        super().__init__(self.detail)

    def default_detail(self) -> str:
        return "internal server error"


class InvalidInput(ShortenerError):
    """Malformed or missing request field."""

    status_code = 400
    error = "InvalidInput"

    def default_detail(self) -> str:
        return "invalid input"


class InvalidURL(InvalidInput):
    """URL lacks a scheme or a host."""

    def default_detail(self) -> str:
        return "invalid URL format"


class NotFound(ShortenerError):
    """Unknown short code."""

    status_code = 404
    error = "NotFound"

    def default_detail(self) -> str:
        return "short URL not found"


class OperationTimeout(ShortenerError):
    """An operation exceeded its deadline. Retryable by the client."""

    status_code = 408
    error = "Timeout"

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout}s")


class AllocationExhausted(ShortenerError):
    """No unused short code found within the retry budget."""

    status_code = 500
    error = "AllocationExhausted"

    def default_detail(self) -> str:
        return "could not allocate a unique short code"


class StoreError(ShortenerError):
    """Unexpected persistent store failure."""


class ShortCodeCollision(Exception):
    """
    Insert lost the race for a short code.

    Raised by the store when the unique constraint on short_code rejects an
    insert, so the caller can allocate again instead of failing the request.
    """

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"short code already in use: {short_code}")
