"""Exception types raised by the bookmark library."""

from __future__ import annotations


class BookmarkLibraryError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(BookmarkLibraryError):
    """Raised for invalid settings or bulk arguments, before any work starts."""


class KarakeepAPIError(BookmarkLibraryError):
    """Raised when a call to the bookmark backend fails.

    ``status_code`` is None for transport failures (DNS, refused connection, timeout).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
