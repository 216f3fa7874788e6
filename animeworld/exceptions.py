"""
Error types shared by the clients and the HTTP API.
"""

from typing import Optional


class AnimeWorldError(Exception):
    """Base class for all AnimeWorld errors."""


class FetchError(AnimeWorldError):
    """
    An upstream request failed.

    kind is one of:
    - 'transport': network unreachable, timeout, undecodable response
    - 'http': non-2xx status
    - 'graphql': the response carried a non-empty errors array
    """

    def __init__(self, message: str, kind: str = 'transport', status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Transport errors, rate limiting and server errors are worth retrying."""
        if self.kind == 'transport':
            return True
        return self.status_code is not None and (self.status_code == 429 or self.status_code >= 500)


class RecognitionError(FetchError):
    """A recognition provider failed while a real (non-simulated) call was made."""


class ImageValidationError(AnimeWorldError):
    """An upload was rejected locally, before any network call."""

    UNSUPPORTED_FORMAT = 'unsupported_format'
    TOO_LARGE = 'too_large'

    def __init__(self, reason: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


class MediaNotResolvedError(AnimeWorldError):
    """A recognized title could not be mapped to a catalog id."""


class UserStoreError(AnimeWorldError):
    """The user-record store failed on read or write."""
