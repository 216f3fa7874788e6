"""
Base adapter for the external HTTP services AnimeWorld talks to:
- AniListAdapter (catalog GraphQL API)
- TraceMoeAdapter / SauceNaoAdapter (image recognition)
- UserApiClient (the user-record API)

Owns the HTTP session, client-side rate limiting and the classification of
failures into FetchError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import logging
import threading
import time

import requests

from animeworld.exceptions import FetchError, RecognitionError
from animeworld.models import ImageUpload, RecognitionResult

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter to respect API limits."""

    def __init__(self, requests_per_minute: Optional[int] = 60):
        """
        Initialize rate limiter.

        Args:
            requests_per_minute: Max requests per minute (None or 0 disables limiting)
        """
        self.requests_per_minute = requests_per_minute
        self.min_interval = 60.0 / requests_per_minute if requests_per_minute else 0.0
        self.last_request_time = 0.0
        self._lock = threading.Lock()

    def wait_if_needed(self):
        """Wait if necessary to maintain rate limit. Concurrent callers are spaced out one at a time."""
        with self._lock:
            elapsed = time.time() - self.last_request_time
            if elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug(f"Rate limiting: waiting {wait_time:.2f}s")
                time.sleep(wait_time)
            self.last_request_time = time.time()


class BaseAdapter:
    """
    Shared plumbing for HTTP adapters.

    Subclasses call _request(), _raise_for_status() and _decode_json(); all
    of them raise error_class (a FetchError subclass).
    """

    error_class = FetchError

    def __init__(
        self,
        name: str,
        requests_per_minute: Optional[int] = 60,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize adapter.

        Args:
            name: Service name (e.g., 'anilist', 'trace.moe', 'saucenao')
            requests_per_minute: Rate limit (API-dependent)
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.name = name
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rate_limiter = RateLimiter(requests_per_minute)
        self.request_count = 0
        self.error_count = 0
        self._stats_lock = threading.Lock()

    def _record_request(self):
        with self._stats_lock:
            self.request_count += 1

    def _record_error(self):
        with self._stats_lock:
            self.error_count += 1

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Send one request, classifying network failures as transport errors.

        Raises:
            FetchError: kind='transport' when no response was received
        """
        self.rate_limiter.wait_if_needed()
        kwargs.setdefault("timeout", self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            self._record_error()
            logger.error(f"{self.name}: request to {url} failed: {e}")
            raise self.error_class(f"{self.name} request failed: {e}", kind="transport") from e

        self._record_request()
        return response

    def _decode_json(self, response: requests.Response) -> Dict[str, Any]:
        """Parse a JSON object body, classifying garbage as a transport error."""
        try:
            payload = response.json()
        except ValueError as e:
            self._record_error()
            raise self.error_class(
                f"{self.name} returned a non-JSON response (HTTP {response.status_code})",
                kind="transport",
                status_code=response.status_code,
            ) from e

        if not isinstance(payload, dict):
            return {"data": payload}
        return payload

    def _raise_for_status(self, response: requests.Response, detail: str = ""):
        """Raise FetchError(kind='http') for non-2xx responses."""
        if response.ok:
            return
        self._record_error()
        message = f"{self.name} returned HTTP {response.status_code}"
        if detail:
            message = f"{message}: {detail}"
        logger.error(message)
        raise self.error_class(message, kind="http", status_code=response.status_code)

    def log_request_stats(self):
        """Log request statistics."""
        logger.info(
            f"{self.name}: {self.request_count} requests, {self.error_count} errors"
        )


class RecognitionAdapter(BaseAdapter, ABC):
    """Base class for image recognition providers."""

    error_class = RecognitionError

    @abstractmethod
    def identify(self, upload: ImageUpload) -> RecognitionResult:
        """
        Identify the media an image comes from.

        Args:
            upload: A validated image

        Returns:
            Normalized result (matched=False when nothing was found)

        Raises:
            RecognitionError: When the provider could not be queried
        """
        pass
