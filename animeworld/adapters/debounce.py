"""
Debounced live search.

Typing fires at most one search per quiet period. A newer submission
cancels the pending timer, and a response that belongs to a superseded
submission is dropped when it arrives (last write wins; requests already
in flight are not cancelled).
"""

from typing import Any, Callable, Optional
import logging
import threading

from animeworld.config.settings import SEARCH_DEBOUNCE_SECONDS, SEARCH_MIN_LENGTH
from animeworld.exceptions import FetchError

logger = logging.getLogger(__name__)


class SearchDebouncer:
    """Caller-side debounce around a search function."""

    def __init__(
        self,
        search_fn: Callable[[str], Any],
        on_results: Callable[[str, Any], None],
        on_clear: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str, FetchError], None]] = None,
        min_length: int = SEARCH_MIN_LENGTH,
        delay: float = SEARCH_DEBOUNCE_SECONDS,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """
        Args:
            search_fn: Called with the stripped term once the input settles
            on_results: Receives (term, results) for the latest submission only
            on_clear: Called when the input becomes too short to search
            on_error: Receives (term, error) when the latest search fails
            min_length: Minimum stripped length that triggers a search
            delay: Quiet period in seconds
            timer_factory: threading.Timer compatible factory
        """
        self.search_fn = search_fn
        self.on_results = on_results
        self.on_clear = on_clear
        self.on_error = on_error
        self.min_length = min_length
        self.delay = delay
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._sequence = 0
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def submit(self, text: str):
        """Register new input, replacing whatever was pending."""
        term = (text or "").strip()

        with self._lock:
            self._sequence += 1
            sequence = self._sequence
            self._cancel_timer()

            if len(term) < self.min_length:
                logger.debug(f"Search input '{term}' below {self.min_length} characters; clearing")
                clear = True
            else:
                clear = False
                self._timer = self._timer_factory(self.delay, self._fire, args=(sequence, term))
                self._timer.daemon = True
                self._timer.start()

        if clear and self.on_clear:
            self.on_clear()

    def cancel(self):
        """Drop the pending search and ignore any response still in flight."""
        with self._lock:
            self._sequence += 1
            self._cancel_timer()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _is_current(self, sequence: int) -> bool:
        with self._lock:
            return sequence == self._sequence

    def _fire(self, sequence: int, term: str):
        with self._lock:
            if sequence == self._sequence:
                self._timer = None

        try:
            results = self.search_fn(term)
        except FetchError as e:
            if not self._is_current(sequence):
                logger.debug(f"Ignoring failure of superseded search '{term}'")
                return
            logger.warning(f"Live search '{term}' failed: {e}")
            if self.on_error is None:
                raise
            self.on_error(term, e)
            return

        if not self._is_current(sequence):
            logger.debug(f"Discarding stale results for '{term}'")
            return

        self.on_results(term, results)
