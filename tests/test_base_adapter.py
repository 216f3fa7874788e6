"""Unit tests for the shared adapter plumbing: rate limiting and request stats."""
from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from animeworld.adapters.base_adapter import BaseAdapter, RateLimiter
from animeworld.exceptions import FetchError

from conftest import make_response


def run_together(target, count):
    barrier = threading.Barrier(count)

    def worker():
        barrier.wait()
        target()

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)


class TestRateLimiter:
    def test_disabled(self):
        limiter = RateLimiter(None)

        start = time.time()
        for _ in range(20):
            limiter.wait_if_needed()

        assert limiter.min_interval == 0.0
        assert time.time() - start < 0.5

    def test_concurrent_callers_are_spaced_out(self):
        # 600 per minute is one call every 0.1s
        limiter = RateLimiter(600)

        start = time.time()
        run_together(limiter.wait_if_needed, 5)

        assert time.time() - start >= 0.38


class TestRequestStats:
    def test_counts_under_concurrency(self):
        session = MagicMock(spec=requests.Session)
        session.request.return_value = make_response(200, {})
        adapter = BaseAdapter("svc", requests_per_minute=None, session=session)

        run_together(lambda: [adapter._request("GET", "http://svc.test/") for _ in range(50)], 8)

        assert adapter.request_count == 400
        assert adapter.error_count == 0

    def test_failures_are_counted(self):
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("down")
        adapter = BaseAdapter("svc", requests_per_minute=None, session=session)

        with pytest.raises(FetchError) as exc_info:
            adapter._request("GET", "http://svc.test/")

        assert exc_info.value.retryable
        assert adapter.error_count == 1
        assert adapter.request_count == 0
