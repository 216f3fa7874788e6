"""
SauceNAO adapter for manga / manhwa / illustration recognition.

Real calls need an API key. Without one the adapter runs in simulation
mode and answers with one of the canned results from
config/simulated_recognition.yaml, clearly marked as simulated.
"""

from typing import Any, Dict, List, Optional
import logging
import random
import re
import time

import requests

from .base_adapter import RecognitionAdapter
from animeworld.config.settings import (
    RECOGNITION_TIMEOUT,
    SAUCENAO_API_KEY,
    SAUCENAO_API_URL,
    SAUCENAO_MATCH_THRESHOLD,
    SAUCENAO_SIMULATED_DELAY,
    SIMULATED_RECOGNITION_FILE,
    load_yaml_config,
)
from animeworld.exceptions import RecognitionError
from animeworld.models import ImageUpload, MediaKind, RecognitionResult
from animeworld.transform.normalizer import as_int

logger = logging.getLogger(__name__)

SOURCE_API = "saucenao"
SIMULATED_SOURCE_API = "saucenao (simulated)"

# SauceNAO index ids
DATABASE_NAMES = {
    5: "Pixiv Images",
    6: "Pixiv Historical",
    21: "Anime",
    22: "H-Anime",
    36: "Madokami (Manga)",
    37: "MangaDex",
}
MANGA_INDEXES = (36, 37)
ANIME_INDEXES = (21, 22)


class SauceNaoAdapter(RecognitionAdapter):
    """SauceNAO reverse image search adapter."""

    def __init__(
        self,
        api_key: Optional[str] = SAUCENAO_API_KEY,
        api_url: str = SAUCENAO_API_URL,
        match_threshold: float = SAUCENAO_MATCH_THRESHOLD,
        timeout: int = RECOGNITION_TIMEOUT,
        rng: Optional[random.Random] = None,
        simulated_delay: float = SAUCENAO_SIMULATED_DELAY,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize SauceNAO adapter.

        Args:
            api_key: SauceNAO API key (None enables simulation mode)
            api_url: Search endpoint
            match_threshold: Similarity (percent) a hit must exceed to count as a match
            timeout: Request timeout in seconds
            rng: Random source used to pick simulated results
            simulated_delay: Artificial latency in simulation mode (seconds)
            session: Optional requests session
        """
        super().__init__(name="saucenao", requests_per_minute=None, timeout=timeout, session=session)
        self.api_key = api_key
        self.api_url = api_url
        self.match_threshold = match_threshold
        self.rng = rng or random.Random()
        self.simulated_delay = simulated_delay
        self._canned_results: Optional[List[Dict[str, Any]]] = None

    @property
    def simulated(self) -> bool:
        return not self.api_key

    def identify(self, upload: ImageUpload) -> RecognitionResult:
        if self.simulated:
            return self.simulate()

        response = self._request(
            "POST",
            self.api_url,
            data={
                "output_type": 2,
                "api_key": self.api_key,
                "db": 999,
                "numres": 1,
            },
            files={"file": (upload.filename, upload.data, upload.content_type)},
        )
        self._raise_for_status(response)
        data = self._decode_json(response)

        status = as_int((data.get("header") or {}).get("status"))
        if status < 0:
            message = (data.get("header") or {}).get("message") or "request rejected"
            self._record_error()
            raise RecognitionError(f"SauceNAO error: {message}", kind="http", status_code=response.status_code)

        results = data.get("results") or []
        if not results or not isinstance(results[0], dict):
            return RecognitionResult(
                matched=False,
                confidence=0,
                description="No match found in SauceNAO databases",
                source_api=SOURCE_API,
            )

        return self.parse_result(results[0])

    def parse_result(self, result: Dict[str, Any]) -> RecognitionResult:
        """
        Parse one SauceNAO hit.

        Similarity above the threshold is a match; below it the result is
        "no match" but keeps the raw score.
        """
        header = result.get("header") or {}
        data = result.get("data") or {}

        try:
            similarity = float(header.get("similarity") or 0.0)
        except (TypeError, ValueError):
            similarity = 0.0

        index_id = as_int(header.get("index_id"), default=-1)
        source = data.get("source") or ""
        title = data.get("title") or data.get("eng_name") or source or None

        if index_id in MANGA_INDEXES:
            media_kind = MediaKind.MANGA
        elif index_id in ANIME_INDEXES:
            media_kind = MediaKind.ANIME
        else:
            media_kind = MediaKind.UNKNOWN

        part = self._first_number(data.get("part"))
        media_id = as_int(data.get("anilist_id"), default=None) if data.get("anilist_id") else None

        return RecognitionResult(
            matched=similarity > self.match_threshold,
            confidence=min(100.0, max(0.0, similarity)),
            media_kind=media_kind,
            title=title,
            media_id=media_id,
            description=f"Found in {DATABASE_NAMES.get(index_id, f'Database {index_id}')} database",
            source_api=SOURCE_API,
            episode=part if media_kind == MediaKind.ANIME else None,
            chapter=part if media_kind == MediaKind.MANGA else None,
            timestamp=data.get("est_time"),
            similarity=similarity,
            source=source or None,
        )

    @staticmethod
    def _first_number(value: Any) -> Optional[int]:
        match = re.search(r"\d+", str(value)) if value is not None else None
        return int(match.group()) if match else None

    # ========================================================================
    # Simulation mode
    # ========================================================================

    def simulate(self) -> RecognitionResult:
        """Pick one canned result. Demo data only, never a genuine recognition."""
        if self._canned_results is None:
            self._canned_results = load_yaml_config(SIMULATED_RECOGNITION_FILE).get("results") or []

        if self.simulated_delay:
            time.sleep(self.simulated_delay)

        canned = self.rng.choice(self._canned_results)
        logger.info("SauceNAO API key not configured; returning a simulated result")
        return RecognitionResult(
            **canned,
            source_api=SIMULATED_SOURCE_API,
            simulated=True,
        )
