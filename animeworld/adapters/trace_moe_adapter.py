"""
trace.moe adapter for anime scene recognition.

Posts the image to https://api.trace.moe/search?anilistInfo (free, no auth
required) and keeps the top result only.
"""

from typing import Any, Dict, Optional
import logging

import requests

from .base_adapter import RecognitionAdapter
from animeworld.config.settings import RECOGNITION_TIMEOUT, TRACE_MOE_API_URL, TRACE_MOE_MIN_SIMILARITY
from animeworld.models import ImageUpload, MediaKind, RecognitionResult
from animeworld.transform.normalizer import as_int, dig

logger = logging.getLogger(__name__)

SOURCE_API = "trace.moe"


def format_timestamp(seconds: Any) -> Optional[str]:
    """Format a scene offset in seconds as m:ss."""
    if seconds is None:
        return None
    try:
        seconds = float(seconds)
    except (TypeError, ValueError):
        return None
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


class TraceMoeAdapter(RecognitionAdapter):
    """trace.moe scene search adapter."""

    def __init__(
        self,
        api_url: str = TRACE_MOE_API_URL,
        min_similarity: float = TRACE_MOE_MIN_SIMILARITY,
        timeout: int = RECOGNITION_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(name="trace.moe", requests_per_minute=None, timeout=timeout, session=session)
        self.api_url = api_url
        self.min_similarity = min_similarity

    def identify(self, upload: ImageUpload) -> RecognitionResult:
        response = self._request(
            "POST",
            f"{self.api_url}?anilistInfo",
            files={"image": (upload.filename, upload.data, upload.content_type)},
        )
        self._raise_for_status(response)
        data = self._decode_json(response)

        if data.get("error"):
            logger.warning(f"trace.moe reported: {data['error']}")

        results = data.get("result") or []
        best = results[0] if results and isinstance(results[0], dict) else None

        if best is None:
            return self._no_match()
        return self._parse_result(best)

    def _parse_result(self, best: Dict[str, Any]) -> RecognitionResult:
        """
        Turn the top trace.moe hit into a result.

        A hit counts only when it carries AniList info with an id and its
        similarity is above the minimum.
        """
        anilist = best.get("anilist")
        similarity = float(best.get("similarity") or 0.0)

        media_id = None
        title = None
        if isinstance(anilist, dict):
            media_id = anilist.get("id")
            title = dig(anilist, "title", "romaji") or dig(anilist, "title", "english")
        elif anilist is not None:
            # Without ?anilistInfo the field is a bare id
            media_id = anilist

        if media_id is None or similarity <= self.min_similarity:
            logger.debug(f"trace.moe top hit rejected (similarity {similarity:.3f}, id {media_id})")
            return self._no_match(similarity)

        episode = best.get("episode")
        episode_number = as_int(episode, default=None) if episode is not None else None

        return RecognitionResult(
            matched=True,
            confidence=min(100, max(0, round(similarity * 100))),
            media_kind=MediaKind.ANIME,
            title=title,
            media_id=as_int(media_id),
            description=f"Scene from episode {episode if episode is not None else 'Unknown'}",
            source_api=SOURCE_API,
            episode=episode_number,
            timestamp=format_timestamp(best.get("from")),
            similarity=similarity,
            source=best.get("filename"),
        )

    @staticmethod
    def _no_match(similarity: Optional[float] = None) -> RecognitionResult:
        return RecognitionResult(
            matched=False,
            confidence=0,
            media_kind=MediaKind.UNKNOWN,
            description="No anime scene match found in trace.moe database",
            source_api=SOURCE_API,
            similarity=similarity,
        )
