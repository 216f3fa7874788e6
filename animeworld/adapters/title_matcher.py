"""
Fuzzy title matching for recognition results.

Recognition providers report a title string (often in a different language
or word order than the catalog's preferred title). The matcher compares it
against every title variant of each catalog candidate:
- "Shingeki no Kyojin" vs romaji / english / native / synonyms
→ Best candidate above the threshold wins.
"""

from typing import Any, Dict, List, Optional, Tuple
from fuzzywuzzy import fuzz
import logging

logger = logging.getLogger(__name__)


class TitleMatcher:
    """Picks the catalog candidate whose titles best match a free-text title."""

    def __init__(self, similarity_threshold: float = 0.6):
        """
        Initialize matcher.

        Args:
            similarity_threshold: Min similarity score (0-1) to accept a match
                                 (0.6 = 60% match)
        """
        self.similarity_threshold = similarity_threshold
        self.match_history: List[Tuple[str, int, float]] = []

    def best_match(self, title: str, candidates: List[Dict[str, Any]]) -> Optional[int]:
        """
        Find the best-matching candidate id.

        Args:
            title: Title reported by a recognition provider
            candidates: Raw catalog Media objects (id, title{...}, synonyms)

        Returns:
            Catalog id of the best candidate, or None below the threshold
        """
        if not title or not candidates:
            return None

        best_id = None
        best_similarity = 0.0

        for candidate in candidates:
            media_id = candidate.get("id")
            if media_id is None:
                continue

            similarity = max(
                (self._fuzzy_match(title, variant) for variant in self._title_variants(candidate)),
                default=0.0,
            )
            if similarity > best_similarity:
                best_similarity = similarity
                best_id = media_id

        if best_id is None or best_similarity < self.similarity_threshold:
            logger.debug(f"No title match for '{title}' (best similarity: {best_similarity:.2f})")
            return None

        self.match_history.append((title, best_id, best_similarity))
        logger.debug(f"Matched '{title}' to media {best_id} (similarity: {best_similarity:.2f})")
        return int(best_id)

    @staticmethod
    def _title_variants(candidate: Dict[str, Any]) -> List[str]:
        titles = candidate.get("title") or {}
        variants = [
            titles.get("english"),
            titles.get("romaji"),
            titles.get("native"),
            titles.get("userPreferred"),
        ]
        variants.extend(candidate.get("synonyms") or [])
        return [v for v in variants if isinstance(v, str) and v.strip()]

    def _fuzzy_match(self, title1: str, title2: str) -> float:
        """
        Fuzzy match two titles.

        Uses token_sort_ratio to handle word reordering, averaged with the
        partial variant so "One Piece" still matches "One Piece Film: Red".

        Returns:
            Similarity score (0-1)
        """
        token_sort_score = fuzz.token_sort_ratio(title1.lower(), title2.lower()) / 100.0

        partial_score = fuzz.partial_token_sort_ratio(
            title1.lower(), title2.lower()
        ) / 100.0

        return (token_sort_score + partial_score) / 2
