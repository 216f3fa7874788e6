"""
AniList GraphQL API adapter (the media query client).

Fetches trending lists, search results, details, recommendations, upcoming
and recent releases and the airing schedule from AniList (free, no auth
required), and hands back normalized models only.
Rate limit: 90 requests/minute
"""

from typing import List, Dict, Any, Optional, Union
from datetime import date, datetime, timedelta
import logging
import time

import requests

from .base_adapter import BaseAdapter
from .filter_query import FilterState, build_filter_query, resolve_media_type
from .queries import (
    DETAIL_QUERY,
    RECENT_QUERY,
    RECOMMENDATIONS_QUERY,
    SCHEDULE_QUERY,
    SEARCH_QUERY,
    TITLE_LOOKUP_QUERY,
    TRENDING_QUERY,
    UPCOMING_QUERY,
)
from .title_matcher import TitleMatcher
from animeworld.config.settings import (
    ANILIST_API_URL,
    ANILIST_MAX_PAGE_SIZE,
    ANILIST_MAX_RETRIES,
    ANILIST_RATE_LIMIT,
    ANILIST_RETRY_DELAY,
    ANILIST_TIMEOUT,
    FALLBACK_MEDIA_FILE,
    RECENT_PAGE_SIZE,
    RECOMMENDATIONS_LIMIT,
    SCHEDULE_DAYS_AHEAD,
    SCHEDULE_ITEMS_PER_DAY,
    SCHEDULE_MAX_PAGES,
    SCHEDULE_PAGE_DELAY,
    SCHEDULE_PAGE_SIZE,
    SEARCH_PAGE_SIZE,
    TITLE_MATCH_CANDIDATES,
    TITLE_MATCH_THRESHOLD,
    TRENDING_WINDOW_SIZE,
    UPCOMING_PAGE_SIZE,
    load_yaml_config,
)
from animeworld.exceptions import FetchError
from animeworld.models import (
    MediaDetail,
    MediaKind,
    MediaSummary,
    MediaType,
    Schedule,
    ScheduleDay,
    ScheduleEntry,
    SearchPage,
)
from animeworld.transform.normalizer import (
    as_int,
    day_label,
    dig,
    normalize_detail,
    normalize_media,
    normalize_media_list,
    normalize_page_info,
    normalize_schedule_entry,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class AniListAdapter(BaseAdapter):
    """AniList GraphQL API adapter."""

    def __init__(
        self,
        api_url: str = ANILIST_API_URL,
        requests_per_minute: Optional[int] = ANILIST_RATE_LIMIT,
        timeout: int = ANILIST_TIMEOUT,
        max_retries: int = ANILIST_MAX_RETRIES,
        retry_delay: float = ANILIST_RETRY_DELAY,
        page_delay: float = SCHEDULE_PAGE_DELAY,
        session: Optional[requests.Session] = None,
        title_matcher: Optional[TitleMatcher] = None,
    ):
        """
        Initialize AniList adapter.

        Args:
            api_url: GraphQL endpoint
            requests_per_minute: Client-side rate limit (None disables it)
            timeout: Request timeout in seconds
            max_retries: Retries per airing-schedule page
            retry_delay: Base delay for exponential backoff (seconds)
            page_delay: Fixed delay between airing-schedule pages (seconds)
            session: Optional requests session (tests inject a mock)
            title_matcher: Matcher used by find_id_by_title
        """
        super().__init__(
            name="anilist",
            requests_per_minute=requests_per_minute,
            timeout=timeout,
            session=session,
        )
        self.api_url = api_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.page_delay = page_delay
        self.title_matcher = title_matcher or TitleMatcher(TITLE_MATCH_THRESHOLD)
        self._fallback_media: Optional[Dict[str, List[Dict[str, Any]]]] = None

    # ========================================================================
    # Transport
    # ========================================================================

    def _execute_query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Execute a GraphQL query

        Args:
            query: GraphQL query string
            variables: Query variables
            allow_not_found: Return None instead of raising when AniList
                             reports the requested entity does not exist

        Returns:
            The response's 'data' object (None only for allowed not-found)

        Raises:
            FetchError: kind='transport', 'http' or 'graphql'
        """
        response = self._request(
            "POST",
            self.api_url,
            json={"query": query, "variables": variables or {}},
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

        if response.status_code == 404 and allow_not_found:
            return None

        if not response.ok:
            self._raise_for_status(response, self._first_error_message(response))

        data = self._decode_json(response)

        errors = data.get("errors")
        if errors:
            if allow_not_found and any(
                isinstance(error, dict) and error.get("status") == 404 for error in errors
            ):
                return None
            self._record_error()
            message = self._format_errors(errors)
            logger.error(f"GraphQL error: {message}")
            raise FetchError(f"GraphQL error: {message}", kind="graphql")

        return data.get("data") or {}

    @staticmethod
    def _format_errors(errors: List[Any]) -> str:
        first = errors[0]
        if isinstance(first, dict):
            return first.get("message") or str(first)
        return str(first)

    def _first_error_message(self, response: requests.Response) -> str:
        """Best-effort error message from a failed response body."""
        try:
            errors = response.json().get("errors")
        except (ValueError, AttributeError):
            return response.text[:200] if response.text else ""
        return self._format_errors(errors) if errors else ""

    # ========================================================================
    # Trending
    # ========================================================================

    def fetch_trending(
        self,
        kind: Union[MediaType, str] = MediaType.ANIME,
        window_size: int = TRENDING_WINDOW_SIZE,
    ) -> List[MediaSummary]:
        """
        Fetch the top trending entries of one kind.

        Anime is restricted to currently releasing titles. Any upstream
        failure is logged and answered with the built-in fallback list, so
        this never raises and never returns an empty list.

        Args:
            kind: ANIME or MANGA
            window_size: Number of entries wanted

        Returns:
            Ranked MediaSummary list
        """
        kind = MediaType(kind)
        window_size = max(1, min(window_size, ANILIST_MAX_PAGE_SIZE))

        variables: Dict[str, Any] = {"perPage": window_size, "type": kind.value}
        if kind == MediaType.ANIME:
            variables["status"] = "RELEASING"

        try:
            data = self._execute_query(TRENDING_QUERY, variables)
        except FetchError as e:
            logger.warning(f"Trending {kind.value} unavailable ({e}); serving fallback list")
            return self.fallback_media(kind, window_size)

        results = normalize_media_list(dig(data, "Page", "media"), media_type=kind, ranked=True)
        if not results:
            logger.warning(f"Trending {kind.value} came back empty; serving fallback list")
            return self.fallback_media(kind, window_size)

        logger.info(f"Fetched {len(results)} trending {kind.value} entries")
        return results[:window_size]

    def fallback_media(self, kind: Union[MediaType, str], window_size: int = TRENDING_WINDOW_SIZE) -> List[MediaSummary]:
        """Built-in entries for one kind, marked from_fallback, truncated but never empty."""
        kind = MediaType(kind)
        if self._fallback_media is None:
            self._fallback_media = load_yaml_config(FALLBACK_MEDIA_FILE)

        entries = [e for e in self._fallback_media.get(kind.value) or [] if isinstance(e, dict)]
        results = [
            normalize_media(entry, media_type=kind, rank=rank, from_fallback=True)
            for rank, entry in enumerate(entries, start=1)
        ]
        return results[:max(1, window_size)]

    # ========================================================================
    # Lookup and search
    # ========================================================================

    def fetch_by_id(self, media_id: int) -> Optional[MediaDetail]:
        """
        Fetch full detail for one media id.

        Returns:
            MediaDetail, or None when AniList has no such entry

        Raises:
            FetchError: On transport or server failures
        """
        data = self._execute_query(DETAIL_QUERY, {"id": media_id}, allow_not_found=True)
        media = dig(data, "Media")
        if not media:
            logger.info(f"Media {media_id} not found")
            return None
        return normalize_detail(media)

    def search(
        self,
        term: str,
        page: int = 1,
        page_size: int = SEARCH_PAGE_SIZE,
        kind: Optional[Union[MediaType, str]] = None,
    ) -> SearchPage:
        """
        Search the catalog by free text.

        Results keep upstream order. A blank term returns an empty page
        without touching the network.

        Raises:
            FetchError: On any upstream failure
        """
        term = (term or "").strip()
        if not term:
            return SearchPage(term="")

        kind = MediaType(kind) if kind else None
        variables = {
            "search": term,
            "page": max(1, page),
            "perPage": max(1, min(page_size, ANILIST_MAX_PAGE_SIZE)),
            "type": kind.value if kind else None,
        }

        data = self._execute_query(SEARCH_QUERY, variables)
        results = normalize_media_list(dig(data, "Page", "media"), media_type=kind)

        logger.debug(f"Search '{term}' page {page}: {len(results)} results")
        return SearchPage(
            term=term,
            page_info=normalize_page_info(dig(data, "Page", "pageInfo")),
            results=results,
        )

    def fetch_filtered(self, state: FilterState) -> List[MediaSummary]:
        """
        Run a compiled filter query.

        Raises:
            ValueError: If the filter state holds an unknown value (no request is made)
            FetchError: On any upstream failure
        """
        query = build_filter_query(state)
        media_type = MediaType(resolve_media_type(state.types))

        data = self._execute_query(query)
        return normalize_media_list(dig(data, "Page", "media"), media_type=media_type)

    def fetch_recommendations(self, media_id: int, limit: int = RECOMMENDATIONS_LIMIT) -> List[MediaSummary]:
        """Recommendations for one media id, [] when the id is unknown."""
        data = self._execute_query(
            RECOMMENDATIONS_QUERY,
            {"id": media_id, "perPage": max(1, min(limit, ANILIST_MAX_PAGE_SIZE))},
            allow_not_found=True,
        )
        edges = dig(data, "Media", "recommendations", "edges") or []
        return normalize_media_list(
            [dig(edge, "node", "mediaRecommendation") for edge in edges]
        )[:limit]

    def fetch_upcoming(self, per_page: int = UPCOMING_PAGE_SIZE, today: Optional[date] = None) -> List[MediaSummary]:
        """Anime starting after today, soonest first. Failures yield []."""
        today = today or date.today()
        variables = {
            "page": 1,
            "perPage": max(1, min(per_page, ANILIST_MAX_PAGE_SIZE)),
            "startDateGreater": int(today.strftime("%Y%m%d")),
        }

        try:
            data = self._execute_query(UPCOMING_QUERY, variables)
        except FetchError as e:
            logger.error(f"Upcoming anime unavailable: {e}")
            return []

        return normalize_media_list(dig(data, "Page", "media"), media_type=MediaType.ANIME)

    def fetch_recent(
        self,
        kind: Union[MediaType, str] = MediaType.ANIME,
        per_page: int = RECENT_PAGE_SIZE,
    ) -> List[MediaSummary]:
        """
        Newest non-adult entries of one kind.

        Raises:
            FetchError: On any upstream failure
        """
        kind = MediaType(kind)
        data = self._execute_query(
            RECENT_QUERY,
            {"perPage": max(1, min(per_page, ANILIST_MAX_PAGE_SIZE)), "type": kind.value},
        )
        return normalize_media_list(dig(data, "Page", "media"), media_type=kind)

    def find_id_by_title(self, title: str, kind: Union[MediaKind, str] = MediaKind.UNKNOWN) -> Optional[int]:
        """
        Resolve a free-text title to a catalog id.

        Args:
            title: Title reported by a recognition provider
            kind: Media kind reported alongside it (manga-like kinds search MANGA)

        Returns:
            Best-matching catalog id, or None

        Raises:
            FetchError: On any upstream failure
        """
        title = (title or "").strip()
        if not title:
            return None

        kind = MediaKind(kind)
        if kind == MediaKind.ANIME:
            media_type = MediaType.ANIME.value
        elif kind in (MediaKind.MANGA, MediaKind.MANHWA):
            media_type = MediaType.MANGA.value
        else:
            media_type = None

        data = self._execute_query(
            TITLE_LOOKUP_QUERY,
            {"search": title, "perPage": TITLE_MATCH_CANDIDATES, "type": media_type},
        )
        candidates = [c for c in dig(data, "Page", "media") or [] if isinstance(c, dict)]
        return self.title_matcher.best_match(title, candidates)

    # ========================================================================
    # Airing schedule
    # ========================================================================

    def fetch_schedule(
        self,
        days_ahead: int = SCHEDULE_DAYS_AHEAD,
        per_page: int = SCHEDULE_PAGE_SIZE,
        now: Optional[datetime] = None,
        max_pages: int = SCHEDULE_MAX_PAGES,
    ) -> Schedule:
        """
        Fetch the airing schedule from now through days_ahead days.

        Pages are fetched one after another with a fixed delay in between.
        Fetching stops when there is no next page, when a page reaches past
        the time window, once days_ahead * 10 entries are collected, or
        after max_pages pages.

        Args:
            days_ahead: Number of days covered (today included)
            per_page: Page size
            now: Window start (defaults to the current local time)
            max_pages: Hard page cap

        Returns:
            Schedule with exactly days_ahead days, empty days included

        Raises:
            FetchError: When a page still fails after all retries
        """
        now = now or datetime.now()
        days_ahead = max(1, days_ahead)
        start_ts = int(now.timestamp())
        end_ts = start_ts + days_ahead * SECONDS_PER_DAY
        max_items = days_ahead * SCHEDULE_ITEMS_PER_DAY

        entries: List[ScheduleEntry] = []
        page = 1

        while page <= max_pages:
            if page > 1 and self.page_delay:
                time.sleep(self.page_delay)

            variables = {
                "page": page,
                "perPage": max(1, min(per_page, ANILIST_MAX_PAGE_SIZE)),
                "airingAtGreater": start_ts,
            }
            data = self._fetch_schedule_page(variables)

            past_window = False
            for raw in dig(data, "Page", "airingSchedules") or []:
                if not isinstance(raw, dict) or raw.get("id") is None:
                    continue
                if as_int(raw.get("airingAt")) > end_ts:
                    past_window = True
                    break
                entries.append(normalize_schedule_entry(raw))
                if len(entries) >= max_items:
                    break

            logger.debug(f"Schedule page {page}: {len(entries)} entries so far")

            if past_window or len(entries) >= max_items:
                break
            if not dig(data, "Page", "pageInfo", "hasNextPage"):
                break
            page += 1

        logger.info(f"Fetched {len(entries)} airing entries over {page} page(s)")
        return group_schedule(entries, now.date(), days_ahead)

    def _fetch_schedule_page(self, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Fetch one schedule page, retrying transport, 429 and 5xx failures with exponential backoff."""
        for attempt in range(self.max_retries + 1):
            try:
                return self._execute_query(SCHEDULE_QUERY, variables)
            except FetchError as e:
                if not e.retryable or attempt >= self.max_retries:
                    raise
                wait_time = self.retry_delay * (2 ** attempt)
                logger.warning(
                    f"Schedule page {variables['page']} failed: {e} "
                    f"(retry {attempt + 1}/{self.max_retries} in {wait_time}s)"
                )
                time.sleep(wait_time)


def group_schedule(entries: List[ScheduleEntry], start: date, days_ahead: int) -> Schedule:
    """Group entries by local airing date, padding days that have none."""
    by_date: Dict[date, List[ScheduleEntry]] = {}
    for entry in entries:
        airing_date = datetime.fromtimestamp(entry.airing_at).date()
        by_date.setdefault(airing_date, []).append(entry)

    days = []
    for offset in range(days_ahead):
        current = start + timedelta(days=offset)
        days.append(ScheduleDay(
            label=day_label(current),
            day_of_week=current.strftime("%A"),
            full_date=current,
            is_today=offset == 0,
            is_tomorrow=offset == 1,
            items=by_date.get(current, []),
        ))

    return Schedule(days=days)
