"""
Filter Query Builder
====================
Compiles a FilterState into an AniList GraphQL query.

The output is deterministic: the same state always yields the same query
text, clause order is genres, statuses, years, and empty categories
contribute nothing.
"""

import json
from typing import Dict, List

from pydantic import BaseModel, Field

from animeworld.adapters.queries import FILTER_MEDIA_SELECTION, MEDIA_FIELDS
from animeworld.config.settings import FILTER_PAGE_SIZE

GENRE_OPTIONS = [
    "Action", "Adventure", "Comedy", "Drama", "Fantasy", "Horror", "Mystery",
    "Romance", "Sci-Fi", "Slice of Life", "Sports", "Supernatural", "Thriller",
    "Isekai", "Mecha", "Psychological", "School", "Shounen", "Shoujo",
    "Seinen", "Josei",
]

STATUS_OPTIONS = ("RELEASING", "FINISHED", "NOT_YET_RELEASED", "CANCELLED", "HIATUS")

# MANHWA, MANHUA, NOVEL and ONE_SHOT have no catalog type of their own and
# are folded onto MANGA.
TYPE_OPTIONS = ("ANIME", "MANGA", "MANHWA", "MANHUA", "NOVEL", "ONE_SHOT")

SORT_OPTIONS = (
    "TRENDING_DESC",
    "POPULARITY_DESC",
    "SCORE_DESC",
    "START_DATE_DESC",
    "START_DATE",
    "FAVOURITES_DESC",
)

DEFAULT_SORT = "TRENDING_DESC"


class FilterState(BaseModel):
    """User-selected filter values. Every category may be empty."""
    genres: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)
    years: List[int] = Field(default_factory=list)
    types: List[str] = Field(default_factory=list)
    sort: str = DEFAULT_SORT


def validate_filter_state(state: FilterState):
    """
    Reject values that would otherwise be spliced into the query text.

    Raises:
        ValueError: On an unknown sort key, status or type, a blank genre,
                    or a year that is not four digits
    """
    if state.sort not in SORT_OPTIONS:
        raise ValueError(f"Invalid sort key: {state.sort}")

    for status in state.status:
        if status not in STATUS_OPTIONS:
            raise ValueError(f"Invalid status: {status}")

    for media_type in state.types:
        if media_type not in TYPE_OPTIONS:
            raise ValueError(f"Invalid type: {media_type}")

    for genre in state.genres:
        if not genre or not genre.strip():
            raise ValueError("Genre names must not be blank")

    for year in state.years:
        if not 1000 <= year <= 9999:
            raise ValueError(f"Invalid year: {year}")


def filter_options() -> Dict[str, List[str]]:
    """Choices the filter UI offers for each category."""
    return {
        "genres": list(GENRE_OPTIONS),
        "status": list(STATUS_OPTIONS),
        "types": list(TYPE_OPTIONS),
        "sort": list(SORT_OPTIONS),
    }


def resolve_media_type(types: List[str]) -> str:
    """Any selected type other than ANIME selects MANGA; otherwise ANIME."""
    if any(media_type != "ANIME" for media_type in types):
        return "MANGA"
    return "ANIME"


def build_filter_clauses(state: FilterState) -> List[str]:
    clauses = []

    if state.genres:
        clauses.append(f"genre_in: [{', '.join(json.dumps(g) for g in state.genres)}]")

    if state.status:
        clauses.append(f"status_in: [{', '.join(state.status)}]")

    if state.years:
        clauses.append(
            f"startDate_greater: {min(state.years)}0101, "
            f"startDate_lesser: {max(state.years)}1231"
        )

    return clauses


def build_filter_query(state: FilterState, per_page: int = FILTER_PAGE_SIZE) -> str:
    """
    Build the GraphQL query for a filter state

    Args:
        state: Selected filters
        per_page: Page size of the single results page

    Returns:
        Query text (no variables needed)

    Raises:
        ValueError: If the state holds an unknown value
    """
    validate_filter_state(state)

    arguments = [f"sort: {state.sort}", f"type: {resolve_media_type(state.types)}"]
    arguments.extend(build_filter_clauses(state))

    return (
        "query {\n"
        f"    Page(page: 1, perPage: {per_page}) {{\n"
        f"        media({', '.join(arguments)}) {FILTER_MEDIA_SELECTION.strip()}\n"
        "    }\n"
        "}\n"
    ) + MEDIA_FIELDS
