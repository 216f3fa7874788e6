"""
Media Normalizer
================
Turns raw AniList payloads into fully-defaulted view models.

Includes:
- HTML removal for descriptions
- Genre normalization
- Typed defaults for every optional nested field
- Comic kind detection (manga / manhwa / manhua / light novel / one shot)

There is one normalization function per entity type; callers never see a
partial object.
"""

import calendar
import html
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from animeworld.config.settings import (
    DEFAULT_COLOR,
    DEFAULT_DESCRIPTION,
    PLACEHOLDER_COVER_IMAGE,
    UNKNOWN_TITLE,
)
from animeworld.models import (
    CharacterCredit,
    MediaDetail,
    MediaRelation,
    MediaStatus,
    MediaSummary,
    MediaTitles,
    MediaType,
    PageInfo,
    ScheduleEntry,
    StaffCredit,
)

logger = logging.getLogger(__name__)

GENRE_REPLACEMENTS = {
    'Sci-fi': 'Sci-Fi',
    'SciFi': 'Sci-Fi',
    'Slice Of Life': 'Slice of Life',
    'Slice-of-Life': 'Slice of Life',
}

TRAILER_URLS = {
    'youtube': 'https://www.youtube.com/watch?v={id}',
    'dailymotion': 'https://www.dailymotion.com/video/{id}',
}


# ============================================================================
# Field helpers
# ============================================================================

def dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing or null."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def as_int(value: Any, default: int = 0) -> int:
    """Coerce a number-ish value to int, falling back to default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def remove_html_tags(text: Any) -> str:
    """
    Remove HTML tags and entities from text

    Args:
        text: Text to clean

    Returns:
        Cleaned text, or an empty string for non-text input
    """
    if not isinstance(text, str) or not text:
        return ''

    # <br> tags separate paragraphs in AniList descriptions
    text = re.sub(r'<br\s*/?>', ' ', text, flags=re.IGNORECASE)

    # Remove HTML tags
    text = re.sub(r'<[^>]+>', '', text)

    # Decode HTML entities
    text = html.unescape(text)

    # Remove excessive whitespace
    text = re.sub(r'\s+', ' ', text).strip()

    return text


def normalize_genres(genres: Any) -> List[str]:
    """Standardize genre spelling and drop blanks and duplicates, keeping order."""
    if not isinstance(genres, list):
        return []

    normalized = []
    for genre in genres:
        if not isinstance(genre, str):
            continue
        genre = GENRE_REPLACEMENTS.get(genre.strip(), genre.strip())
        if genre and genre not in normalized:
            normalized.append(genre)

    return normalized


def normalize_status(value: Any) -> MediaStatus:
    try:
        return MediaStatus(value)
    except ValueError:
        return MediaStatus.UNKNOWN


def normalize_titles(raw_title: Any) -> MediaTitles:
    """
    Build the title set. The preferred title is English, then romaji,
    then native, then AniList's userPreferred, then a fixed placeholder.
    """
    raw_title = raw_title if isinstance(raw_title, dict) else {}

    romaji = raw_title.get('romaji') or ''
    english = raw_title.get('english') or ''
    native = raw_title.get('native') or ''
    preferred = english or romaji or native or raw_title.get('userPreferred') or UNKNOWN_TITLE

    return MediaTitles(
        romaji=romaji or preferred,
        english=english,
        native=native,
        preferred=preferred,
    )


def format_fuzzy_date(raw_date: Any) -> str:
    """Format an AniList FuzzyDate as 'Mon d, yyyy' (or less when parts are missing)."""
    year = as_int(dig(raw_date, 'year'))
    month = as_int(dig(raw_date, 'month'))
    day = as_int(dig(raw_date, 'day'))

    if not year:
        return 'TBA'
    if not 1 <= month <= 12:
        return str(year)
    if not day:
        return f"{calendar.month_abbr[month]} {year}"
    return f"{calendar.month_abbr[month]} {day}, {year}"


def detect_comic_kind(media_type: MediaType, media_format: str, country: str) -> str:
    """Classify a catalog entry for display: Anime, Manga, Manhwa, Manhua, Light Novel or One Shot."""
    if media_type == MediaType.ANIME:
        return 'Anime'

    media_format = (media_format or '').upper()
    if country == 'KR' or media_format == 'MANHWA':
        return 'Manhwa'
    if country in ('CN', 'TW') or media_format == 'MANHUA':
        return 'Manhua'
    if 'NOVEL' in media_format:
        return 'Light Novel'
    if media_format == 'ONE_SHOT':
        return 'One Shot'
    return 'Manga'


def _infer_media_type(media: Dict[str, Any], default: Optional[MediaType]) -> MediaType:
    raw_type = media.get('type')
    if raw_type in (MediaType.ANIME.value, MediaType.MANGA.value):
        return MediaType(raw_type)
    if default is not None:
        return MediaType(default)
    if media.get('chapters') is not None or media.get('volumes') is not None:
        return MediaType.MANGA
    return MediaType.ANIME


# ============================================================================
# Entity normalizers
# ============================================================================

def normalize_media(
    media: Dict[str, Any],
    media_type: Optional[MediaType] = None,
    rank: int = 0,
    from_fallback: bool = False,
) -> MediaSummary:
    """
    Normalize one AniList Media object into a MediaSummary

    Args:
        media: Raw Media object (any subset of fields)
        media_type: Type to assume when the payload has no 'type' field
        rank: 1-based position in a ranked list (0 when unranked)
        from_fallback: Mark entries that come from the built-in fallback list

    Returns:
        MediaSummary with every field populated
    """
    media = media if isinstance(media, dict) else {}
    kind = _infer_media_type(media, media_type)

    cover = (
        dig(media, 'coverImage', 'large')
        or dig(media, 'coverImage', 'extraLarge')
        or dig(media, 'coverImage', 'medium')
        or PLACEHOLDER_COVER_IMAGE
    )

    average_score = as_int(media.get('averageScore'))
    episodes = as_int(media.get('episodes'))
    chapters = as_int(media.get('chapters'))
    volumes = as_int(media.get('volumes'))
    media_format = media.get('format') or 'Unknown'
    country = media.get('countryOfOrigin') or ''

    if kind == MediaType.ANIME:
        length_label = str(episodes) if episodes else 'TBA'
    else:
        length_label = str(chapters) if chapters else '?'

    return MediaSummary(
        id=as_int(media.get('id')),
        media_type=kind,
        titles=normalize_titles(media.get('title')),
        cover_image=cover,
        banner_image=media.get('bannerImage') or cover,
        color=dig(media, 'coverImage', 'color') or DEFAULT_COLOR,
        format=media_format,
        status=normalize_status(media.get('status')),
        genres=normalize_genres(media.get('genres')),
        average_score=average_score,
        rating=round(average_score / 10, 1),
        episodes=episodes,
        chapters=chapters,
        volumes=volumes,
        length_label=length_label,
        description=remove_html_tags(media.get('description')) or DEFAULT_DESCRIPTION,
        season_year=as_int(media.get('seasonYear')) or as_int(dig(media, 'startDate', 'year')),
        country_of_origin=country,
        comic_kind=detect_comic_kind(kind, media_format, country),
        next_airing_episode=as_int(dig(media, 'nextAiringEpisode', 'episode')),
        time_until_airing=as_int(dig(media, 'nextAiringEpisode', 'timeUntilAiring')),
        rank=rank,
        is_adult=bool(media.get('isAdult')),
        from_fallback=from_fallback,
    )


def normalize_media_list(
    media_list: Any,
    media_type: Optional[MediaType] = None,
    ranked: bool = False,
) -> List[MediaSummary]:
    """Normalize a list of Media objects, skipping null entries and entries without an id."""
    if not isinstance(media_list, list):
        return []

    results = []
    for media in media_list:
        if not isinstance(media, dict) or media.get('id') is None:
            continue
        rank = len(results) + 1 if ranked else 0
        results.append(normalize_media(media, media_type=media_type, rank=rank))

    skipped = len(media_list) - len(results)
    if skipped:
        logger.debug(f"Skipped {skipped} null or id-less media entries")

    return results


def _extract_studios(media: Dict[str, Any]) -> List[str]:
    """Studio names, main studios first. Accepts both edges and nodes shapes."""
    names = []
    main = []

    for edge in dig(media, 'studios', 'edges') or []:
        name = dig(edge, 'node', 'name')
        if not name:
            continue
        (main if edge.get('isMain') else names).append(name)

    for node in dig(media, 'studios', 'nodes') or []:
        name = dig(node, 'name')
        if name and name not in main and name not in names:
            names.append(name)

    return main + [n for n in names if n not in main]


def _extract_characters(media: Dict[str, Any]) -> List[CharacterCredit]:
    characters = []
    for edge in dig(media, 'characters', 'edges') or []:
        node = dig(edge, 'node')
        if not isinstance(node, dict):
            continue
        voice_actors = [va for va in (edge.get('voiceActors') or []) if isinstance(va, dict)]
        voice_actor = dig(voice_actors[0], 'name', 'full') if voice_actors else None
        characters.append(CharacterCredit(
            name=dig(node, 'name', 'full') or 'Unknown',
            native_name=dig(node, 'name', 'native') or '',
            role=edge.get('role') or 'SUPPORTING',
            image=dig(node, 'image', 'large') or PLACEHOLDER_COVER_IMAGE,
            voice_actor=voice_actor or '',
        ))
    return characters


def _extract_staff(media: Dict[str, Any]) -> List[StaffCredit]:
    staff = []
    for edge in dig(media, 'staff', 'edges') or []:
        node = dig(edge, 'node')
        if not isinstance(node, dict):
            continue
        staff.append(StaffCredit(
            name=dig(node, 'name', 'full') or 'Unknown',
            role=edge.get('role') or '',
            image=dig(node, 'image', 'large') or PLACEHOLDER_COVER_IMAGE,
        ))
    return staff


def _extract_relations(media: Dict[str, Any]) -> List[MediaRelation]:
    relations = []
    for edge in dig(media, 'relations', 'edges') or []:
        node = dig(edge, 'node')
        if not isinstance(node, dict) or node.get('id') is None:
            continue
        relations.append(MediaRelation(
            id=as_int(node.get('id')),
            relation_type=edge.get('relationType') or 'OTHER',
            title=normalize_titles(node.get('title')).preferred,
            media_type=_infer_media_type(node, MediaType.ANIME),
        ))
    return relations


def _extract_trailer_url(media: Dict[str, Any]) -> str:
    site = (dig(media, 'trailer', 'site') or '').lower()
    trailer_id = dig(media, 'trailer', 'id')
    if not trailer_id or site not in TRAILER_URLS:
        return ''
    return TRAILER_URLS[site].format(id=trailer_id)


def normalize_detail(media: Dict[str, Any]) -> MediaDetail:
    """
    Normalize a full AniList Media object (detail query) into a MediaDetail

    Args:
        media: Raw Media object

    Returns:
        MediaDetail with every field populated
    """
    media = media if isinstance(media, dict) else {}
    summary = normalize_media(media)
    studios = _extract_studios(media)

    recommendations = normalize_media_list([
        dig(edge, 'node', 'mediaRecommendation')
        for edge in dig(media, 'recommendations', 'edges') or []
    ])

    return MediaDetail(
        **summary.model_dump(),
        duration=as_int(media.get('duration')),
        popularity=as_int(media.get('popularity')),
        favourites=as_int(media.get('favourites')),
        mean_score=as_int(media.get('meanScore')),
        season=media.get('season') or '',
        start_date=format_fuzzy_date(media.get('startDate')),
        end_date=format_fuzzy_date(media.get('endDate')),
        studios=studios,
        main_studio=studios[0] if studios else 'Unknown',
        source=media.get('source') or 'Unknown',
        site_url=media.get('siteUrl') or '',
        trailer_url=_extract_trailer_url(media),
        characters=_extract_characters(media),
        staff=_extract_staff(media),
        relations=_extract_relations(media),
        recommendations=recommendations,
    )


def normalize_page_info(raw: Any) -> PageInfo:
    return PageInfo(
        total=as_int(dig(raw, 'total')),
        current_page=as_int(dig(raw, 'currentPage'), default=1),
        last_page=as_int(dig(raw, 'lastPage'), default=1),
        has_next_page=bool(dig(raw, 'hasNextPage')),
    )


def normalize_schedule_entry(raw: Dict[str, Any]) -> ScheduleEntry:
    """Normalize one airingSchedules entry; the airing time is rendered in local time."""
    airing_at = as_int(dig(raw, 'airingAt'))
    return ScheduleEntry(
        id=as_int(dig(raw, 'id')),
        airing_at=airing_at,
        episode=as_int(dig(raw, 'episode')),
        time=datetime.fromtimestamp(airing_at).strftime('%H:%M') if airing_at else '',
        media=normalize_media(dig(raw, 'media') or {}, media_type=MediaType.ANIME),
    )


def day_label(day: date) -> str:
    """Short day label, e.g. 'Sat Oct 18'."""
    return f"{day.strftime('%a %b')} {day.day}"
