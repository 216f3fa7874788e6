"""
Data Models
===========
Pydantic value objects passed between the clients, the store and the API.

Every field a caller can render has a non-null default, so a model built
from partial upstream data is always complete.
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from animeworld.config.settings import (
    DEFAULT_COLOR,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_DESCRIPTION,
    DEFAULT_DISPLAY_NAME,
    DEFAULT_FIRST_NAME,
    DEFAULT_ROLE,
    PLACEHOLDER_COVER_IMAGE,
    UNKNOWN_TITLE,
)


# ============================================================================
# Enumerations
# ============================================================================

class MediaType(str, Enum):
    """Catalog media types."""
    ANIME = "ANIME"
    MANGA = "MANGA"


class MediaStatus(str, Enum):
    """Release status as reported by the catalog."""
    RELEASING = "RELEASING"
    FINISHED = "FINISHED"
    NOT_YET_RELEASED = "NOT_YET_RELEASED"
    CANCELLED = "CANCELLED"
    HIATUS = "HIATUS"
    UNKNOWN = "UNKNOWN"


class MediaKind(str, Enum):
    """Kind reported by a recognition provider."""
    ANIME = "ANIME"
    MANGA = "MANGA"
    MANHWA = "MANHWA"
    UNKNOWN = "UNKNOWN"


# ============================================================================
# User records
# ============================================================================

class UserRecord(BaseModel):
    """Profile tied to one authentication-provider identity."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    external_id: str
    username: str
    first_name: str = DEFAULT_FIRST_NAME
    last_name: str = ""
    display_name: str = DEFAULT_DISPLAY_NAME
    email: Optional[str] = None
    phone: Optional[str] = None
    country_code: str = DEFAULT_COUNTRY_CODE
    google_auth: bool = False
    phone_auth: bool = False
    role: str = DEFAULT_ROLE
    created_at: datetime
    last_login: datetime


class UserCreateRequest(BaseModel):
    """Body of POST /api/users. Only externalId is required."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    external_id: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    country_code: Optional[str] = None
    google_auth: bool = False
    phone_auth: bool = False


def derive_username(external_id: str, username: Optional[str] = None, email: Optional[str] = None) -> str:
    """Given username, else the local part of the email, else user_<first 8 chars of id>."""
    if username:
        return username
    if email:
        return email.split("@")[0]
    return f"user_{external_id[:8]}"


def derive_display_name(
    display_name: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> str:
    """Given display name, else 'First Last' when both parts exist, else 'User'."""
    if display_name:
        return display_name
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return DEFAULT_DISPLAY_NAME


# ============================================================================
# Media
# ============================================================================

class MediaTitles(BaseModel):
    romaji: str = UNKNOWN_TITLE
    english: str = ""
    native: str = ""
    preferred: str = UNKNOWN_TITLE


class MediaSummary(BaseModel):
    """Normalized view of one catalog entry."""

    id: int
    media_type: MediaType = MediaType.ANIME
    titles: MediaTitles = Field(default_factory=MediaTitles)
    cover_image: str = PLACEHOLDER_COVER_IMAGE
    banner_image: str = PLACEHOLDER_COVER_IMAGE
    color: str = DEFAULT_COLOR
    format: str = "Unknown"
    status: MediaStatus = MediaStatus.UNKNOWN
    genres: List[str] = Field(default_factory=list)
    average_score: int = 0
    rating: float = 0.0
    episodes: int = 0
    chapters: int = 0
    volumes: int = 0
    length_label: str = "TBA"
    description: str = DEFAULT_DESCRIPTION
    season_year: int = 0
    country_of_origin: str = ""
    comic_kind: str = "Anime"
    next_airing_episode: int = 0
    time_until_airing: int = 0
    rank: int = 0
    is_adult: bool = False
    from_fallback: bool = False


class CharacterCredit(BaseModel):
    name: str = "Unknown"
    native_name: str = ""
    role: str = "SUPPORTING"
    image: str = PLACEHOLDER_COVER_IMAGE
    voice_actor: str = ""


class StaffCredit(BaseModel):
    name: str = "Unknown"
    role: str = ""
    image: str = PLACEHOLDER_COVER_IMAGE


class MediaRelation(BaseModel):
    id: int
    relation_type: str = "OTHER"
    title: str = UNKNOWN_TITLE
    media_type: MediaType = MediaType.ANIME


class MediaDetail(MediaSummary):
    """Full detail for one catalog entry."""

    duration: int = 0
    popularity: int = 0
    favourites: int = 0
    mean_score: int = 0
    season: str = ""
    start_date: str = "TBA"
    end_date: str = "TBA"
    studios: List[str] = Field(default_factory=list)
    main_studio: str = "Unknown"
    source: str = "Unknown"
    site_url: str = ""
    trailer_url: str = ""
    characters: List[CharacterCredit] = Field(default_factory=list)
    staff: List[StaffCredit] = Field(default_factory=list)
    relations: List[MediaRelation] = Field(default_factory=list)
    recommendations: List[MediaSummary] = Field(default_factory=list)


class PageInfo(BaseModel):
    total: int = 0
    current_page: int = 1
    last_page: int = 1
    has_next_page: bool = False


class SearchPage(BaseModel):
    """One page of search results in upstream order."""
    term: str = ""
    page_info: PageInfo = Field(default_factory=PageInfo)
    results: List[MediaSummary] = Field(default_factory=list)


# ============================================================================
# Airing schedule
# ============================================================================

class ScheduleEntry(BaseModel):
    id: int
    airing_at: int = 0
    episode: int = 0
    time: str = ""
    media: MediaSummary
    simulated: bool = False


class ScheduleDay(BaseModel):
    label: str
    day_of_week: str
    full_date: date
    is_today: bool = False
    is_tomorrow: bool = False
    items: List[ScheduleEntry] = Field(default_factory=list)


class Schedule(BaseModel):
    days: List[ScheduleDay] = Field(default_factory=list)
    simulated: bool = False


# ============================================================================
# Demo episode / chapter listings
# ============================================================================

class EpisodeItem(BaseModel):
    number: int
    title: str
    description: str = ""
    is_filler: bool = False
    rating: float = 0.0
    duration: int = 24
    thumbnail: str = PLACEHOLDER_COVER_IMAGE
    simulated: bool = True


class ChapterItem(BaseModel):
    number: int
    title: str
    volume: int = 1
    pages: int = 0
    is_special: bool = False
    release_date: Optional[date] = None
    simulated: bool = True


class SeasonItem(BaseModel):
    id: int
    title: str
    relation_type: str = "SEASON"
    episodes: int = 0
    is_current: bool = False


class VolumeItem(BaseModel):
    number: int
    title: str
    chapters: int = 0
    cover: str = PLACEHOLDER_COVER_IMAGE


# ============================================================================
# Image recognition
# ============================================================================

class ImageUpload(BaseModel):
    """An image submitted for recognition."""

    filename: str = "upload"
    content_type: str = ""
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class RecognitionResult(BaseModel):
    """Normalized outcome of one recognition attempt. Never persisted."""

    matched: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    media_kind: MediaKind = MediaKind.UNKNOWN
    title: Optional[str] = None
    media_id: Optional[int] = None
    description: str = ""
    source_api: str = ""
    simulated: bool = False
    episode: Optional[int] = None
    chapter: Optional[int] = None
    timestamp: Optional[str] = None
    similarity: Optional[float] = None
    source: Optional[str] = None
