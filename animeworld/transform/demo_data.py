"""
Demo Data Generators
====================
Stand-in listings for things the catalog does not provide: per-episode and
per-chapter listings, and an airing schedule for when the catalog is
unreachable.

Everything produced here is flagged ``simulated=True`` so it can never be
mistaken for genuine upstream data.
"""

import logging
import random
from datetime import date, datetime, timedelta
from typing import List, Optional

from animeworld.models import (
    ChapterItem,
    EpisodeItem,
    MediaDetail,
    MediaStatus,
    MediaTitles,
    MediaType,
    MediaSummary,
    Schedule,
    ScheduleDay,
    ScheduleEntry,
    SeasonItem,
    VolumeItem,
)
from animeworld.transform.normalizer import day_label

logger = logging.getLogger(__name__)

DEFAULT_EPISODE_COUNT = 24
DEFAULT_CHAPTER_COUNT = 50
CHAPTERS_PER_VOLUME = 10

FALLBACK_GENRES = [
    ["Comedy", "Magic", "Slice of Life"],
    ["Romance", "School", "Drama"],
    ["Horror", "Thriller"],
    ["Fantasy", "Adventure"],
    ["Isekai", "Comedy"],
    ["Drama", "Music"],
    ["Slice of Life", "Outdoor"],
]
FALLBACK_COLORS = ["#ff6b6b", "#4ecdc4", "#45b7d1", "#96ceb4", "#feca57"]


def simulate_episodes(detail: MediaDetail, rng: Optional[random.Random] = None) -> List[EpisodeItem]:
    """
    Generate an episode listing for an anime.

    Roughly 30% of episodes are flagged as filler and each gets a rating
    between 8.0 and 10.0.
    """
    rng = rng or random.Random()
    total = detail.episodes or DEFAULT_EPISODE_COUNT

    episodes = []
    for number in range(1, total + 1):
        episodes.append(EpisodeItem(
            number=number,
            title=f"Episode {number}",
            description=f"Episode {number} of {detail.titles.romaji}",
            is_filler=rng.random() > 0.7,
            rating=round(rng.random() * 2 + 8, 1),
            duration=detail.duration or 24,
            thumbnail=detail.cover_image,
        ))

    logger.debug(f"Simulated {len(episodes)} episodes for media {detail.id}")
    return episodes


def simulate_chapters(
    detail: MediaDetail,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> List[ChapterItem]:
    """
    Generate a chapter listing for a manga.

    About 10% of chapters are specials, each has 15-44 pages and a release
    date within the past year.
    """
    rng = rng or random.Random()
    today = today or date.today()
    total = detail.chapters or DEFAULT_CHAPTER_COUNT

    chapters = []
    for number in range(1, total + 1):
        is_special = rng.random() > 0.9
        chapters.append(ChapterItem(
            number=number,
            title=f"Special Chapter {number}" if is_special else f"Chapter {number}",
            volume=(number - 1) // CHAPTERS_PER_VOLUME + 1,
            pages=rng.randint(15, 44),
            is_special=is_special,
            release_date=today - timedelta(days=rng.randint(0, 364)),
        ))

    logger.debug(f"Simulated {len(chapters)} chapters for media {detail.id}")
    return chapters


def extract_seasons(detail: MediaDetail) -> List[SeasonItem]:
    """The main series followed by its sequels and prequels."""
    seasons = [SeasonItem(
        id=detail.id,
        title="Main Series",
        episodes=detail.episodes,
        is_current=True,
    )]

    for relation in detail.relations:
        if relation.relation_type in ("SEQUEL", "PREQUEL"):
            seasons.append(SeasonItem(
                id=relation.id,
                title=f"{relation.relation_type}: {relation.title}",
                relation_type=relation.relation_type,
            ))

    return seasons


def extract_volumes(detail: MediaDetail) -> List[VolumeItem]:
    """Split the chapter count evenly across the known volumes (at least one)."""
    total_volumes = detail.volumes or 1
    per_volume = detail.chapters // total_volumes

    return [
        VolumeItem(
            number=number,
            title=f"Volume {number}",
            chapters=per_volume,
            cover=detail.cover_image,
        )
        for number in range(1, total_volumes + 1)
    ]


def fallback_schedule(
    days_ahead: int = 7,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Schedule:
    """
    Build a placeholder airing schedule with one evening slot per sample
    genre set for each day.
    """
    rng = rng or random.Random()
    now = now or datetime.now()
    today = now.date()

    days = []
    for offset in range(days_ahead):
        current = today + timedelta(days=offset)
        items = []

        for slot, genres in enumerate(FALLBACK_GENRES):
            entry_id = offset * 10 + slot + 1
            airing = datetime.combine(current, datetime.min.time()).replace(hour=(18 + slot) % 24)
            score = int(rng.random() * 20 + 70)
            items.append(ScheduleEntry(
                id=entry_id,
                airing_at=int(airing.timestamp()),
                episode=slot + 1,
                time=airing.strftime("%H:%M"),
                simulated=True,
                media=MediaSummary(
                    id=entry_id,
                    media_type=MediaType.ANIME,
                    titles=MediaTitles(
                        romaji=f"Sample Anime {slot + 1}",
                        native=f"サンプルアニメ {slot + 1}",
                        preferred=f"Sample Anime {slot + 1}",
                    ),
                    color=FALLBACK_COLORS[slot % len(FALLBACK_COLORS)],
                    format="TV",
                    status=MediaStatus.RELEASING,
                    genres=genres,
                    average_score=score,
                    rating=round(score / 10, 1),
                    episodes=12,
                    length_label="12",
                    description="This is a sample fallback anime schedule.",
                    from_fallback=True,
                ),
            ))

        days.append(ScheduleDay(
            label=day_label(current),
            day_of_week=current.strftime("%A"),
            full_date=current,
            is_today=offset == 0,
            is_tomorrow=offset == 1,
            items=items,
        ))

    return Schedule(days=days, simulated=True)
