"""Shared test fixtures for all tests."""
from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")

from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

from animeworld.adapters.anilist_adapter import AniListAdapter
from animeworld.database.db_connector import UserStore


def make_response(status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> MagicMock:
    """A stand-in for requests.Response."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text if text is not None else ("" if payload is None else str(payload))
    if payload is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = payload
    return response


def graphql_response(data: Any, status_code: int = 200) -> MagicMock:
    return make_response(status_code, {"data": data})


def raw_media(media_id: int = 1, **overrides) -> dict:
    """A catalog Media object as AniList returns it."""
    media = {
        "id": media_id,
        "type": "ANIME",
        "title": {"romaji": f"Title {media_id}", "english": None, "native": None},
        "coverImage": {"large": f"https://img/{media_id}.jpg", "color": "#123456"},
        "bannerImage": None,
        "description": "A <b>bold</b> story.<br>Second line.",
        "format": "TV",
        "status": "RELEASING",
        "episodes": 12,
        "genres": ["Action"],
        "averageScore": 80,
    }
    media.update(overrides)
    return media


# ── Catalog Fixtures ───────────────────────────────────────────────────────

@pytest.fixture
def mock_session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def catalog(mock_session) -> AniListAdapter:
    return AniListAdapter(
        requests_per_minute=None,
        retry_delay=0,
        page_delay=0,
        session=mock_session,
    )


# ── Store Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path):
    user_store = UserStore(str(tmp_path / "users.duckdb"))
    user_store.connect()
    yield user_store
    user_store.close()
