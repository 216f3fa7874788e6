"""Unit tests for image validation and the recognition providers."""
from __future__ import annotations

import random
from unittest.mock import MagicMock

import pytest
import requests

from animeworld.adapters.anilist_adapter import AniListAdapter
from animeworld.adapters.recognition import RecognitionClient, validate_image
from animeworld.adapters.saucenao_adapter import SIMULATED_SOURCE_API, SauceNaoAdapter
from animeworld.adapters.trace_moe_adapter import TraceMoeAdapter, format_timestamp
from animeworld.exceptions import (
    FetchError,
    ImageValidationError,
    MediaNotResolvedError,
    RecognitionError,
)
from animeworld.models import ImageUpload, MediaKind, RecognitionResult

from conftest import make_response

MB = 1024 * 1024


def jpeg(size: int = 1024) -> ImageUpload:
    return ImageUpload(filename="shot.jpg", content_type="image/jpeg", data=b"\xff" * size)


def trace_moe_hit(similarity=0.93, anilist=None, episode=5, start=83.4):
    return {
        "frameCount": 100,
        "error": "",
        "result": [{
            "anilist": anilist if anilist is not None else {"id": 21, "title": {"romaji": "ONE PIECE", "english": "One Piece"}},
            "filename": "[Group] One Piece - 05.mkv",
            "episode": episode,
            "from": start,
            "to": start + 2,
            "similarity": similarity,
        }],
    }


def saucenao_hit(similarity="91.5", index_id=37, **data):
    return {
        "header": {"status": 0},
        "results": [{
            "header": {"similarity": similarity, "index_id": index_id},
            "data": {"source": "Solo Leveling", "part": " - Chapter 110", **data},
        }],
    }


class TestValidateImage:
    def test_six_megabyte_jpeg_is_too_large(self):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_image(jpeg(6 * MB))
        assert exc_info.value.reason == ImageValidationError.TOO_LARGE

    def test_exactly_five_megabytes_is_allowed(self):
        validate_image(jpeg(5 * MB))

    @pytest.mark.parametrize("content_type", ["image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"])
    def test_supported_formats(self, content_type):
        validate_image(ImageUpload(content_type=content_type, data=b"x"))

    @pytest.mark.parametrize("content_type", ["image/bmp", "application/pdf", ""])
    def test_unsupported_format(self, content_type):
        with pytest.raises(ImageValidationError) as exc_info:
            validate_image(ImageUpload(content_type=content_type, data=b"x"))
        assert exc_info.value.reason == ImageValidationError.UNSUPPORTED_FORMAT


class TestTraceMoeAdapter:
    def make_adapter(self, response):
        session = MagicMock(spec=requests.Session)
        if isinstance(response, Exception):
            session.request.side_effect = response
        else:
            session.request.return_value = response
        return TraceMoeAdapter(session=session), session

    def test_match(self):
        adapter, session = self.make_adapter(make_response(200, trace_moe_hit()))

        result = adapter.identify(jpeg())

        assert result.matched
        assert result.confidence == 93
        assert result.media_kind == MediaKind.ANIME
        assert result.media_id == 21
        assert result.title == "ONE PIECE"
        assert result.description == "Scene from episode 5"
        assert result.timestamp == "1:23"
        assert result.source_api == "trace.moe"
        assert not result.simulated

        method, url = session.request.call_args.args
        assert url == "https://api.trace.moe/search?anilistInfo"
        assert "image" in session.request.call_args.kwargs["files"]

    def test_missing_anilist_info_is_no_match(self):
        payload = trace_moe_hit()
        payload["result"][0]["anilist"] = None
        adapter, _ = self.make_adapter(make_response(200, payload))

        result = adapter.identify(jpeg())

        assert not result.matched
        assert result.confidence == 0

    def test_zero_similarity_is_no_match(self):
        adapter, _ = self.make_adapter(make_response(200, trace_moe_hit(similarity=0)))
        assert not adapter.identify(jpeg()).matched

    def test_empty_result(self):
        adapter, _ = self.make_adapter(make_response(200, {"result": []}))
        assert not adapter.identify(jpeg()).matched

    def test_transport_failure(self):
        adapter, _ = self.make_adapter(requests.ConnectionError("down"))
        with pytest.raises(RecognitionError):
            adapter.identify(jpeg())

    def test_format_timestamp(self):
        assert format_timestamp(0) == "0:00"
        assert format_timestamp(605.9) == "10:05"
        assert format_timestamp(None) is None


class TestSauceNaoAdapter:
    def make_adapter(self, response, **kwargs):
        session = MagicMock(spec=requests.Session)
        if isinstance(response, Exception):
            session.request.side_effect = response
        else:
            session.request.return_value = response
        return SauceNaoAdapter(api_key="secret", session=session, **kwargs), session

    def test_match_above_threshold(self):
        adapter, session = self.make_adapter(make_response(200, saucenao_hit("91.5", anilist_id=105398)))

        result = adapter.identify(jpeg())

        assert result.matched
        assert result.confidence == 91.5
        assert result.media_kind == MediaKind.MANGA
        assert result.title == "Solo Leveling"
        assert result.media_id == 105398
        assert result.chapter == 110
        assert result.description == "Found in MangaDex database"
        assert result.source_api == "saucenao"
        assert not result.simulated

        data = session.request.call_args.kwargs["data"]
        assert data["output_type"] == 2
        assert data["api_key"] == "secret"
        assert data["db"] == 999
        assert data["numres"] == 1
        assert "file" in session.request.call_args.kwargs["files"]

    def test_exactly_seventy_is_no_match(self):
        adapter, _ = self.make_adapter(make_response(200, saucenao_hit("70.0")))

        result = adapter.identify(jpeg())

        assert not result.matched
        assert result.similarity == 70.0

    def test_anime_index(self):
        adapter, _ = self.make_adapter(make_response(200, saucenao_hit("88", index_id=21, part="12", est_time="00:10:01")))

        result = adapter.identify(jpeg())

        assert result.media_kind == MediaKind.ANIME
        assert result.episode == 12
        assert result.chapter is None

    def test_negative_status_raises(self):
        payload = {"header": {"status": -2, "message": "Search rate limit exceeded"}, "results": []}
        adapter, _ = self.make_adapter(make_response(200, payload))

        with pytest.raises(RecognitionError, match="rate limit"):
            adapter.identify(jpeg())

    def test_failure_with_key_never_simulates(self):
        adapter, _ = self.make_adapter(requests.ConnectionError("down"))

        with pytest.raises(RecognitionError):
            adapter.identify(jpeg())

    def test_http_failure_with_key(self):
        adapter, _ = self.make_adapter(make_response(429, None, text="Too many"))

        with pytest.raises(RecognitionError) as exc_info:
            adapter.identify(jpeg())
        assert exc_info.value.status_code == 429


class TestSimulationMode:
    def test_canned_result_is_marked_simulated(self):
        session = MagicMock(spec=requests.Session)
        adapter = SauceNaoAdapter(api_key=None, rng=random.Random(7), simulated_delay=0, session=session)

        result = adapter.identify(jpeg())

        assert result.simulated
        assert result.source_api == SIMULATED_SOURCE_API
        assert result.description
        session.request.assert_not_called()

    def test_every_canned_result_is_reachable(self):
        adapter = SauceNaoAdapter(api_key=None, rng=random.Random(0), simulated_delay=0)

        seen = {adapter.simulate().media_kind for _ in range(60)}

        assert seen == {MediaKind.MANGA, MediaKind.MANHWA, MediaKind.UNKNOWN}


class TestRecognitionClient:
    def make_client(self, trace_result=None, trace_error=None, sauce_result=None, catalog=None):
        trace_moe = MagicMock(spec=TraceMoeAdapter)
        if trace_error is not None:
            trace_moe.identify.side_effect = trace_error
        else:
            trace_moe.identify.return_value = trace_result or RecognitionResult(matched=False, source_api="trace.moe")
        saucenao = MagicMock(spec=SauceNaoAdapter)
        saucenao.identify.return_value = sauce_result or RecognitionResult(matched=False, source_api="saucenao")
        client = RecognitionClient(
            trace_moe=trace_moe,
            saucenao=saucenao,
            catalog=catalog or MagicMock(spec=AniListAdapter),
        )
        return client, trace_moe, saucenao

    def test_oversized_upload_makes_no_calls(self):
        client, trace_moe, saucenao = self.make_client()

        with pytest.raises(ImageValidationError):
            client.analyze(jpeg(6 * MB))

        trace_moe.identify.assert_not_called()
        saucenao.identify.assert_not_called()

    def test_trace_moe_match_is_final(self):
        hit = RecognitionResult(matched=True, confidence=95, media_kind=MediaKind.ANIME, media_id=21)
        client, _, saucenao = self.make_client(trace_result=hit)

        assert client.analyze(jpeg()) is hit
        saucenao.identify.assert_not_called()

    def test_falls_through_to_saucenao(self):
        sauce = RecognitionResult(matched=True, confidence=80, media_kind=MediaKind.MANGA, title="Berserk")
        client, _, saucenao = self.make_client(sauce_result=sauce)

        assert client.analyze(jpeg()) is sauce
        saucenao.identify.assert_called_once()

    def test_trace_moe_failure_falls_through(self):
        sauce = RecognitionResult(matched=False, confidence=40)
        client, _, saucenao = self.make_client(trace_error=RecognitionError("down"), sauce_result=sauce)

        assert client.analyze(jpeg()) is sauce

    def test_saucenao_failure_propagates(self):
        client, _, saucenao = self.make_client()
        saucenao.identify.side_effect = RecognitionError("rejected", kind="http", status_code=403)

        with pytest.raises(RecognitionError):
            client.analyze(jpeg())


class TestResolveMediaId:
    def test_existing_id(self):
        catalog = MagicMock(spec=AniListAdapter)
        client = RecognitionClient(trace_moe=MagicMock(), saucenao=MagicMock(), catalog=catalog)

        assert client.resolve_media_id(RecognitionResult(matched=True, media_id=30013)) == 30013
        catalog.find_id_by_title.assert_not_called()

    def test_lookup_by_title(self):
        catalog = MagicMock(spec=AniListAdapter)
        catalog.find_id_by_title.return_value = 30002
        client = RecognitionClient(trace_moe=MagicMock(), saucenao=MagicMock(), catalog=catalog)

        result = RecognitionResult(matched=True, media_kind=MediaKind.MANGA, title="Berserk")

        assert client.resolve_media_id(result) == 30002
        catalog.find_id_by_title.assert_called_once_with("Berserk", MediaKind.MANGA)

    def test_unresolved(self):
        catalog = MagicMock(spec=AniListAdapter)
        catalog.find_id_by_title.return_value = None
        client = RecognitionClient(trace_moe=MagicMock(), saucenao=MagicMock(), catalog=catalog)

        with pytest.raises(MediaNotResolvedError):
            client.resolve_media_id(RecognitionResult(matched=True, title="Unknown Thing"))

    def test_no_match_is_unresolved(self):
        client = RecognitionClient(trace_moe=MagicMock(), saucenao=MagicMock(), catalog=MagicMock())

        with pytest.raises(MediaNotResolvedError):
            client.resolve_media_id(RecognitionResult(matched=False, title="Anything"))

    def test_catalog_failure_propagates(self):
        catalog = MagicMock(spec=AniListAdapter)
        catalog.find_id_by_title.side_effect = FetchError("down")
        client = RecognitionClient(trace_moe=MagicMock(), saucenao=MagicMock(), catalog=catalog)

        with pytest.raises(FetchError):
            client.resolve_media_id(RecognitionResult(matched=True, title="Berserk"))
