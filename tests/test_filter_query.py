"""Unit tests for the filter query builder."""
from __future__ import annotations

import pytest

from animeworld.adapters.filter_query import (
    FilterState,
    build_filter_clauses,
    build_filter_query,
    filter_options,
    resolve_media_type,
)


class TestBuildFilterQuery:
    def test_years_and_single_genre(self):
        query = build_filter_query(FilterState(years=[2020, 2023], genres=["Action"]))

        assert "startDate_greater: 20200101" in query
        assert "startDate_lesser: 20231231" in query
        assert query.count("genre_in") == 1
        assert 'genre_in: ["Action"]' in query

    def test_empty_state_has_no_clauses(self):
        query = build_filter_query(FilterState())

        assert "media(sort: TRENDING_DESC, type: ANIME)" in query
        assert "genre_in" not in query
        assert "status_in" not in query
        assert "startDate_greater" not in query

    def test_year_bounds_use_min_and_max(self):
        clauses = build_filter_clauses(FilterState(years=[2023, 2005, 2011]))
        assert clauses == ["startDate_greater: 20050101, startDate_lesser: 20231231"]

    def test_statuses_are_unquoted(self):
        query = build_filter_query(FilterState(status=["RELEASING", "HIATUS"]))
        assert "status_in: [RELEASING, HIATUS]" in query

    def test_genre_names_are_json_quoted(self):
        query = build_filter_query(FilterState(genres=['Slice of Life', 'Say "hi"']))
        assert 'genre_in: ["Slice of Life", "Say \\"hi\\""]' in query

    def test_deterministic(self):
        state = FilterState(genres=["Drama"], status=["FINISHED"], years=[2019], sort="SCORE_DESC")
        assert build_filter_query(state) == build_filter_query(state)

    def test_page_size(self):
        assert "Page(page: 1, perPage: 50)" in build_filter_query(FilterState())

    def test_selection_uses_media_fragment(self):
        query = build_filter_query(FilterState())
        assert "...mediaFields" in query
        assert "fragment mediaFields on Media" in query


class TestMediaTypeFolding:
    def test_no_types_selects_anime(self):
        assert resolve_media_type([]) == "ANIME"

    def test_only_anime_selects_anime(self):
        assert resolve_media_type(["ANIME"]) == "ANIME"

    @pytest.mark.parametrize("media_type", ["MANGA", "MANHWA", "MANHUA", "NOVEL", "ONE_SHOT"])
    def test_other_types_fold_onto_manga(self, media_type):
        assert resolve_media_type(["ANIME", media_type]) == "MANGA"

    def test_query_carries_folded_type(self):
        assert "type: MANGA" in build_filter_query(FilterState(types=["MANHWA"]))


class TestValidation:
    def test_invalid_sort(self):
        with pytest.raises(ValueError, match="sort"):
            build_filter_query(FilterState(sort="RANDOM; DROP"))

    def test_invalid_status(self):
        with pytest.raises(ValueError, match="status"):
            build_filter_query(FilterState(status=["AIRING"]))

    def test_invalid_type(self):
        with pytest.raises(ValueError, match="type"):
            build_filter_query(FilterState(types=["COMIC"]))

    def test_blank_genre(self):
        with pytest.raises(ValueError):
            build_filter_query(FilterState(genres=["  "]))

    def test_invalid_year(self):
        with pytest.raises(ValueError, match="year"):
            build_filter_query(FilterState(years=[99]))


class TestFilterOptions:
    def test_every_offered_choice_is_accepted(self):
        options = filter_options()

        state = FilterState(
            genres=options["genres"],
            status=options["status"],
            types=["MANGA"],
            sort=options["sort"][0],
        )

        assert "genre_in" in build_filter_query(state)
        assert "Slice of Life" in options["genres"]
        assert options["sort"][0] == "TRENDING_DESC"
