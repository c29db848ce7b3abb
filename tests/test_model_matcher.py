"""Tests for fuzzy model matching."""

from __future__ import annotations

import pytest

from phone_price.core.model_matcher import (
    compare_two_strings,
    find_best_match,
    fold_variants,
    unique_models,
)


class TestCompareTwoStrings:
    """Tests for the normalized Indel similarity."""

    def test_identical_strings(self):
        assert compare_two_strings("갤럭시s25", "갤럭시s25") == 1.0

    def test_whitespace_ignored(self):
        assert compare_two_strings("갤럭시 S25", "갤럭시S25") == 1.0

    def test_partial_overlap(self):
        assert compare_two_strings("아이폰16", "아이폰16프로") == pytest.approx(10 / 12)

    def test_no_overlap(self):
        assert compare_two_strings("갤럭시", "아이폰") == 0.0

    def test_short_strings(self):
        assert compare_two_strings("a", "b") == 0.0
        assert compare_two_strings("a", "ab") == pytest.approx(2 / 3)
        assert compare_two_strings("a", "a") == 1.0

    def test_symmetric(self):
        first, second = "갤럭시s25울트라", "갤럭시s24울트라"
        assert compare_two_strings(first, second) == compare_two_strings(second, first)


class TestFindBestMatch:
    """Tests for find_best_match."""

    def test_empty_candidates(self):
        assert find_best_match("갤럭시s25", []) is None

    def test_exact_candidate_wins(self):
        candidates = ["갤럭시s25울트라", "갤럭시s25", "갤럭시s25플러스"]

        best = find_best_match("갤럭시s25", candidates)

        assert best.target == "갤럭시s25"
        assert best.rating == 1.0
        assert best.index == 1
        assert [r.target for r in best.ratings] == candidates

    def test_query_normalized(self):
        assert find_best_match("갤럭시 S25 울트라", ["갤럭시s25", "갤럭시s25울트라"]).target == (
            "갤럭시s25울트라"
        )

    def test_english_variants_folded(self):
        best = find_best_match("아이폰16프로맥스", ["iphone16", "iphone16promax"])

        assert best.target == "iphone16promax"
        assert best.rating == 1.0

    def test_ties_go_to_first_candidate(self):
        best = find_best_match("갤럭시", ["xyz", "qrs"])

        assert best.index == 0
        assert best.rating == 0.0

    def test_closest_candidate_ranked_first(self):
        best = find_best_match("갤럭시s25울트", ["갤럭시s24", "갤럭시s25울트라", "갤럭시s25"])

        assert best.target == "갤럭시s25울트라"
        assert best.ratings[1].rating == max(r.rating for r in best.ratings)

    def test_equal_scores_keep_input_order(self):
        best = find_best_match("갤럭시s2", ["갤럭시s24", "갤럭시s25"])

        assert best.ratings[0].rating == best.ratings[1].rating
        assert best.target == "갤럭시s24"

    def test_always_returns_a_candidate(self):
        """Test a poor match is still returned; callers judge by filtering."""
        best = find_best_match("노키아", ["갤럭시s25"])

        assert best.target == "갤럭시s25"


class TestHelpers:
    def test_fold_variants(self):
        assert fold_variants("galaxys25ultra") == "갤럭시s25울트라"
        assert fold_variants("iphone16promax") == "아이폰16프로맥스"
        assert fold_variants("갤럭시zflip6") == "갤럭시z플립6"

    def test_unique_models_first_seen_order(self, records):
        models = unique_models(records)

        assert models[:3] == ["갤럭시s25", "갤럭시s25플러스", "갤럭시s25울트라"]
        assert len(models) == len(set(models))
        assert "아이폰16프로맥스" in models
