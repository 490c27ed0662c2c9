"""Tests for the similarity sub-scores."""

import pytest

from worktrack.config import ConsolidationConfig
from worktrack.similarity import SimilarityScorer, jaccard
from worktrack.types import UNSCHEDULED_PRIORITY, Schedule, schedule_priority


@pytest.fixture
def scorer():
    return SimilarityScorer()


class TestJaccard:

    def test_basic(self):
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)

    def test_both_empty(self):
        assert jaccard(set(), set()) == 0.0


class TestTextSimilarity:

    @pytest.mark.parametrize("text", [
        "Add caching layer",
        "Refactor the authentication middleware for sessions",
        "migrate 2025 schema",
    ])
    def test_identical_text_scores_one(self, scorer, text):
        assert scorer.text_similarity(text, text) == 1.0

    @pytest.mark.parametrize("other", ["", "anything at all", "Add caching layer"])
    def test_empty_side_scores_zero(self, scorer, other):
        assert scorer.text_similarity("", other) == 0.0
        assert scorer.text_similarity(other, "") == 0.0

    def test_only_stop_words_scores_zero(self, scorer):
        # Identical but normalizes to nothing: no evidence, not a match
        assert scorer.text_similarity("it is the", "it is the") == 0.0

    def test_partial_overlap(self, scorer):
        # {add, caching, layer} vs {add, logging, layer}
        assert scorer.text_similarity("Add caching layer", "Add logging layer") == pytest.approx(0.5)

    def test_no_overlap(self, scorer):
        assert scorer.text_similarity("Add caching layer", "Rewrite onboarding docs") == 0.0

    def test_stop_words_from_config(self):
        scorer = SimilarityScorer(ConsolidationConfig(stop_words=frozenset({"caching"})))
        assert scorer.text_similarity("Add caching layer", "Add layer") == 1.0

    def test_min_token_length_from_config(self):
        scorer = SimilarityScorer(ConsolidationConfig(min_token_length=4))
        # "add" is dropped at length 4, leaving {caching, layer} on both sides
        assert scorer.text_similarity("Add caching layer", "caching layer") == 1.0
        assert scorer.tokens().get("Add caching layer") == {"caching", "layer"}


class TestTagSimilarity:

    def test_both_empty(self, scorer):
        assert scorer.tag_similarity([], []) == 1.0

    def test_one_empty(self, scorer):
        assert scorer.tag_similarity([], ["x"]) == 0.0
        assert scorer.tag_similarity(["x"], []) == 0.0

    def test_case_insensitive(self, scorer):
        assert scorer.tag_similarity(["A"], ["a"]) == 1.0
        assert scorer.tag_similarity(["Backend", "API"], ["api", "backend"]) == 1.0

    def test_partial(self, scorer):
        assert scorer.tag_similarity(["api", "backend"], ["backend", "db"]) == pytest.approx(1 / 3)

    def test_duplicate_tags_collapse(self, scorer):
        assert scorer.tag_similarity(["api", "API"], ["api"]) == 1.0


class TestScheduleCompatibility:

    @pytest.mark.parametrize("s", list(Schedule))
    def test_same_schedule(self, scorer, s):
        assert scorer.schedule_compatibility(s, s) == 1.0
        assert scorer.schedule_compatibility(s.value, s.value) == 1.0

    @pytest.mark.parametrize("a,b,expected", [
        ("now", "next", 0.7),
        ("next", "later", 0.8),
        ("now", "later", 0.3),
    ])
    def test_table_is_symmetric(self, scorer, a, b, expected):
        assert scorer.schedule_compatibility(a, b) == expected
        assert scorer.schedule_compatibility(b, a) == expected

    def test_enum_and_string_agree(self, scorer):
        assert scorer.schedule_compatibility(Schedule.NOW, "next") == 0.7

    def test_unknown_pair(self, scorer):
        assert scorer.schedule_compatibility("now", "someday") == 0.0
        assert scorer.schedule_compatibility("", "later") == 0.0

    def test_table_from_config(self):
        scorer = SimilarityScorer(ConsolidationConfig(schedule_compatibility={("now", "next"): 0.2}))
        assert scorer.schedule_compatibility("now", "next") == 0.2
        assert scorer.schedule_compatibility("next", "now") == 0.0


class TestSchedulePriority:

    def test_buckets_in_urgency_order(self):
        assert [s.priority for s in Schedule] == [1, 2, 3]

    @pytest.mark.parametrize("schedule", list(Schedule))
    def test_string_and_enum_agree(self, schedule):
        assert schedule_priority(schedule.value) == schedule.priority
        assert schedule_priority(schedule) == schedule.priority

    @pytest.mark.parametrize("schedule", ["", "someday", "NOW"])
    def test_unknown_sorts_last(self, schedule):
        assert schedule_priority(schedule) == UNSCHEDULED_PRIORITY
