"""Unit tests for score normalisation, grade buckets and text sanitisation."""

import pytest

from exam_portal.utils import (
    compute_score,
    grade_bucket,
    is_passing,
    round_score,
    sanitize_text,
)


class TestComputeScore:
    def test_all_correct_scores_ten(self):
        assert compute_score(5, 0, 5, 1.0, 0.0) == 10.0

    def test_partial_without_penalty(self):
        # 3 of 5 correct, one wrong, one blank
        assert compute_score(3, 1, 5, 1.0, 0.0) == pytest.approx(6.0)

    def test_penalty_is_subtracted(self):
        # (2 * 1 - 2 * 0.5) / 4 * 10
        assert compute_score(2, 2, 4, 1.0, 0.5) == pytest.approx(2.5)

    def test_score_never_negative(self):
        assert compute_score(0, 4, 4, 1.0, 1.0) == 0.0

    def test_zero_maximum_scores_zero(self):
        assert compute_score(3, 0, 0, 1.0, 0.0) == 0.0
        assert compute_score(3, 0, 5, 0.0, 0.0) == 0.0

    def test_score_within_bounds(self):
        for correct in range(0, 6):
            for incorrect in range(0, 6 - correct):
                score = compute_score(correct, incorrect, 5, 2.0, 0.75)
                assert 0.0 <= score <= 10.0


class TestPassingAndRounding:
    @pytest.mark.parametrize("score,expected", [(5.0, True), (4.99, False), (10.0, True), (None, False)])
    def test_pass_mark(self, score, expected):
        assert is_passing(score) is expected

    def test_round_to_one_decimal(self):
        assert round_score(6.666) == 6.7
        assert round_score(None) is None


class TestGradeBucket:
    @pytest.mark.parametrize(
        "score,label",
        [
            (0.0, "0-2"),
            (1.99, "0-2"),
            (2.0, "2-4"),
            (4.5, "4-5"),
            (5.0, "5-6"),
            (6.0, "6-8"),
            (7.99, "6-8"),
            (8.0, "8-10"),
            (10.0, "8-10"),
        ],
    )
    def test_bucket_edges(self, score, label):
        assert grade_bucket(score) == label


class TestSanitizeText:
    def test_strips_html_tags(self):
        assert sanitize_text("  <b>Great</b> <i>exam</i> ") == "Great exam"

    def test_empty_values(self):
        assert sanitize_text(None) == ""
        assert sanitize_text("   ") == ""
