"""
Unit tests for the learning-status state machine and review interval.
"""

import pytest

from wordwise.core.status import (
    SchedulingRules,
    is_passing,
    next_status,
    review_interval_days,
    validate_quality,
)
from wordwise.core.types import LearningStatus, mastery_percentage, round_half_up
from wordwise.exceptions import InvalidArgument


class TestQualityValidation:
    """Tests for the 0..5 quality contract."""

    @pytest.mark.parametrize("quality", [0, 1, 2, 3, 4, 5])
    def test_accepts_scale(self, quality):
        assert validate_quality(quality) == quality

    @pytest.mark.parametrize("quality", [-1, 6, 10, 2.5, "4", None, True])
    def test_rejects_out_of_contract(self, quality):
        with pytest.raises(InvalidArgument):
            validate_quality(quality)

    def test_invalid_argument_is_value_error(self):
        """Callers that only know ValueError still catch it."""
        with pytest.raises(ValueError):
            validate_quality(9)

    @pytest.mark.parametrize("quality,expected", [(0, False), (2, False), (3, True), (5, True)])
    def test_passing_threshold(self, quality, expected):
        assert is_passing(quality) is expected


class TestReviewInterval:
    """Interval bounds for each quality band."""

    @pytest.mark.parametrize(
        "correct,expected", [(0, 0), (3, 6), (15, 30), (40, 30)]
    )
    @pytest.mark.parametrize("quality", [4, 5])
    def test_easy_doubles_up_to_30(self, quality, correct, expected):
        assert review_interval_days(quality, correct) == expected

    @pytest.mark.parametrize("correct,expected", [(0, 0), (3, 3), (15, 7), (40, 7)])
    def test_ok_grows_up_to_7(self, correct, expected):
        assert review_interval_days(3, correct) == expected

    @pytest.mark.parametrize("correct", [0, 3, 15, 40])
    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_failed_is_one_day(self, quality, correct):
        assert review_interval_days(quality, correct) == 1

    def test_caps_come_from_rules(self):
        rules = SchedulingRules(easy_interval_cap_days=10, ok_interval_cap_days=2)
        assert review_interval_days(5, 40, rules) == 10
        assert review_interval_days(3, 40, rules) == 2


class TestNextStatus:
    """Tests for the canonical status rule."""

    def test_first_exposure_is_learning(self):
        assert next_status(None, 1, 0) is LearningStatus.LEARNING
        assert next_status(None, 0, 1) is LearningStatus.LEARNING

    def test_mastered_after_five_clean_answers(self):
        assert next_status(LearningStatus.LEARNING, 4, 0) is LearningStatus.LEARNING
        assert next_status(LearningStatus.LEARNING, 5, 0) is LearningStatus.MASTERED

    def test_any_miss_blocks_mastery(self):
        assert next_status(LearningStatus.LEARNING, 9, 1) is LearningStatus.LEARNING

    def test_difficult_when_misses_outnumber_hits(self):
        assert next_status(LearningStatus.LEARNING, 1, 2) is LearningStatus.DIFFICULT

    def test_difficult_does_not_revert_on_recovery(self):
        """Status only escalates; catching up on correct answers keeps DIFFICULT."""
        assert next_status(LearningStatus.DIFFICULT, 3, 2) is LearningStatus.DIFFICULT

    def test_new_is_promoted_to_learning(self):
        assert next_status(LearningStatus.NEW, 1, 1) is LearningStatus.LEARNING

    @pytest.mark.parametrize("correct,incorrect", [(5, 0), (5, 9), (0, 20), (100, 1)])
    def test_mastered_is_absorbing(self, correct, incorrect):
        assert next_status(LearningStatus.MASTERED, correct, incorrect) is LearningStatus.MASTERED

    def test_reviewing_is_never_produced(self):
        starting = [s for s in LearningStatus if s is not LearningStatus.REVIEWING]
        seen = set()
        for current in [None, *starting]:
            for correct in range(0, 8):
                for incorrect in range(0, 8):
                    seen.add(next_status(current, correct, incorrect))
        assert LearningStatus.REVIEWING not in seen

    def test_mastery_threshold_from_rules(self):
        rules = SchedulingRules(mastery_min_correct=3)
        assert next_status(LearningStatus.LEARNING, 3, 0, rules) is LearningStatus.MASTERED


class TestRounding:
    """Percentages round halves up, like the dashboards expect."""

    @pytest.mark.parametrize("value,expected", [(12.5, 13), (12.49, 12), (0.5, 1), (2.5, 3)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_mastery_percentage(self):
        assert mastery_percentage(3, 10) == 30
        assert mastery_percentage(1, 8) == 13
        assert mastery_percentage(0, 0) == 0
