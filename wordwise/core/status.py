"""
Learning-status state machine and review interval.

Quality scale (0-5):
0-2 - Hard / forgot
3   - Ok
4-5 - Easy / correct

Status rule (the single rule every call site uses):
- first exposure              -> LEARNING
- MASTERED                    -> MASTERED (absorbing)
- correct >= 5, incorrect == 0 -> MASTERED
- incorrect > correct          -> DIFFICULT
- otherwise                    -> unchanged (NEW is promoted to LEARNING)

Status only escalates toward MASTERED or DIFFICULT; it never reverts.
REVIEWING is never produced.

Interval rule (days from now):
- quality >= 4: min(correct * 2, 30)
- quality == 3: min(correct, 7)
- quality <= 2: 1
"""

from __future__ import annotations

from dataclasses import dataclass

from wordwise.core.types import LearningStatus
from wordwise.exceptions import InvalidArgument

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
EASY_QUALITY = 4

# Synthetic qualities for graded test answers and review feedback
CORRECT_ANSWER_QUALITY = 4
INCORRECT_ANSWER_QUALITY = 2


@dataclass
class SchedulingRules:
    """Constants of the status and interval rules."""

    mastery_min_correct: int = 5
    easy_interval_cap_days: int = 30
    ok_interval_cap_days: int = 7
    failed_interval_days: int = 1


DEFAULT_RULES = SchedulingRules()


def validate_quality(quality: int) -> int:
    """Reject anything that is not an int in 0..5."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidArgument(f"quality must be an integer in 0..5, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidArgument(f"quality must be in 0..5, got {quality}")
    return quality


def is_passing(quality: int) -> bool:
    """Quality 3+ counts as a correct answer."""
    return quality >= PASSING_QUALITY


def next_status(
    current: LearningStatus | None,
    correct_count: int,
    incorrect_count: int,
    rules: SchedulingRules = DEFAULT_RULES,
) -> LearningStatus:
    """
    Compute the status after an answer has been counted.

    Args:
        current: Status before this event (None for a brand-new record)
        correct_count: Correct answers including this event
        incorrect_count: Incorrect answers including this event
        rules: Thresholds

    Returns:
        The new status
    """
    if current is None:
        return LearningStatus.LEARNING
    if current is LearningStatus.MASTERED:
        return current
    if correct_count >= rules.mastery_min_correct and incorrect_count == 0:
        return LearningStatus.MASTERED
    if incorrect_count > correct_count:
        return LearningStatus.DIFFICULT
    if current is LearningStatus.NEW:
        return LearningStatus.LEARNING
    return current


def review_interval_days(
    quality: int,
    correct_count: int,
    rules: SchedulingRules = DEFAULT_RULES,
) -> int:
    """
    Days until the next review.

    Args:
        quality: Answer quality (0-5)
        correct_count: Correct answers including this event

    Returns:
        Interval in whole days
    """
    if quality >= EASY_QUALITY:
        return min(correct_count * 2, rules.easy_interval_cap_days)
    if quality == PASSING_QUALITY:
        return min(correct_count, rules.ok_interval_cap_days)
    return rules.failed_interval_days
