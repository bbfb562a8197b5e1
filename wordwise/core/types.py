"""
Plain data types shared by the store, the cache and the services.

Everything here is a dataclass or an Enum: services take and return these,
never ORM objects, so results can be cached as JSON and handed to any
transport without framework types leaking out.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any


class LearningStatus(str, Enum):
    """Learning state of a (user, word) pair."""

    NEW = "new"
    LEARNING = "learning"
    # Kept for rows written by older clients; the canonical rule never produces it
    REVIEWING = "reviewing"
    DIFFICULT = "difficult"
    MASTERED = "mastered"


class Level(str, Enum):
    """Difficulty level of a vocabulary item."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuestionMode(str, Enum):
    """Direction of a test question."""

    EN_TO_NATIVE = "en2native"
    NATIVE_TO_EN = "native2en"
    MIXED = "mixed"


class AnswerMode(str, Enum):
    """How the learner answers a test question."""

    CHOICE = "choice"
    TEXT = "text"
    MIXED = "mixed"


class ReviewPeriod(str, Enum):
    """When a word was first learned, for period-based review."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"
    ALL = "all"

    def window(self, now: datetime) -> tuple[datetime, datetime] | None:
        """
        Half-open [start, end) range of first-learned dates, in whole days.

        The 7 and 30 day windows include today. ALL has no window.
        """
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        tomorrow = today + timedelta(days=1)
        if self is ReviewPeriod.TODAY:
            return today, tomorrow
        if self is ReviewPeriod.YESTERDAY:
            return today - timedelta(days=1), today
        if self is ReviewPeriod.LAST_7_DAYS:
            return today - timedelta(days=7), tomorrow
        if self is ReviewPeriod.LAST_30_DAYS:
            return today - timedelta(days=30), tomorrow
        return None


class RecordOrder(str, Enum):
    """Orderings supported by the record store."""

    NEXT_REVIEW_ASC = "next_review_asc"
    LAST_REVIEWED_DESC = "last_reviewed_desc"
    INCORRECT_DESC = "incorrect_desc"
    FIRST_LEARNED_DESC = "first_learned_desc"
    LAST_REVIEWED_ASC = "last_reviewed_asc"


# =============================================================================
# Content
# =============================================================================


@dataclass
class VocabularyItem:
    """A dictionary entry (read-only to the core)."""

    id: int
    word: str
    meaning: str
    level: str = Level.BEGINNER.value
    pronunciation: str | None = None
    example: str | None = None
    part_of_speech: str | None = None
    topic_id: int | None = None
    topic_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VocabularyItem:
        return cls(**data)


@dataclass
class TopicInfo:
    """A topic with its display metadata."""

    id: int
    name: str
    name_native: str | None = None
    description: str | None = None
    icon: str | None = None
    display_order: int = 0
    vocabulary_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicInfo:
        return cls(**data)


@dataclass
class UserProfile:
    """Profile fields and activity counters of a learner."""

    id: int
    name: str
    level: str = Level.BEGINNER.value
    daily_goal: int = 10
    current_streak: int = 0
    longest_streak: int = 0
    total_words_learned: int = 0
    total_tests_taken: int = 0
    average_test_score: int = 0
    last_study_date: datetime | None = None


# =============================================================================
# Learning state
# =============================================================================


@dataclass
class LearningRecord:
    """
    Per-(user, word) learning state.

    ``correct_count + incorrect_count`` never decreases; ``first_learned_date``
    is set once on first exposure.
    """

    user_id: int
    vocabulary_id: int
    status: LearningStatus = LearningStatus.NEW
    correct_count: int = 0
    incorrect_count: int = 0
    review_count: int = 0
    first_learned_date: datetime | None = None
    last_reviewed_at: datetime | None = None
    next_review_date: datetime | None = None
    last_response_ms: int | None = None
    id: int | None = None
    vocabulary: VocabularyItem | None = None


@dataclass
class RecordFilter:
    """Filter accepted by ``LearningRecordStore.query_learning_records``."""

    user_id: int
    status: LearningStatus | None = None
    next_review_before: datetime | None = None
    first_learned_from: datetime | None = None
    first_learned_before: datetime | None = None
    topic_id: int | None = None
    level: str | None = None


# =============================================================================
# Progress
# =============================================================================


@dataclass
class ProgressSummary:
    """Status counts over a user's learning records."""

    total_learned: int = 0
    mastered: int = 0
    learning: int = 0
    difficult: int = 0
    mastery_percentage: int = 0
    topic_id: int | None = None
    level: str | None = None

    @classmethod
    def from_counts(
        cls,
        counts: dict[LearningStatus, int],
        topic_id: int | None = None,
        level: str | None = None,
    ) -> ProgressSummary:
        total = sum(counts.values())
        mastered = counts.get(LearningStatus.MASTERED, 0)
        return cls(
            total_learned=total,
            mastered=mastered,
            learning=counts.get(LearningStatus.LEARNING, 0),
            difficult=counts.get(LearningStatus.DIFFICULT, 0),
            mastery_percentage=mastery_percentage(mastered, total),
            topic_id=topic_id,
            level=level,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProgressSummary:
        return cls(**data)


@dataclass
class TopicProgressView:
    """A topic together with the user's progress inside it."""

    topic: TopicInfo
    progress: ProgressSummary
    is_selected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic.to_dict(),
            "progress": self.progress.to_dict(),
            "is_selected": self.is_selected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicProgressView:
        return cls(
            topic=TopicInfo.from_dict(data["topic"]),
            progress=ProgressSummary.from_dict(data["progress"]),
            is_selected=data.get("is_selected", False),
        )


def round_half_up(value: float) -> int:
    """Round halves up (12.5 -> 13), unlike the built-in round()."""
    return math.floor(value + 0.5)


def percent(part: int, total: int) -> int:
    """Whole percentage rounded half up, 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(part * 100 / total)


def mastery_percentage(mastered: int, total: int) -> int:
    """round(100 * mastered / total), 0 when nothing has been learned."""
    return percent(mastered, total)


# =============================================================================
# Tests
# =============================================================================


@dataclass
class QuestionOption:
    """One multiple-choice option; ``id`` is its 1-based slot after shuffling."""

    id: int
    text: str


@dataclass
class Question:
    """A generated test question plus rendering metadata."""

    vocabulary_id: int
    question_mode: QuestionMode
    answer_mode: AnswerMode
    prompt: str
    options: list[QuestionOption] = field(default_factory=list)
    correct_option_id: int | None = None
    correct_answer: str | None = None
    # Rendering metadata, never used for grading
    word: str | None = None
    meaning: str | None = None
    pronunciation: str | None = None
    topic_id: int | None = None
    topic_name: str | None = None
    hints: dict[str, str] = field(default_factory=dict)


@dataclass
class Answer:
    """A learner's answer to one question, as submitted for grading."""

    vocabulary_id: int
    answer_mode: AnswerMode = AnswerMode.CHOICE
    selected_option_id: int | None = None
    correct_option_id: int | None = None
    text_answer: str | None = None
    correct_answer: str | None = None
    response_time_ms: int = 0


@dataclass
class ScoreReport:
    """Score of a submitted test."""

    total: int
    correct: int
    percentage: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
