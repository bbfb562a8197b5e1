"""
Core Module - Shared domain types and rules.

Components:
- types: Plain dataclasses and enums passed between store, cache and services
- status: The canonical status state machine and review interval

Design Principle:
The store, the cache and the study services all import from
wordwise.core rather than defining their own copies of these concepts.
"""

from wordwise.core.status import (
    SchedulingRules,
    next_status,
    review_interval_days,
    validate_quality,
)
from wordwise.core.types import (
    Answer,
    AnswerMode,
    LearningRecord,
    LearningStatus,
    ProgressSummary,
    Question,
    QuestionMode,
    QuestionOption,
    RecordFilter,
    RecordOrder,
    ScoreReport,
    TopicInfo,
    TopicProgressView,
    UserProfile,
    VocabularyItem,
)

__all__ = [
    # Rules
    "SchedulingRules",
    "next_status",
    "review_interval_days",
    "validate_quality",
    # Types
    "Answer",
    "AnswerMode",
    "LearningRecord",
    "LearningStatus",
    "ProgressSummary",
    "Question",
    "QuestionMode",
    "QuestionOption",
    "RecordFilter",
    "RecordOrder",
    "ScoreReport",
    "TopicInfo",
    "TopicProgressView",
    "UserProfile",
    "VocabularyItem",
]
