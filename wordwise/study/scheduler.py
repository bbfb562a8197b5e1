"""
Scheduling Engine.

Turns a study event (user, word, quality 0-5) into an updated learning
record: counters, status, next review date. Also answers the two read-side
questions of a study session: which words are due and which are new, plus
review lists grouped by when a word was first learned.

Within one event the order is fixed:
counters -> status -> next review date -> persist -> user stats -> cache invalidation.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime, timedelta

from loguru import logger

from config import get_settings
from wordwise.cache import CacheGateway, create_cache_gateway
from wordwise.core.status import (
    CORRECT_ANSWER_QUALITY,
    INCORRECT_ANSWER_QUALITY,
    SchedulingRules,
    is_passing,
    next_status,
    review_interval_days,
    validate_quality,
)
from wordwise.core.types import (
    LearningRecord,
    LearningStatus,
    RecordFilter,
    RecordOrder,
    ReviewPeriod,
    VocabularyItem,
)
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument, StorageError

Clock = Callable[[], datetime]


def require_positive(name: str, value: int) -> int:
    """Reject limits/counts that are not positive integers."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")
    return value


def rules_from_settings() -> SchedulingRules:
    settings = get_settings()
    return SchedulingRules(
        mastery_min_correct=settings.mastery_min_correct,
        easy_interval_cap_days=settings.easy_interval_cap_days,
        ok_interval_cap_days=settings.ok_interval_cap_days,
    )


class SchedulingEngine:
    """
    Spaced-repetition state machine over learning records.

    Args:
        store: Learning record store
        cache: Cache gateway (per-user keys are invalidated after every event)
        rules: Status/interval thresholds
        pool_factor: New-word candidate pool size as a multiple of the limit
        clock: Returns "now" (injectable for tests)
        rng: Random source for the new-word shuffle
    """

    def __init__(
        self,
        store: LearningRecordStore | None = None,
        cache: CacheGateway | None = None,
        rules: SchedulingRules | None = None,
        pool_factor: int | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store or LearningRecordStore()
        self.cache = cache or create_cache_gateway()
        self.rules = rules or rules_from_settings()
        self.pool_factor = pool_factor or get_settings().new_words_pool_factor
        self.clock = clock or datetime.now
        self.rng = rng or random.Random()

    # ========================================
    # Writes
    # ========================================

    def process_study_event(
        self,
        user_id: int,
        vocabulary_id: int,
        quality: int,
        response_time_ms: int = 0,
    ) -> LearningRecord:
        """
        Apply one study/review/test answer to the user's record for a word.

        Args:
            user_id: Learner
            vocabulary_id: Word that was shown
            quality: 0-2 hard/forgot, 3 ok, 4-5 easy
            response_time_ms: Time the learner took to answer

        Returns:
            The persisted learning record

        Raises:
            InvalidArgument: quality outside 0..5, negative response time, unknown word
            StorageError: the record could not be persisted
        """
        validate_quality(quality)
        if response_time_ms is not None and response_time_ms < 0:
            raise InvalidArgument(f"response_time_ms must be >= 0, got {response_time_ms}")
        if self.store.get_vocabulary(vocabulary_id) is None:
            raise InvalidArgument(f"Unknown vocabulary id {vocabulary_id}")

        now = self.clock()
        passed = is_passing(quality)
        existing = self.store.find_learning_record(user_id, vocabulary_id)

        if existing is None:
            record = LearningRecord(
                user_id=user_id,
                vocabulary_id=vocabulary_id,
                first_learned_date=now,
            )
            previous_status = None
        else:
            record = existing
            previous_status = existing.status

        if passed:
            record.correct_count += 1
        else:
            record.incorrect_count += 1
        record.review_count += 1

        record.status = next_status(
            previous_status, record.correct_count, record.incorrect_count, self.rules
        )

        interval = review_interval_days(quality, record.correct_count, self.rules)
        record.next_review_date = now + timedelta(days=interval)
        record.last_reviewed_at = now
        record.last_response_ms = response_time_ms

        saved = self.store.upsert_learning_record(record)

        try:
            self.store.record_study_activity(user_id, is_new_word=existing is None, now=now)
        except StorageError as e:
            logger.warning(f"Study stats not updated for user {user_id}: {e}")

        self.cache.invalidate_user(user_id)

        logger.info(
            f"User {user_id} word {vocabulary_id}: q={quality} -> {saved.status.value}, "
            f"next review in {interval}d ({saved.correct_count}/{saved.incorrect_count})"
        )
        return saved

    def record_review_result(
        self,
        user_id: int,
        vocabulary_id: int,
        is_correct: bool,
        response_time_ms: int = 0,
    ) -> LearningRecord:
        """
        Right/wrong feedback from the review screen.

        Only words the user has already studied can be reviewed; the answer
        goes through the same transition rule as any study event.
        """
        if self.store.find_learning_record(user_id, vocabulary_id) is None:
            raise InvalidArgument(f"User {user_id} has not studied vocabulary {vocabulary_id}")
        quality = CORRECT_ANSWER_QUALITY if is_correct else INCORRECT_ANSWER_QUALITY
        return self.process_study_event(user_id, vocabulary_id, quality, response_time_ms)

    # ========================================
    # Reads
    # ========================================

    def words_due_for_review(
        self,
        user_id: int,
        as_of: datetime | None = None,
        limit: int = 20,
        level: str | None = None,
        topic_id: int | None = None,
    ) -> list[LearningRecord]:
        """LEARNING records whose next review date is before ``as_of``, oldest first."""
        require_positive("limit", limit)
        record_filter = RecordFilter(
            user_id=user_id,
            status=LearningStatus.LEARNING,
            next_review_before=as_of or self.clock(),
            topic_id=topic_id,
            level=level,
        )
        return self.store.query_learning_records(record_filter, limit, RecordOrder.NEXT_REVIEW_ASC)

    def new_words_for_learning(
        self,
        user_id: int,
        limit: int = 10,
        topic_id: int | None = None,
        level: str | None = None,
    ) -> list[VocabularyItem]:
        """
        Words the user has never seen.

        Candidates are fetched in id order; they are shuffled only when there
        are more candidates than requested.
        """
        require_positive("limit", limit)
        pool = self.store.unlearned_vocabulary(
            user_id, limit * self.pool_factor, topic_id=topic_id, level=level
        )
        if len(pool) > limit:
            self.rng.shuffle(pool)
        return pool[:limit]

    def words_for_review_by_period(
        self,
        user_id: int,
        period: ReviewPeriod | str = ReviewPeriod.ALL,
        limit: int = 20,
        level: str | None = None,
    ) -> list[LearningRecord]:
        """
        LEARNING records grouped by when the word was first learned.

        Args:
            user_id: Learner
            period: today, yesterday, 7days, 30days or all
            limit: Maximum records (> 0)
            level: Only words of this level

        Returns:
            Newest first for a dated period; for ``all``, least recently
            reviewed first
        """
        require_positive("limit", limit)
        try:
            period = ReviewPeriod(period)
        except ValueError as e:
            allowed = ", ".join(p.value for p in ReviewPeriod)
            raise InvalidArgument(f"period must be one of {allowed}, got {period!r}") from e

        record_filter = RecordFilter(user_id=user_id, status=LearningStatus.LEARNING, level=level)
        window = period.window(self.clock())
        if window is None:
            return self.store.query_learning_records(record_filter, limit, RecordOrder.LAST_REVIEWED_ASC)

        record_filter.first_learned_from, record_filter.first_learned_before = window
        return self.store.query_learning_records(record_filter, limit, RecordOrder.FIRST_LEARNED_DESC)

    def difficult_words(
        self,
        user_id: int,
        limit: int = 20,
        level: str | None = None,
    ) -> list[LearningRecord]:
        """DIFFICULT records, most-missed first."""
        require_positive("limit", limit)
        record_filter = RecordFilter(user_id=user_id, status=LearningStatus.DIFFICULT, level=level)
        return self.store.query_learning_records(record_filter, limit, RecordOrder.INCORRECT_DESC)
