"""
Learning Record Store.

SQLAlchemy-backed system of record for learning state, content and the
profile fields the core maintains. Every public method:

- opens exactly one transactional session (no connection is held across calls)
- returns plain ``wordwise.core`` dataclasses, never ORM objects
- converts SQLAlchemy failures into ``StorageError``

Random selection is left to callers: the store hands out ids in id order
(``vocabulary_ids``) and loads chosen ids (``get_vocabulary_items``), so no
store-native RANDOM() operator is needed.
"""

from __future__ import annotations

from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import datetime

from loguru import logger
from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from wordwise.core.types import (
    LearningRecord,
    LearningStatus,
    RecordFilter,
    RecordOrder,
    TopicInfo,
    UserProfile,
    VocabularyItem,
    round_half_up,
)
from wordwise.db.database import SessionScope, session_scope
from wordwise.db.models import Topic, User, UserSelectedTopic, UserVocabulary, Vocabulary
from wordwise.exceptions import InvalidArgument, StorageError

PROFILE_FIELDS = ("name", "level", "daily_goal")


# =============================================================================
# Row mapping
# =============================================================================


def _to_vocabulary_item(row: Vocabulary) -> VocabularyItem:
    return VocabularyItem(
        id=row.id,
        word=row.word,
        meaning=row.meaning,
        level=row.level,
        pronunciation=row.pronunciation,
        example=row.example,
        part_of_speech=row.part_of_speech,
        topic_id=row.topic_id,
        topic_name=row.topic.name if row.topic is not None else None,
    )


def _to_learning_record(row: UserVocabulary) -> LearningRecord:
    return LearningRecord(
        id=row.id,
        user_id=row.user_id,
        vocabulary_id=row.vocabulary_id,
        status=LearningStatus(row.status),
        correct_count=row.correct_count or 0,
        incorrect_count=row.incorrect_count or 0,
        review_count=row.review_count or 0,
        first_learned_date=row.first_learned_date,
        last_reviewed_at=row.last_reviewed_at,
        next_review_date=row.next_review_date,
        last_response_ms=row.last_response_ms,
        vocabulary=_to_vocabulary_item(row.vocabulary) if row.vocabulary is not None else None,
    )


def _to_topic_info(row: Topic) -> TopicInfo:
    return TopicInfo(
        id=row.id,
        name=row.name,
        name_native=row.name_native,
        description=row.description,
        icon=row.icon,
        display_order=row.display_order or 0,
        vocabulary_count=row.vocabulary_count or 0,
    )


def _to_user_profile(row: User) -> UserProfile:
    return UserProfile(
        id=row.id,
        name=row.name,
        level=row.level,
        daily_goal=row.daily_goal,
        current_streak=row.current_streak or 0,
        longest_streak=row.longest_streak or 0,
        total_words_learned=row.total_words_learned or 0,
        total_tests_taken=row.total_tests_taken or 0,
        average_test_score=row.average_test_score or 0,
        last_study_date=row.last_study_date,
    )


def _record_options():
    return joinedload(UserVocabulary.vocabulary).joinedload(Vocabulary.topic)


# =============================================================================
# Store
# =============================================================================


class LearningRecordStore:
    """
    Repository over learning records, vocabulary, topics and users.

    Args:
        scope: Transactional session scope (defaults to the configured database)
    """

    def __init__(self, scope: SessionScope | None = None):
        self._scope = scope or session_scope

    @contextmanager
    def _session(self, action: str) -> Generator[Session, None, None]:
        try:
            with self._scope() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Record store failed during {action}: {e}")
            raise StorageError(f"Record store failed during {action}") from e

    # ========================================
    # Vocabulary
    # ========================================

    def get_vocabulary(self, vocabulary_id: int) -> VocabularyItem | None:
        with self._session("get_vocabulary") as session:
            row = session.scalars(
                select(Vocabulary)
                .options(joinedload(Vocabulary.topic))
                .where(Vocabulary.id == vocabulary_id)
            ).first()
            return _to_vocabulary_item(row) if row is not None else None

    def vocabulary_ids(self, topic_id: int | None = None) -> list[int]:
        """Ids of every vocabulary item (optionally of one topic), in id order."""
        with self._session("vocabulary_ids") as session:
            query = select(Vocabulary.id)
            if topic_id is not None:
                query = query.where(Vocabulary.topic_id == topic_id)
            return list(session.scalars(query.order_by(Vocabulary.id)))

    def get_vocabulary_items(self, vocabulary_ids: Iterable[int]) -> list[VocabularyItem]:
        """Items for the given ids, in the order given; unknown ids are skipped."""
        ids = list(vocabulary_ids)
        if not ids:
            return []
        with self._session("get_vocabulary_items") as session:
            rows = session.scalars(
                select(Vocabulary)
                .options(joinedload(Vocabulary.topic))
                .where(Vocabulary.id.in_(ids))
            ).all()
            by_id = {row.id: row for row in rows}
            return [_to_vocabulary_item(by_id[i]) for i in ids if i in by_id]

    def unlearned_vocabulary(
        self,
        user_id: int,
        limit: int,
        topic_id: int | None = None,
        level: str | None = None,
    ) -> list[VocabularyItem]:
        """Vocabulary the user has no learning record for, ordered by id."""
        with self._session("unlearned_vocabulary") as session:
            learned = (
                select(UserVocabulary.id)
                .where(
                    UserVocabulary.user_id == user_id,
                    UserVocabulary.vocabulary_id == Vocabulary.id,
                )
                .exists()
            )
            query = select(Vocabulary).options(joinedload(Vocabulary.topic)).where(~learned)
            if topic_id is not None:
                query = query.where(Vocabulary.topic_id == topic_id)
            if level:
                query = query.where(Vocabulary.level == level)
            rows = session.scalars(query.order_by(Vocabulary.id).limit(limit)).all()
            return [_to_vocabulary_item(row) for row in rows]

    def list_vocabulary(
        self,
        topic_id: int | None = None,
        level: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> list[VocabularyItem]:
        with self._session("list_vocabulary") as session:
            query = select(Vocabulary).options(joinedload(Vocabulary.topic))
            if topic_id is not None:
                query = query.where(Vocabulary.topic_id == topic_id)
            if level:
                query = query.where(Vocabulary.level == level)
            rows = session.scalars(query.order_by(Vocabulary.id).offset(offset).limit(limit)).all()
            return [_to_vocabulary_item(row) for row in rows]

    def count_vocabulary_by_topic(
        self,
        topic_ids: Iterable[int] | None = None,
        level: str | None = None,
    ) -> dict[int, int]:
        """Number of vocabulary items per topic id."""
        with self._session("count_vocabulary_by_topic") as session:
            query = select(Vocabulary.topic_id, func.count(Vocabulary.id)).where(
                Vocabulary.topic_id.is_not(None)
            )
            if topic_ids is not None:
                query = query.where(Vocabulary.topic_id.in_(list(topic_ids)))
            if level:
                query = query.where(Vocabulary.level == level)
            rows = session.execute(query.group_by(Vocabulary.topic_id)).all()
            return {topic_id: count for topic_id, count in rows}

    # ========================================
    # Topics
    # ========================================

    def list_active_topics(self, topic_ids: Iterable[int] | None = None) -> list[TopicInfo]:
        with self._session("list_active_topics") as session:
            query = select(Topic).where(Topic.is_active.is_(True))
            if topic_ids is not None:
                query = query.where(Topic.id.in_(list(topic_ids)))
            rows = session.scalars(query.order_by(Topic.display_order, Topic.id)).all()
            return [_to_topic_info(row) for row in rows]

    # ========================================
    # Learning records
    # ========================================

    def find_learning_record(self, user_id: int, vocabulary_id: int) -> LearningRecord | None:
        with self._session("find_learning_record") as session:
            row = session.scalars(
                select(UserVocabulary)
                .options(_record_options())
                .where(
                    UserVocabulary.user_id == user_id,
                    UserVocabulary.vocabulary_id == vocabulary_id,
                )
            ).first()
            return _to_learning_record(row) if row is not None else None

    def upsert_learning_record(self, record: LearningRecord) -> LearningRecord:
        """Create or update the row for (record.user_id, record.vocabulary_id)."""
        with self._session("upsert_learning_record") as session:
            row = session.scalars(
                select(UserVocabulary).where(
                    UserVocabulary.user_id == record.user_id,
                    UserVocabulary.vocabulary_id == record.vocabulary_id,
                )
            ).first()
            if row is None:
                row = UserVocabulary(user_id=record.user_id, vocabulary_id=record.vocabulary_id)
                session.add(row)

            row.status = record.status.value
            row.correct_count = record.correct_count
            row.incorrect_count = record.incorrect_count
            row.review_count = record.review_count
            row.first_learned_date = row.first_learned_date or record.first_learned_date
            row.last_reviewed_at = record.last_reviewed_at
            row.next_review_date = record.next_review_date
            row.last_response_ms = record.last_response_ms
            session.flush()

            saved = session.scalars(
                select(UserVocabulary).options(_record_options()).where(UserVocabulary.id == row.id)
            ).one()
            return _to_learning_record(saved)

    def query_learning_records(
        self,
        record_filter: RecordFilter,
        limit: int,
        order: RecordOrder = RecordOrder.NEXT_REVIEW_ASC,
    ) -> list[LearningRecord]:
        """
        Query a user's learning records.

        Args:
            record_filter: User plus optional status, due-before, first-learned range,
                topic and level
            limit: Max records
            order: Result ordering

        Returns:
            Records with their vocabulary attached
        """
        with self._session("query_learning_records") as session:
            query = (
                select(UserVocabulary)
                .join(UserVocabulary.vocabulary)
                .options(_record_options())
                .where(UserVocabulary.user_id == record_filter.user_id)
            )
            if record_filter.status is not None:
                query = query.where(UserVocabulary.status == record_filter.status.value)
            if record_filter.next_review_before is not None:
                query = query.where(UserVocabulary.next_review_date < record_filter.next_review_before)
            if record_filter.first_learned_from is not None:
                query = query.where(UserVocabulary.first_learned_date >= record_filter.first_learned_from)
            if record_filter.first_learned_before is not None:
                query = query.where(UserVocabulary.first_learned_date < record_filter.first_learned_before)
            if record_filter.topic_id is not None:
                query = query.where(Vocabulary.topic_id == record_filter.topic_id)
            if record_filter.level:
                query = query.where(Vocabulary.level == record_filter.level)

            if order is RecordOrder.NEXT_REVIEW_ASC:
                query = query.order_by(UserVocabulary.next_review_date.asc(), UserVocabulary.id.asc())
            elif order is RecordOrder.LAST_REVIEWED_DESC:
                query = query.order_by(UserVocabulary.last_reviewed_at.desc(), UserVocabulary.id.desc())
            elif order is RecordOrder.LAST_REVIEWED_ASC:
                query = query.order_by(UserVocabulary.last_reviewed_at.asc(), UserVocabulary.id.asc())
            elif order is RecordOrder.FIRST_LEARNED_DESC:
                query = query.order_by(UserVocabulary.first_learned_date.desc(), UserVocabulary.id.desc())
            else:
                query = query.order_by(UserVocabulary.incorrect_count.desc(), UserVocabulary.id.asc())

            rows = session.scalars(query.limit(limit)).unique().all()
            return [_to_learning_record(row) for row in rows]

    def count_records_by_status(
        self,
        user_id: int,
        topic_id: int | None = None,
        level: str | None = None,
    ) -> dict[LearningStatus, int]:
        """One grouped query: status -> number of the user's records."""
        with self._session("count_records_by_status") as session:
            query = (
                select(UserVocabulary.status, func.count(UserVocabulary.id))
                .join(Vocabulary, Vocabulary.id == UserVocabulary.vocabulary_id)
                .where(UserVocabulary.user_id == user_id)
            )
            if topic_id is not None:
                query = query.where(Vocabulary.topic_id == topic_id)
            if level:
                query = query.where(Vocabulary.level == level)
            rows = session.execute(query.group_by(UserVocabulary.status)).all()
            return {LearningStatus(status): count for status, count in rows}

    def count_records_by_topic(
        self,
        user_id: int,
        topic_ids: Iterable[int],
        level: str | None = None,
    ) -> dict[int, dict[LearningStatus, int]]:
        """One grouped query: topic id -> status -> number of the user's records."""
        ids = list(topic_ids)
        if not ids:
            return {}
        with self._session("count_records_by_topic") as session:
            query = (
                select(Vocabulary.topic_id, UserVocabulary.status, func.count(UserVocabulary.id))
                .join(Vocabulary, Vocabulary.id == UserVocabulary.vocabulary_id)
                .where(UserVocabulary.user_id == user_id, Vocabulary.topic_id.in_(ids))
            )
            if level:
                query = query.where(Vocabulary.level == level)
            rows = session.execute(query.group_by(Vocabulary.topic_id, UserVocabulary.status)).all()

            counts: dict[int, dict[LearningStatus, int]] = {}
            for topic_id, status, count in rows:
                counts.setdefault(topic_id, {})[LearningStatus(status)] = count
            return counts

    def activity_counts(
        self,
        user_id: int,
        day_start: datetime,
        day_end: datetime,
        as_of: datetime,
    ) -> dict[str, int]:
        """
        Dashboard counters in a single pass over the user's records.

        Returns:
            Dict with learned_today, reviewed_today, due, correct_answers,
            incorrect_answers
        """
        learning = LearningStatus.LEARNING.value
        with self._session("activity_counts") as session:
            row = session.execute(
                select(
                    func.sum(
                        case(
                            (and_(UserVocabulary.first_learned_date >= day_start,
                                  UserVocabulary.first_learned_date < day_end), 1),
                            else_=0,
                        )
                    ),
                    func.sum(
                        case(
                            (and_(UserVocabulary.last_reviewed_at >= day_start,
                                  UserVocabulary.last_reviewed_at < day_end), 1),
                            else_=0,
                        )
                    ),
                    func.sum(
                        case(
                            (and_(UserVocabulary.status == learning,
                                  or_(UserVocabulary.next_review_date.is_(None),
                                      UserVocabulary.next_review_date < as_of)), 1),
                            else_=0,
                        )
                    ),
                    func.sum(UserVocabulary.correct_count),
                    func.sum(UserVocabulary.incorrect_count),
                ).where(UserVocabulary.user_id == user_id)
            ).one()

            learned_today, reviewed_today, due, correct, incorrect = (int(v or 0) for v in row)
            return {
                "learned_today": learned_today,
                "reviewed_today": reviewed_today,
                "due": due,
                "correct_answers": correct,
                "incorrect_answers": incorrect,
            }

    def first_learned_counts(
        self,
        user_id: int,
        windows: dict[str, tuple[datetime, datetime]],
    ) -> dict[str, int]:
        """Records first learned inside each named [start, end) window, in one query."""
        if not windows:
            return {}
        names = list(windows)
        with self._session("first_learned_counts") as session:
            row = session.execute(
                select(
                    *(
                        func.sum(
                            case(
                                (and_(UserVocabulary.first_learned_date >= windows[name][0],
                                      UserVocabulary.first_learned_date < windows[name][1]), 1),
                                else_=0,
                            )
                        )
                        for name in names
                    )
                ).where(UserVocabulary.user_id == user_id)
            ).one()
            return {name: int(value or 0) for name, value in zip(names, row)}

    # ========================================
    # Users
    # ========================================

    def get_user(self, user_id: int) -> UserProfile | None:
        with self._session("get_user") as session:
            row = session.get(User, user_id)
            return _to_user_profile(row) if row is not None else None

    def update_user(self, user_id: int, **fields) -> UserProfile | None:
        """Update profile fields (name, level, daily_goal)."""
        unknown = set(fields) - set(PROFILE_FIELDS)
        if unknown:
            raise InvalidArgument(f"Not profile fields: {sorted(unknown)}")
        with self._session("update_user") as session:
            row = session.get(User, user_id)
            if row is None:
                return None
            for name, value in fields.items():
                setattr(row, name, value)
            session.flush()
            return _to_user_profile(row)

    def record_study_activity(self, user_id: int, is_new_word: bool, now: datetime) -> None:
        """Advance the user's streak and word counter after a study event."""
        with self._session("record_study_activity") as session:
            user = session.get(User, user_id)
            if user is None:
                return

            today = now.date()
            if user.last_study_date is None:
                user.current_streak = 1
            else:
                gap_days = (today - user.last_study_date.date()).days
                if gap_days == 1:
                    user.current_streak = (user.current_streak or 0) + 1
                elif gap_days > 1:
                    user.current_streak = 1
            user.longest_streak = max(user.longest_streak or 0, user.current_streak or 0)
            user.last_study_date = now

            if is_new_word:
                user.total_words_learned = (user.total_words_learned or 0) + 1

    def record_test_score(self, user_id: int, score: int, now: datetime) -> None:
        """Fold a test percentage into the user's running average."""
        with self._session("record_test_score") as session:
            user = session.get(User, user_id)
            if user is None:
                return

            taken = (user.total_tests_taken or 0) + 1
            previous_total = (user.average_test_score or 0) * (taken - 1)
            user.total_tests_taken = taken
            user.average_test_score = round_half_up((previous_total + score) / taken)
            user.last_study_date = now

    def get_selected_topic_ids(self, user_id: int) -> list[int]:
        with self._session("get_selected_topic_ids") as session:
            return list(
                session.scalars(
                    select(UserSelectedTopic.topic_id)
                    .where(UserSelectedTopic.user_id == user_id)
                    .order_by(UserSelectedTopic.topic_id)
                )
            )

    def replace_selected_topics(self, user_id: int, topic_ids: Iterable[int]) -> list[int]:
        """Replace the user's selection; returns the stored topic ids."""
        ids = sorted(set(topic_ids))
        with self._session("replace_selected_topics") as session:
            session.execute(delete(UserSelectedTopic).where(UserSelectedTopic.user_id == user_id))
            session.add_all(UserSelectedTopic(user_id=user_id, topic_id=t) for t in ids)
            return ids
