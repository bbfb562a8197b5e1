"""
Unit tests for the SQLAlchemy learning record store (in-memory SQLite).
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from wordwise.core.types import LearningRecord, LearningStatus, RecordFilter, RecordOrder
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument, StorageError

NOW = datetime(2024, 6, 15, 12, 0, 0)


def _record(vocabulary_id, status=LearningStatus.LEARNING, user_id=1, **kwargs):
    kwargs.setdefault("correct_count", 1)
    kwargs.setdefault("last_reviewed_at", NOW)
    kwargs.setdefault("next_review_date", NOW + timedelta(days=1))
    return LearningRecord(user_id=user_id, vocabulary_id=vocabulary_id, status=status, **kwargs)


class TestLearningRecords:
    """find / upsert / query."""

    def test_find_missing(self, store):
        assert store.find_learning_record(1, 1) is None

    def test_upsert_creates_then_updates(self, store):
        created = store.upsert_learning_record(_record(1, first_learned_date=NOW))
        assert created.id is not None
        assert created.vocabulary.word == "cat"
        assert created.vocabulary.topic_name == "animals"

        created.correct_count = 2
        updated = store.upsert_learning_record(created)
        assert updated.id == created.id
        assert updated.correct_count == 2

    def test_first_learned_date_is_kept(self, store):
        store.upsert_learning_record(_record(1, first_learned_date=NOW))
        later = _record(1, first_learned_date=NOW + timedelta(days=3))
        assert store.upsert_learning_record(later).first_learned_date == NOW

    def test_records_are_per_user(self, store):
        store.upsert_learning_record(_record(1, user_id=1))
        assert store.find_learning_record(2, 1) is None

    def test_query_by_status_and_due_date(self, store):
        store.upsert_learning_record(_record(1, next_review_date=NOW - timedelta(days=2)))
        store.upsert_learning_record(_record(2, next_review_date=NOW - timedelta(days=5)))
        store.upsert_learning_record(_record(3, next_review_date=NOW + timedelta(days=1)))
        store.upsert_learning_record(
            _record(4, status=LearningStatus.MASTERED, next_review_date=NOW - timedelta(days=9))
        )

        due = store.query_learning_records(
            RecordFilter(user_id=1, status=LearningStatus.LEARNING, next_review_before=NOW),
            limit=10,
        )
        assert [r.vocabulary_id for r in due] == [2, 1]

    def test_query_by_topic_and_level(self, store):
        for vocabulary_id in (1, 4, 7, 11):
            store.upsert_learning_record(_record(vocabulary_id))

        animals = store.query_learning_records(RecordFilter(user_id=1, topic_id=1), limit=10)
        assert {r.vocabulary_id for r in animals} == {1, 4}

        beginner = store.query_learning_records(RecordFilter(user_id=1, level="beginner"), limit=10)
        assert {r.vocabulary_id for r in beginner} == {1, 7, 11}

    def test_query_orders(self, store):
        store.upsert_learning_record(_record(1, incorrect_count=1, last_reviewed_at=NOW - timedelta(hours=2)))
        store.upsert_learning_record(_record(2, incorrect_count=5, last_reviewed_at=NOW))
        store.upsert_learning_record(_record(3, incorrect_count=3, last_reviewed_at=NOW - timedelta(hours=1)))

        recent = store.query_learning_records(RecordFilter(user_id=1), 10, RecordOrder.LAST_REVIEWED_DESC)
        assert [r.vocabulary_id for r in recent] == [2, 3, 1]

        missed = store.query_learning_records(RecordFilter(user_id=1), 2, RecordOrder.INCORRECT_DESC)
        assert [r.vocabulary_id for r in missed] == [2, 3]

    def test_query_by_first_learned_window(self, store):
        store.upsert_learning_record(_record(1, first_learned_date=NOW - timedelta(days=1)))
        store.upsert_learning_record(_record(2, first_learned_date=NOW - timedelta(hours=1)))
        store.upsert_learning_record(_record(3, first_learned_date=NOW - timedelta(days=10)))

        records = store.query_learning_records(
            RecordFilter(
                user_id=1,
                first_learned_from=NOW - timedelta(days=2),
                first_learned_before=NOW,
            ),
            10,
            RecordOrder.FIRST_LEARNED_DESC,
        )
        assert [r.vocabulary_id for r in records] == [2, 1]

    def test_query_least_recently_reviewed_first(self, store):
        store.upsert_learning_record(_record(1, last_reviewed_at=NOW))
        store.upsert_learning_record(_record(2, last_reviewed_at=NOW - timedelta(days=4)))
        store.upsert_learning_record(_record(3, last_reviewed_at=NOW - timedelta(days=1)))

        records = store.query_learning_records(RecordFilter(user_id=1), 10, RecordOrder.LAST_REVIEWED_ASC)
        assert [r.vocabulary_id for r in records] == [2, 3, 1]


class TestVocabulary:
    """Content reads."""

    def test_unlearned_excludes_studied_words(self, store):
        store.upsert_learning_record(_record(1))
        store.upsert_learning_record(_record(2))
        items = store.unlearned_vocabulary(1, limit=3)
        assert [i.id for i in items] == [3, 4, 5]

    def test_unlearned_filters(self, store):
        items = store.unlearned_vocabulary(1, limit=10, topic_id=2, level="intermediate")
        assert [i.word for i in items] == ["soup", "noodle"]

    def test_vocabulary_ids(self, store):
        assert store.vocabulary_ids(topic_id=3) == [11, 12]
        assert store.vocabulary_ids() == list(range(1, 13))
        assert store.vocabulary_ids(topic_id=4) == []

    def test_get_vocabulary_items_keeps_order(self, store):
        items = store.get_vocabulary_items([9, 2, 99, 5])
        assert [i.id for i in items] == [9, 2, 5]
        assert items[0].topic_name == "food"

    def test_get_vocabulary_items_empty(self, store):
        assert store.get_vocabulary_items([]) == []

    def test_list_vocabulary_pages(self, store):
        first = store.list_vocabulary(offset=0, limit=5)
        second = store.list_vocabulary(offset=5, limit=5)
        assert [i.id for i in first] == [1, 2, 3, 4, 5]
        assert [i.id for i in second] == [6, 7, 8, 9, 10]

    def test_count_vocabulary_by_topic(self, store):
        assert store.count_vocabulary_by_topic() == {1: 6, 2: 4, 3: 2}
        assert store.count_vocabulary_by_topic([1], level="beginner") == {1: 3}

    def test_active_topics_in_display_order(self, store):
        assert [t.name for t in store.list_active_topics()] == ["animals", "food", "travel"]
        assert [t.id for t in store.list_active_topics([2, 4])] == [2]


class TestCounts:
    """Grouped aggregate queries."""

    def test_count_by_status(self, store):
        store.upsert_learning_record(_record(1, status=LearningStatus.MASTERED))
        store.upsert_learning_record(_record(2))
        store.upsert_learning_record(_record(7, status=LearningStatus.DIFFICULT))

        assert store.count_records_by_status(1) == {
            LearningStatus.MASTERED: 1,
            LearningStatus.LEARNING: 1,
            LearningStatus.DIFFICULT: 1,
        }
        assert store.count_records_by_status(1, topic_id=2) == {LearningStatus.DIFFICULT: 1}
        assert store.count_records_by_status(2) == {}

    def test_count_by_topic(self, store):
        store.upsert_learning_record(_record(1, status=LearningStatus.MASTERED))
        store.upsert_learning_record(_record(2))
        store.upsert_learning_record(_record(7))

        counts = store.count_records_by_topic(1, [1, 2, 3])
        assert counts == {
            1: {LearningStatus.MASTERED: 1, LearningStatus.LEARNING: 1},
            2: {LearningStatus.LEARNING: 1},
        }
        assert store.count_records_by_topic(1, []) == {}

    def test_activity_counts(self, store):
        day = NOW.replace(hour=0)
        store.upsert_learning_record(_record(1, first_learned_date=NOW, correct_count=2))
        store.upsert_learning_record(
            _record(
                2,
                first_learned_date=NOW - timedelta(days=3),
                next_review_date=NOW - timedelta(days=1),
                incorrect_count=1,
            )
        )
        store.upsert_learning_record(
            _record(3, first_learned_date=NOW - timedelta(days=3), last_reviewed_at=NOW - timedelta(days=2))
        )

        counts = store.activity_counts(1, day, day + timedelta(days=1), as_of=NOW)
        assert counts == {
            "learned_today": 1,
            "reviewed_today": 2,
            "due": 1,
            "correct_answers": 4,
            "incorrect_answers": 1,
        }

    def test_activity_counts_without_records(self, store):
        counts = store.activity_counts(2, NOW, NOW + timedelta(days=1), as_of=NOW)
        assert set(counts.values()) == {0}

    def test_first_learned_counts(self, store):
        store.upsert_learning_record(_record(1, first_learned_date=NOW))
        store.upsert_learning_record(_record(2, first_learned_date=NOW - timedelta(days=1)))
        store.upsert_learning_record(
            _record(3, status=LearningStatus.MASTERED, first_learned_date=NOW - timedelta(days=20))
        )
        store.upsert_learning_record(_record(4, user_id=2, first_learned_date=NOW))

        counts = store.first_learned_counts(
            1,
            {
                "recent": (NOW - timedelta(days=2), NOW + timedelta(hours=1)),
                "month": (NOW - timedelta(days=30), NOW + timedelta(hours=1)),
                "future": (NOW + timedelta(days=1), NOW + timedelta(days=2)),
            },
        )
        assert counts == {"recent": 2, "month": 3, "future": 0}
        assert store.first_learned_counts(1, {}) == {}


class TestUsers:
    """Profile fields and study bookkeeping."""

    def test_get_and_update(self, store):
        assert store.get_user(1).name == "Lan"
        assert store.get_user(99) is None
        assert store.update_user(1, daily_goal=20).daily_goal == 20
        assert store.update_user(99, daily_goal=20) is None

    def test_update_rejects_other_fields(self, store):
        with pytest.raises(InvalidArgument):
            store.update_user(1, current_streak=100)

    def test_streak_bookkeeping(self, store):
        store.record_study_activity(1, is_new_word=True, now=NOW)
        assert store.get_user(1).current_streak == 1

        store.record_study_activity(1, is_new_word=False, now=NOW + timedelta(hours=2))
        assert store.get_user(1).current_streak == 1

        store.record_study_activity(1, is_new_word=True, now=NOW + timedelta(days=1))
        user = store.get_user(1)
        assert user.current_streak == 2
        assert user.total_words_learned == 2

        store.record_study_activity(1, is_new_word=False, now=NOW + timedelta(days=5))
        user = store.get_user(1)
        assert user.current_streak == 1
        assert user.longest_streak == 2

    def test_running_test_average(self, store):
        store.record_test_score(1, 80, NOW)
        store.record_test_score(1, 65, NOW)
        user = store.get_user(1)
        assert user.total_tests_taken == 2
        # (80 + 65) / 2 = 72.5 rounds up
        assert user.average_test_score == 73

    def test_selected_topics_replace(self, store):
        assert store.get_selected_topic_ids(1) == []
        assert store.replace_selected_topics(1, [2, 1, 2]) == [1, 2]
        assert store.replace_selected_topics(1, [3]) == [3]
        assert store.get_selected_topic_ids(1) == [3]


class TestStorageErrors:
    """SQLAlchemy failures surface as StorageError."""

    def test_errors_are_wrapped(self):
        def broken_scope():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        store = LearningRecordStore(broken_scope)
        with pytest.raises(StorageError) as exc_info:
            store.find_learning_record(1, 1)
        assert isinstance(exc_info.value.__cause__, OperationalError)
