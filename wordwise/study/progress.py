"""
Progress Aggregator.

Derives per-user and per-topic summaries from the learning record store.
Each result is computed from the store (one grouped query) and only then
copied into the cache; the cache is never used as an input to a computation.

Cache layout:
- user progress: JSON blob per (user, topic, level), 15 min
- topics with progress: hash per (user, level), one field per topic, 15 min
- learning dashboard: JSON blob per user, 5 min
- review stats: JSON blob per user, 15 min
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from config import get_settings
from wordwise.cache import CacheGateway, create_cache_gateway
from wordwise.core.types import (
    LearningStatus,
    ProgressSummary,
    ReviewPeriod,
    TopicProgressView,
    percent,
)
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument
from wordwise.study.profile import UserProfileService


@dataclass
class TodayProgress:
    """Words first learned and reviewed today."""

    words_learned: int = 0
    words_reviewed: int = 0

    @property
    def total(self) -> int:
        return self.words_learned + self.words_reviewed


@dataclass
class LearningDashboard:
    """Everything the home screen shows for one learner."""

    user_id: int
    daily_goal: int
    current_streak: int
    longest_streak: int
    total_learned: int
    mastered: int
    learning: int
    difficult: int
    words_to_review: int
    accuracy: int
    progress_percentage: int
    today: TodayProgress = field(default_factory=TodayProgress)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LearningDashboard:
        data = dict(data)
        data["today"] = TodayProgress(**data.get("today", {}))
        return cls(**data)


@dataclass
class ReviewStats:
    """Words first learned per period, plus the size of the review pile."""

    total_learning: int = 0
    today: int = 0
    yesterday: int = 0
    last_7_days: int = 0
    last_30_days: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewStats:
        return cls(**data)


class ProgressAggregator:
    """
    Progress summaries and dashboards, cache-aside.

    Args:
        store: Learning record store
        cache: Cache gateway
        profiles: Source of the user's selected topics
        ttls: TTL policy (defaults to settings)
        clock: Returns "now" (injectable for tests)
    """

    def __init__(
        self,
        store: LearningRecordStore | None = None,
        cache: CacheGateway | None = None,
        profiles: UserProfileService | None = None,
        ttls: dict[str, int] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store or LearningRecordStore()
        self.cache = cache or create_cache_gateway()
        self.ttls = ttls or get_settings().get_cache_ttls()
        self.profiles = profiles or UserProfileService(self.store, self.cache, self.ttls)
        self.clock = clock or datetime.now

    # ========================================
    # Progress summaries
    # ========================================

    def user_progress(
        self,
        user_id: int,
        topic_id: int | None = None,
        level: str | None = None,
    ) -> ProgressSummary:
        """Status counts and mastery percentage, optionally for one topic/level."""
        return self.cache.cached_json(
            self.cache.keys.user_progress(user_id, topic_id, level),
            self.ttls["user_progress"],
            lambda: ProgressSummary.from_counts(
                self.store.count_records_by_status(user_id, topic_id=topic_id, level=level),
                topic_id=topic_id,
                level=level,
            ),
            dump=ProgressSummary.to_dict,
            load=ProgressSummary.from_dict,
        )

    def topics_with_progress(
        self,
        user_id: int,
        selected_topics: list[int] | None = None,
        level: str | None = None,
    ) -> list[TopicProgressView]:
        """
        Progress per topic.

        Args:
            user_id: Learner
            selected_topics: Topics to report (None: the user's stored selection);
                             an empty selection falls back to every active topic
            level: Only count words of this level

        Returns:
            One view per topic, in display order
        """
        if selected_topics is None:
            selection = self.profiles.selected_topics(user_id)
        else:
            selection = set(selected_topics)

        all_topics = self.store.list_active_topics()
        topics = [t for t in all_topics if t.id in selection] if selection else all_topics
        if not topics:
            return []

        summaries = self._topic_summaries(user_id, [t.id for t in all_topics], level)
        return [
            TopicProgressView(
                topic=topic,
                progress=summaries.get(topic.id) or ProgressSummary(topic_id=topic.id, level=level),
                is_selected=topic.id in selection,
            )
            for topic in topics
        ]

    def _topic_summaries(
        self,
        user_id: int,
        topic_ids: list[int],
        level: str | None,
    ) -> dict[int, ProgressSummary]:
        key = self.cache.keys.user_topics_progress(user_id, level)
        lookup = self.cache.get_hash(key)
        if lookup.hit:
            try:
                cached = {int(f): ProgressSummary.from_dict(v) for f, v in lookup.value.items()}
                if set(topic_ids) <= set(cached):
                    return cached
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Discarding malformed cache entry {key}: {e}")

        counts = self.store.count_records_by_topic(user_id, topic_ids, level=level)
        summaries = {
            topic_id: ProgressSummary.from_counts(counts.get(topic_id, {}), topic_id=topic_id, level=level)
            for topic_id in topic_ids
        }
        self.cache.set_hash(
            key,
            {str(t): s.to_dict() for t, s in summaries.items()},
            self.ttls["user_progress"],
        )
        return summaries

    # ========================================
    # Review stats
    # ========================================

    def review_stats(self, user_id: int) -> ReviewStats:
        """Words first learned today, yesterday, in 7 and 30 days; LEARNING total."""
        return self.cache.cached_json(
            self.cache.keys.user_review_stats(user_id),
            self.ttls["user_progress"],
            lambda: self._build_review_stats(user_id),
            dump=ReviewStats.to_dict,
            load=ReviewStats.from_dict,
        )

    def _build_review_stats(self, user_id: int) -> ReviewStats:
        now = self.clock()
        periods = {
            "today": ReviewPeriod.TODAY,
            "yesterday": ReviewPeriod.YESTERDAY,
            "last_7_days": ReviewPeriod.LAST_7_DAYS,
            "last_30_days": ReviewPeriod.LAST_30_DAYS,
        }
        counts = self.store.first_learned_counts(
            user_id, {name: period.window(now) for name, period in periods.items()}
        )
        learning = self.store.count_records_by_status(user_id).get(LearningStatus.LEARNING, 0)
        return ReviewStats(total_learning=learning, **counts)

    # ========================================
    # Dashboard
    # ========================================

    def learning_dashboard(self, user_id: int) -> LearningDashboard:
        """Daily goal, streaks, today's activity and overall counts."""
        return self.cache.cached_json(
            self.cache.keys.user_dashboard(user_id),
            self.ttls["hot"],
            lambda: self._build_dashboard(user_id),
            dump=LearningDashboard.to_dict,
            load=LearningDashboard.from_dict,
        )

    def _build_dashboard(self, user_id: int) -> LearningDashboard:
        user = self.store.get_user(user_id)
        if user is None:
            raise InvalidArgument(f"Unknown user {user_id}")

        now = self.clock()
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        activity = self.store.activity_counts(
            user_id, day_start, day_start + timedelta(days=1), as_of=now
        )
        counts = self.store.count_records_by_status(user_id)

        today = TodayProgress(
            words_learned=activity["learned_today"],
            words_reviewed=activity["reviewed_today"],
        )
        answered = activity["correct_answers"] + activity["incorrect_answers"]

        return LearningDashboard(
            user_id=user_id,
            daily_goal=user.daily_goal,
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            total_learned=sum(counts.values()),
            mastered=counts.get(LearningStatus.MASTERED, 0),
            learning=counts.get(LearningStatus.LEARNING, 0),
            difficult=counts.get(LearningStatus.DIFFICULT, 0),
            words_to_review=activity["due"],
            accuracy=percent(activity["correct_answers"], answered),
            progress_percentage=min(percent(today.total, user.daily_goal), 100),
            today=today,
        )
