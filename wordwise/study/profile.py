"""
User profile and topic selection.

Reads go through the cache (selected topics are a membership set, 30 min);
every write goes to the record store first and then drops every cache key
of that user before returning.
"""

from __future__ import annotations

from loguru import logger

from config import get_settings
from wordwise.cache import CacheGateway, create_cache_gateway
from wordwise.core.types import Level, UserProfile
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument

MIN_DAILY_GOAL = 1
MAX_DAILY_GOAL = 100


class UserProfileService:
    """Profile fields and selected topics of a learner."""

    def __init__(
        self,
        store: LearningRecordStore | None = None,
        cache: CacheGateway | None = None,
        ttls: dict[str, int] | None = None,
    ):
        self.store = store or LearningRecordStore()
        self.cache = cache or create_cache_gateway()
        self.ttls = ttls or get_settings().get_cache_ttls()

    def get_profile(self, user_id: int) -> UserProfile:
        profile = self.store.get_user(user_id)
        if profile is None:
            raise InvalidArgument(f"Unknown user {user_id}")
        return profile

    def selected_topics(self, user_id: int) -> set[int]:
        key = self.cache.keys.user_selected_topics(user_id)
        lookup = self.cache.get_members(key)
        if lookup.hit:
            try:
                return {int(m) for m in lookup.value}
            except ValueError as e:
                logger.debug(f"Discarding malformed cache entry {key}: {e}")

        topic_ids = set(self.store.get_selected_topic_ids(user_id))
        self.cache.set_members(key, topic_ids, self.ttls["selected_topics"])
        return topic_ids

    def select_topics(self, user_id: int, topic_ids: list[int]) -> list[int]:
        """Replace the user's topic selection with ``topic_ids``."""
        self.get_profile(user_id)
        wanted = set(topic_ids)
        known = {t.id for t in self.store.list_active_topics(wanted)} if wanted else set()
        unknown = wanted - known
        if unknown:
            raise InvalidArgument(f"Unknown or inactive topics: {sorted(unknown)}")

        stored = self.store.replace_selected_topics(user_id, wanted)
        self.cache.invalidate_user(user_id)
        logger.info(f"User {user_id} selected topics {stored}")
        return stored

    def update_profile(
        self,
        user_id: int,
        daily_goal: int | None = None,
        name: str | None = None,
        level: str | None = None,
    ) -> UserProfile:
        """
        Update daily goal, display name and/or level.

        Raises:
            InvalidArgument: daily_goal outside 1..100, blank name, unknown level or user
        """
        fields: dict[str, object] = {}
        if daily_goal is not None:
            if isinstance(daily_goal, bool) or not isinstance(daily_goal, int):
                raise InvalidArgument(f"daily_goal must be an integer, got {daily_goal!r}")
            if not MIN_DAILY_GOAL <= daily_goal <= MAX_DAILY_GOAL:
                raise InvalidArgument(
                    f"daily_goal must be between {MIN_DAILY_GOAL} and {MAX_DAILY_GOAL}, got {daily_goal}"
                )
            fields["daily_goal"] = daily_goal
        if name is not None:
            if not name.strip():
                raise InvalidArgument("name must not be blank")
            fields["name"] = name.strip()
        if level is not None:
            try:
                fields["level"] = Level(level).value
            except ValueError as e:
                raise InvalidArgument(f"Unknown level {level!r}") from e

        if not fields:
            return self.get_profile(user_id)

        profile = self.store.update_user(user_id, **fields)
        if profile is None:
            raise InvalidArgument(f"Unknown user {user_id}")
        self.cache.invalidate_user(user_id)
        logger.info(f"User {user_id} profile updated: {sorted(fields)}")
        return profile
