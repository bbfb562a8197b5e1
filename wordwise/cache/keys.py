"""
Cache key builder.

Every cache entry family has exactly one builder method here, and every
parameter that changes the cached result is part of the key. Keys are
hierarchical and share the ``{namespace}:v{version}`` prefix, so bumping
the version orphans every older entry at once.

Per-user keys all live under ``...:user:{user_id}:`` so a single pattern
(``user_pattern``) covers everything derived from one user's data.
"""

from __future__ import annotations

ALL = "all"


def _part(value: object | None) -> str:
    """Render an optional key component; None means "unfiltered"."""
    if value is None or value == "":
        return ALL
    return str(value).replace(":", "_")


class CacheKeys:
    """Builds namespaced, versioned cache keys."""

    def __init__(self, namespace: str = "wordwise", version: int = 1):
        self.prefix = f"{namespace}:v{version}"

    def _user(self, user_id: int) -> str:
        return f"{self.prefix}:user:{user_id}"

    # ========================================
    # Per-user entries
    # ========================================

    def user_progress(self, user_id: int, topic_id: int | None = None, level: str | None = None) -> str:
        return f"{self._user(user_id)}:progress:topic:{_part(topic_id)}:level:{_part(level)}"

    def user_topics_progress(self, user_id: int, level: str | None = None) -> str:
        """Hash: one field per topic id."""
        return f"{self._user(user_id)}:topics-progress:level:{_part(level)}"

    def user_selected_topics(self, user_id: int) -> str:
        """Set of topic ids."""
        return f"{self._user(user_id)}:selected-topics"

    def user_dashboard(self, user_id: int) -> str:
        return f"{self._user(user_id)}:dashboard"

    def user_review_stats(self, user_id: int) -> str:
        return f"{self._user(user_id)}:review-stats"

    def user_pattern(self, user_id: int) -> str:
        """Glob matching every key derived from this user's data."""
        return f"{self._user(user_id)}:*"

    # ========================================
    # Global entries
    # ========================================

    def topic_stats(self) -> str:
        return f"{self.prefix}:topic:stats"

    def vocabulary_ids(self, topic_id: int | None = None) -> str:
        """Id list used to draw quiz distractors."""
        return f"{self.prefix}:vocab:ids:topic:{_part(topic_id)}"

    def vocabulary_listing(
        self,
        topic_id: int | None = None,
        level: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> str:
        return (
            f"{self.prefix}:vocab:topic:{_part(topic_id)}:level:{_part(level)}"
            f":page:{page}:size:{page_size}"
        )
