"""
Vocabulary catalog: cached, user-independent content listings.
"""

from __future__ import annotations

from config import get_settings
from wordwise.cache import CacheGateway, create_cache_gateway
from wordwise.core.types import TopicInfo, VocabularyItem
from wordwise.db.repository import LearningRecordStore
from wordwise.exceptions import InvalidArgument

MAX_PAGE_SIZE = 100


class VocabularyCatalog:
    """Topic statistics (20 min) and paged vocabulary listings (1 hour)."""

    def __init__(
        self,
        store: LearningRecordStore | None = None,
        cache: CacheGateway | None = None,
        ttls: dict[str, int] | None = None,
    ):
        self.store = store or LearningRecordStore()
        self.cache = cache or create_cache_gateway()
        self.ttls = ttls or get_settings().get_cache_ttls()

    def topic_stats(self) -> list[TopicInfo]:
        """Active topics with their live vocabulary counts."""

        def load() -> list[TopicInfo]:
            topics = self.store.list_active_topics()
            counts = self.store.count_vocabulary_by_topic([t.id for t in topics])
            for topic in topics:
                topic.vocabulary_count = counts.get(topic.id, 0)
            return topics

        return self.cache.cached_json(
            self.cache.keys.topic_stats(),
            self.ttls["topic_stats"],
            load,
            dump=lambda topics: [t.to_dict() for t in topics],
            load=lambda data: [TopicInfo.from_dict(d) for d in data],
        )

    def list_vocabulary(
        self,
        topic_id: int | None = None,
        level: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> list[VocabularyItem]:
        if page < 1:
            raise InvalidArgument(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise InvalidArgument(f"page_size must be in 1..{MAX_PAGE_SIZE}, got {page_size}")

        return self.cache.cached_json(
            self.cache.keys.vocabulary_listing(topic_id, level, page, page_size),
            self.ttls["vocabulary"],
            lambda: self.store.list_vocabulary(
                topic_id=topic_id, level=level, offset=(page - 1) * page_size, limit=page_size
            ),
            dump=lambda items: [i.to_dict() for i in items],
            load=lambda data: [VocabularyItem.from_dict(d) for d in data],
        )
