"""
Unit tests for the user profile service and the vocabulary catalog.
"""

from unittest.mock import patch

import pytest

from wordwise.exceptions import InvalidArgument
from wordwise.study.catalog import VocabularyCatalog


class TestSelectedTopics:
    """Topic selection with a membership-set cache."""

    def test_empty_selection(self, profiles):
        assert profiles.selected_topics(1) == set()

    def test_select_and_read(self, profiles):
        assert profiles.select_topics(1, [3, 1]) == [1, 3]
        assert profiles.selected_topics(1) == {1, 3}

    def test_read_is_cached(self, profiles, store, cache):
        profiles.select_topics(1, [2])
        profiles.selected_topics(1)
        assert cache.get_members(cache.keys.user_selected_topics(1)).value == {"2"}

        with patch.object(store, "get_selected_topic_ids") as read:
            assert profiles.selected_topics(1) == {2}
        read.assert_not_called()

    def test_empty_selection_is_cached_too(self, profiles, cache):
        profiles.selected_topics(1)
        assert cache.get_members(cache.keys.user_selected_topics(1)).hit

    def test_select_invalidates_user_keys(self, profiles, cache):
        profiles.selected_topics(1)
        cache.set_json(cache.keys.user_dashboard(1), {"stale": True}, ttl=60)

        profiles.select_topics(1, [1])

        assert not cache.get_json(cache.keys.user_dashboard(1)).hit
        assert profiles.selected_topics(1) == {1}

    @pytest.mark.parametrize("topic_ids", [[99], [1, 4]])
    def test_rejects_unknown_or_inactive_topics(self, profiles, topic_ids):
        with pytest.raises(InvalidArgument):
            profiles.select_topics(1, topic_ids)
        assert profiles.selected_topics(1) == set()

    def test_clear_selection(self, profiles):
        profiles.select_topics(1, [1, 2])
        assert profiles.select_topics(1, []) == []
        assert profiles.selected_topics(1) == set()

    def test_unknown_user(self, profiles):
        with pytest.raises(InvalidArgument):
            profiles.select_topics(99, [1])


class TestUpdateProfile:
    """Daily goal, name and level."""

    def test_update_fields(self, profiles):
        profile = profiles.update_profile(1, daily_goal=25, name="  Lan Anh ", level="intermediate")
        assert profile.daily_goal == 25
        assert profile.name == "Lan Anh"
        assert profile.level == "intermediate"

    @pytest.mark.parametrize("goal", [0, 101, -5, True, "10"])
    def test_daily_goal_bounds(self, profiles, goal):
        with pytest.raises(InvalidArgument):
            profiles.update_profile(1, daily_goal=goal)

    @pytest.mark.parametrize("goal", [1, 100])
    def test_daily_goal_edges(self, profiles, goal):
        assert profiles.update_profile(1, daily_goal=goal).daily_goal == goal

    def test_blank_name(self, profiles):
        with pytest.raises(InvalidArgument):
            profiles.update_profile(1, name="   ")

    def test_unknown_level(self, profiles):
        with pytest.raises(InvalidArgument):
            profiles.update_profile(1, level="expert")

    def test_unknown_user(self, profiles):
        with pytest.raises(InvalidArgument):
            profiles.update_profile(99, daily_goal=10)

    def test_no_changes_returns_profile(self, profiles):
        assert profiles.update_profile(1).name == "Lan"

    def test_goal_change_reaches_dashboard(self, profiles, aggregator):
        assert aggregator.learning_dashboard(1).daily_goal == 10
        profiles.update_profile(1, daily_goal=40)
        assert aggregator.learning_dashboard(1).daily_goal == 40


class TestVocabularyCatalog:
    """Global content listings."""

    def test_topic_stats_counts_live_vocabulary(self, catalog):
        stats = catalog.topic_stats()
        assert [(t.name, t.vocabulary_count) for t in stats] == [("animals", 6), ("food", 4), ("travel", 2)]

    def test_topic_stats_cache_transparency(self, catalog, store, cache, redis_client):
        miss = catalog.topic_stats()
        with patch.object(store, "list_active_topics") as topics:
            hit = catalog.topic_stats()
        topics.assert_not_called()
        assert hit == miss

        ttl = redis_client.ttl(cache.keys.topic_stats())
        assert 0 < ttl <= 1200

    def test_list_vocabulary_pages(self, catalog):
        page1 = catalog.list_vocabulary(page=1, page_size=5)
        page3 = catalog.list_vocabulary(page=3, page_size=5)
        assert [v.id for v in page1] == [1, 2, 3, 4, 5]
        assert [v.id for v in page3] == [11, 12]

    def test_list_vocabulary_filters(self, catalog):
        items = catalog.list_vocabulary(topic_id=2, level="beginner")
        assert [v.word for v in items] == ["rice", "bread"]

    def test_list_vocabulary_cache_transparency(self, catalog, store, disabled_cache):
        uncached = VocabularyCatalog(store=store, cache=disabled_cache, ttls=catalog.ttls)
        miss = catalog.list_vocabulary(topic_id=1, page=1, page_size=4)
        with patch.object(store, "list_vocabulary") as listing:
            hit = catalog.list_vocabulary(topic_id=1, page=1, page_size=4)
        listing.assert_not_called()
        assert hit == miss == uncached.list_vocabulary(topic_id=1, page=1, page_size=4)

    @pytest.mark.parametrize("page,page_size", [(0, 10), (1, 0), (1, 101)])
    def test_invalid_paging(self, catalog, page, page_size):
        with pytest.raises(InvalidArgument):
            catalog.list_vocabulary(page=page, page_size=page_size)
