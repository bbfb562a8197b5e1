"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-memory SQLite record store with seeded content, a fakeredis-backed
cache gateway, a controllable clock and the study services wired to them.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import fakeredis
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from wordwise.cache import CacheGateway, CacheKeys  # noqa: E402
from wordwise.core.status import SchedulingRules  # noqa: E402
from wordwise.db.database import make_session_factory, make_session_scope  # noqa: E402
from wordwise.db.models import Base, Topic, User, Vocabulary  # noqa: E402
from wordwise.db.repository import LearningRecordStore  # noqa: E402
from wordwise.study import (  # noqa: E402
    ProgressAggregator,
    SchedulingEngine,
    TestGenerator,
    UserProfileService,
    VocabularyCatalog,
)

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0)

TTLS = {
    "hot": 300,
    "user_progress": 900,
    "topic_stats": 1200,
    "selected_topics": 1800,
    "vocabulary": 3600,
}

# (topic id, word, meaning, level)
SEED_VOCABULARY = [
    (1, "cat", "con mèo", "beginner"),
    (1, "dog", "con chó", "beginner"),
    (1, "bird", "con chim", "beginner"),
    (1, "horse", "con ngựa", "intermediate"),
    (1, "tiger", "con hổ", "intermediate"),
    (1, "elephant", "con voi", "advanced"),
    (2, "rice", "cơm", "beginner"),
    (2, "bread", "bánh mì", "beginner"),
    (2, "soup", "canh", "intermediate"),
    (2, "noodle", "mì", "intermediate"),
    (3, "ticket", "vé", "beginner"),
    (3, "passport", "hộ chiếu", "advanced"),
]


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (record store + cache together)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> datetime:
        self.now = self.now + timedelta(days=days, hours=hours)
        return self.now


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Record store
# ========================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_scope(db_engine):
    return make_session_scope(make_session_factory(db_engine))


@pytest.fixture
def seeded(session_scope):
    """Three active topics, one inactive topic, twelve words, two users."""
    with session_scope() as session:
        session.add_all(
            [
                Topic(id=1, name="animals", name_native="Động vật", display_order=1),
                Topic(id=2, name="food", name_native="Đồ ăn", display_order=2),
                Topic(id=3, name="travel", name_native="Du lịch", display_order=3),
                Topic(id=4, name="archived", display_order=4, is_active=False),
            ]
        )
        session.add_all(
            Vocabulary(id=i, word=word, meaning=meaning, level=level, topic_id=topic_id)
            for i, (topic_id, word, meaning, level) in enumerate(SEED_VOCABULARY, start=1)
        )
        session.add_all(
            [
                User(id=1, email="lan@example.com", name="Lan", daily_goal=10),
                User(id=2, email="minh@example.com", name="Minh", daily_goal=5),
            ]
        )
    return SEED_VOCABULARY


@pytest.fixture
def store(session_scope, seeded):
    return LearningRecordStore(session_scope)


# ========================================
# Cache
# ========================================


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(redis_client):
    return CacheGateway(redis_client, CacheKeys("test", 1))


@pytest.fixture
def disabled_cache():
    return CacheGateway(None, CacheKeys("test", 1))


# ========================================
# Services
# ========================================


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def scheduler(store, cache, clock):
    return SchedulingEngine(
        store=store,
        cache=cache,
        rules=SchedulingRules(),
        pool_factor=3,
        clock=clock,
        rng=random.Random(42),
    )


@pytest.fixture
def generator(store, scheduler, cache):
    return TestGenerator(
        store=store,
        engine=scheduler,
        cache=cache,
        distractor_count=3,
        ttls=TTLS,
        rng=random.Random(3),
    )


@pytest.fixture
def profiles(store, cache):
    return UserProfileService(store=store, cache=cache, ttls=TTLS)


@pytest.fixture
def aggregator(store, cache, profiles, clock):
    return ProgressAggregator(store=store, cache=cache, profiles=profiles, ttls=TTLS, clock=clock)


@pytest.fixture
def catalog(store, cache):
    return VocabularyCatalog(store=store, cache=cache, ttls=TTLS)
