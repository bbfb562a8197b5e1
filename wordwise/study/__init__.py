"""
Study Module - Learning services built on the record store and the cache.

Components:
- scheduler: Study events, due words, new words (SchedulingEngine)
- quiz: Quiz generation and grading (TestGenerator)
- progress: Progress summaries and the dashboard (ProgressAggregator)
- catalog: Topic stats and vocabulary listings (VocabularyCatalog)
- profile: Daily goal, name, level and topic selection (UserProfileService)
"""

from wordwise.study.catalog import VocabularyCatalog
from wordwise.study.profile import UserProfileService
from wordwise.study.progress import LearningDashboard, ProgressAggregator, ReviewStats, TodayProgress
from wordwise.study.quiz import TestGenerator
from wordwise.study.scheduler import SchedulingEngine

__all__ = [
    "LearningDashboard",
    "ProgressAggregator",
    "ReviewStats",
    "SchedulingEngine",
    "TestGenerator",
    "TodayProgress",
    "UserProfileService",
    "VocabularyCatalog",
]
