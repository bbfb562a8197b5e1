"""
Content and user tables for the learning core.

Implements:
- Topic: Named grouping of vocabulary with display order and active flag
- Vocabulary: Dictionary entry (headword, meaning, level, topic)
- User: Profile fields the core reads and maintains (goal, streaks, test stats)
- UserSelectedTopic: A user's chosen topics

Content rows are created by content management; the core only reads them.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Topic(Base):
    """Named grouping of vocabulary items."""

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name_native: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(50))
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # Denormalized, maintained by content management
    vocabulary_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    vocabularies: Mapped[list[Vocabulary]] = relationship(back_populates="topic")


class Vocabulary(Base):
    """A dictionary entry."""

    __tablename__ = "vocabulary"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    word: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    meaning: Mapped[str] = mapped_column(Text, nullable=False)
    pronunciation: Mapped[str | None] = mapped_column(String(200))
    example: Mapped[str | None] = mapped_column(Text)
    part_of_speech: Mapped[str | None] = mapped_column(String(50), default="noun")
    level: Mapped[str] = mapped_column(String(20), default="beginner", index=True)
    topic_id: Mapped[int | None] = mapped_column(
        ForeignKey("topics.id", ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    topic: Mapped[Topic | None] = relationship(back_populates="vocabularies")


class User(Base):
    """Profile and activity counters of a learner."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    level: Mapped[str] = mapped_column(String(20), default="beginner")
    daily_goal: Mapped[int] = mapped_column(Integer, default=10)
    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0)
    total_words_learned: Mapped[int] = mapped_column(Integer, default=0)
    total_tests_taken: Mapped[int] = mapped_column(Integer, default=0)
    average_test_score: Mapped[int] = mapped_column(Integer, default=0)
    last_study_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())


class UserSelectedTopic(Base):
    """Membership of a topic in a user's selection."""

    __tablename__ = "user_selected_topics"
    __table_args__ = (UniqueConstraint("user_id", "topic_id", name="uq_user_selected_topic"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("topics.id", ondelete="CASCADE"))
    selected_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
