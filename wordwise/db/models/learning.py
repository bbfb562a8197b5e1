"""
Learning record table: one row per (user, vocabulary) pair.

A row exists iff the user has been shown the word at least once. It is
created lazily on the first study event and never deleted by the core.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .vocabulary import Vocabulary


class UserVocabulary(Base):
    """Per-user learning state of a single word."""

    __tablename__ = "user_vocabulary"
    __table_args__ = (
        Index("ix_user_vocabulary_user_word", "user_id", "vocabulary_id", unique=True),
        Index("ix_user_vocabulary_user_status_next", "user_id", "status", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    vocabulary_id: Mapped[int] = mapped_column(ForeignKey("vocabulary.id"), nullable=False)
    # Stored as the LearningStatus value ("learning", "mastered", ...)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    correct_count: Mapped[int] = mapped_column(Integer, default=0)
    incorrect_count: Mapped[int] = mapped_column(Integer, default=0)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    last_response_ms: Mapped[int | None] = mapped_column(Integer)
    first_learned_date: Mapped[datetime | None] = mapped_column(DateTime)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime)
    next_review_date: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    vocabulary: Mapped[Vocabulary] = relationship()
