"""
Database layer: ORM models, engine/session handling and the record store.
"""

from wordwise.db.database import init_db, make_session_factory, make_session_scope, session_scope
from wordwise.db.repository import LearningRecordStore

__all__ = [
    "LearningRecordStore",
    "init_db",
    "make_session_factory",
    "make_session_scope",
    "session_scope",
]
