# SQLAlchemy models
from .base import Base
from .learning import UserVocabulary
from .vocabulary import Topic, User, UserSelectedTopic, Vocabulary

__all__ = [
    # Base
    "Base",
    # Content
    "Topic",
    "Vocabulary",
    # Users
    "User",
    "UserSelectedTopic",
    # Learning state
    "UserVocabulary",
]
