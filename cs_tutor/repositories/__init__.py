"""
Repositories for the CS Tutor API

Thin data-access classes over the relational store.

Modules:
    - user_repository: Subscription state lookups
    - chat_repository: Chat turn persistence
    - learning_event_repository: Learning activity reads/writes
"""

from cs_tutor.repositories.user_repository import UserRepository
from cs_tutor.repositories.chat_repository import ChatRepository
from cs_tutor.repositories.learning_event_repository import LearningEventRepository

__all__ = [
    "UserRepository",
    "ChatRepository",
    "LearningEventRepository",
]
