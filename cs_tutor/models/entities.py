"""SQLAlchemy ORM database models."""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Float, Text, Date, DateTime, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """User table - subscription state for a token subject."""
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # JWT `sub`
    email = Column(String, unique=True, nullable=True)
    role = Column(String, default="student", nullable=False)  # 'student', 'teacher'
    plan = Column(String, default="free", nullable=False)  # 'free', 'pro', 'premium'
    subscription_status = Column(String, nullable=True)  # provider status, e.g. 'active'
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)


class DailyUsage(Base):
    """Tutor turns consumed per user per UTC day."""
    __tablename__ = "daily_usage"

    user_id = Column(String, primary_key=True)
    usage_date = Column(Date, primary_key=True)
    turns = Column(Integer, default=0, nullable=False)


class ChatMessage(Base):
    """One side of a persisted chat turn."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    role = Column(String, nullable=False)  # 'user', 'assistant'
    content = Column(Text, nullable=False)
    level = Column(String, nullable=False)
    topic = Column(String, nullable=False)
    mode = Column(String, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_chat_user_created", "user_id", "created_at"),
    )


class LearningEvent(Base):
    """Learning activity used by progress and recommendation tools."""
    __tablename__ = "learning_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    event_type = Column(String, nullable=False)  # 'tutor_turn', 'quiz', 'code_eval'
    level = Column(String, nullable=True)
    topic = Column(String, nullable=True)
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index("idx_event_user_created", "user_id", "created_at"),
    )
