"""Tests for the chat and learning event repositories."""

from datetime import timedelta

from cs_tutor.models.entities import ChatMessage, LearningEvent, utc_now
from cs_tutor.repositories.chat_repository import ChatRepository
from cs_tutor.repositories.learning_event_repository import LearningEventRepository


class TestUtcNow:

    def test_naive_utc(self):
        now = utc_now()
        assert now.tzinfo is None


class TestChatRepository:

    def test_turn_rows_share_naive_timestamp(self, db_session):
        ChatRepository(db_session).add_turn(
            user_id="student-1",
            user_message="What is a loop?",
            reply="A loop repeats steps.",
            level="KS3",
            topic="Programming Basics",
            mode="Explain",
        )
        rows = db_session.query(ChatMessage).order_by(ChatMessage.id).all()

        assert [row.role for row in rows] == ["user", "assistant"]
        assert rows[0].created_at == rows[1].created_at
        assert rows[0].created_at.tzinfo is None


class TestLearningEventRepository:

    def test_recent_respects_window(self, db_session):
        repo = LearningEventRepository(db_session)
        repo.record(user_id="student-1", event_type="tutor_turn", topic="Networks")
        db_session.add(LearningEvent(
            user_id="student-1",
            event_type="tutor_turn",
            topic="Data Representation",
            created_at=utc_now() - timedelta(days=30),
        ))
        db_session.commit()

        events = repo.recent("student-1", days=14)

        assert [event.topic for event in events] == ["Networks"]

    def test_recent_is_per_user(self, db_session):
        repo = LearningEventRepository(db_session)
        repo.record(user_id="student-2", event_type="tutor_turn", topic="Networks")
        assert repo.recent("student-1") == []
