"""Chat history data access layer."""
from sqlalchemy.orm import Session as DBSession

from cs_tutor.models.entities import ChatMessage, utc_now


class ChatRepository:
    """Repository for persisted chat turns."""

    def __init__(self, db: DBSession):
        self.db = db

    def add_turn(
        self,
        user_id: str,
        user_message: str,
        reply: str,
        level: str,
        topic: str,
        mode: str,
    ) -> None:
        """
        Insert one user row and one assistant row.

        Both rows share a timestamp and are committed together.
        """
        now = utc_now()
        for role, content in (("user", user_message), ("assistant", reply)):
            self.db.add(ChatMessage(
                user_id=user_id,
                role=role,
                content=content,
                level=level,
                topic=topic,
                mode=mode,
                created_at=now,
            ))
        self.db.commit()
