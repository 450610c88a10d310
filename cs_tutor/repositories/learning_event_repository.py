"""Learning event data access layer."""
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session as DBSession

from cs_tutor.models.entities import LearningEvent, utc_now


class LearningEventRepository:
    """Repository for learning activity records."""

    def __init__(self, db: DBSession):
        self.db = db

    def record(
        self,
        user_id: str,
        event_type: str,
        level: Optional[str] = None,
        topic: Optional[str] = None,
        score: Optional[float] = None,
        max_score: Optional[float] = None,
    ) -> LearningEvent:
        event = LearningEvent(
            user_id=user_id,
            event_type=event_type,
            level=level,
            topic=topic,
            score=score,
            max_score=max_score,
            created_at=utc_now(),
        )
        self.db.add(event)
        self.db.commit()
        return event

    def recent(self, user_id: str, days: int = 14) -> list[LearningEvent]:
        """Events for a user within the last `days` days, oldest first."""
        since = utc_now() - timedelta(days=days)
        return (
            self.db.query(LearningEvent)
            .filter(LearningEvent.user_id == user_id)
            .filter(LearningEvent.created_at >= since)
            .order_by(LearningEvent.created_at.asc(), LearningEvent.id.asc())
            .all()
        )
