"""Tests for reply chunking, streaming and turn persistence."""

import asyncio
import json
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from cs_tutor.models.entities import ChatMessage, LearningEvent
from cs_tutor.models.messages import TutorRequest
from cs_tutor.services.delivery import (
    NO_OUTPUT_TEXT,
    chunk_text,
    finalize_text,
    record_completed_turn,
    stream_reply,
)
from cs_tutor.services.usage_ledger import InMemoryUsageLedger


def parse_events(events):
    return [json.loads(event[len("data: "):].strip()) for event in events]


async def collect(stream):
    return [event async for event in stream]


class TestChunking:

    def test_chunks_are_bounded_and_complete(self):
        text = "Loops repeat a set of instructions until a condition is met."
        chunks = chunk_text(text, 28)
        assert all(len(chunk) <= 28 for chunk in chunks)
        assert "".join(chunks) == text

    def test_empty_text(self):
        assert chunk_text("", 10) == []

    def test_finalize_text(self):
        assert finalize_text("") == NO_OUTPUT_TEXT
        assert finalize_text("   ") == NO_OUTPUT_TEXT
        assert finalize_text(None) == NO_OUTPUT_TEXT
        assert finalize_text("hello") == "hello"


class TestStreamReply:

    @pytest.mark.asyncio
    async def test_deltas_reassemble_then_done(self):
        text = "Variables store values. A loop repeats steps."
        payloads = parse_events(await collect(stream_reply(text, chunk_size=7, delay_seconds=0)))

        assert payloads[-1] == {"done": True}
        deltas = payloads[:-1]
        assert all(set(p) == {"delta"} for p in deltas)
        assert "".join(p["delta"] for p in deltas) == text

    @pytest.mark.asyncio
    async def test_events_are_sse_frames(self):
        events = await collect(stream_reply("hi", chunk_size=10, delay_seconds=0))
        assert events == ['data: {"delta": "hi"}\n\n', 'data: {"done": true}\n\n']

    @pytest.mark.asyncio
    async def test_disconnect_stops_without_error(self):
        checks = iter([False, False, True])

        async def is_disconnected():
            return next(checks)

        payloads = parse_events(await collect(
            stream_reply("abcdefghij", chunk_size=2, delay_seconds=0, is_disconnected=is_disconnected)
        ))
        assert payloads == [{"delta": "ab"}, {"delta": "cd"}]

    @pytest.mark.asyncio
    async def test_unexpected_failure_ends_with_error_event(self):
        async def broken():
            raise RuntimeError("socket gone")

        payloads = parse_events(await collect(
            stream_reply("abc", chunk_size=1, delay_seconds=0, is_disconnected=broken)
        ))
        assert payloads == [{"error": "Stream interrupted"}]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        stream = stream_reply("abcdef", chunk_size=1, delay_seconds=10)
        await stream.__anext__()
        task = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task


class TestRecordCompletedTurn:

    @pytest.fixture
    def request_body(self):
        return TutorRequest(message="Explain loops", level="KS3", topic="Programming Basics")

    @pytest.fixture
    def ledger(self):
        return InMemoryUsageLedger(today=lambda: date(2025, 3, 1))

    def test_persists_pair_event_and_usage(self, db_session, ledger, request_body):
        record_completed_turn(db_session, ledger, "student-1", request_body, "Explain loops", "A loop repeats.")

        assert ledger.get_today_count("student-1") == 1
        rows = db_session.query(ChatMessage).order_by(ChatMessage.id).all()
        assert [(r.role, r.content) for r in rows] == [
            ("user", "Explain loops"),
            ("assistant", "A loop repeats."),
        ]
        assert rows[0].created_at == rows[1].created_at
        assert rows[0].level == "KS3"
        assert rows[0].mode == "Explain"
        [event] = db_session.query(LearningEvent).all()
        assert event.event_type == "tutor_turn"
        assert event.topic == "Programming Basics"

    def test_without_store_only_counts(self, ledger, request_body):
        record_completed_turn(None, ledger, "student-1", request_body, "Explain loops", "reply")
        assert ledger.get_today_count("student-1") == 1

    def test_store_failure_is_swallowed(self, ledger, request_body):
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

        record_completed_turn(db, ledger, "student-1", request_body, "Explain loops", "reply")

        assert ledger.get_today_count("student-1") == 1
        db.rollback.assert_called()

    def test_ledger_failure_still_persists_chat(self, db_session, request_body):
        ledger = MagicMock()
        ledger.increment.side_effect = OperationalError("UPSERT", {}, Exception("locked"))

        record_completed_turn(db_session, ledger, "student-1", request_body, "Explain loops", "reply")

        assert db_session.query(ChatMessage).count() == 2
