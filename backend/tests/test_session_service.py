"""
Tests for Session Service event fan-out

Covers the subscriber queue and the SSE generator directly,
without a running controller thread.
"""
import asyncio
import pytest
from datetime import datetime
from pathlib import Path

from autofix.schemas import RemediationResult, SessionStatus
from services import session_service
from services.session_service import AutofixSession, EventType


def event(session_id: str, event_type: str, payload=None) -> dict:
    return {
        "session_id": session_id,
        "event_type": event_type,
        "payload": payload or {},
        "created_at": datetime.utcnow().isoformat(),
    }


class TestSubscriberQueue:
    """Test delivery into a bounded subscriber queue"""

    def test_full_queue_drops_log_events(self):
        queue = asyncio.Queue(maxsize=2)
        session_service._safe_put(queue, event("s", EventType.LOG, {"message": "one"}))
        session_service._safe_put(queue, event("s", EventType.LOG, {"message": "two"}))
        session_service._safe_put(queue, event("s", EventType.LOG, {"message": "three"}))

        assert queue.qsize() == 2
        assert [queue.get_nowait()["payload"]["message"] for _ in range(2)] == ["one", "two"]

    def test_full_queue_still_takes_result(self):
        queue = asyncio.Queue(maxsize=2)
        session_service._safe_put(queue, event("s", EventType.LOG, {"message": "one"}))
        session_service._safe_put(queue, event("s", EventType.PROGRESS, {"progress": 50}))
        session_service._safe_put(queue, event("s", EventType.RESULT, {"status": "success"}))

        delivered = [queue.get_nowait() for _ in range(queue.qsize())]
        assert [e["event_type"] for e in delivered] == [EventType.PROGRESS, EventType.RESULT]


class TestSubscribe:
    """Test the SSE generator"""

    @pytest.fixture
    def session(self):
        session_service.reset()
        session = AutofixSession(
            build_spec_path=Path("Dockerfile"),
            context_dir=Path("."),
            image_tag="anonymous/app:latest",
            max_attempts=3,
        )
        session_service._sessions[session.id] = session
        yield session
        session_service.reset()

    def test_backlog_ends_at_result(self, session):
        session.events.append(event(session.id, EventType.STATUS, {"status": "success"}))
        session.events.append(event(session.id, EventType.RESULT, {"status": "success"}))

        async def collect():
            return [chunk async for chunk in session_service.subscribe(session.id)]

        chunks = asyncio.run(collect())

        assert len(chunks) == 3
        assert chunks[-1].startswith(f"event: {EventType.RESULT}")

    def test_stream_ends_when_result_never_queued(self, session):
        """A finished session closes the stream even if its result event was lost"""
        async def collect():
            stream = session_service.subscribe(session.id, keepalive_seconds=0.05)
            chunks = [await stream.__anext__(), await stream.__anext__()]

            # Finish behind the subscriber's back: history only, nothing queued
            result = RemediationResult(succeeded=True, status=SessionStatus.SUCCESS)
            session.result = result
            session.events.append(event(session.id, EventType.RESULT, result.model_dump(mode="json")))

            async for chunk in stream:
                chunks.append(chunk)
            return chunks

        chunks = asyncio.run(asyncio.wait_for(collect(), timeout=5))

        assert chunks[0].startswith(": connected")
        assert chunks[1] == ": keepalive\n\n"
        assert chunks[-1].startswith(f"event: {EventType.RESULT}")
        assert '"status": "Success"' in chunks[-1]
        assert session.id not in session_service._subscribers

    def test_unknown_session_yields_nothing(self, session):
        async def collect():
            return [chunk async for chunk in session_service.subscribe("missing")]

        assert asyncio.run(collect()) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
