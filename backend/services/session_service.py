"""
Session Service - Background execution and SSE streaming for auto-fix sessions

Handles:
- Session registry (in-memory, one entry per auto-fix session)
- Background execution of the RetryController on a daemon thread
- Event fan-out to SSE subscribers (log, progress, status, result)
- Cancellation

WORKFLOW STATE MACHINE:
=======================
start_session() → [Idle] → thread starts → [Attempting] → controller.run() → terminal status
                                                                 ↑
                                              cancel_session() sets the cancel event

Sessions are isolated by build-context path: two live sessions may not share
one context directory.
"""
import asyncio
import json
import logging
import threading
import traceback
import uuid
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

from autofix.core.builder import Builder
from autofix.core.controller import RetryController
from autofix.schemas import RemediationResult, SessionStatus
from autofix.tools.content_generator import LLMContentGenerator
from config import (
    OPENAI_API_KEY,
    BUILD_TOOL,
    ATTEMPT_TIMEOUT_SECONDS,
    SESSION_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    CONTENT_MODEL,
    CONTENT_TEMPERATURE,
    CONTENT_MAX_TOKENS,
)

logger = logging.getLogger(__name__)


class SessionConflictError(Exception):
    """Raised when a build context is already owned by a live session"""
    pass


class EventType:
    """Standard event types"""
    STATUS = "session.status"  # Status change
    PROGRESS = "session.progress"  # Progress update (0-100)
    LOG = "log.append"  # Build output or engine decision
    RESULT = "session.result"  # Terminal RemediationResult; last event of a session


class AutofixSession:
    """One auto-fix session and its event buffer"""

    def __init__(
        self,
        build_spec_path: Path,
        context_dir: Path,
        image_tag: str,
        max_attempts: int,
        project_context: Optional[str] = None,
    ):
        self.id = str(uuid.uuid4())
        self.build_spec_path = build_spec_path
        self.context_dir = context_dir
        self.image_tag = image_tag
        self.max_attempts = max_attempts
        self.project_context = project_context

        self.status = SessionStatus.IDLE
        self.progress = 0
        self.result: Optional[RemediationResult] = None
        self.created_at = datetime.utcnow()
        self.finished_at: Optional[datetime] = None

        self.cancel_event = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.events: List[Dict[str, Any]] = []

    @property
    def is_finished(self) -> bool:
        return self.result is not None


# In-memory registry; sessions live as long as the process
_sessions: Dict[str, AutofixSession] = {}
_subscribers: Dict[str, List[asyncio.Queue]] = defaultdict(list)
_lock = threading.Lock()

# Store the main event loop for thread-safe event dispatch
_main_loop: Optional[asyncio.AbstractEventLoop] = None


def set_main_loop(loop: asyncio.AbstractEventLoop):
    """Set the main event loop for thread-safe event dispatch"""
    global _main_loop
    _main_loop = loop


def create_controller() -> RetryController:
    """Controller wired from config; AI content only when an API key is configured"""
    content_generator = None
    if OPENAI_API_KEY:
        content_generator = LLMContentGenerator(
            api_key=OPENAI_API_KEY,
            model=CONTENT_MODEL,
            temperature=CONTENT_TEMPERATURE,
            max_tokens=CONTENT_MAX_TOKENS,
        )
    return RetryController(
        builder=Builder(build_tool=BUILD_TOOL, timeout=ATTEMPT_TIMEOUT_SECONDS),
        content_generator=content_generator,
        max_attempts=DEFAULT_MAX_ATTEMPTS,
        session_timeout=SESSION_TIMEOUT_SECONDS,
    )


# ============================================================================
# Session Lifecycle
# ============================================================================

def start_session(
    build_spec_path: Path,
    context_dir: Path,
    image_tag: str,
    max_attempts: Optional[int] = None,
    project_context: Optional[str] = None,
    controller: Optional[RetryController] = None,
) -> AutofixSession:
    """
    Register a session and run it on a background thread

    Raises:
        SessionConflictError: If another live session owns `context_dir`
    """
    context_dir = Path(context_dir).resolve()
    session = AutofixSession(
        build_spec_path=Path(build_spec_path),
        context_dir=context_dir,
        image_tag=image_tag,
        max_attempts=DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts,
        project_context=project_context,
    )

    with _lock:
        for other in _sessions.values():
            if other.context_dir == context_dir and not other.is_finished:
                raise SessionConflictError(
                    f"Build context {context_dir} is already in use by session {other.id}"
                )
        _sessions[session.id] = session

    controller = controller or create_controller()
    session.thread = threading.Thread(
        target=execute_session,
        args=(session, controller),
        name=f"autofix-{session.id[:8]}",
        daemon=True,
    )
    session.thread.start()
    logger.info(f"[SessionService] Started session {session.id} for {context_dir} → {image_tag}")
    return session


def execute_session(session: AutofixSession, controller: RetryController):
    """Run the controller for one session, emitting events as it goes"""
    logger.info(f"[execute_session] START session_id={session.id}")
    _set_status(session, SessionStatus.ATTEMPTING)

    def on_log(line: str):
        emit_event(session, EventType.LOG, {"message": line})

    def on_progress(percent: int):
        session.progress = percent
        emit_event(session, EventType.PROGRESS, {"progress": percent})

    try:
        result = controller.run(
            session.build_spec_path,
            session.context_dir,
            session.image_tag,
            log_sink=on_log,
            progress_callback=on_progress,
            cancel_event=session.cancel_event,
            project_context=session.project_context,
            max_attempts=session.max_attempts,
        )
    except Exception as e:
        logger.error(f"[execute_session] Session {session.id} crashed: {e}")
        logger.error(traceback.format_exc())
        result = RemediationResult(
            max_attempts=session.max_attempts,
            status=SessionStatus.FAILED,
            terminal_reason=f"internal error: {e}",
        )

    _finish(session, result)
    logger.info(f"[execute_session] END session_id={session.id} status={result.status.value}")


def _set_status(session: AutofixSession, status: SessionStatus):
    session.status = status
    emit_event(session, EventType.STATUS, {"status": status.value})


def _finish(session: AutofixSession, result: RemediationResult):
    session.finished_at = datetime.utcnow()
    if result.succeeded:
        session.progress = 100
    session.status = result.status
    emit_event(session, EventType.STATUS, {"status": result.status.value})

    # Result last: subscribers stop reading after it
    session.result = result
    emit_event(session, EventType.RESULT, result.model_dump(mode="json"))


def get_session(session_id: str) -> Optional[AutofixSession]:
    with _lock:
        return _sessions.get(session_id)


def list_sessions() -> List[AutofixSession]:
    with _lock:
        return sorted(_sessions.values(), key=lambda s: s.created_at, reverse=True)


def cancel_session(session_id: str) -> Optional[AutofixSession]:
    """
    Request cancellation

    The controller notices the event between attempts and the builder
    kills a running build, so the session ends shortly after.

    Returns:
        The session, or None if unknown
    """
    session = get_session(session_id)
    if session is None:
        return None
    if not session.is_finished:
        logger.info(f"[SessionService] Cancelling session {session_id}")
        session.cancel_event.set()
    return session


# ============================================================================
# Event Fan-out
# ============================================================================

def emit_event(session: AutofixSession, event_type: str, payload: Optional[Dict[str, Any]] = None):
    """
    Record an event and notify real-time subscribers

    Thread-safe: called from the session's background thread.
    """
    event_data = {
        "session_id": session.id,
        "event_type": event_type,
        "payload": payload or {},
        "created_at": datetime.utcnow().isoformat(),
    }

    with _lock:
        session.events.append(event_data)
        queues = list(_subscribers.get(session.id, []))

    for queue in queues:
        if _main_loop and _main_loop.is_running():
            _main_loop.call_soon_threadsafe(_safe_put, queue, event_data)
        else:
            _safe_put(queue, event_data)


def _safe_put(queue: asyncio.Queue, data: dict):
    """
    Put data into the queue without blocking

    A slow subscriber loses log and progress events, but never the result:
    the oldest queued event is evicted to make room for it.
    """
    try:
        queue.put_nowait(data)
        return
    except asyncio.QueueFull:
        pass

    if data["event_type"] != EventType.RESULT:
        logger.warning(f"[SessionService] Subscriber queue full, dropping {data['event_type']} event")
        return

    try:
        evicted = queue.get_nowait()
    except asyncio.QueueEmpty:
        evicted = None
    if evicted is not None:
        logger.warning(f"[SessionService] Subscriber queue full, evicted {evicted['event_type']} event for the result")
    queue.put_nowait(data)


def _result_event(session: AutofixSession) -> Optional[Dict[str, Any]]:
    with _lock:
        for event_data in reversed(session.events):
            if event_data["event_type"] == EventType.RESULT:
                return event_data
    return None


def _format_sse(event_data: Dict[str, Any]) -> str:
    return f"event: {event_data['event_type']}\ndata: {json.dumps(event_data)}\n\n"


async def subscribe(session_id: str, keepalive_seconds: float = 30.0) -> AsyncGenerator[str, None]:
    """
    Subscribe to events for a session (SSE generator)

    Replays everything emitted so far, then streams live events.
    The stream ends after the result event.

    Usage:
        @router.get("/api/autofix/sessions/{session_id}/events")
        async def get_events(session_id: str):
            return StreamingResponse(subscribe(session_id), media_type="text/event-stream")
    """
    # Set the main event loop for thread-safe event dispatch
    global _main_loop
    try:
        _main_loop = asyncio.get_running_loop()
    except RuntimeError:
        pass

    queue: asyncio.Queue = asyncio.Queue(maxsize=1000)

    # Snapshot and register atomically so no event is missed or duplicated
    with _lock:
        session = _sessions.get(session_id)
        backlog = list(session.events) if session else []
        if session is not None:
            _subscribers[session_id].append(queue)

    if session is None:
        return

    try:
        yield f": connected to session {session_id}\n\n"

        for event_data in backlog:
            yield _format_sse(event_data)
            if event_data["event_type"] == EventType.RESULT:
                return

        while True:
            try:
                event_data = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                # Finished with nothing queued: the result never reached this subscriber
                final = _result_event(session) if session.is_finished else None
                if final is not None:
                    yield _format_sse(final)
                    return
                yield ": keepalive\n\n"
                continue

            yield _format_sse(event_data)
            if event_data["event_type"] == EventType.RESULT:
                return
    finally:
        with _lock:
            queues = _subscribers.get(session_id)
            if queues is not None:
                if queue in queues:
                    queues.remove(queue)
                if not queues:
                    del _subscribers[session_id]


def reset():
    """Forget all sessions (tests)"""
    with _lock:
        _sessions.clear()
        _subscribers.clear()


__all__ = [
    "AutofixSession",
    "EventType",
    "SessionConflictError",
    "create_controller",
    "start_session",
    "execute_session",
    "get_session",
    "list_sessions",
    "cancel_session",
    "emit_event",
    "subscribe",
    "set_main_loop",
    "reset",
]
