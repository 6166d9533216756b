"""
Services package
Background session execution and event streaming
"""
from .session_service import (
    AutofixSession,
    EventType,
    SessionConflictError,
    start_session,
    get_session,
    list_sessions,
    cancel_session,
    subscribe,
)

__all__ = [
    "AutofixSession",
    "EventType",
    "SessionConflictError",
    "start_session",
    "get_session",
    "list_sessions",
    "cancel_session",
    "subscribe",
]
