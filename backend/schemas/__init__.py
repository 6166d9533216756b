"""
Pydantic schemas for API request/response validation
"""
from .session import (
    SessionCreate,
    SessionCreateResponse,
    SessionResponse,
    SessionListResponse,
)

__all__ = [
    # Session
    "SessionCreate",
    "SessionCreateResponse",
    "SessionResponse",
    "SessionListResponse",
]
