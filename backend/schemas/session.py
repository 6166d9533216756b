"""
Auto-fix session Pydantic schemas
"""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

from autofix.schemas import RemediationResult, SessionStatus


class SessionCreate(BaseModel):
    """Request schema for starting an auto-fix session"""
    context_dir: str = Field(..., description="Build context directory on the server")
    build_spec_path: Optional[str] = Field(None, description="Defaults to <context_dir>/Dockerfile")
    image_tag: Optional[str] = Field(None, description="Derived from repository or the context folder when omitted")
    repository: Optional[str] = Field(None, description="Repository URL used to derive the image tag")
    max_attempts: Optional[int] = Field(None, ge=1, le=20)
    project_context: Optional[str] = Field(None, description="Extra context for AI file generation")


class SessionCreateResponse(BaseModel):
    """Response schema for a newly started session"""
    session_id: str
    status: SessionStatus
    image_tag: str


class SessionResponse(BaseModel):
    """Response schema for a single session"""
    session_id: str
    status: SessionStatus
    progress: int = 0  # 0-100
    image_tag: str
    context_dir: str
    build_spec_path: str
    max_attempts: int

    created_at: datetime
    finished_at: Optional[datetime] = None

    result: Optional[RemediationResult] = None


class SessionListResponse(BaseModel):
    """Response schema for session list"""
    sessions: List[SessionResponse]
    total: int
