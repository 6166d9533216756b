"""
Auto-Fix Router
FastAPI routes for build auto-fix sessions and event streaming
"""
from pathlib import Path

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from autofix.tools.build_tool_status import BuildToolStatus, check_build_tool
from autofix.tools.image_tag import derive_image_name, normalize_image_tag
from config import BUILD_TOOL, DEFAULT_BUILD_SPEC_NAME, DOCKER_USER, STATUS_CHECK_TIMEOUT_SECONDS
from schemas.session import (
    SessionCreate,
    SessionCreateResponse,
    SessionResponse,
    SessionListResponse,
)
from services import session_service
from services.session_service import AutofixSession, SessionConflictError

router = APIRouter(prefix="/api/autofix", tags=["autofix"])


def get_session_or_404(session_id: str) -> AutofixSession:
    session = session_service.get_session(session_id)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found"
        )
    return session


def to_response(session: AutofixSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        status=session.status,
        progress=session.progress,
        image_tag=session.image_tag,
        context_dir=str(session.context_dir),
        build_spec_path=str(session.build_spec_path),
        max_attempts=session.max_attempts,
        created_at=session.created_at,
        finished_at=session.finished_at,
        result=session.result,
    )


# ============================================================================
# Session Operations
# ============================================================================

@router.post("/sessions", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_session(request: SessionCreate):
    """
    Start an auto-fix session

    The session runs in the background; follow it through
    GET /sessions/{id}/events or poll GET /sessions/{id}.
    """
    context_dir = Path(request.context_dir)
    if not context_dir.is_dir():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Build context directory not found: {request.context_dir}"
        )

    build_spec_path = Path(request.build_spec_path) if request.build_spec_path else context_dir / DEFAULT_BUILD_SPEC_NAME
    if not build_spec_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Build instruction file not found: {build_spec_path}"
        )

    if request.image_tag:
        image_tag = normalize_image_tag(request.image_tag)
    else:
        image_tag = derive_image_name(request.repository or str(context_dir.resolve()), DOCKER_USER)

    try:
        session = session_service.start_session(
            build_spec_path=build_spec_path,
            context_dir=context_dir,
            image_tag=image_tag,
            max_attempts=request.max_attempts,
            project_context=request.project_context,
        )
    except SessionConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )

    return SessionCreateResponse(session_id=session.id, status=session.status, image_tag=session.image_tag)


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions():
    """List sessions, newest first"""
    sessions = [to_response(s) for s in session_service.list_sessions()]
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    """
    Get a session by ID

    `result` is set once the session reaches a terminal status.
    """
    return to_response(get_session_or_404(session_id))


@router.get("/sessions/{session_id}/events")
async def stream_session_events(session_id: str):
    """
    Stream session events (SSE)

    Replays everything emitted so far, then streams live
    log/progress/status events until the result event.
    """
    get_session_or_404(session_id)
    return StreamingResponse(
        session_service.subscribe(session_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        }
    )


@router.post("/sessions/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(session_id: str):
    """
    Cancel a session

    Cancelling a finished session is a no-op.
    """
    get_session_or_404(session_id)
    session = session_service.cancel_session(session_id)
    return to_response(session)


# ============================================================================
# Build Tool
# ============================================================================

@router.get("/build-tool/status", response_model=BuildToolStatus)
def build_tool_status():
    """Check that the build tool is installed and its daemon is running"""
    return check_build_tool(BUILD_TOOL, timeout=STATUS_CHECK_TIMEOUT_SECONDS)
