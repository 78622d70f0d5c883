"""
Viewer Routes

Open a restricted viewer session and drive it. Every call is audited
by the core; a session is only visible to the subject that opened it.
Handlers run in the threadpool, off the event loop that drives the
inactivity timers.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.models import Subject
from shared.dealroom_core.viewer import ViewerSession

from dealroom.api.access.routes import raise_denied
from dealroom.api.dependencies import get_current_subject, get_engine
from dealroom.api.viewer.schemas import (
    InteractionRequest,
    OpenSessionRequest,
    ViewerSessionResponse,
)


router = APIRouter()


def owned_session(engine: AccessDecisionEngine, subject: Subject, session_id: str) -> ViewerSession:
    """The session, or 404 when it belongs to someone else."""
    session = engine.get_session(session_id)
    if (
        session.subject.role != subject.role
        or session.subject.identity.lower() != subject.identity.lower()
    ):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


# ==================== Sessions ====================


@router.post(
    "/sessions",
    response_model=ViewerSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a view and open a session",
)
def open_session(
    request: OpenSessionRequest,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ViewerSessionResponse:
    """
    Decide VIEW for the document; on ALLOW open the viewer.

    A denial is audited and returned as 403 with its reason code.
    """
    decision, handle = engine.request_view(subject, request.room_id, request.document_id)
    if handle is None:
        raise_denied(decision)
    return ViewerSessionResponse.from_session(handle.session)


@router.get(
    "/sessions/{session_id}",
    response_model=ViewerSessionResponse,
    summary="Get viewer session state",
)
def get_session(
    session_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ViewerSessionResponse:
    return ViewerSessionResponse.from_session(owned_session(engine, subject, session_id))


@router.post(
    "/sessions/{session_id}/interactions",
    response_model=ViewerSessionResponse,
    summary="Send a viewer interaction",
)
def interact(
    session_id: str,
    request: InteractionRequest,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ViewerSessionResponse:
    """
    Page, zoom, fullscreen, or a blocked print/download attempt.

    Returns 409 once the session is closed or timed out.
    """
    owned_session(engine, subject, session_id)
    session = engine.viewer.interact(session_id, request.kind)
    return ViewerSessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/close",
    response_model=ViewerSessionResponse,
    summary="Close a viewer session",
)
def close_session(
    session_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ViewerSessionResponse:
    owned_session(engine, subject, session_id)
    return ViewerSessionResponse.from_session(engine.viewer.close(session_id))
