"""
Viewer Schemas

Pydantic models for restricted viewer sessions.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from shared.dealroom_core.viewer import SessionState, ViewerInteraction, ViewerSession


class OpenSessionRequest(BaseModel):
    room_id: str
    document_id: str


class InteractionRequest(BaseModel):
    kind: ViewerInteraction


class ViewerSessionResponse(BaseModel):
    """Current viewer state. Content is never part of the response."""

    session_id: str
    room_id: str
    document_id: str
    document_name: str
    page_count: int
    current_page: int
    zoom: int
    fullscreen: bool
    state: SessionState
    opened_at: datetime
    last_activity_at: datetime
    closed_at: Optional[datetime] = None
    close_action: Optional[str] = None
    decision_id: Optional[str] = None

    @classmethod
    def from_session(cls, session: ViewerSession) -> "ViewerSessionResponse":
        return cls(
            session_id=session.session_id,
            room_id=session.room_id,
            document_id=session.document_id,
            document_name=session.document_name,
            page_count=session.page_count,
            current_page=session.current_page,
            zoom=session.zoom,
            fullscreen=session.fullscreen,
            state=session.state,
            opened_at=session.opened_at,
            last_activity_at=session.last_activity_at,
            closed_at=session.closed_at,
            close_action=session.close_action.value if session.close_action else None,
            decision_id=session.decision_id,
        )
