"""
Access Routes

Decisions, navigation events, invites and document browsing for a room.

Handlers are plain functions: the engine takes thread locks and may
sleep between audit retries, so FastAPI runs them in its threadpool.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shared.dealroom_core.engine import AccessDecisionEngine, Decision
from shared.dealroom_core.lifecycle import is_hard_delete_eligible, resolve_status
from shared.dealroom_core.models import ReasonCode, Subject

from dealroom.api.dependencies import get_current_subject, get_engine, get_manager_subject
from dealroom.api.access.schemas import (
    DecisionRequest,
    DecisionResponse,
    DocumentListResponse,
    DocumentResponse,
    FolderListResponse,
    GrantListResponse,
    GrantResponse,
    InviteRequest,
    NavigationRequest,
    RoomResponse,
)
from dealroom.api.audit.schemas import AuditEventResponse


router = APIRouter()


def raise_denied(decision: Decision) -> None:
    """403 carrying only the reason, never other subjects' grant details."""
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "reason_code": decision.reason_code.value if decision.reason_code else None,
            "detail": decision.detail if decision.reason_code == ReasonCode.ROOM_NOT_ACTIVE else None,
        },
    )


def require_browse(engine: AccessDecisionEngine, subject: Subject, room_id: str) -> None:
    if not engine.can_browse(subject, room_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason_code": ReasonCode.NO_ACTIVE_GRANT.value, "detail": None},
        )


# ==================== Decisions ====================


@router.post(
    "/{room_id}/decisions",
    response_model=DecisionResponse,
    summary="Evaluate an access request",
)
def decide(
    room_id: str,
    request: DecisionRequest,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> DecisionResponse:
    """
    Evaluate and audit one request.

    A denial is a normal result here (200 with outcome DENIED).
    """
    decision = engine.decide(subject, room_id, request.action, request.document_id)
    return DecisionResponse.from_decision(decision)


@router.post(
    "/{room_id}/navigation",
    response_model=AuditEventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a role switch or deal selection",
)
def record_navigation(
    room_id: str,
    request: NavigationRequest,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> AuditEventResponse:
    event = engine.record_navigation(subject, room_id, request.kind, request.detail)
    return AuditEventResponse.from_event(event)


# ==================== Rooms ====================


@router.get(
    "/{room_id}",
    response_model=RoomResponse,
    summary="Get room status",
)
def get_room(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> RoomResponse:
    require_browse(engine, subject, room_id)
    room = engine.lifecycle.get(room_id)
    now = engine.clock.now()
    return RoomResponse.from_room(room, resolve_status(room, now), is_hard_delete_eligible(room, now))


# ==================== Documents ====================


@router.get(
    "/{room_id}/documents",
    response_model=DocumentListResponse,
    summary="List document metadata",
)
def list_documents(
    room_id: str,
    folder: Optional[str] = Query(None, description="Folder path, e.g. /Financials"),
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> DocumentListResponse:
    """Managers always; other roles only while holding a usable grant."""
    require_browse(engine, subject, room_id)
    documents = engine.documents.list_documents(room_id, folder=folder)
    return DocumentListResponse(
        room_id=room_id,
        folder=folder,
        documents=[DocumentResponse.from_document(d) for d in documents],
    )


@router.get(
    "/{room_id}/folders",
    response_model=FolderListResponse,
    summary="List folders",
)
def list_folders(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> FolderListResponse:
    require_browse(engine, subject, room_id)
    return FolderListResponse(room_id=room_id, folders=engine.documents.list_folders(room_id))


# ==================== Grants & Invites ====================


@router.post(
    "/{room_id}/invites",
    response_model=GrantResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a subject to the room",
)
def invite(
    room_id: str,
    request: InviteRequest,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> GrantResponse:
    """Decided as INVITE; creates a view-only grant on ALLOW."""
    result = engine.invite(
        subject,
        room_id,
        request.identity,
        request.role,
        request.expires_on,
        request.party_type,
    )
    if not result.decision.allowed:
        raise_denied(result.decision)
    return GrantResponse.from_grant(result.grant, engine.clock.now())


@router.get(
    "/{room_id}/grants",
    response_model=GrantListResponse,
    summary="List grants for a room",
)
def list_grants(
    room_id: str,
    subject: Subject = Depends(get_manager_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> GrantListResponse:
    engine.lifecycle.get(room_id)
    now = engine.clock.now()
    return GrantListResponse(
        room_id=room_id,
        grants=[GrantResponse.from_grant(g, now) for g in engine.grants.list_grants(room_id)],
    )
