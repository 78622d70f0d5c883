"""
Admin Routes

Room setup, document management, lifecycle commands, grant revocation
and diagnostics.

Lifecycle commands take any authenticated subject: the engine decides
ADMIN_ACTIONS itself so blocked attempts land in the audit trail.
"""

from fastapi import APIRouter, Depends, status

from shared.dealroom_core.engine import AccessDecisionEngine, Decision
from shared.dealroom_core.lifecycle import is_hard_delete_eligible, resolve_status
from shared.dealroom_core.models import Subject

from dealroom.api.access.routes import raise_denied
from dealroom.api.access.schemas import DecisionResponse, DocumentResponse, RoomResponse
from dealroom.api.admin.schemas import (
    DocumentCreate,
    DocumentReplace,
    EngineStatsResponse,
    ExpireIdleResponse,
    FolderCreate,
    FolderResponse,
    LifecycleCommandResponse,
    RoomCreate,
)
from dealroom.api.dependencies import get_admin_subject, get_current_subject, get_engine
from dealroom.api.services.audit_archive import get_audit_archive
from dealroom.api.services.data_room import get_session_scheduler


router = APIRouter()


def room_response(engine: AccessDecisionEngine, room_id: str) -> RoomResponse:
    room = engine.lifecycle.get(room_id)
    now = engine.clock.now()
    return RoomResponse.from_room(room, resolve_status(room, now), is_hard_delete_eligible(room, now))


def command_response(engine: AccessDecisionEngine, decision: Decision) -> LifecycleCommandResponse:
    if not decision.allowed:
        raise_denied(decision)
    return LifecycleCommandResponse(
        decision=DecisionResponse.from_decision(decision),
        room=room_response(engine, decision.room_id),
    )


# ==================== Rooms ====================


@router.post(
    "/rooms",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a data room",
)
def create_room(
    request: RoomCreate,
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> RoomResponse:
    engine.lifecycle.create_room(
        request.room_id,
        request.deal_id,
        request.expiry_timestamp,
        soft_delete_grace_days=request.soft_delete_grace_days,
        legal_hold=request.legal_hold,
        external_sharing_enabled=request.external_sharing_enabled,
        issuer_org=request.issuer_org,
        pool_id=request.pool_id,
        deal_status=request.deal_status,
    )
    return room_response(engine, request.room_id)


# ==================== Documents ====================


@router.post(
    "/rooms/{room_id}/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload document metadata",
)
def upload_document(
    room_id: str,
    request: DocumentCreate,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> DocumentResponse:
    result = engine.upload_document(
        subject,
        room_id,
        request.name,
        request.page_count,
        folder_path=request.folder_path,
        content_type=request.content_type,
        size_bytes=request.size_bytes,
    )
    if not result.decision.allowed:
        raise_denied(result.decision)
    return DocumentResponse.from_document(result.document)


@router.post(
    "/rooms/{room_id}/documents/{document_id}/replace",
    response_model=DocumentResponse,
    summary="Replace a document with a new version",
)
def replace_document(
    room_id: str,
    document_id: str,
    request: DocumentReplace,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> DocumentResponse:
    result = engine.replace_document(subject, room_id, document_id, page_count=request.page_count)
    if not result.decision.allowed:
        raise_denied(result.decision)
    return DocumentResponse.from_document(result.document)


@router.post(
    "/rooms/{room_id}/folders",
    response_model=FolderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a folder",
)
def create_folder(
    room_id: str,
    request: FolderCreate,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> FolderResponse:
    result = engine.create_folder(subject, room_id, request.folder_path)
    if not result.decision.allowed:
        raise_denied(result.decision)
    return FolderResponse(room_id=room_id, folder_path=result.folder)


# ==================== Lifecycle Commands ====================


@router.post(
    "/rooms/{room_id}/legal-hold",
    response_model=LifecycleCommandResponse,
    summary="Apply legal hold",
)
def apply_legal_hold(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> LifecycleCommandResponse:
    return command_response(engine, engine.apply_legal_hold(subject, room_id))


@router.delete(
    "/rooms/{room_id}/legal-hold",
    response_model=LifecycleCommandResponse,
    summary="Release legal hold",
)
def release_legal_hold(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> LifecycleCommandResponse:
    return command_response(engine, engine.release_legal_hold(subject, room_id))


@router.post(
    "/rooms/{room_id}/force-soft-delete",
    response_model=LifecycleCommandResponse,
    summary="Force soft delete",
)
def force_soft_delete(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> LifecycleCommandResponse:
    """Refused with 409 while a legal hold is active."""
    return command_response(engine, engine.force_soft_delete(subject, room_id))


@router.post(
    "/rooms/{room_id}/force-hard-delete",
    response_model=LifecycleCommandResponse,
    summary="Force hard delete",
)
def force_hard_delete(
    room_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> LifecycleCommandResponse:
    """Terminal. Refused with 409 while a legal hold is active."""
    return command_response(engine, engine.force_hard_delete(subject, room_id))


# ==================== Grants ====================


@router.post(
    "/grants/{grant_id}/revoke",
    response_model=DecisionResponse,
    summary="Revoke a grant",
)
def revoke_grant(
    grant_id: str,
    subject: Subject = Depends(get_current_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> DecisionResponse:
    """Idempotent. Open sessions relying on the grant are closed."""
    decision = engine.revoke_grant(subject, grant_id)
    if not decision.allowed:
        raise_denied(decision)
    return DecisionResponse.from_decision(decision)


# ==================== Diagnostics ====================


@router.post(
    "/sessions/expire-idle",
    response_model=ExpireIdleResponse,
    summary="Time out idle viewer sessions now",
)
def expire_idle_sessions(
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ExpireIdleResponse:
    expired = engine.viewer.expire_idle()
    return ExpireIdleResponse(expired_sessions=expired, count=len(expired))


@router.get(
    "/stats",
    response_model=EngineStatsResponse,
    summary="Engine statistics",
)
def get_stats(
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> EngineStatsResponse:
    stats = engine.get_statistics()
    archive = get_audit_archive()
    scheduler = get_session_scheduler()
    return EngineStatsResponse(
        **stats,
        rooms=len(engine.lifecycle.list_rooms()),
        archive=archive.get_stats().__dict__ if archive else None,
        scheduler=scheduler.get_stats() if scheduler else None,
    )
