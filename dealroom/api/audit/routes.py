"""
Audit Routes

Read-only access to the audit trail. Room queries are open to
managers; reports, export, chain verification and archive status
need an administrator.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.dealroom_core.audit_log import AuditAction, AuditQuery
from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.models import Outcome, Role, Subject

from dealroom.api.db.models import AuditEventRecord
from dealroom.api.db.session import get_db
from dealroom.api.dependencies import get_admin_subject, get_engine, get_manager_subject
from dealroom.api.audit.schemas import (
    ArchiveStatusResponse,
    AuditEventResponse,
    AuditPageResponse,
    ChainVerificationResponse,
    ComplianceReportResponse,
)


router = APIRouter()


def build_query(
    action: Optional[List[AuditAction]] = Query(None, description="Repeat to match several"),
    outcome: Optional[Outcome] = Query(None),
    subject_identity: Optional[str] = Query(None),
    subject_role: Optional[Role] = Query(None),
    document_id: Optional[str] = Query(None),
    session_id: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
) -> AuditQuery:
    return AuditQuery(
        actions=action,
        outcome=outcome,
        subject_identity=subject_identity,
        subject_role=subject_role,
        target_document_id=document_id,
        session_id=session_id,
        since=since,
        until=until,
    )


# ==================== Room Audit ====================


@router.get(
    "/rooms/{room_id}",
    response_model=AuditPageResponse,
    summary="Query a room's audit trail",
)
def query_room_audit(
    room_id: str,
    filters: AuditQuery = Depends(build_query),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    subject: Subject = Depends(get_manager_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> AuditPageResponse:
    """
    Events for one room in event_id order.

    Still readable after the room is hard deleted.
    """
    result = engine.query_audit(room_id, filters, page=page, page_size=page_size)
    return AuditPageResponse(
        room_id=room_id,
        events=[AuditEventResponse.from_event(e) for e in result.events],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=(result.total + result.page_size - 1) // result.page_size,
    )


@router.get(
    "/rooms/{room_id}/report",
    response_model=ComplianceReportResponse,
    summary="Room access report",
)
def room_access_report(
    room_id: str,
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ComplianceReportResponse:
    engine.lifecycle.get(room_id)
    report = engine.audit_log.generate_room_access_report(room_id, since, until)
    return ComplianceReportResponse.from_report(report)


# ==================== Export & Integrity ====================


@router.get(
    "/export",
    summary="Export audit events as JSON",
)
def export_audit(
    room_id: Optional[str] = Query(None),
    filters: AuditQuery = Depends(build_query),
    include_hash: bool = Query(True),
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> Response:
    filters.room_id = room_id
    content = engine.audit_log.export(filters, format="json", include_hash=include_hash)
    return Response(content=content, media_type="application/json")


@router.get(
    "/verify",
    response_model=ChainVerificationResponse,
    summary="Verify the audit hash chain",
)
def verify_chain(
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
) -> ChainVerificationResponse:
    result = engine.audit_log.verify_chain()
    return ChainVerificationResponse(
        valid=result.valid,
        events_checked=result.events_checked,
        first_invalid_event_id=result.first_invalid_event_id,
        error=result.error,
    )


@router.get(
    "/archive",
    response_model=ArchiveStatusResponse,
    summary="Audit archive status",
)
async def archive_status(
    admin: Subject = Depends(get_admin_subject),
    engine: AccessDecisionEngine = Depends(get_engine),
    db: AsyncSession = Depends(get_db),
) -> ArchiveStatusResponse:
    result = await db.execute(
        select(func.count(AuditEventRecord.event_id), func.max(AuditEventRecord.event_id))
    )
    count, archived_through = result.one()
    archived_through = archived_through or 0
    live = engine.audit_log.last_event_id
    return ArchiveStatusResponse(
        archived_events=count,
        archived_through=archived_through,
        live_last_event_id=live,
        pending=max(live - archived_through, 0),
        in_sync=archived_through == live,
    )
