"""
Audit Schemas

Pydantic models for audit queries, reports and chain verification.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from shared.dealroom_core.audit_log import AuditEvent, ComplianceReport


class AuditEventResponse(BaseModel):
    """One audit event as persisted."""

    event_id: int
    timestamp: datetime
    room_id: str
    subject_identity: str
    subject_role: str
    action: str
    target_document_id: Optional[str] = None
    outcome: str
    reason_code: Optional[str] = None
    detail: Optional[str] = None
    session_id: Optional[str] = None
    prev_hash: str
    hash: str

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditEventResponse":
        return cls(**event.to_dict())


class AuditPageResponse(BaseModel):
    """Paginated audit events, always in event_id order."""

    room_id: str
    events: List[AuditEventResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ChainVerificationResponse(BaseModel):
    valid: bool
    events_checked: int
    first_invalid_event_id: Optional[int] = None
    error: Optional[str] = None


class ComplianceReportResponse(BaseModel):
    """Room access report with integrity hash."""

    report_id: str
    report_type: str
    generated_at: datetime
    room_id: str
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    summary: Dict[str, Any]
    details: List[Dict[str, Any]]
    integrity_hash: str

    @classmethod
    def from_report(cls, report: ComplianceReport) -> "ComplianceReportResponse":
        return cls(
            report_id=report.report_id,
            report_type=report.report_type,
            generated_at=report.generated_at,
            room_id=report.room_id,
            period_start=report.period_start,
            period_end=report.period_end,
            summary=report.summary,
            details=report.details,
            integrity_hash=report.integrity_hash,
        )


class ArchiveStatusResponse(BaseModel):
    """How far the database archive trails the live log."""

    archived_events: int
    archived_through: int
    live_last_event_id: int
    pending: int
    in_sync: bool
