"""
SQLAlchemy ORM Models

Archive table for the audit trail. Rows are only ever inserted.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.dealroom_core.audit_log import AuditAction, AuditEvent
from shared.dealroom_core.clock import ensure_utc
from shared.dealroom_core.models import Outcome, ReasonCode, Role


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


class AuditEventRecord(Base):
    """Archived audit event, keyed by the engine's event_id."""

    __tablename__ = "audit_events"

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    room_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    subject_identity: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    subject_role: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    target_document_id: Mapped[Optional[str]] = mapped_column(String(100))
    outcome: Mapped[str] = mapped_column(String(10), nullable=False)
    reason_code: Mapped[Optional[str]] = mapped_column(String(50))
    detail: Mapped[Optional[str]] = mapped_column(Text)
    session_id: Mapped[Optional[str]] = mapped_column(String(64))
    prev_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditEventRecord":
        return cls(
            event_id=event.event_id,
            timestamp=event.timestamp,
            room_id=event.room_id,
            subject_identity=event.subject_identity,
            subject_role=event.subject_role.value,
            action=event.action.value,
            target_document_id=event.target_document_id,
            outcome=event.outcome.value,
            reason_code=event.reason_code.value if event.reason_code else None,
            detail=event.detail,
            session_id=event.session_id,
            prev_hash=event.prev_hash,
            hash=event.hash,
        )

    def to_event(self) -> AuditEvent:
        """Rebuild the engine event; stored hashes are kept as written."""
        return AuditEvent(
            event_id=self.event_id,
            timestamp=ensure_utc(self.timestamp),
            room_id=self.room_id,
            subject_identity=self.subject_identity,
            subject_role=Role(self.subject_role),
            action=AuditAction(self.action),
            outcome=Outcome(self.outcome),
            target_document_id=self.target_document_id,
            reason_code=ReasonCode(self.reason_code) if self.reason_code else None,
            detail=self.detail,
            session_id=self.session_id,
            prev_hash=self.prev_hash,
            hash=self.hash,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "room_id": self.room_id,
            "subject_identity": self.subject_identity,
            "subject_role": self.subject_role,
            "action": self.action,
            "target_document_id": self.target_document_id,
            "outcome": self.outcome,
            "reason_code": self.reason_code,
            "detail": self.detail,
            "session_id": self.session_id,
            "prev_hash": self.prev_hash,
            "hash": self.hash,
        }

    def __repr__(self) -> str:
        return f"<AuditEventRecord {self.event_id} {self.action}>"
