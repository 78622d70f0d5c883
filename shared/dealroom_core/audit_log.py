"""
DEALROOM Core - Audit Log
=========================

Append-only, totally ordered, hash-chained record of every access
decision and every viewer interaction.

Guarantees:
    - event_id is a gapless integer sequence starting at 1
    - ids are handed out under a single writer lock, and an id is only
      consumed once the backend write succeeded
    - an event becomes readable only after every earlier event is
    - timestamps never decrease in event_id order
    - every event carries prev_hash/hash, so any edit or removal breaks
      verify_chain()

Backend writes are retried with bounded exponential backoff. When
retries are exhausted, append() raises StorageUnavailableError and
callers fail closed.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import hashlib
import json
import logging
import random
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol
from uuid import uuid4

from .clock import Clock, SystemClock, ensure_utc
from .constants import (
    AUDIT_DEFAULT_PAGE_SIZE,
    AUDIT_FIRST_EVENT_ID,
    AUDIT_GENESIS_HASH,
    AUDIT_MAX_PAGE_SIZE,
    AUDIT_RETRY_ATTEMPTS,
    AUDIT_RETRY_BACKOFF_MS,
)
from .exceptions import InvalidInputError, StorageUnavailableError
from .models import Outcome, ReasonCode, Role

logger = logging.getLogger("DEALROOM_AuditLog")


# =============================================================================
# AUDIT ACTIONS
# =============================================================================


class AuditAction(str, Enum):
    """Stable identifiers persisted with every event."""

    # Viewer
    VIEW_START = "VIEW_START"
    VIEW_END = "VIEW_END"
    PAGE_NEXT = "PAGE_NEXT"
    PAGE_PREV = "PAGE_PREV"
    ZOOM_IN = "ZOOM_IN"
    ZOOM_OUT = "ZOOM_OUT"
    FULLSCREEN = "FULLSCREEN"
    PRINT_BLOCKED = "PRINT_BLOCKED"
    DOWNLOAD_BLOCKED = "DOWNLOAD_BLOCKED"
    SESSION_TIMEOUT = "SESSION_TIMEOUT"
    SESSION_REVOKED = "SESSION_REVOKED"

    # Access denials
    ACCESS_DENIED_ROOM_EXPIRED = "ACCESS_DENIED_ROOM_EXPIRED"
    ACCESS_DENIED_EXTERNAL_SHARING_OFF = "ACCESS_DENIED_EXTERNAL_SHARING_OFF"
    ACCESS_DENIED_NO_GRANT = "ACCESS_DENIED_NO_GRANT"

    # Document management
    UPLOAD_OPEN = "UPLOAD_OPEN"
    REPLACE_OPEN = "REPLACE_OPEN"
    DELETE_DOC = "DELETE_DOC"
    INVITE_OPEN = "INVITE_OPEN"
    FOLDER_CREATE_OPEN = "FOLDER_CREATE_OPEN"

    # Administration
    APPLY_LEGAL_HOLD = "APPLY_LEGAL_HOLD"
    RELEASE_LEGAL_HOLD = "RELEASE_LEGAL_HOLD"
    FORCE_SOFT_DELETE = "FORCE_SOFT_DELETE"
    FORCE_HARD_DELETE = "FORCE_HARD_DELETE"
    REVOKE_GRANT = "REVOKE_GRANT"
    ADMIN_BLOCKED = "ADMIN_BLOCKED"

    # Navigation
    ROLE_SWITCH = "ROLE_SWITCH"
    DEAL_SELECT = "DEAL_SELECT"


# =============================================================================
# EVENT STRUCTURE
# =============================================================================


@dataclass(frozen=True)
class AuditEvent:
    """Immutable audit record."""

    event_id: int
    timestamp: datetime
    room_id: str
    subject_identity: str
    subject_role: Role
    action: AuditAction
    outcome: Outcome
    target_document_id: Optional[str] = None
    reason_code: Optional[ReasonCode] = None
    detail: Optional[str] = None
    session_id: Optional[str] = None
    prev_hash: str = AUDIT_GENESIS_HASH
    hash: str = ""

    def payload(self) -> Dict[str, Any]:
        """Fields covered by the hash (everything except `hash`)."""
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "room_id": self.room_id,
            "subject_identity": self.subject_identity,
            "subject_role": self.subject_role.value,
            "action": self.action.value,
            "target_document_id": self.target_document_id,
            "outcome": self.outcome.value,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "detail": self.detail,
            "session_id": self.session_id,
            "prev_hash": self.prev_hash,
        }

    def compute_hash(self) -> str:
        """SHA256 over the canonical JSON payload (prev_hash included)."""
        content = json.dumps(self.payload(), sort_keys=True, default=str)
        return hashlib.sha256(content.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        data = self.payload()
        data["hash"] = self.hash
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class AuditQuery:
    """Filters for audit reads. Every field is optional and ANDed."""

    room_id: Optional[str] = None
    actions: Optional[List[AuditAction]] = None
    outcome: Optional[Outcome] = None
    subject_identity: Optional[str] = None
    subject_role: Optional[Role] = None
    target_document_id: Optional[str] = None
    session_id: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None

    def __post_init__(self):
        if self.since is not None:
            self.since = ensure_utc(self.since)
        if self.until is not None:
            self.until = ensure_utc(self.until)

    def matches(self, event: AuditEvent) -> bool:
        if self.room_id is not None and event.room_id != self.room_id:
            return False
        if self.actions and event.action not in self.actions:
            return False
        if self.outcome is not None and event.outcome != self.outcome:
            return False
        if (
            self.subject_identity is not None
            and event.subject_identity.lower() != self.subject_identity.lower()
        ):
            return False
        if self.subject_role is not None and event.subject_role != self.subject_role:
            return False
        if (
            self.target_document_id is not None
            and event.target_document_id != self.target_document_id
        ):
            return False
        if self.session_id is not None and event.session_id != self.session_id:
            return False
        if self.since is not None and event.timestamp < self.since:
            return False
        if self.until is not None and event.timestamp > self.until:
            return False
        return True


@dataclass
class AuditPage:
    """One page of query results, always in event_id order."""

    events: List[AuditEvent]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass
class ChainVerification:
    valid: bool
    events_checked: int
    first_invalid_event_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ComplianceReport:
    """Structured room access report."""

    report_id: str
    report_type: str
    generated_at: datetime
    room_id: str
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    summary: Dict[str, Any]
    details: List[Dict[str, Any]]
    integrity_hash: str


@dataclass
class AuditLogConfig:
    """Retry and paging behaviour of the audit log."""

    retry_attempts: int = AUDIT_RETRY_ATTEMPTS
    retry_backoff_ms: int = AUDIT_RETRY_BACKOFF_MS
    default_page_size: int = AUDIT_DEFAULT_PAGE_SIZE
    max_page_size: int = AUDIT_MAX_PAGE_SIZE


# =============================================================================
# BACKENDS
# =============================================================================


class AuditBackend(Protocol):
    """Durable store behind the log. write() must be all-or-nothing."""

    def write(self, event: AuditEvent) -> None:
        ...

    def read_all(self) -> List[AuditEvent]:
        ...


class InMemoryAuditBackend:
    """Process-local backend; the default for tests and single-node use.

    Seed it with previously persisted events to resume their chain.
    """

    def __init__(self, events: Optional[Iterable[AuditEvent]] = None):
        self._events: List[AuditEvent] = list(events or [])

    def write(self, event: AuditEvent) -> None:
        self._events.append(event)

    def read_all(self) -> List[AuditEvent]:
        return list(self._events)


# Failures worth retrying at the storage boundary
TRANSIENT_ERRORS = (OSError, TimeoutError, StorageUnavailableError)


# =============================================================================
# AUDIT LOG
# =============================================================================


class AuditLog:
    """
    Single global ordered sequence of audit events.

    Example:
        log = AuditLog(clock=clock)
        event = log.append(
            room_id="DR-1001",
            subject_identity="lp@fund.com",
            subject_role=Role.INVESTOR,
            action=AuditAction.VIEW_START,
            outcome=Outcome.ALLOWED,
            target_document_id="doc_1",
        )
        page = log.query(AuditQuery(room_id="DR-1001"))
    """

    def __init__(
        self,
        backend: Optional[AuditBackend] = None,
        clock: Optional[Clock] = None,
        config: Optional[AuditLogConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend or InMemoryAuditBackend()
        self.clock = clock or SystemClock()
        self.config = config or AuditLogConfig()
        self._sleep = sleep

        self._write_lock = threading.Lock()
        self._next_id = AUDIT_FIRST_EVENT_ID
        self._last_hash = AUDIT_GENESIS_HASH
        self._last_timestamp: Optional[datetime] = None

        self._stats = {
            "appended": 0,
            "write_retries": 0,
            "write_failures": 0,
        }

        self._resume_from_backend()

    def _resume_from_backend(self) -> None:
        existing = self.backend.read_all()
        if existing:
            last = existing[-1]
            self._next_id = last.event_id + 1
            self._last_hash = last.hash
            self._last_timestamp = last.timestamp
            logger.info(f"Audit log resumed at event {last.event_id}")

    # -------------------------------------------------------------------------
    # Write path
    # -------------------------------------------------------------------------

    def append(
        self,
        room_id: str,
        subject_identity: str,
        subject_role: Role,
        action: AuditAction,
        outcome: Outcome,
        target_document_id: Optional[str] = None,
        reason_code: Optional[ReasonCode] = None,
        detail: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AuditEvent:
        """
        Allocate the next event id, chain and persist the event.

        Raises:
            StorageUnavailableError: backend still failing after retries.
                No id is consumed in that case.
        """
        with self._write_lock:
            now = self.clock.now()
            if self._last_timestamp is not None and now < self._last_timestamp:
                now = self._last_timestamp

            draft = AuditEvent(
                event_id=self._next_id,
                timestamp=now,
                room_id=room_id,
                subject_identity=subject_identity,
                subject_role=subject_role,
                action=action,
                outcome=outcome,
                target_document_id=target_document_id,
                reason_code=reason_code,
                detail=detail,
                session_id=session_id,
                prev_hash=self._last_hash,
            )
            event = replace(draft, hash=draft.compute_hash())

            self._write_with_retry(event)

            self._next_id += 1
            self._last_hash = event.hash
            self._last_timestamp = event.timestamp
            self._stats["appended"] += 1

        logger.info(
            "AUDIT",
            extra={
                "audit_event": event.to_dict(),
                "event_hash": event.hash,
            },
        )
        return event

    def _write_with_retry(self, event: AuditEvent) -> None:
        attempts = max(self.config.retry_attempts, 1)
        attempt = 1
        while True:
            try:
                self.backend.write(event)
                return
            except TRANSIENT_ERRORS as e:
                if attempt >= attempts:
                    self._stats["write_failures"] += 1
                    logger.error(
                        f"Audit write failed after {attempt} attempts "
                        f"(event {event.event_id}, {event.action.value}): {e}"
                    )
                    raise StorageUnavailableError(
                        f"Audit backend unavailable: {e}",
                        backend=type(self.backend).__name__,
                        attempts=attempt,
                    ) from e
                self._stats["write_retries"] += 1
                jitter = random.uniform(0.5, 1.5)
                delay = (self.config.retry_backoff_ms / 1000.0) * (2 ** (attempt - 1)) * jitter
                logger.warning(
                    f"Audit write attempt {attempt}/{attempts} failed: {e}; "
                    f"retrying in {delay * 1000:.0f}ms"
                )
                if delay > 0:
                    self._sleep(delay)
                attempt += 1
            except Exception as e:
                self._stats["write_failures"] += 1
                logger.error(f"Audit write rejected by backend: {e}")
                raise StorageUnavailableError(
                    f"Audit backend error: {e}",
                    backend=type(self.backend).__name__,
                    attempts=attempt,
                ) from e

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    @property
    def last_event_id(self) -> int:
        """Highest id handed out so far (0 when empty)."""
        return self._next_id - 1

    def events(self) -> List[AuditEvent]:
        """Every event, in event_id order."""
        return self.backend.read_all()

    def events_after(self, event_id: int, limit: Optional[int] = None) -> List[AuditEvent]:
        """Events with id > event_id in order; used by archivers."""
        selected = [e for e in self.events() if e.event_id > event_id]
        return selected[:limit] if limit else selected

    def query(
        self,
        filters: Optional[AuditQuery] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> AuditPage:
        """Filtered, paginated read. Always event_id order."""
        page_size = page_size or self.config.default_page_size
        if page < 1:
            raise InvalidInputError("page must be >= 1", details={"page": page})
        if page_size < 1 or page_size > self.config.max_page_size:
            raise InvalidInputError(
                f"page_size must be between 1 and {self.config.max_page_size}",
                details={"page_size": page_size},
            )

        filters = filters or AuditQuery()
        matched = [e for e in self.events() if filters.matches(e)]
        start = (page - 1) * page_size
        return AuditPage(
            events=matched[start:start + page_size],
            total=len(matched),
            page=page,
            page_size=page_size,
        )

    def verify_chain(self, events: Optional[Iterable[AuditEvent]] = None) -> ChainVerification:
        """Recompute every hash and check ids are gapless from 1."""
        expected_prev = AUDIT_GENESIS_HASH
        expected_id = AUDIT_FIRST_EVENT_ID
        checked = 0
        for event in events if events is not None else self.events():
            if event.event_id != expected_id:
                return ChainVerification(False, checked, event.event_id, "sequence gap")
            if event.prev_hash != expected_prev:
                return ChainVerification(False, checked, event.event_id, "prev_hash mismatch")
            if event.compute_hash() != event.hash:
                return ChainVerification(False, checked, event.event_id, "hash mismatch")
            expected_prev = event.hash
            expected_id += 1
            checked += 1
        return ChainVerification(True, checked)

    def export(
        self,
        filters: Optional[AuditQuery] = None,
        format: str = "json",
        include_hash: bool = True,
    ) -> str:
        """Export events for compliance review."""
        filters = filters or AuditQuery()
        events = [e for e in self.events() if filters.matches(e)]

        if format == "json":
            export_data = {
                "export_timestamp": datetime.now(timezone.utc).isoformat(),
                "room_id": filters.room_id,
                "period_start": filters.since.isoformat() if filters.since else None,
                "period_end": filters.until.isoformat() if filters.until else None,
                "event_count": len(events),
                "events": [e.to_dict() for e in events],
            }
            if include_hash:
                content = json.dumps(export_data, sort_keys=True, default=str)
                export_data["integrity_hash"] = hashlib.sha256(content.encode()).hexdigest()

            return json.dumps(export_data, indent=2, default=str)

        raise ValueError(f"Unsupported format: {format}")

    def generate_room_access_report(
        self,
        room_id: str,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> ComplianceReport:
        """Access summary for one room over a period."""
        events = [
            e for e in self.events()
            if AuditQuery(room_id=room_id, since=start_time, until=end_time).matches(e)
        ]

        by_action: Dict[str, int] = {}
        denials_by_reason: Dict[str, int] = {}
        for event in events:
            by_action[event.action.value] = by_action.get(event.action.value, 0) + 1
            if event.outcome == Outcome.DENIED and event.reason_code:
                key = event.reason_code.value
                denials_by_reason[key] = denials_by_reason.get(key, 0) + 1

        summary = {
            "total_events": len(events),
            "views_started": by_action.get(AuditAction.VIEW_START.value, 0),
            "denied": len([e for e in events if e.outcome == Outcome.DENIED]),
            "blocked_exports": by_action.get(AuditAction.PRINT_BLOCKED.value, 0)
            + by_action.get(AuditAction.DOWNLOAD_BLOCKED.value, 0),
            "unique_subjects": len(set(e.subject_identity.lower() for e in events)),
            "by_action": by_action,
            "denials_by_reason": denials_by_reason,
        }

        report_data = {
            "summary": summary,
            "events": [e.to_dict() for e in events],
        }
        integrity_hash = hashlib.sha256(
            json.dumps(report_data, sort_keys=True, default=str).encode()
        ).hexdigest()

        return ComplianceReport(
            report_id=f"rpt_{uuid4().hex[:16]}",
            report_type="room_access",
            generated_at=datetime.now(timezone.utc),
            room_id=room_id,
            period_start=start_time,
            period_end=end_time,
            summary=summary,
            details=[e.to_dict() for e in events],
            integrity_hash=integrity_hash,
        )

    def get_statistics(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "last_event_id": self.last_event_id,
        }


__all__ = [
    "AuditAction",
    "AuditEvent",
    "AuditQuery",
    "AuditPage",
    "ChainVerification",
    "ComplianceReport",
    "AuditLogConfig",
    "AuditBackend",
    "InMemoryAuditBackend",
    "TRANSIENT_ERRORS",
    "AuditLog",
]
