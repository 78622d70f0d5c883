"""
DEALROOM Core - Restricted Viewer Sessions
==========================================

A viewer session is opened only from an ALLOW VIEW decision and audits
every interaction until it closes.

State machine:
    CLOSED -> OPEN  (from an unconsumed ALLOW VIEW decision)
    OPEN   -> CLOSED (VIEW_END, SESSION_TIMEOUT, SESSION_REVOKED)

Page and zoom are clamped at their bounds, never rejected. Print and
download attempts are always recorded as DENIED/EXPORT_BLOCKED,
whatever the role: nothing ever leaves the viewer.

Inactivity timeout is a scheduled cancellation keyed by session id,
rescheduled on each interaction and cancelled on close. The scheduler
is pluggable (NullScheduler in the core, asyncio in the API);
expire_idle(now) sweeps deterministically for tests and batch use.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Protocol
from uuid import uuid4

from .audit_log import AuditAction, AuditLog
from .clock import Clock, SystemClock
from .constants import (
    VIEWER_CLOSED_HISTORY,
    VIEWER_SESSION_TIMEOUT_MIN,
    ZOOM_DEFAULT_PCT,
    ZOOM_MAX_PCT,
    ZOOM_MIN_PCT,
    ZOOM_STEP_PCT,
)
from .exceptions import InvalidInputError, NotFoundError, SessionClosedError
from .models import Document, Outcome, ReasonCode, Subject

logger = logging.getLogger("DEALROOM_Viewer")


class SessionState(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ViewerInteraction(str, Enum):
    """Interactions a client may send to an open session."""

    PAGE_NEXT = "PAGE_NEXT"
    PAGE_PREV = "PAGE_PREV"
    ZOOM_IN = "ZOOM_IN"
    ZOOM_OUT = "ZOOM_OUT"
    FULLSCREEN = "FULLSCREEN"
    PRINT_BLOCKED = "PRINT_BLOCKED"
    DOWNLOAD_BLOCKED = "DOWNLOAD_BLOCKED"
    VIEW_END = "VIEW_END"


EXPORT_ATTEMPTS = frozenset({
    ViewerInteraction.PRINT_BLOCKED,
    ViewerInteraction.DOWNLOAD_BLOCKED,
})


@dataclass
class ViewerConfig:
    """Viewer bounds and inactivity timeout."""

    zoom_min: int = ZOOM_MIN_PCT
    zoom_max: int = ZOOM_MAX_PCT
    zoom_step: int = ZOOM_STEP_PCT
    zoom_default: int = ZOOM_DEFAULT_PCT
    idle_timeout_minutes: float = VIEWER_SESSION_TIMEOUT_MIN
    closed_history_size: int = VIEWER_CLOSED_HISTORY

    @property
    def idle_timeout(self) -> timedelta:
        return timedelta(minutes=self.idle_timeout_minutes)


@dataclass(frozen=True)
class ViewerSession:
    """Snapshot of one session's state."""

    session_id: str
    subject: Subject
    room_id: str
    document_id: str
    document_name: str
    page_count: int
    opened_at: datetime
    last_activity_at: datetime
    decision_id: Optional[str] = None
    current_page: int = 1
    zoom: int = ZOOM_DEFAULT_PCT
    fullscreen: bool = False
    state: SessionState = SessionState.OPEN
    closed_at: Optional[datetime] = None
    close_action: Optional[AuditAction] = None

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def next_state(
    session: ViewerSession, kind: ViewerInteraction, config: ViewerConfig
) -> ViewerSession:
    """Page/zoom/fullscreen after `kind`. Export attempts change nothing."""
    if kind == ViewerInteraction.PAGE_NEXT:
        return replace(session, current_page=clamp(session.current_page + 1, 1, session.page_count))
    if kind == ViewerInteraction.PAGE_PREV:
        return replace(session, current_page=clamp(session.current_page - 1, 1, session.page_count))
    if kind == ViewerInteraction.ZOOM_IN:
        return replace(session, zoom=clamp(session.zoom + config.zoom_step, config.zoom_min, config.zoom_max))
    if kind == ViewerInteraction.ZOOM_OUT:
        return replace(session, zoom=clamp(session.zoom - config.zoom_step, config.zoom_min, config.zoom_max))
    if kind == ViewerInteraction.FULLSCREEN:
        return replace(session, fullscreen=not session.fullscreen)
    return session


# =============================================================================
# TIMEOUT SCHEDULING
# =============================================================================


class SessionScheduler(Protocol):
    """Schedules one pending timeout per session id."""

    def schedule(self, session_id: str, delay_seconds: float, callback: Callable[[str], None]) -> None:
        ...

    def cancel(self, session_id: str) -> None:
        ...


class NullScheduler:
    """No timers; idle sessions are closed by expire_idle() or on next use."""

    def schedule(self, session_id: str, delay_seconds: float, callback: Callable[[str], None]) -> None:
        return None

    def cancel(self, session_id: str) -> None:
        return None


# =============================================================================
# SESSION MANAGER
# =============================================================================


class ViewerSessionManager:
    """
    Owns every viewer session and writes their audit trail.

    The audit append for an interaction happens before the state change:
    if the append fails, StorageUnavailableError propagates and the
    session keeps its previous state.
    """

    def __init__(
        self,
        audit_log: AuditLog,
        clock: Optional[Clock] = None,
        config: Optional[ViewerConfig] = None,
        scheduler: Optional[SessionScheduler] = None,
    ):
        self.audit_log = audit_log
        self.clock = clock or SystemClock()
        self.config = config or ViewerConfig()
        self.scheduler = scheduler or NullScheduler()

        self._sessions: Dict[str, ViewerSession] = {}
        self._session_locks: Dict[str, threading.RLock] = {}
        self._closed_ids: Deque[str] = deque()
        self._lock = threading.Lock()

        self._stats = {
            "opened": 0,
            "interactions": 0,
            "closed": 0,
            "timed_out": 0,
            "revoked": 0,
            "export_attempts": 0,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(
        self,
        subject: Subject,
        room_id: str,
        document: Document,
        decision_id: Optional[str] = None,
    ) -> "SessionHandle":
        """Create an OPEN session. The VIEW_START event is the decision's."""
        now = self.clock.now()
        session = ViewerSession(
            session_id=f"vs_{uuid4().hex[:16]}",
            subject=subject,
            room_id=room_id,
            document_id=document.document_id,
            document_name=document.name,
            page_count=document.page_count,
            opened_at=now,
            last_activity_at=now,
            decision_id=decision_id,
            zoom=clamp(self.config.zoom_default, self.config.zoom_min, self.config.zoom_max),
        )
        with self._lock:
            self._sessions[session.session_id] = session
            self._session_locks[session.session_id] = threading.RLock()
            self._stats["opened"] += 1

        self._schedule_timeout(session.session_id)
        logger.info(
            f"Viewer session opened: {session.session_id} "
            f"{subject.role.value}:{subject.identity} doc={document.document_id}"
        )
        return SessionHandle(self, session.session_id)

    def get(self, session_id: str) -> ViewerSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError(
                f"Unknown viewer session: {session_id}",
                resource_type="session",
                resource_id=session_id,
            )
        return session

    def handle(self, session_id: str) -> "SessionHandle":
        self.get(session_id)
        return SessionHandle(self, session_id)

    def list_open(self, room_id: Optional[str] = None) -> List[ViewerSession]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [
            s for s in sessions
            if s.is_open and (room_id is None or s.room_id == room_id)
        ]

    # -------------------------------------------------------------------------
    # Interactions
    # -------------------------------------------------------------------------

    def interact(self, session_id: str, kind: ViewerInteraction) -> ViewerSession:
        """
        Apply and audit one interaction.

        Raises:
            SessionClosedError: session already closed, or idle past the
                timeout (the session is timed out first).
            StorageUnavailableError: audit append failed; state unchanged.
        """
        if not isinstance(kind, ViewerInteraction):
            try:
                kind = ViewerInteraction(str(kind).upper())
            except ValueError:
                raise InvalidInputError(f"Unknown viewer interaction: {kind!r}") from None

        if kind == ViewerInteraction.VIEW_END:
            return self.close(session_id)

        with self._locked(session_id):
            session = self._require_open(session_id)
            now = self.clock.now()

            if now - session.last_activity_at >= self.config.idle_timeout:
                self._close_locked(session, AuditAction.SESSION_TIMEOUT, ReasonCode.INACTIVITY_TIMEOUT)
                raise SessionClosedError(
                    f"Viewer session {session_id} timed out", session_id=session_id
                )

            updated = next_state(session, kind, self.config)
            is_export = kind in EXPORT_ATTEMPTS

            self.audit_log.append(
                room_id=session.room_id,
                subject_identity=session.subject.identity,
                subject_role=session.subject.role,
                action=AuditAction(kind.value),
                outcome=Outcome.DENIED if is_export else Outcome.ALLOWED,
                target_document_id=session.document_id,
                reason_code=ReasonCode.EXPORT_BLOCKED if is_export else None,
                detail=self._describe(kind, updated),
                session_id=session_id,
            )

            updated = replace(updated, last_activity_at=now)
            self._sessions[session_id] = updated
            self._stats["interactions"] += 1
            if is_export:
                self._stats["export_attempts"] += 1
                logger.warning(
                    f"{kind.value} by {session.subject.role.value}:{session.subject.identity} "
                    f"on {session.document_id}"
                )

        self._schedule_timeout(session_id)
        return updated

    @staticmethod
    def _describe(kind: ViewerInteraction, session: ViewerSession) -> Optional[str]:
        if kind in (ViewerInteraction.PAGE_NEXT, ViewerInteraction.PAGE_PREV):
            return f"page={session.current_page}/{session.page_count}"
        if kind in (ViewerInteraction.ZOOM_IN, ViewerInteraction.ZOOM_OUT):
            return f"zoom={session.zoom}"
        if kind == ViewerInteraction.FULLSCREEN:
            return f"fullscreen={'on' if session.fullscreen else 'off'}"
        return session.document_name

    def close(self, session_id: str) -> ViewerSession:
        """Explicit close (VIEW_END). Closing twice raises SessionClosedError."""
        with self._locked(session_id):
            session = self._require_open(session_id)
            return self._close_locked(session, AuditAction.VIEW_END, None)

    def timeout(self, session_id: str) -> bool:
        """
        Scheduler callback: close the session if it is still idle.

        Returns True when the session was timed out.
        """
        lock = self._session_locks.get(session_id)
        if lock is None:
            return False
        with lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_open:
                return False
            idle_for = self.clock.now() - session.last_activity_at
            if idle_for < self.config.idle_timeout:
                remaining = (self.config.idle_timeout - idle_for).total_seconds()
                self.scheduler.schedule(session_id, remaining, self._on_timer)
                return False
            self._close_locked(session, AuditAction.SESSION_TIMEOUT, ReasonCode.INACTIVITY_TIMEOUT)
            return True

    def expire_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Time out every open session idle for at least the timeout."""
        now = now or self.clock.now()
        expired = []
        for session in self.list_open():
            if now - session.last_activity_at < self.config.idle_timeout:
                continue
            lock = self._session_locks.get(session.session_id)
            if lock is None:
                continue
            with lock:
                current = self._sessions.get(session.session_id)
                if current is not None and current.is_open:
                    self._close_locked(
                        current, AuditAction.SESSION_TIMEOUT, ReasonCode.INACTIVITY_TIMEOUT
                    )
                    expired.append(session.session_id)
        return expired

    def revoke_sessions(
        self,
        predicate: Callable[[ViewerSession], bool],
        cause: str,
    ) -> List[str]:
        """Force-close open sessions matching `predicate` with SESSION_REVOKED."""
        revoked = []
        for session in self.list_open():
            if not predicate(session):
                continue
            lock = self._session_locks.get(session.session_id)
            if lock is None:
                continue
            with lock:
                current = self._sessions.get(session.session_id)
                if current is not None and current.is_open:
                    self._close_locked(
                        current, AuditAction.SESSION_REVOKED, ReasonCode.ACCESS_REVOKED, cause
                    )
                    revoked.append(session.session_id)
        return revoked

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _locked(self, session_id: str) -> threading.RLock:
        self.get(session_id)
        return self._session_locks[session_id]

    def _require_open(self, session_id: str) -> ViewerSession:
        session = self._sessions[session_id]
        if not session.is_open:
            raise SessionClosedError(
                f"Viewer session {session_id} is closed", session_id=session_id
            )
        return session

    def _close_locked(
        self,
        session: ViewerSession,
        action: AuditAction,
        reason: Optional[ReasonCode],
        detail: Optional[str] = None,
    ) -> ViewerSession:
        """
        Close and audit. The session closes even if the append fails;
        the storage error is re-raised after.
        """
        now = self.clock.now()
        closed = replace(
            session,
            state=SessionState.CLOSED,
            closed_at=now,
            close_action=action,
        )
        self._sessions[session.session_id] = closed
        self.scheduler.cancel(session.session_id)
        self._retire(session.session_id)

        self._stats["closed"] += 1
        if action == AuditAction.SESSION_TIMEOUT:
            self._stats["timed_out"] += 1
        elif action == AuditAction.SESSION_REVOKED:
            self._stats["revoked"] += 1

        logger.info(f"Viewer session closed: {session.session_id} ({action.value})")

        self.audit_log.append(
            room_id=session.room_id,
            subject_identity=session.subject.identity,
            subject_role=session.subject.role,
            action=action,
            outcome=Outcome.ALLOWED,
            target_document_id=session.document_id,
            reason_code=reason,
            detail=detail or session.document_name,
            session_id=session.session_id,
        )
        return closed

    def _retire(self, session_id: str) -> None:
        """Keep the newest closed sessions; forget the rest and their locks."""
        with self._lock:
            self._closed_ids.append(session_id)
            while len(self._closed_ids) > self.config.closed_history_size:
                stale = self._closed_ids.popleft()
                self._sessions.pop(stale, None)
                self._session_locks.pop(stale, None)

    def _schedule_timeout(self, session_id: str) -> None:
        self.scheduler.schedule(
            session_id, self.config.idle_timeout.total_seconds(), self._on_timer
        )

    def _on_timer(self, session_id: str) -> None:
        self.timeout(session_id)

    def get_statistics(self) -> Dict[str, int]:
        return {**self._stats, "open": len(self.list_open())}


@dataclass
class SessionHandle:
    """Caller-facing handle on one viewer session."""

    manager: ViewerSessionManager = field(repr=False)
    session_id: str

    @property
    def session(self) -> ViewerSession:
        return self.manager.get(self.session_id)

    @property
    def state(self) -> SessionState:
        return self.session.state

    def interact(self, kind: ViewerInteraction) -> ViewerSession:
        return self.manager.interact(self.session_id, kind)

    def close(self) -> ViewerSession:
        return self.manager.close(self.session_id)


__all__ = [
    "SessionState",
    "ViewerInteraction",
    "EXPORT_ATTEMPTS",
    "ViewerConfig",
    "ViewerSession",
    "clamp",
    "next_state",
    "SessionScheduler",
    "NullScheduler",
    "ViewerSessionManager",
    "SessionHandle",
]
