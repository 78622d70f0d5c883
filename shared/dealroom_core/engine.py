"""
DEALROOM Core - Access Decision Engine
======================================

Answers "may subject S perform action A on document D in room R now?"
and records exactly one audit event per decision.

Evaluation order (first match wins):
    1. Room not ACTIVE and action needs an ACTIVE room -> ROOM_NOT_ACTIVE
    2. EXTERNAL viewing while external sharing is off  -> EXTERNAL_SHARING_DISABLED
    3. Static matrix denies the pair                    -> ROLE_NOT_PERMITTED
    4. Grant-gated pair without a usable grant          -> NO_ACTIVE_GRANT
    5. Otherwise                                        -> ALLOW

Malformed requests (unknown room, document, role or action) raise
InvalidInputError before anything is audited. If the audit append
fails after retries the decision is DENY/AUDIT_UNAVAILABLE, whatever
the policy said: no access goes unrecorded.

Administrative commands (legal hold, force delete, grant revocation)
are decided with ADMIN_ACTIONS under the room lock, audited, and only
then applied. Decisions take the same lock, and a view token is
checked against the room and grant again when the session opens.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Tuple
from uuid import uuid4

from .audit_log import AuditAction, AuditEvent, AuditLog, AuditPage, AuditQuery
from .clock import Clock, SystemClock, ensure_utc
from .constants import DECISION_HISTORY_SIZE
from .documents import DocumentCatalog
from .exceptions import InvalidInputError, InvalidTransitionError, StorageUnavailableError
from .grants import GrantStore
from .lifecycle import LifecycleCommand, RoomLifecycle, apply_command, check_transition, resolve_status
from .models import (
    Action,
    Document,
    Grant,
    Outcome,
    PartyType,
    ReasonCode,
    Role,
    Room,
    RoomStatus,
    Subject,
    parse_enum,
)
from .permissions import (
    DOCUMENT_ACTIONS,
    GRANT_GATED_ROLES,
    MatrixEntry,
    entry,
    requires_active_room,
)
from .viewer import SessionHandle, ViewerSession, ViewerSessionManager

logger = logging.getLogger("DEALROOM_Engine")


# Audit identifier recorded for each non-VIEW action
ACTION_AUDIT_MAP: Dict[Action, AuditAction] = {
    Action.UPLOAD: AuditAction.UPLOAD_OPEN,
    Action.REPLACE: AuditAction.REPLACE_OPEN,
    Action.DELETE_DOC: AuditAction.DELETE_DOC,
    Action.INVITE: AuditAction.INVITE_OPEN,
    Action.CREATE_FOLDER: AuditAction.FOLDER_CREATE_OPEN,
}

# Audit identifier for VIEW, by denial reason
VIEW_DENIAL_AUDIT_MAP: Dict[ReasonCode, AuditAction] = {
    ReasonCode.ROOM_NOT_ACTIVE: AuditAction.ACCESS_DENIED_ROOM_EXPIRED,
    ReasonCode.EXTERNAL_SHARING_DISABLED: AuditAction.ACCESS_DENIED_EXTERNAL_SHARING_OFF,
    ReasonCode.NO_ACTIVE_GRANT: AuditAction.ACCESS_DENIED_NO_GRANT,
}

NAVIGATION_ACTIONS = frozenset({AuditAction.ROLE_SWITCH, AuditAction.DEAL_SELECT})


@dataclass
class EngineConfig:
    """Configuration for the decision engine."""

    decision_history_size: int = DECISION_HISTORY_SIZE
    log_allows: bool = True
    log_denials: bool = True


@dataclass(frozen=True)
class Decision:
    """Result of one access evaluation."""

    decision_id: str
    subject: Subject
    room_id: str
    action: Action
    outcome: Outcome
    reason_code: Optional[ReasonCode] = None
    detail: Optional[str] = None
    document_id: Optional[str] = None
    event_id: Optional[int] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def allowed(self) -> bool:
        return self.outcome == Outcome.ALLOWED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision_id": self.decision_id,
            "identity": self.subject.identity,
            "role": self.subject.role.value,
            "room_id": self.room_id,
            "action": self.action.value,
            "outcome": self.outcome.value,
            "reason_code": self.reason_code.value if self.reason_code else None,
            "detail": self.detail,
            "document_id": self.document_id,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class InviteResult:
    decision: Decision
    grant: Optional[Grant] = None


@dataclass
class DocumentResult:
    decision: Decision
    document: Optional[Document] = None
    folder: Optional[str] = None


def evaluate(
    subject: Subject, room: Room, action: Action, now: datetime
) -> Tuple[Outcome, Optional[ReasonCode], Optional[str], Optional[MatrixEntry]]:
    """
    Policy evaluation without side effects or grant lookup.

    Returns (outcome, reason, detail, matrix_entry). A GRANT_GATED entry
    with ALLOWED outcome still needs a grant check by the caller.
    """
    status = resolve_status(room, now)
    if status != RoomStatus.ACTIVE and requires_active_room(action):
        return Outcome.DENIED, ReasonCode.ROOM_NOT_ACTIVE, status.value, None

    if (
        action == Action.VIEW
        and subject.role == Role.EXTERNAL
        and not room.external_sharing_enabled
    ):
        return Outcome.DENIED, ReasonCode.EXTERNAL_SHARING_DISABLED, None, None

    cell = entry(subject.role, action)
    if cell == MatrixEntry.DENY:
        return Outcome.DENIED, ReasonCode.ROLE_NOT_PERMITTED, None, cell
    return Outcome.ALLOWED, None, None, cell


class AccessDecisionEngine:
    """
    Orchestrates lifecycle, matrix and grants, and audits every call.

    Example:
        engine = AccessDecisionEngine(clock=clock)
        engine.lifecycle.create_room("DR-1001", "D-1001", expiry)
        doc = engine.documents.add_document("DR-1001", "CIM.pdf", 48)

        subject = Subject.of("lp@fund.com", "INVESTOR")
        decision = engine.decide(subject, "DR-1001", Action.VIEW, doc.document_id)
        if decision.allowed:
            handle = engine.open_viewer_session(decision)
            handle.interact(ViewerInteraction.PAGE_NEXT)
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        lifecycle: Optional[RoomLifecycle] = None,
        grants: Optional[GrantStore] = None,
        documents: Optional[DocumentCatalog] = None,
        audit_log: Optional[AuditLog] = None,
        viewer: Optional[ViewerSessionManager] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.clock = clock or SystemClock()
        self.config = config or EngineConfig()
        self.lifecycle = lifecycle or RoomLifecycle()
        self.grants = grants or GrantStore()
        self.documents = documents or DocumentCatalog()
        self.audit_log = audit_log or AuditLog(clock=self.clock)
        self.viewer = viewer or ViewerSessionManager(self.audit_log, clock=self.clock)

        # Unconsumed ALLOW VIEW decisions, keyed by decision_id
        self._view_tokens: Dict[str, Decision] = {}
        self._tokens_lock = threading.Lock()

        self._decision_history: Deque[Decision] = deque(maxlen=self.config.decision_history_size)
        self._stats_lock = threading.Lock()
        self._stats: Dict[str, Any] = {
            "total_decisions": 0,
            "allowed": 0,
            "denied": 0,
            "fail_closed": 0,
            "denials_by_reason": {},
        }

        logger.info("AccessDecisionEngine initialized")

    # =========================================================================
    # DECISIONS
    # =========================================================================

    def decide(
        self,
        subject: Subject,
        room_id: str,
        action: Any,
        document_id: Optional[str] = None,
    ) -> Decision:
        """
        Evaluate and audit one request.

        Raises:
            InvalidInputError: unknown room/document/action, missing
                document, or ADMIN_ACTIONS requested directly.
        """
        action = parse_enum(Action, action, "action")
        if action == Action.ADMIN_ACTIONS:
            raise InvalidInputError(
                "ADMIN_ACTIONS is only decided through administrative commands"
            )
        self.lifecycle.get(room_id)
        document = self._resolve_document(room_id, action, document_id)
        return self._decide(subject, room_id, action, document)

    def _resolve_document(
        self, room_id: str, action: Action, document_id: Optional[str]
    ) -> Optional[Document]:
        if action in DOCUMENT_ACTIONS and not document_id:
            raise InvalidInputError(
                f"{action.value} requires a document_id", details={"action": action.value}
            )
        if document_id:
            return self.documents.get(document_id, room_id=room_id)
        return None

    def _decide(
        self,
        subject: Subject,
        room_id: str,
        action: Action,
        document: Optional[Document] = None,
        detail: Optional[str] = None,
    ) -> Decision:
        """
        Evaluate and append under the room lock.

        Lifecycle commands and grant revocation take the same lock, so
        each one lands wholly before or wholly after a decision.
        """
        with self.lifecycle.locked(room_id) as room:
            now = self.clock.now()
            outcome, reason, policy_detail = self._policy(subject, room, action, now)

            # A command issued from this thread while the lock was held
            # has already swapped the snapshot
            latest = self.lifecycle.get(room_id)
            if latest is not room:
                outcome, reason, policy_detail = self._policy(subject, latest, action, now)

            if policy_detail is None:
                policy_detail = detail or (document.name if document else None)

            audit_action = self._audit_action_for(action, outcome, reason)
            decision = Decision(
                decision_id=f"dec_{uuid4().hex[:16]}",
                subject=subject,
                room_id=room_id,
                action=action,
                outcome=outcome,
                reason_code=reason,
                detail=policy_detail,
                document_id=document.document_id if document else None,
                timestamp=now,
            )
            return self._record(decision, audit_action)

    def _policy(
        self, subject: Subject, room: Room, action: Action, now: datetime
    ) -> Tuple[Outcome, Optional[ReasonCode], Optional[str]]:
        """evaluate() plus the grant lookup for grant-gated pairs."""
        outcome, reason, detail, cell = evaluate(subject, room, action, now)
        if outcome == Outcome.ALLOWED and cell == MatrixEntry.GRANT_GATED:
            grant = self.grants.find_active_grant(
                room.room_id, subject.role, now, subject.identity
            )
            if grant is None:
                return Outcome.DENIED, ReasonCode.NO_ACTIVE_GRANT, detail
        return outcome, reason, detail

    @staticmethod
    def _audit_action_for(
        action: Action, outcome: Outcome, reason: Optional[ReasonCode]
    ) -> AuditAction:
        if action == Action.VIEW:
            if outcome == Outcome.ALLOWED:
                return AuditAction.VIEW_START
            return VIEW_DENIAL_AUDIT_MAP.get(reason, AuditAction.ACCESS_DENIED_NO_GRANT)
        return ACTION_AUDIT_MAP[action]

    def _record(self, decision: Decision, audit_action: AuditAction) -> Decision:
        """Append the decision's event; fail closed if that is impossible."""
        try:
            event = self.audit_log.append(
                room_id=decision.room_id,
                subject_identity=decision.subject.identity,
                subject_role=decision.subject.role,
                action=audit_action,
                outcome=decision.outcome,
                target_document_id=decision.document_id,
                reason_code=decision.reason_code,
                detail=decision.detail,
            )
        except StorageUnavailableError as e:
            decision = Decision(
                decision_id=decision.decision_id,
                subject=decision.subject,
                room_id=decision.room_id,
                action=decision.action,
                outcome=Outcome.DENIED,
                reason_code=ReasonCode.AUDIT_UNAVAILABLE,
                detail=decision.reason_code.value if decision.reason_code else None,
                document_id=decision.document_id,
                timestamp=decision.timestamp,
            )
            logger.error(
                f"Fail-closed: {decision.action.value} by "
                f"{decision.subject.role.value}:{decision.subject.identity} "
                f"on {decision.room_id} denied, audit unavailable ({e})"
            )
            self._track(decision, fail_closed=True)
            return decision

        decision = Decision(
            decision_id=decision.decision_id,
            subject=decision.subject,
            room_id=decision.room_id,
            action=decision.action,
            outcome=decision.outcome,
            reason_code=decision.reason_code,
            detail=decision.detail,
            document_id=decision.document_id,
            event_id=event.event_id,
            timestamp=event.timestamp,
        )

        if decision.allowed and decision.action == Action.VIEW:
            with self._tokens_lock:
                self._view_tokens[decision.decision_id] = decision

        self._track(decision)
        return decision

    def _track(self, decision: Decision, fail_closed: bool = False) -> None:
        with self._stats_lock:
            self._stats["total_decisions"] += 1
            if decision.allowed:
                self._stats["allowed"] += 1
            else:
                self._stats["denied"] += 1
                key = decision.reason_code.value
                by_reason = self._stats["denials_by_reason"]
                by_reason[key] = by_reason.get(key, 0) + 1
            if fail_closed:
                self._stats["fail_closed"] += 1
            self._decision_history.append(decision)

        label = f"{decision.subject.role.value}:{decision.subject.identity}"
        if decision.allowed:
            if self.config.log_allows:
                logger.info(f"ALLOW {decision.action.value} {label} room={decision.room_id}")
        elif self.config.log_denials and not fail_closed:
            logger.warning(
                f"DENY {decision.action.value} {label} room={decision.room_id} "
                f"reason={decision.reason_code.value} detail={decision.detail}"
            )

    # =========================================================================
    # VIEWER
    # =========================================================================

    def open_viewer_session(self, decision: Decision) -> SessionHandle:
        """
        Open a viewer session from an unconsumed ALLOW VIEW decision.

        The room and grant are checked again under the room lock: a
        token minted before a force delete or revocation opens nothing.
        """
        with self._tokens_lock:
            issued = self._view_tokens.pop(decision.decision_id, None)
        if issued is None or issued != decision:
            raise InvalidInputError(
                "Decision does not authorize a viewer session",
                code="VIEW_NOT_AUTHORIZED",
                details={"decision_id": decision.decision_id},
            )

        with self.lifecycle.locked(issued.room_id) as room:
            outcome, reason, _ = self._policy(issued.subject, room, Action.VIEW, self.clock.now())
            if outcome != Outcome.ALLOWED:
                logger.warning(
                    f"View token {issued.decision_id} refused on {issued.room_id}: {reason.value}"
                )
                raise InvalidInputError(
                    "Decision no longer authorizes a viewer session",
                    code="VIEW_NOT_AUTHORIZED",
                    details={"decision_id": issued.decision_id, "reason": reason.value},
                )
            document = self.documents.get(issued.document_id, room_id=issued.room_id)
            return self.viewer.open(issued.subject, issued.room_id, document, issued.decision_id)

    def request_view(
        self, subject: Subject, room_id: str, document_id: str
    ) -> Tuple[Decision, Optional[SessionHandle]]:
        """decide(VIEW) and, on ALLOW, open the session in one step."""
        decision = self.decide(subject, room_id, Action.VIEW, document_id)
        if not decision.allowed:
            return decision, None
        return decision, self.open_viewer_session(decision)

    def _drop_view_tokens(self, predicate) -> None:
        with self._tokens_lock:
            for decision_id in [k for k, d in self._view_tokens.items() if predicate(d)]:
                del self._view_tokens[decision_id]

    # =========================================================================
    # DOCUMENT MANAGEMENT
    # =========================================================================

    def upload_document(
        self,
        subject: Subject,
        room_id: str,
        name: str,
        page_count: int,
        folder_path: str = "/",
        content_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> DocumentResult:
        """Decide UPLOAD, then record the document metadata on ALLOW."""
        if not name or page_count < 1:
            raise InvalidInputError("Document needs a name and at least one page")
        with self.lifecycle.locked(room_id):
            decision = self._decide(subject, room_id, Action.UPLOAD, detail=name)
            if not decision.allowed:
                return DocumentResult(decision)
            document = self.documents.add_document(
                room_id,
                name,
                page_count,
                folder_path=folder_path,
                content_type=content_type,
                size_bytes=size_bytes,
                uploaded_by=subject.identity,
                uploaded_at=decision.timestamp,
            )
        return DocumentResult(decision, document=document)

    def replace_document(
        self, subject: Subject, room_id: str, document_id: str, page_count: Optional[int] = None
    ) -> DocumentResult:
        """Decide REPLACE, then bump the document version on ALLOW."""
        document = self.documents.get(document_id, room_id=room_id)
        with self.lifecycle.locked(room_id):
            decision = self._decide(subject, room_id, Action.REPLACE, document)
            if not decision.allowed:
                return DocumentResult(decision)
            updated = self.documents.replace_document(
                document_id,
                page_count=page_count,
                uploaded_by=subject.identity,
                uploaded_at=decision.timestamp,
            )
        return DocumentResult(decision, document=updated)

    def create_folder(self, subject: Subject, room_id: str, folder_path: str) -> DocumentResult:
        with self.lifecycle.locked(room_id):
            decision = self._decide(subject, room_id, Action.CREATE_FOLDER, detail=folder_path)
            if not decision.allowed:
                return DocumentResult(decision)
            folder = self.documents.create_folder(room_id, folder_path)
        return DocumentResult(decision, folder=folder)

    def can_browse(self, subject: Subject, room_id: str) -> bool:
        """Metadata listing: managers always, others while holding a usable grant."""
        self.lifecycle.get(room_id)
        if subject.role not in GRANT_GATED_ROLES:
            return True
        return self.grants.find_active_grant(
            room_id, subject.role, self.clock.now(), subject.identity
        ) is not None

    # =========================================================================
    # INVITES & NAVIGATION
    # =========================================================================

    def invite(
        self,
        subject: Subject,
        room_id: str,
        identity: str,
        role: Any,
        expires_on: datetime,
        party_type: Optional[Any] = None,
    ) -> InviteResult:
        """Decide INVITE and create the grant on ALLOW. Expiry is mandatory."""
        self.lifecycle.get(room_id)
        role = parse_enum(Role, role, "role")
        party = parse_enum(PartyType, party_type, "party_type") if party_type else None
        if role not in GRANT_GATED_ROLES:
            raise InvalidInputError(f"{role.value} cannot be invited", details={"role": role.value})
        if not identity or not identity.strip():
            raise InvalidInputError("Invitee identity is required")
        if expires_on is None:
            raise InvalidInputError("Invite expiry is required")
        expires_on = ensure_utc(expires_on)
        if expires_on <= self.clock.now():
            raise InvalidInputError(
                "Invite expiry must be in the future",
                details={"expires_on": expires_on.isoformat()},
            )

        with self.lifecycle.locked(room_id):
            decision = self._decide(
                subject, room_id, Action.INVITE, detail=f"{role.value}:{identity.strip()}"
            )
            if not decision.allowed:
                return InviteResult(decision)

            grant = self.grants.create_grant(
                room_id, role, identity, expires_on, self.clock.now(), party_type=party
            )
        return InviteResult(decision, grant=grant)

    def record_navigation(
        self,
        subject: Subject,
        room_id: str,
        kind: Any,
        detail: Optional[str] = None,
    ) -> AuditEvent:
        """Audit a ROLE_SWITCH or DEAL_SELECT. Always ALLOWED; not an access."""
        kind = parse_enum(AuditAction, kind, "navigation")
        if kind not in NAVIGATION_ACTIONS:
            raise InvalidInputError(f"Not a navigation event: {kind.value}")
        room = self.lifecycle.get(room_id)
        return self.audit_log.append(
            room_id=room_id,
            subject_identity=subject.identity,
            subject_role=subject.role,
            action=kind,
            outcome=Outcome.ALLOWED,
            detail=detail or room.deal_id,
        )

    # =========================================================================
    # ADMINISTRATIVE COMMANDS
    # =========================================================================

    def apply_legal_hold(self, subject: Subject, room_id: str) -> Decision:
        return self._run_lifecycle_command(subject, room_id, LifecycleCommand.APPLY_LEGAL_HOLD)

    def release_legal_hold(self, subject: Subject, room_id: str) -> Decision:
        return self._run_lifecycle_command(subject, room_id, LifecycleCommand.RELEASE_LEGAL_HOLD)

    def force_soft_delete(self, subject: Subject, room_id: str) -> Decision:
        return self._run_lifecycle_command(subject, room_id, LifecycleCommand.FORCE_SOFT_DELETE)

    def force_hard_delete(self, subject: Subject, room_id: str) -> Decision:
        return self._run_lifecycle_command(subject, room_id, LifecycleCommand.FORCE_HARD_DELETE)

    def _run_lifecycle_command(
        self, subject: Subject, room_id: str, command: LifecycleCommand
    ) -> Decision:
        """
        Decide ADMIN_ACTIONS, validate, audit, mutate. All under the room lock.

        Policy denial returns a DENY decision (ADMIN_BLOCKED). An invalid
        transition is audited under the command's own identifier and raised.
        """
        audit_action = AuditAction(command.value)

        with self.lifecycle.locked(room_id) as room:
            denied = self._admin_gate(subject, room, command.value)
            if denied is not None:
                return denied

            now = self.clock.now()
            refusal = check_transition(room, command, now)
            if refusal is not None:
                self._refuse_transition(subject, room, command.value, refusal, now)

            changed = apply_command(room, command) is not room
            decision = self._record(
                Decision(
                    decision_id=f"dec_{uuid4().hex[:16]}",
                    subject=subject,
                    room_id=room_id,
                    action=Action.ADMIN_ACTIONS,
                    outcome=Outcome.ALLOWED,
                    detail=None if changed else "NO_CHANGE",
                    timestamp=now,
                ),
                audit_action,
            )
            if not decision.allowed:
                return decision

            self.lifecycle.commit(room_id, command)

        if command in (LifecycleCommand.FORCE_SOFT_DELETE, LifecycleCommand.FORCE_HARD_DELETE):
            self._drop_view_tokens(lambda d: d.room_id == room_id)
            closed = self.viewer.revoke_sessions(
                lambda s: s.room_id == room_id, cause=command.value
            )
            if closed:
                logger.warning(f"{command.value} closed {len(closed)} viewer session(s) in {room_id}")
        return decision

    def revoke_grant(self, subject: Subject, grant_id: str) -> Decision:
        """Decide ADMIN_ACTIONS, audit REVOKE_GRANT, revoke (idempotent)."""
        grant = self.grants.get(grant_id)
        room_id = grant.room_id

        with self.lifecycle.locked(room_id) as room:
            denied = self._admin_gate(subject, room, f"REVOKE_GRANT:{grant_id}")
            if denied is not None:
                return denied

            now = self.clock.now()
            decision = self._record(
                Decision(
                    decision_id=f"dec_{uuid4().hex[:16]}",
                    subject=subject,
                    room_id=room_id,
                    action=Action.ADMIN_ACTIONS,
                    outcome=Outcome.ALLOWED,
                    detail=f"{grant_id}:{grant.subject_role.value}:{grant.subject_identity}",
                    timestamp=now,
                ),
                AuditAction.REVOKE_GRANT,
            )
            if not decision.allowed:
                return decision

            revoked = self.grants.revoke(grant_id, now)

        still_allowed = self.grants.find_active_grant(
            room_id, revoked.subject_role, self.clock.now(), revoked.subject_identity
        )
        if still_allowed is None:
            identity = revoked.subject_identity.lower()

            def affected(item) -> bool:
                return (
                    item.room_id == room_id
                    and item.subject.role == revoked.subject_role
                    and item.subject.identity.lower() == identity
                )

            self._drop_view_tokens(affected)
            self.viewer.revoke_sessions(affected, cause=f"REVOKE_GRANT:{grant_id}")
        return decision

    def _admin_gate(self, subject: Subject, room: Room, detail: str) -> Optional[Decision]:
        """DENY decision (audited as ADMIN_BLOCKED), or None when permitted."""
        now = self.clock.now()
        outcome, reason, _, _ = evaluate(subject, room, Action.ADMIN_ACTIONS, now)
        if outcome == Outcome.ALLOWED:
            return None
        return self._record(
            Decision(
                decision_id=f"dec_{uuid4().hex[:16]}",
                subject=subject,
                room_id=room.room_id,
                action=Action.ADMIN_ACTIONS,
                outcome=outcome,
                reason_code=reason,
                detail=detail,
                timestamp=now,
            ),
            AuditAction.ADMIN_BLOCKED,
        )

    def _refuse_transition(
        self,
        subject: Subject,
        room: Room,
        attempted: str,
        reason: ReasonCode,
        now: datetime,
    ) -> None:
        status = resolve_status(room, now)
        try:
            self.audit_log.append(
                room_id=room.room_id,
                subject_identity=subject.identity,
                subject_role=subject.role,
                action=AuditAction(attempted),
                outcome=Outcome.DENIED,
                reason_code=reason,
                detail=status.value,
            )
        except StorageUnavailableError as e:
            logger.error(f"Refused {attempted} on {room.room_id} could not be audited: {e}")
        logger.warning(f"{attempted} refused on {room.room_id}: {reason.value} (status={status.value})")
        raise InvalidTransitionError(
            f"{attempted} not allowed for room {room.room_id}: {reason.value}",
            current_state=status.value,
            attempted=attempted,
            code=reason.value,
        )

    # =========================================================================
    # AUDIT & DIAGNOSTICS
    # =========================================================================

    def query_audit(
        self,
        room_id: str,
        filters: Optional[AuditQuery] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> AuditPage:
        """Room-scoped audit read in event_id order. Works for HARD_DELETED rooms."""
        self.lifecycle.get(room_id)
        filters = replace(filters, room_id=room_id) if filters else AuditQuery(room_id=room_id)
        return self.audit_log.query(filters, page=page, page_size=page_size)

    def room_status(self, room_id: str) -> RoomStatus:
        return self.lifecycle.status(room_id, self.clock.now())

    def get_statistics(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._stats)
            stats["denials_by_reason"] = dict(self._stats["denials_by_reason"])
        total = stats["total_decisions"]
        stats["allow_rate"] = stats["allowed"] / total if total > 0 else 0.0
        stats["viewer"] = self.viewer.get_statistics()
        stats["audit"] = self.audit_log.get_statistics()
        return stats

    def get_recent_decisions(self, limit: int = 50) -> List[Decision]:
        with self._stats_lock:
            return list(self._decision_history)[-limit:]

    def get_session(self, session_id: str) -> ViewerSession:
        return self.viewer.get(session_id)


__all__ = [
    "ACTION_AUDIT_MAP",
    "VIEW_DENIAL_AUDIT_MAP",
    "EngineConfig",
    "Decision",
    "InviteResult",
    "DocumentResult",
    "evaluate",
    "AccessDecisionEngine",
]
