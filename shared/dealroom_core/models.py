"""
DEALROOM Core - Domain Model
============================

Roles, actions, room/grant/document records and the verified subject.

Rooms, grants and documents are immutable snapshots. Stores replace a
snapshot wholesale when something changes, so a reader always sees a
complete record.

Author: DEALROOM Development Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from .constants import DEFAULT_SOFT_DELETE_GRACE_DAYS, PERMISSION_VIEW_ONLY
from .exceptions import InvalidInputError

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, label: str) -> E:
    """Coerce a raw value into an enum member or raise InvalidInputError."""
    if isinstance(value, enum_cls):
        return value
    raw = str(value).strip()
    for member in enum_cls:
        if raw == member.value or raw.upper() == member.name:
            return member
    raise InvalidInputError(
        f"Unknown {label}: {value!r}",
        details={label: value},
    )


# =============================================================================
# ENUMERATIONS
# =============================================================================


class Role(str, Enum):
    """Subject roles recognised by the engine."""

    ISSUER = "ISSUER"
    ADMIN = "ADMIN"
    MARKET_MAKER = "MARKET_MAKER"
    INVESTOR = "INVESTOR"
    EXTERNAL = "EXTERNAL"


class Action(str, Enum):
    """Requested action categories evaluated by the decision engine."""

    VIEW = "VIEW"
    UPLOAD = "UPLOAD"
    REPLACE = "REPLACE"
    DELETE_DOC = "DELETE_DOC"
    CREATE_FOLDER = "CREATE_FOLDER"
    INVITE = "INVITE"
    ADMIN_ACTIONS = "ADMIN_ACTIONS"


class PartyType(str, Enum):
    INTERNAL = "Internal"
    EXTERNAL = "External"


class RoomStatus(str, Enum):
    """Lifecycle status of a data room."""

    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    SOFT_DELETED = "SOFT_DELETED"
    HARD_DELETED = "HARD_DELETED"


class GrantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class Outcome(str, Enum):
    """Outcome recorded on decisions and audit events."""

    ALLOWED = "ALLOWED"
    DENIED = "DENIED"


class ReasonCode(str, Enum):
    """Reasons attached to denials and informational events."""

    ROOM_NOT_ACTIVE = "ROOM_NOT_ACTIVE"
    EXTERNAL_SHARING_DISABLED = "EXTERNAL_SHARING_DISABLED"
    ROLE_NOT_PERMITTED = "ROLE_NOT_PERMITTED"
    NO_ACTIVE_GRANT = "NO_ACTIVE_GRANT"
    AUDIT_UNAVAILABLE = "AUDIT_UNAVAILABLE"
    LEGAL_HOLD_ACTIVE = "LEGAL_HOLD_ACTIVE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EXPORT_BLOCKED = "EXPORT_BLOCKED"
    INACTIVITY_TIMEOUT = "INACTIVITY_TIMEOUT"
    ACCESS_REVOKED = "ACCESS_REVOKED"


# Party type assumed for an invite when the caller does not say
DEFAULT_PARTY_TYPE: Dict[Role, PartyType] = {
    Role.ISSUER: PartyType.INTERNAL,
    Role.ADMIN: PartyType.INTERNAL,
    Role.MARKET_MAKER: PartyType.EXTERNAL,
    Role.INVESTOR: PartyType.EXTERNAL,
    Role.EXTERNAL: PartyType.EXTERNAL,
}


# =============================================================================
# RECORDS
# =============================================================================


@dataclass(frozen=True)
class Subject:
    """Verified caller: identity plus role, supplied by authentication."""

    identity: str
    role: Role

    @classmethod
    def of(cls, identity: str, role: Any) -> "Subject":
        if not identity or not str(identity).strip():
            raise InvalidInputError("Subject identity is required")
        return cls(identity=str(identity).strip(), role=parse_enum(Role, role, "role"))


@dataclass(frozen=True)
class Room:
    """
    One deal's data room.

    Status is never stored; it is derived from expiry_timestamp and the
    clock unless forced_status carries an administrative override.
    """

    room_id: str
    deal_id: str
    expiry_timestamp: datetime
    soft_delete_grace_days: int = DEFAULT_SOFT_DELETE_GRACE_DAYS
    legal_hold: bool = False
    external_sharing_enabled: bool = False
    forced_status: Optional[RoomStatus] = None
    issuer_org: Optional[str] = None
    pool_id: Optional[str] = None
    deal_status: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def grace_deadline(self) -> datetime:
        """Point in time after which the room becomes hard-delete eligible."""
        return self.expiry_timestamp + timedelta(days=self.soft_delete_grace_days)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "room_id": self.room_id,
            "deal_id": self.deal_id,
            "expiry_timestamp": self.expiry_timestamp.isoformat(),
            "soft_delete_grace_days": self.soft_delete_grace_days,
            "legal_hold": self.legal_hold,
            "external_sharing_enabled": self.external_sharing_enabled,
            "forced_status": self.forced_status.value if self.forced_status else None,
            "issuer_org": self.issuer_org,
            "pool_id": self.pool_id,
            "deal_status": self.deal_status,
        }


@dataclass(frozen=True)
class Grant:
    """One subject's view-only access to one room."""

    grant_id: str
    room_id: str
    subject_role: Role
    subject_identity: str
    expires_on: datetime
    party_type: PartyType = PartyType.EXTERNAL
    permission: str = PERMISSION_VIEW_ONLY
    status: GrantStatus = GrantStatus.ACTIVE
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    revoked_at: Optional[datetime] = None

    def is_usable(self, now: datetime) -> bool:
        """ACTIVE and not yet past expires_on."""
        return self.status == GrantStatus.ACTIVE and self.expires_on >= now

    def effective_status(self, now: datetime) -> GrantStatus:
        """Stored status with expiry applied at read time."""
        if self.status == GrantStatus.ACTIVE and self.expires_on < now:
            return GrantStatus.EXPIRED
        return self.status


@dataclass(frozen=True)
class Document:
    """Document metadata. The engine never sees file bytes."""

    document_id: str
    room_id: str
    name: str
    page_count: int
    folder_path: str = "/"
    version: int = 1
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None


__all__ = [
    "parse_enum",
    "Role",
    "Action",
    "PartyType",
    "RoomStatus",
    "GrantStatus",
    "Outcome",
    "ReasonCode",
    "DEFAULT_PARTY_TYPE",
    "Subject",
    "Room",
    "Grant",
    "Document",
]
