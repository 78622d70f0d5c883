"""
Access Schemas

Pydantic models for decisions, rooms, documents, grants and invites.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.dealroom_core.engine import Decision
from shared.dealroom_core.models import (
    Action,
    Document,
    Grant,
    GrantStatus,
    PartyType,
    Role,
    Room,
    RoomStatus,
)


# ==================== Decisions ====================


class DecisionRequest(BaseModel):
    """Ask whether the caller may perform an action."""

    action: Action
    document_id: Optional[str] = None


class DecisionResponse(BaseModel):
    """Outcome of one access evaluation."""

    decision_id: str
    identity: str
    role: Role
    room_id: str
    action: Action
    outcome: str
    reason_code: Optional[str] = None
    detail: Optional[str] = None
    document_id: Optional[str] = None
    event_id: Optional[int] = None
    timestamp: datetime

    @classmethod
    def from_decision(cls, decision: Decision) -> "DecisionResponse":
        return cls(**decision.to_dict())


class DenialResponse(BaseModel):
    """Body of a 403 policy denial. Never names other subjects' grants."""

    reason_code: str
    detail: Optional[str] = None


# ==================== Navigation ====================


class NavigationRequest(BaseModel):
    kind: str = Field(..., description="ROLE_SWITCH or DEAL_SELECT")
    detail: Optional[str] = Field(None, max_length=255)


# ==================== Rooms ====================


class RoomResponse(BaseModel):
    """Room snapshot with its status resolved at request time."""

    room_id: str
    deal_id: str
    status: RoomStatus
    expiry_timestamp: datetime
    soft_delete_grace_days: int
    legal_hold: bool
    external_sharing_enabled: bool
    hard_delete_eligible: bool = False
    issuer_org: Optional[str] = None
    pool_id: Optional[str] = None
    deal_status: Optional[str] = None

    @classmethod
    def from_room(cls, room: Room, status: RoomStatus, hard_delete_eligible: bool = False) -> "RoomResponse":
        return cls(
            room_id=room.room_id,
            deal_id=room.deal_id,
            status=status,
            expiry_timestamp=room.expiry_timestamp,
            soft_delete_grace_days=room.soft_delete_grace_days,
            legal_hold=room.legal_hold,
            external_sharing_enabled=room.external_sharing_enabled,
            hard_delete_eligible=hard_delete_eligible,
            issuer_org=room.issuer_org,
            pool_id=room.pool_id,
            deal_status=room.deal_status,
        )


# ==================== Documents ====================


class DocumentResponse(BaseModel):
    """Document metadata."""

    model_config = ConfigDict(from_attributes=True)

    document_id: str
    room_id: str
    name: str
    page_count: int
    folder_path: str
    version: int
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls.model_validate(document)


class DocumentListResponse(BaseModel):
    room_id: str
    folder: Optional[str] = None
    documents: List[DocumentResponse]


class FolderListResponse(BaseModel):
    room_id: str
    folders: List[str]


# ==================== Grants & Invites ====================


class InviteRequest(BaseModel):
    """Invite one subject. Expiry is mandatory."""

    identity: str = Field(..., min_length=1, max_length=255)
    role: Role
    expires_on: datetime
    party_type: Optional[PartyType] = None


class GrantResponse(BaseModel):
    """Grant with its status evaluated at request time."""

    grant_id: str
    room_id: str
    subject_role: Role
    subject_identity: str
    party_type: PartyType
    permission: str
    expires_on: datetime
    status: GrantStatus
    created_at: datetime
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_grant(cls, grant: Grant, now: datetime) -> "GrantResponse":
        return cls(
            grant_id=grant.grant_id,
            room_id=grant.room_id,
            subject_role=grant.subject_role,
            subject_identity=grant.subject_identity,
            party_type=grant.party_type,
            permission=grant.permission,
            expires_on=grant.expires_on,
            status=grant.effective_status(now),
            created_at=grant.created_at,
            revoked_at=grant.revoked_at,
        )


class GrantListResponse(BaseModel):
    room_id: str
    grants: List[GrantResponse]
