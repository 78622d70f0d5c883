"""
Admin Schemas

Pydantic models for room administration and diagnostics.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dealroom.api.access.schemas import DecisionResponse, RoomResponse


# ==================== Rooms ====================


class RoomCreate(BaseModel):
    """New data room for a deal."""

    room_id: str = Field(..., min_length=1, max_length=64)
    deal_id: str = Field(..., min_length=1, max_length=64)
    expiry_timestamp: datetime
    soft_delete_grace_days: Optional[int] = Field(None, ge=0)
    legal_hold: bool = False
    external_sharing_enabled: bool = False
    issuer_org: Optional[str] = None
    pool_id: Optional[str] = None
    deal_status: Optional[str] = None


class LifecycleCommandResponse(BaseModel):
    """Audited decision and the room as it is afterwards."""

    decision: DecisionResponse
    room: RoomResponse


# ==================== Documents ====================


class DocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    page_count: int = Field(..., ge=1)
    folder_path: str = "/"
    content_type: Optional[str] = None
    size_bytes: Optional[int] = Field(None, ge=0)


class DocumentReplace(BaseModel):
    page_count: Optional[int] = Field(None, ge=1)


class FolderCreate(BaseModel):
    folder_path: str = Field(..., min_length=1, max_length=255)


class FolderResponse(BaseModel):
    room_id: str
    folder_path: str


# ==================== Sessions & Stats ====================


class ExpireIdleResponse(BaseModel):
    expired_sessions: List[str]
    count: int


class EngineStatsResponse(BaseModel):
    """Engine counters with viewer, audit and archive sections."""

    total_decisions: int
    allowed: int
    denied: int
    fail_closed: int
    allow_rate: float
    denials_by_reason: Dict[str, int]
    viewer: Dict[str, int]
    audit: Dict[str, Any]
    rooms: int
    archive: Optional[Dict[str, Any]] = None
    scheduler: Optional[Dict[str, Any]] = None
