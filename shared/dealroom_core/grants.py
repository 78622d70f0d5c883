"""
DEALROOM Core - Grant Store
===========================

Per-subject, per-room, view-only access grants.

Expiry is a read-time comparison: a grant whose expires_on has passed
reads as EXPIRED without anything being written. REVOKED is only ever
set by revoke(). Grants are never deleted.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from .clock import ensure_utc
from .exceptions import InvalidInputError, NotFoundError
from .models import DEFAULT_PARTY_TYPE, Grant, GrantStatus, PartyType, Role
from .permissions import GRANT_GATED_ROLES

logger = logging.getLogger("DEALROOM_Grants")


class GrantStore:
    """
    In-memory grant store.

    Each grant is an immutable snapshot; revoke swaps the row under a
    store lock, so a reader sees either the ACTIVE or REVOKED row.

    Example:
        store = GrantStore()
        grant = store.create_grant("DR-1", Role.INVESTOR, "lp@fund.com", expires, now)
        store.find_active_grant("DR-1", Role.INVESTOR, now, "lp@fund.com")
    """

    def __init__(self):
        self._grants: Dict[str, Grant] = {}
        self._lock = threading.Lock()

    def create_grant(
        self,
        room_id: str,
        subject_role: Role,
        subject_identity: str,
        expires_on: datetime,
        now: datetime,
        party_type: Optional[PartyType] = None,
    ) -> Grant:
        """Record an invite. Expiry is mandatory and must lie in the future."""
        if subject_role not in GRANT_GATED_ROLES:
            raise InvalidInputError(
                f"{subject_role.value} does not take grants",
                details={"role": subject_role.value},
            )
        if not subject_identity or not subject_identity.strip():
            raise InvalidInputError("Grant identity is required")
        expires_on = ensure_utc(expires_on)
        if expires_on <= now:
            raise InvalidInputError(
                "Grant expiry must be in the future",
                details={"expires_on": expires_on.isoformat()},
            )

        grant = Grant(
            grant_id=f"grt_{uuid4().hex[:12]}",
            room_id=room_id,
            subject_role=subject_role,
            subject_identity=subject_identity.strip(),
            expires_on=expires_on,
            party_type=party_type or DEFAULT_PARTY_TYPE[subject_role],
            created_at=now,
        )
        with self._lock:
            self._grants[grant.grant_id] = grant

        logger.info(
            f"Grant created: {grant.grant_id} room={room_id} "
            f"role={subject_role.value} expires={expires_on.isoformat()}"
        )
        return grant

    def add(self, grant: Grant) -> Grant:
        """Load an existing grant record (e.g. from a seed file)."""
        with self._lock:
            if grant.grant_id in self._grants:
                raise InvalidInputError(f"Grant already exists: {grant.grant_id}")
            self._grants[grant.grant_id] = grant
        return grant

    def get(self, grant_id: str) -> Grant:
        grant = self._grants.get(grant_id)
        if grant is None:
            raise NotFoundError(
                f"Unknown grant: {grant_id}", resource_type="grant", resource_id=grant_id
            )
        return grant

    def find_active_grant(
        self,
        room_id: str,
        subject_role: Role,
        now: datetime,
        subject_identity: Optional[str] = None,
    ) -> Optional[Grant]:
        """
        First usable grant for the room and exact role.

        When subject_identity is given it must match (case-insensitive).
        Nothing is written on read.
        """
        wanted = subject_identity.lower() if subject_identity else None
        with self._lock:
            candidates = list(self._grants.values())

        for grant in candidates:
            if grant.room_id != room_id or grant.subject_role != subject_role:
                continue
            if wanted is not None and grant.subject_identity.lower() != wanted:
                continue
            if grant.is_usable(now):
                return grant
        return None

    def revoke(self, grant_id: str, now: datetime) -> Grant:
        """Mark a grant REVOKED. Unknown id raises NotFoundError; repeats are no-ops."""
        with self._lock:
            grant = self._grants.get(grant_id)
            if grant is None:
                raise NotFoundError(
                    f"Unknown grant: {grant_id}",
                    resource_type="grant",
                    resource_id=grant_id,
                )
            if grant.status == GrantStatus.REVOKED:
                return grant
            revoked = replace(grant, status=GrantStatus.REVOKED, revoked_at=now)
            self._grants[grant_id] = revoked

        logger.warning(f"Grant revoked: {grant_id} room={grant.room_id}")
        return revoked

    def list_grants(self, room_id: str) -> List[Grant]:
        with self._lock:
            return [g for g in self._grants.values() if g.room_id == room_id]


__all__ = ["GrantStore"]
