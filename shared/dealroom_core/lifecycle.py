"""
DEALROOM Core - Room Lifecycle
==============================

Derives room status from time and administrative overrides, and holds
the registry of room snapshots.

Status resolution (first match wins):
    0. Forced HARD_DELETED is terminal; forced SOFT_DELETED stays put
    1. Legal hold: ACTIVE before expiry, EXPIRED after, never deleted
    2. now < expiry                -> ACTIVE
    3. now < expiry + grace days   -> EXPIRED
    4. otherwise                   -> SOFT_DELETED (hard-delete eligible)

HARD_DELETED is only ever reached through force_hard_delete. Rooms are
never removed from the registry.

Author: DEALROOM Development Team
Version: 1.0.0
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .clock import ensure_utc
from .constants import DEFAULT_SOFT_DELETE_GRACE_DAYS
from .exceptions import InvalidInputError, InvalidTransitionError, NotFoundError
from .models import ReasonCode, Room, RoomStatus

logger = logging.getLogger("DEALROOM_Lifecycle")


class LifecycleCommand(str, Enum):
    """Administrative lifecycle commands."""

    APPLY_LEGAL_HOLD = "APPLY_LEGAL_HOLD"
    RELEASE_LEGAL_HOLD = "RELEASE_LEGAL_HOLD"
    FORCE_SOFT_DELETE = "FORCE_SOFT_DELETE"
    FORCE_HARD_DELETE = "FORCE_HARD_DELETE"


# =============================================================================
# PURE STATUS FUNCTIONS
# =============================================================================


def resolve_status(room: Room, now: datetime) -> RoomStatus:
    """Status of `room` at `now`. Pure; nothing is cached or written."""
    if room.forced_status == RoomStatus.HARD_DELETED:
        return RoomStatus.HARD_DELETED
    if room.forced_status == RoomStatus.SOFT_DELETED:
        return RoomStatus.SOFT_DELETED

    if room.legal_hold:
        return RoomStatus.ACTIVE if now < room.expiry_timestamp else RoomStatus.EXPIRED

    if now < room.expiry_timestamp:
        return RoomStatus.ACTIVE
    if now < room.grace_deadline:
        return RoomStatus.EXPIRED
    return RoomStatus.SOFT_DELETED


def is_hard_delete_eligible(room: Room, now: datetime) -> bool:
    """True once the room is soft-deleted and not under legal hold."""
    if room.legal_hold:
        return False
    return resolve_status(room, now) == RoomStatus.SOFT_DELETED


def check_transition(
    room: Room, command: LifecycleCommand, now: datetime
) -> Optional[ReasonCode]:
    """
    Validate a lifecycle command against the current snapshot.

    Returns None when the command may proceed, otherwise the reason
    it is refused (LEGAL_HOLD_ACTIVE or INVALID_TRANSITION).
    """
    status = resolve_status(room, now)

    if command == LifecycleCommand.APPLY_LEGAL_HOLD:
        if status == RoomStatus.HARD_DELETED:
            return ReasonCode.INVALID_TRANSITION
        return None

    if command == LifecycleCommand.RELEASE_LEGAL_HOLD:
        return None

    if command == LifecycleCommand.FORCE_SOFT_DELETE:
        if room.legal_hold:
            return ReasonCode.LEGAL_HOLD_ACTIVE
        if status in (RoomStatus.SOFT_DELETED, RoomStatus.HARD_DELETED):
            return ReasonCode.INVALID_TRANSITION
        return None

    if command == LifecycleCommand.FORCE_HARD_DELETE:
        if room.legal_hold:
            return ReasonCode.LEGAL_HOLD_ACTIVE
        if status == RoomStatus.HARD_DELETED:
            return ReasonCode.INVALID_TRANSITION
        return None

    raise InvalidInputError(f"Unknown lifecycle command: {command!r}")


def apply_command(room: Room, command: LifecycleCommand) -> Room:
    """Snapshot after a validated command. Idempotent hold toggles return `room`."""
    if command == LifecycleCommand.APPLY_LEGAL_HOLD:
        return room if room.legal_hold else replace(room, legal_hold=True)
    if command == LifecycleCommand.RELEASE_LEGAL_HOLD:
        return replace(room, legal_hold=False) if room.legal_hold else room
    if command == LifecycleCommand.FORCE_SOFT_DELETE:
        return replace(room, forced_status=RoomStatus.SOFT_DELETED)
    if command == LifecycleCommand.FORCE_HARD_DELETE:
        return replace(room, forced_status=RoomStatus.HARD_DELETED)
    raise InvalidInputError(f"Unknown lifecycle command: {command!r}")


# =============================================================================
# ROOM REGISTRY
# =============================================================================


class RoomLifecycle:
    """
    Registry of room snapshots with per-room mutation locks.

    Readers take no lock: they read whichever snapshot is current.
    Writers hold the room's lock for validate-audit-swap so that two
    administrative commands on one room never interleave.
    """

    def __init__(self, default_grace_days: int = DEFAULT_SOFT_DELETE_GRACE_DAYS):
        self.default_grace_days = default_grace_days
        self._rooms: Dict[str, Room] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def create_room(
        self,
        room_id: str,
        deal_id: str,
        expiry_timestamp: datetime,
        soft_delete_grace_days: Optional[int] = None,
        legal_hold: bool = False,
        external_sharing_enabled: bool = False,
        issuer_org: Optional[str] = None,
        pool_id: Optional[str] = None,
        deal_status: Optional[str] = None,
    ) -> Room:
        """Register a new room. Room ids are unique for the life of the process."""
        if not room_id:
            raise InvalidInputError("room_id is required")
        grace = self.default_grace_days if soft_delete_grace_days is None else soft_delete_grace_days
        if grace < 0:
            raise InvalidInputError("soft_delete_grace_days must be >= 0")

        room = Room(
            room_id=room_id,
            deal_id=deal_id,
            expiry_timestamp=ensure_utc(expiry_timestamp),
            soft_delete_grace_days=grace,
            legal_hold=legal_hold,
            external_sharing_enabled=external_sharing_enabled,
            issuer_org=issuer_org,
            pool_id=pool_id,
            deal_status=deal_status,
        )

        with self._registry_lock:
            if room_id in self._rooms:
                raise InvalidInputError(
                    f"Room already exists: {room_id}", code="ROOM_EXISTS"
                )
            self._rooms[room_id] = room
            self._locks[room_id] = threading.RLock()

        logger.info(
            f"Room created: {room_id} deal={deal_id} "
            f"expiry={room.expiry_timestamp.isoformat()} grace={grace}d"
        )
        return room

    def get(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise NotFoundError(
                f"Unknown room: {room_id}", resource_type="room", resource_id=room_id
            )
        return room

    def exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    def list_rooms(self) -> List[Room]:
        with self._registry_lock:
            return list(self._rooms.values())

    def status(self, room_id: str, now: datetime) -> RoomStatus:
        return resolve_status(self.get(room_id), now)

    @contextmanager
    def locked(self, room_id: str) -> Iterator[Room]:
        """Hold the room's mutation lock; yields the snapshot current at entry."""
        self.get(room_id)
        lock = self._locks[room_id]
        with lock:
            yield self._rooms[room_id]

    def validate(self, room_id: str, command: LifecycleCommand, now: datetime) -> None:
        """Raise InvalidTransitionError if `command` is not allowed right now."""
        room = self.get(room_id)
        reason = check_transition(room, command, now)
        if reason is not None:
            raise InvalidTransitionError(
                f"{command.value} not allowed for room {room_id}: {reason.value}",
                current_state=resolve_status(room, now).value,
                attempted=command.value,
                code=reason.value,
            )

    def commit(self, room_id: str, command: LifecycleCommand) -> Room:
        """
        Swap in the post-command snapshot.

        Callers must hold `locked(room_id)` and have validated the command.
        """
        with self._locks[room_id]:
            before = self._rooms[room_id]
            after = apply_command(before, command)
            self._rooms[room_id] = after

        if after is before:
            logger.info(f"{command.value} on {room_id}: no change")
        else:
            logger.warning(f"{command.value} applied to room {room_id}")
        return after


__all__ = [
    "LifecycleCommand",
    "resolve_status",
    "is_hard_delete_eligible",
    "check_transition",
    "apply_command",
    "RoomLifecycle",
]
