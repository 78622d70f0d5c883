"""
Data Room Service

Process-wide wiring of the access engine: configuration, audit log,
viewer sessions with asyncio timeouts. Initialized at startup and
closed at shutdown, like the other service singletons.
"""

import asyncio
import logging
from typing import Optional

from shared.dealroom_core.audit_log import AuditBackend, AuditLog, InMemoryAuditBackend
from shared.dealroom_core.clock import Clock, SystemClock
from shared.dealroom_core.engine import AccessDecisionEngine
from shared.dealroom_core.lifecycle import RoomLifecycle
from shared.dealroom_core.viewer import SessionScheduler, ViewerSessionManager

from dealroom.api.config import settings
from dealroom.api.db.session import get_session_maker
from dealroom.api.services.audit_archive import load_archive
from dealroom.api.services.session_timeouts import AsyncioSessionScheduler
from dealroom.core.config_manager import ConfigManager

logger = logging.getLogger(__name__)


def build_data_room(
    config_manager: Optional[ConfigManager] = None,
    clock: Optional[Clock] = None,
    scheduler: Optional[SessionScheduler] = None,
    audit_backend: Optional[AuditBackend] = None,
) -> AccessDecisionEngine:
    """
    Assemble an engine from validated configuration.

    Raises:
        ConfigurationError: configuration fails validation
    """
    config_manager = config_manager or ConfigManager(settings.ENGINE_CONFIG_PATH)
    config = config_manager.require_valid()
    clock = clock or SystemClock()

    audit_log = AuditLog(backend=audit_backend, clock=clock, config=config.audit)
    viewer = ViewerSessionManager(
        audit_log,
        clock=clock,
        config=config.viewer,
        scheduler=scheduler,
    )
    return AccessDecisionEngine(
        clock=clock,
        lifecycle=RoomLifecycle(default_grace_days=config.lifecycle.default_grace_days),
        audit_log=audit_log,
        viewer=viewer,
        config=config.engine,
    )


# Global instances
_data_room: Optional[AccessDecisionEngine] = None
_scheduler: Optional[AsyncioSessionScheduler] = None


def get_data_room() -> AccessDecisionEngine:
    """Get the global engine instance."""
    global _data_room
    if _data_room is None:
        _data_room = build_data_room()
    return _data_room


def get_session_scheduler() -> Optional[AsyncioSessionScheduler]:
    return _scheduler


async def init_data_room() -> AccessDecisionEngine:
    """
    Create the engine with timeouts bound to the running loop.

    With the archive enabled the audit log is resumed from it, so event
    ids and the hash chain carry on from the previous process.
    """
    global _data_room, _scheduler
    _scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())

    backend = None
    if settings.AUDIT_ARCHIVE_ENABLED:
        archived = await load_archive(get_session_maker())
        backend = InMemoryAuditBackend(archived)
        logger.info(f"Audit log seeded with {len(archived)} archived events")

    _data_room = build_data_room(scheduler=_scheduler, audit_backend=backend)
    logger.info("Data room engine initialized")
    return _data_room


async def close_data_room() -> None:
    """Cancel pending timeouts and drop the engine."""
    global _data_room, _scheduler
    if _scheduler:
        _scheduler.cancel_all()
        _scheduler = None
    if _data_room:
        logger.info(f"Data room engine closed: {_data_room.get_statistics()['total_decisions']} decisions")
        _data_room = None
