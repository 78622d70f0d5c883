"""
Audit Archive Worker

Copies the in-process audit log into the audit_events table, in
event_id order, in batches, on an interval. Rows are only inserted:
the worker never updates or deletes.

The archive is append-only like the log it mirrors, so the next batch
always starts right after the highest archived event_id. At startup the
live log is resumed from the archive (load_archive) so ids and the hash
chain continue across restarts.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.dealroom_core.audit_log import AuditEvent, AuditLog

from dealroom.api.config import settings
from dealroom.api.db.models import AuditEventRecord

logger = logging.getLogger(__name__)


@dataclass
class WorkerStats:
    """Statistics for a background worker."""
    name: str
    started_at: datetime
    last_run_at: Optional[datetime] = None
    run_count: int = 0
    archived_count: int = 0
    last_archived_event_id: int = 0
    error_count: int = 0
    last_error: Optional[str] = None


class AuditArchiveWorker:
    """
    Persists audit events to the database.

    Example:
        worker = AuditArchiveWorker(lambda: engine.audit_log, session_maker)
        await worker.archive_once()
    """

    def __init__(
        self,
        audit_log_provider: Callable[[], AuditLog],
        session_maker: async_sessionmaker,
        interval_seconds: float = 5.0,
        batch_size: int = 500,
    ):
        self._audit_log_provider = audit_log_provider
        self._session_maker = session_maker
        self.interval = interval_seconds
        self.batch_size = batch_size
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._stats = WorkerStats(
            name="audit_archive",
            started_at=datetime.now(timezone.utc),
        )

    async def start(self) -> None:
        """Start the archive worker."""
        if self._running:
            return

        self._running = True
        self._stats.started_at = datetime.now(timezone.utc)
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Audit archive worker started")

    async def stop(self) -> None:
        """Stop the worker after a final flush."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        try:
            await self.archive_once()
        except Exception as e:
            logger.error(f"Final audit archive flush failed: {e}")
        logger.info("Audit archive worker stopped")

    async def _run_loop(self) -> None:
        """Main worker loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                await self.archive_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Audit archive error: {e}")
                self._stats.error_count += 1
                self._stats.last_error = str(e)

    async def _archived_tail(self, session: AsyncSession) -> Tuple[int, Optional[str]]:
        """(highest archived event_id, its hash), or (0, None) when empty."""
        result = await session.execute(
            select(AuditEventRecord.event_id, AuditEventRecord.hash)
            .order_by(AuditEventRecord.event_id.desc())
            .limit(1)
        )
        row = result.first()
        return (row.event_id, row.hash) if row else (0, None)

    def _refuse(self, message: str) -> int:
        logger.error(message)
        self._stats.error_count += 1
        self._stats.last_error = message
        return 0

    async def archive_once(self) -> int:
        """
        Archive every event not yet in the table.

        Refuses to run when the live log does not continue the archived
        chain: a log that was not resumed from the archive would reuse
        its event ids.

        Returns:
            Number of rows inserted
        """
        audit_log = self._audit_log_provider()
        inserted = 0

        async with self._lock:
            async with self._session_maker() as session:
                archived_max, archived_hash = await self._archived_tail(session)

                if archived_max > audit_log.last_event_id:
                    return self._refuse(
                        f"Archive is ahead of the live audit log "
                        f"({archived_max} > {audit_log.last_event_id}); not archiving"
                    )

                if archived_max:
                    tail = audit_log.events_after(archived_max - 1, limit=1)
                    if not tail or tail[0].hash != archived_hash:
                        return self._refuse(
                            f"Live audit log does not continue the archived chain "
                            f"at event {archived_max}; not archiving"
                        )

                while True:
                    batch = audit_log.events_after(archived_max, limit=self.batch_size)
                    if not batch:
                        break
                    session.add_all([AuditEventRecord.from_event(e) for e in batch])
                    await session.commit()
                    inserted += len(batch)
                    archived_max = batch[-1].event_id
                    if len(batch) < self.batch_size:
                        break

        self._stats.run_count += 1
        self._stats.last_run_at = datetime.now(timezone.utc)
        self._stats.archived_count += inserted
        self._stats.last_archived_event_id = archived_max
        if inserted:
            logger.info(f"Archived {inserted} audit events (through {archived_max})")
        return inserted

    def get_stats(self) -> WorkerStats:
        """Get worker statistics."""
        return self._stats


async def load_archive(session_maker: async_sessionmaker) -> List[AuditEvent]:
    """Every archived event in event_id order, for resuming the live log."""
    async with session_maker() as session:
        result = await session.execute(
            select(AuditEventRecord).order_by(AuditEventRecord.event_id)
        )
        return [record.to_event() for record in result.scalars()]


# Global worker instance
_archive_worker: Optional[AuditArchiveWorker] = None


def get_audit_archive() -> Optional[AuditArchiveWorker]:
    """Get the global archive worker, if running."""
    return _archive_worker


async def init_audit_archive() -> None:
    """Initialize and start the archive worker."""
    global _archive_worker
    if not settings.AUDIT_ARCHIVE_ENABLED:
        logger.info("Audit archive disabled")
        return

    from dealroom.api.db.session import get_session_maker
    from dealroom.api.services.data_room import get_data_room

    _archive_worker = AuditArchiveWorker(
        lambda: get_data_room().audit_log,
        get_session_maker(),
        interval_seconds=settings.AUDIT_ARCHIVE_INTERVAL_SEC,
        batch_size=settings.AUDIT_ARCHIVE_BATCH_SIZE,
    )
    await _archive_worker.start()


async def close_audit_archive() -> None:
    """Stop the archive worker."""
    global _archive_worker
    if _archive_worker:
        await _archive_worker.stop()
        _archive_worker = None
