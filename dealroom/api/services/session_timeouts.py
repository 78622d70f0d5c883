"""
Viewer Session Timeouts

asyncio-backed scheduler for viewer inactivity timeouts. One pending
timer per session id: scheduling again replaces it, closing the
session cancels it.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional

from shared.dealroom_core.exceptions import DealRoomError

logger = logging.getLogger(__name__)


class AsyncioSessionScheduler:
    """
    SessionScheduler running timers on an asyncio event loop.

    Timers are created with loop.call_later on the bound loop; calls
    from other threads are handed over with call_soon_threadsafe. Expired
    timers run their callback in the loop's default executor.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: Dict[str, asyncio.TimerHandle] = {}
        self._fired = 0

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def schedule(
        self,
        session_id: str,
        delay_seconds: float,
        callback: Callable[[str], None],
    ) -> None:
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"No event loop bound; timeout for {session_id} not scheduled")
            return
        if self._in_loop_thread():
            self._schedule_now(session_id, delay_seconds, callback)
        else:
            self._loop.call_soon_threadsafe(self._schedule_now, session_id, delay_seconds, callback)

    def _schedule_now(
        self,
        session_id: str,
        delay_seconds: float,
        callback: Callable[[str], None],
    ) -> None:
        existing = self._handles.pop(session_id, None)
        if existing:
            existing.cancel()
        self._handles[session_id] = self._loop.call_later(
            max(delay_seconds, 0.0), self._fire, session_id, callback
        )

    def _fire(self, session_id: str, callback: Callable[[str], None]) -> None:
        self._handles.pop(session_id, None)
        self._fired += 1
        # The callback audits through the blocking core
        self._loop.run_in_executor(None, self._run_callback, session_id, callback)

    @staticmethod
    def _run_callback(session_id: str, callback: Callable[[str], None]) -> None:
        try:
            callback(session_id)
        except DealRoomError as e:
            logger.error(f"Viewer timeout for {session_id} failed: {e}")

    def cancel(self, session_id: str) -> None:
        if self._loop is None or self._loop.is_closed():
            self._handles.pop(session_id, None)
            return
        if self._in_loop_thread():
            self._cancel_now(session_id)
        else:
            self._loop.call_soon_threadsafe(self._cancel_now, session_id)

    def _cancel_now(self, session_id: str) -> None:
        handle = self._handles.pop(session_id, None)
        if handle:
            handle.cancel()

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    @property
    def pending(self) -> int:
        return len(self._handles)

    def get_stats(self) -> Dict[str, int]:
        return {"pending_timeouts": self.pending, "fired": self._fired}
