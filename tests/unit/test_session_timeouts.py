"""
Tests for the asyncio viewer timeout scheduler.
"""

import asyncio
import threading

import pytest

from shared.dealroom_core.exceptions import SessionClosedError

from dealroom.api.services.session_timeouts import AsyncioSessionScheduler


@pytest.mark.asyncio
async def test_timer_fires_once():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())
    fired = []

    scheduler.schedule("vs_1", 0.01, fired.append)
    assert scheduler.pending == 1

    await asyncio.sleep(0.05)

    assert fired == ["vs_1"]
    assert scheduler.get_stats() == {"pending_timeouts": 0, "fired": 1}


@pytest.mark.asyncio
async def test_rescheduling_replaces_pending_timer():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())
    fired = []

    scheduler.schedule("vs_1", 0.01, fired.append)
    scheduler.schedule("vs_1", 0.02, fired.append)
    assert scheduler.pending == 1

    await asyncio.sleep(0.06)

    assert fired == ["vs_1"]


@pytest.mark.asyncio
async def test_cancel():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())
    fired = []

    scheduler.schedule("vs_1", 0.01, fired.append)
    scheduler.cancel("vs_1")
    await asyncio.sleep(0.03)

    assert fired == []
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_schedule_from_worker_thread():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())
    fired = []

    await asyncio.to_thread(scheduler.schedule, "vs_1", 0.01, fired.append)
    await asyncio.sleep(0.05)

    assert fired == ["vs_1"]


@pytest.mark.asyncio
async def test_callback_errors_are_contained():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())

    def already_closed(session_id):
        raise SessionClosedError("closed", session_id=session_id)

    scheduler.schedule("vs_1", 0.0, already_closed)
    await asyncio.sleep(0.02)

    assert scheduler.get_stats()["fired"] == 1


@pytest.mark.asyncio
async def test_callback_runs_off_the_loop_thread():
    scheduler = AsyncioSessionScheduler(asyncio.get_running_loop())
    threads = []

    scheduler.schedule("vs_1", 0.0, lambda _: threads.append(threading.get_ident()))
    await asyncio.sleep(0.05)

    assert len(threads) == 1
    assert threads[0] != threading.get_ident()


def test_unbound_scheduler_is_a_no_op():
    scheduler = AsyncioSessionScheduler()

    scheduler.schedule("vs_1", 1.0, lambda _: None)
    scheduler.cancel("vs_1")

    assert scheduler.pending == 0
