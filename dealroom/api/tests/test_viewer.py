"""
Viewer API Tests

Restricted viewer sessions over HTTP: opening from a decision,
interactions, export blocking, timeouts and revocation.

These tests prove the invariant:
"Nothing leaves the viewer, and every step inside it is recorded."
"""

import asyncio
import time

import pytest
from httpx import AsyncClient

from shared.dealroom_core.audit_log import InMemoryAuditBackend

from dealroom.api.tests.conftest import ROOM_ID


async def open_session(client: AsyncClient, headers: dict, document_id: str = "doc_cim") -> dict:
    response = await client.post(
        "/api/v1/viewer/sessions",
        json={"room_id": ROOM_ID, "document_id": document_id},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


# ==================== Open Tests ====================


@pytest.mark.asyncio
async def test_open_session_with_grant(
    async_client: AsyncClient,
    investor_headers: dict,
    document,
    investor_grant,
    data_room,
):
    session = await open_session(async_client, investor_headers)

    assert session["state"] == "OPEN"
    assert session["current_page"] == 1
    assert session["zoom"] == 100
    assert session["page_count"] == 48
    # The decision's VIEW_START is the only event
    assert [e.action.value for e in data_room.audit_log.events()] == ["VIEW_START"]


@pytest.mark.asyncio
async def test_open_session_denied_without_grant(
    async_client: AsyncClient,
    investor_headers: dict,
    document,
    data_room,
):
    response = await async_client.post(
        "/api/v1/viewer/sessions",
        json={"room_id": ROOM_ID, "document_id": document.document_id},
        headers=investor_headers,
    )

    assert response.status_code == 403
    assert response.json()["detail"]["reason_code"] == "NO_ACTIVE_GRANT"
    assert data_room.audit_log.events()[-1].action.value == "ACCESS_DENIED_NO_GRANT"
    assert data_room.viewer.list_open() == []


# ==================== Interaction Tests ====================


@pytest.mark.asyncio
async def test_page_navigation_is_clamped(
    async_client: AsyncClient,
    issuer_headers: dict,
    data_room,
):
    data_room.documents.add_document(ROOM_ID, "Term Sheet.pdf", 2, document_id="doc_ts")
    session = await open_session(async_client, issuer_headers, "doc_ts")
    url = f"/api/v1/viewer/sessions/{session['session_id']}/interactions"

    for _ in range(3):
        response = await async_client.post(url, json={"kind": "PAGE_NEXT"}, headers=issuer_headers)
        assert response.status_code == 200

    assert response.json()["current_page"] == 2

    response = await async_client.post(url, json={"kind": "PAGE_PREV"}, headers=issuer_headers)
    response = await async_client.post(url, json={"kind": "PAGE_PREV"}, headers=issuer_headers)
    assert response.json()["current_page"] == 1


@pytest.mark.asyncio
async def test_zoom_is_clamped_at_maximum(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
):
    session = await open_session(async_client, issuer_headers)
    url = f"/api/v1/viewer/sessions/{session['session_id']}/interactions"

    for _ in range(10):
        response = await async_client.post(url, json={"kind": "ZOOM_IN"}, headers=issuer_headers)

    assert response.json()["zoom"] == 160


@pytest.mark.asyncio
async def test_print_is_blocked_even_for_issuer(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
    data_room,
):
    session = await open_session(async_client, issuer_headers)

    response = await async_client.post(
        f"/api/v1/viewer/sessions/{session['session_id']}/interactions",
        json={"kind": "PRINT_BLOCKED"},
        headers=issuer_headers,
    )

    assert response.status_code == 200
    assert response.json()["state"] == "OPEN"
    event = data_room.audit_log.events()[-1]
    assert event.action.value == "PRINT_BLOCKED"
    assert event.outcome.value == "DENIED"
    assert event.reason_code.value == "EXPORT_BLOCKED"
    assert event.session_id == session["session_id"]


@pytest.mark.asyncio
async def test_unknown_interaction_is_rejected(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
):
    session = await open_session(async_client, issuer_headers)

    response = await async_client.post(
        f"/api/v1/viewer/sessions/{session['session_id']}/interactions",
        json={"kind": "SCREENSHOT"},
        headers=issuer_headers,
    )

    assert response.status_code == 422


# ==================== Ownership Tests ====================


@pytest.mark.asyncio
async def test_session_is_invisible_to_other_subjects(
    async_client: AsyncClient,
    issuer_headers: dict,
    admin_headers: dict,
    document,
):
    session = await open_session(async_client, issuer_headers)

    response = await async_client.get(
        f"/api/v1/viewer/sessions/{session['session_id']}", headers=admin_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_unknown_session_is_not_found(
    async_client: AsyncClient,
    issuer_headers: dict,
):
    response = await async_client.get("/api/v1/viewer/sessions/vs_missing", headers=issuer_headers)

    assert response.status_code == 404


# ==================== Close & Timeout Tests ====================


@pytest.mark.asyncio
async def test_closed_session_rejects_interactions(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
    data_room,
):
    session = await open_session(async_client, issuer_headers)
    base = f"/api/v1/viewer/sessions/{session['session_id']}"

    response = await async_client.post(f"{base}/close", headers=issuer_headers)
    assert response.status_code == 200
    assert response.json()["state"] == "CLOSED"
    assert response.json()["close_action"] == "VIEW_END"

    response = await async_client.post(
        f"{base}/interactions", json={"kind": "PAGE_NEXT"}, headers=issuer_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SESSION_CLOSED"

    response = await async_client.post(f"{base}/close", headers=issuer_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_idle_session_times_out_on_next_interaction(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
    data_room,
    clock,
):
    session = await open_session(async_client, issuer_headers)
    clock.advance(minutes=10)

    response = await async_client.post(
        f"/api/v1/viewer/sessions/{session['session_id']}/interactions",
        json={"kind": "PAGE_NEXT"},
        headers=issuer_headers,
    )

    assert response.status_code == 409
    event = data_room.audit_log.events()[-1]
    assert event.action.value == "SESSION_TIMEOUT"
    assert event.reason_code.value == "INACTIVITY_TIMEOUT"


@pytest.mark.asyncio
async def test_admin_sweep_expires_idle_sessions(
    async_client: AsyncClient,
    issuer_headers: dict,
    admin_headers: dict,
    document,
    clock,
):
    idle = await open_session(async_client, issuer_headers)
    clock.advance(minutes=5)
    busy = await open_session(async_client, issuer_headers)
    clock.advance(minutes=5)

    response = await async_client.post(
        "/api/v1/admin/sessions/expire-idle", headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["expired_sessions"] == [idle["session_id"]]

    response = await async_client.get(
        f"/api/v1/viewer/sessions/{busy['session_id']}", headers=issuer_headers
    )
    assert response.json()["state"] == "OPEN"


@pytest.mark.asyncio
async def test_revoking_grant_closes_open_session(
    async_client: AsyncClient,
    investor_headers: dict,
    admin_headers: dict,
    document,
    investor_grant,
):
    session = await open_session(async_client, investor_headers)

    response = await async_client.post(
        f"/api/v1/admin/grants/{investor_grant.grant_id}/revoke", headers=admin_headers
    )
    assert response.status_code == 200

    response = await async_client.get(
        f"/api/v1/viewer/sessions/{session['session_id']}", headers=investor_headers
    )
    body = response.json()
    assert body["state"] == "CLOSED"
    assert body["close_action"] == "SESSION_REVOKED"


# ==================== Event Loop Tests ====================


class SlowBackend(InMemoryAuditBackend):
    """Audit backend whose every write takes a while."""

    def write(self, event):
        time.sleep(0.2)
        super().write(event)


@pytest.mark.asyncio
async def test_slow_audit_write_leaves_event_loop_running(
    async_client: AsyncClient,
    issuer_headers: dict,
    document,
    data_room,
):
    data_room.audit_log.backend = SlowBackend()
    done = asyncio.Event()
    ticks = 0

    async def tick():
        nonlocal ticks
        while not done.is_set():
            await asyncio.sleep(0.01)
            ticks += 1

    async def request():
        try:
            return await open_session(async_client, issuer_headers)
        finally:
            done.set()

    session, _ = await asyncio.gather(request(), tick())

    assert session["state"] == "OPEN"
    assert ticks >= 5
