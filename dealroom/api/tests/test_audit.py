"""
Audit API Tests

Room audit queries, reports, export, chain verification and the
database archive.

These tests prove the invariant:
"The trail is complete, ordered, tamper-evident and outlives the room."
"""

import json

import pytest
from httpx import AsyncClient

from shared.dealroom_core.audit_log import AuditAction, AuditLog, InMemoryAuditBackend
from shared.dealroom_core.models import Outcome, Role

from dealroom.api.services.audit_archive import AuditArchiveWorker, load_archive
from dealroom.api.tests.conftest import ISSUER, ROOM_ID


async def make_traffic(client: AsyncClient, investor_headers: dict, issuer_headers: dict) -> None:
    """One denial, one allow, one upload."""
    await client.post(
        f"/api/v1/rooms/{ROOM_ID}/decisions",
        json={"action": "VIEW", "document_id": "doc_cim"},
        headers=investor_headers,
    )
    await client.post(
        f"/api/v1/rooms/{ROOM_ID}/decisions",
        json={"action": "VIEW", "document_id": "doc_cim"},
        headers=issuer_headers,
    )
    await client.post(
        f"/api/v1/admin/rooms/{ROOM_ID}/documents",
        json={"name": "Model.xlsx", "page_count": 4},
        headers=issuer_headers,
    )


# ==================== Query Tests ====================


@pytest.mark.asyncio
async def test_room_audit_in_event_order(
    async_client: AsyncClient,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get(f"/api/v1/audit/rooms/{ROOM_ID}", headers=issuer_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 3
    assert [e["event_id"] for e in body["events"]] == [1, 2, 3]
    assert [e["action"] for e in body["events"]] == [
        "ACCESS_DENIED_NO_GRANT",
        "VIEW_START",
        "UPLOAD_OPEN",
    ]
    assert body["events"][1]["prev_hash"] == body["events"][0]["hash"]


@pytest.mark.asyncio
async def test_room_audit_filters_and_pages(
    async_client: AsyncClient,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get(
        f"/api/v1/audit/rooms/{ROOM_ID}",
        params={"outcome": "DENIED"},
        headers=issuer_headers,
    )
    assert [e["subject_identity"] for e in response.json()["events"]] == ["lp@fund.com"]

    response = await async_client.get(
        f"/api/v1/audit/rooms/{ROOM_ID}",
        params={"page": 2, "page_size": 2},
        headers=issuer_headers,
    )
    body = response.json()
    assert body["total_pages"] == 2
    assert [e["event_id"] for e in body["events"]] == [3]

    response = await async_client.get(
        f"/api/v1/audit/rooms/{ROOM_ID}",
        params=[("action", "VIEW_START"), ("action", "UPLOAD_OPEN")],
        headers=issuer_headers,
    )
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_room_audit_is_for_managers(
    async_client: AsyncClient,
    investor_headers: dict,
    investor_grant,
):
    response = await async_client.get(f"/api/v1/audit/rooms/{ROOM_ID}", headers=investor_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_audit_survives_hard_delete(
    async_client: AsyncClient,
    admin_headers: dict,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)
    await async_client.post(f"/api/v1/admin/rooms/{ROOM_ID}/force-hard-delete", headers=admin_headers)

    response = await async_client.get(f"/api/v1/audit/rooms/{ROOM_ID}", headers=admin_headers)

    assert response.status_code == 200
    events = response.json()["events"]
    assert len(events) == 4
    assert events[-1]["action"] == "FORCE_HARD_DELETE"


# ==================== Report & Export Tests ====================


@pytest.mark.asyncio
async def test_room_access_report(
    async_client: AsyncClient,
    admin_headers: dict,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get(
        f"/api/v1/audit/rooms/{ROOM_ID}/report", headers=admin_headers
    )

    assert response.status_code == 200
    report = response.json()
    assert report["report_type"] == "room_access"
    assert report["summary"]["total_events"] == 3
    assert report["summary"]["views_started"] == 1
    assert report["summary"]["denials_by_reason"] == {"NO_ACTIVE_GRANT": 1}
    assert len(report["integrity_hash"]) == 64


@pytest.mark.asyncio
async def test_report_requires_admin(
    async_client: AsyncClient,
    issuer_headers: dict,
):
    response = await async_client.get(
        f"/api/v1/audit/rooms/{ROOM_ID}/report", headers=issuer_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_export_includes_integrity_hash(
    async_client: AsyncClient,
    admin_headers: dict,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get(
        "/api/v1/audit/export",
        params={"room_id": ROOM_ID, "outcome": "ALLOWED"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/json")
    exported = json.loads(response.text)
    assert exported["room_id"] == ROOM_ID
    assert exported["event_count"] == 2
    assert "integrity_hash" in exported


@pytest.mark.asyncio
async def test_verify_chain(
    async_client: AsyncClient,
    admin_headers: dict,
    issuer_headers: dict,
    investor_headers: dict,
    document,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get("/api/v1/audit/verify", headers=admin_headers)

    assert response.json() == {
        "valid": True,
        "events_checked": 3,
        "first_invalid_event_id": None,
        "error": None,
    }


# ==================== Archive Tests ====================


@pytest.mark.asyncio
async def test_archive_status_tracks_worker(
    async_client: AsyncClient,
    admin_headers: dict,
    issuer_headers: dict,
    investor_headers: dict,
    document,
    data_room,
    session_maker,
):
    await make_traffic(async_client, investor_headers, issuer_headers)

    response = await async_client.get("/api/v1/audit/archive", headers=admin_headers)
    assert response.json()["pending"] == 3
    assert response.json()["in_sync"] is False

    worker = AuditArchiveWorker(lambda: data_room.audit_log, session_maker, batch_size=2)
    assert await worker.archive_once() == 3
    assert await worker.archive_once() == 0

    response = await async_client.get("/api/v1/audit/archive", headers=admin_headers)
    body = response.json()
    assert body["archived_events"] == 3
    assert body["archived_through"] == 3
    assert body["in_sync"] is True
    assert worker.get_stats().last_archived_event_id == 3


@pytest.mark.asyncio
async def test_archive_refuses_to_run_ahead_of_log(
    async_client: AsyncClient,
    issuer_headers: dict,
    investor_headers: dict,
    document,
    data_room,
    session_maker,
    clock,
):
    """A restarted process with a fresh log must not interleave ids."""
    await make_traffic(async_client, investor_headers, issuer_headers)
    await AuditArchiveWorker(lambda: data_room.audit_log, session_maker).archive_once()

    fresh = AuditArchiveWorker(lambda: AuditLog(clock=clock), session_maker)

    assert await fresh.archive_once() == 0
    assert fresh.get_stats().error_count == 1


def append_view(log: AuditLog, identity: str) -> None:
    log.append(
        room_id=ROOM_ID,
        subject_identity=identity,
        subject_role=Role.ISSUER,
        action=AuditAction.VIEW_START,
        outcome=Outcome.ALLOWED,
        target_document_id="doc_cim",
    )


@pytest.mark.asyncio
async def test_archive_refuses_unrelated_log_past_archived_ids(
    async_client: AsyncClient,
    issuer_headers: dict,
    investor_headers: dict,
    document,
    data_room,
    session_maker,
    clock,
):
    """A fresh log that has overtaken the archive still must not splice in."""
    await make_traffic(async_client, investor_headers, issuer_headers)
    await AuditArchiveWorker(lambda: data_room.audit_log, session_maker).archive_once()

    unrelated = AuditLog(clock=clock)
    for n in range(5):
        append_view(unrelated, f"new{n}@issuer.com")
    fresh = AuditArchiveWorker(lambda: unrelated, session_maker)

    assert await fresh.archive_once() == 0
    assert fresh.get_stats().error_count == 1
    archived = await load_archive(session_maker)
    assert [e.event_id for e in archived] == [1, 2, 3]
    assert [e.hash for e in archived] == [e.hash for e in data_room.audit_log.events()]


@pytest.mark.asyncio
async def test_restarted_log_resumes_from_archive(
    async_client: AsyncClient,
    issuer_headers: dict,
    investor_headers: dict,
    document,
    data_room,
    session_maker,
    clock,
):
    await make_traffic(async_client, investor_headers, issuer_headers)
    await AuditArchiveWorker(lambda: data_room.audit_log, session_maker).archive_once()

    resumed = AuditLog(backend=InMemoryAuditBackend(await load_archive(session_maker)), clock=clock)
    assert resumed.last_event_id == 3

    append_view(resumed, ISSUER)
    worker = AuditArchiveWorker(lambda: resumed, session_maker)

    assert await worker.archive_once() == 1
    archived = await load_archive(session_maker)
    assert [e.event_id for e in archived] == [1, 2, 3, 4]
    assert archived[3].prev_hash == archived[2].hash
    assert resumed.verify_chain(archived).valid
