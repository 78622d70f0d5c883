"""
DEALROOM API Test Suite

HTTP-level tests against an in-process app: sqlite (aiosqlite) for the
archive tables and a ManualClock-driven engine per test.

Test Files:
- conftest.py: Shared fixtures (database, engine, room, tokens)
- test_access.py: Decisions, listings, invites, navigation
- test_viewer.py: Viewer sessions over HTTP
- test_admin.py: Room setup, documents, lifecycle commands
- test_audit.py: Audit queries, reports, export, archive

Run Commands:
    # All API tests
    pytest dealroom/api/tests/ -v

    # One area
    pytest dealroom/api/tests/test_audit.py -v
"""
