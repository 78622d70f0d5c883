"""
Tests for the Grant Store
=========================
"""

import pytest
from datetime import datetime, timedelta, timezone

from shared.dealroom_core.exceptions import InvalidInputError, NotFoundError
from shared.dealroom_core.grants import GrantStore
from shared.dealroom_core.models import GrantStatus, PartyType, Role


NOW = datetime(2026, 1, 30, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return GrantStore()


@pytest.fixture
def grant(store):
    return store.create_grant("DR-1", Role.INVESTOR, "LP@Fund.com", NOW + timedelta(days=7), NOW)


class TestCreateGrant:
    """Tests for grant creation."""

    def test_defaults(self, grant):
        assert grant.grant_id.startswith("grt_")
        assert grant.status == GrantStatus.ACTIVE
        assert grant.permission == "VIEW_ONLY"
        assert grant.party_type == PartyType.EXTERNAL

    def test_expiry_must_be_future(self, store):
        with pytest.raises(InvalidInputError):
            store.create_grant("DR-1", Role.INVESTOR, "lp@fund.com", NOW, NOW)

    def test_managers_do_not_take_grants(self, store):
        with pytest.raises(InvalidInputError):
            store.create_grant("DR-1", Role.ISSUER, "cfo@issuer.com", NOW + timedelta(days=1), NOW)

    def test_identity_required(self, store):
        with pytest.raises(InvalidInputError):
            store.create_grant("DR-1", Role.INVESTOR, "  ", NOW + timedelta(days=1), NOW)


class TestFindActiveGrant:
    """Tests for grant lookup."""

    def test_identity_match_is_case_insensitive(self, store, grant):
        assert store.find_active_grant("DR-1", Role.INVESTOR, NOW, "lp@fund.com") == grant

    def test_role_must_match_exactly(self, store, grant):
        assert store.find_active_grant("DR-1", Role.MARKET_MAKER, NOW, "lp@fund.com") is None

    def test_other_room_does_not_count(self, store, grant):
        assert store.find_active_grant("DR-2", Role.INVESTOR, NOW, "lp@fund.com") is None

    def test_expired_grant_is_not_usable(self, store, grant):
        later = NOW + timedelta(days=8)
        assert store.find_active_grant("DR-1", Role.INVESTOR, later, "lp@fund.com") is None
        assert store.get(grant.grant_id).effective_status(later) == GrantStatus.EXPIRED

    def test_lookup_does_not_write(self, store, grant):
        store.find_active_grant("DR-1", Role.INVESTOR, NOW + timedelta(days=30))
        assert store.get(grant.grant_id).status == GrantStatus.ACTIVE


class TestRevoke:
    """Tests for revocation."""

    def test_revoke_is_idempotent(self, store, grant):
        first = store.revoke(grant.grant_id, NOW)
        second = store.revoke(grant.grant_id, NOW + timedelta(hours=1))

        assert first.status == GrantStatus.REVOKED
        assert second.revoked_at == NOW

    def test_revoked_grant_is_not_usable(self, store, grant):
        store.revoke(grant.grant_id, NOW)
        assert store.find_active_grant("DR-1", Role.INVESTOR, NOW, "lp@fund.com") is None
        assert store.list_grants("DR-1")[0].status == GrantStatus.REVOKED

    def test_unknown_grant(self, store):
        with pytest.raises(NotFoundError):
            store.revoke("grt_missing", NOW)
