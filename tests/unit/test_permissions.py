"""
Tests for the Permission Matrix
===============================
"""

import pytest

from shared.dealroom_core.models import Action, Role
from shared.dealroom_core.permissions import (
    GRANT_GATED_ROLES,
    MatrixEntry,
    entry,
    has_management_rights,
    is_grant_gated,
    is_role_allowed,
    requires_active_room,
)


class TestMatrix:
    """Tests for static role x action cells."""

    @pytest.mark.parametrize("role", [Role.ISSUER, Role.ADMIN])
    def test_managers_allowed_every_document_action(self, role):
        for action in (Action.VIEW, Action.UPLOAD, Action.REPLACE, Action.DELETE_DOC,
                       Action.CREATE_FOLDER, Action.INVITE):
            assert entry(role, action) == MatrixEntry.ALLOW

    @pytest.mark.parametrize("role", [Role.MARKET_MAKER, Role.INVESTOR, Role.EXTERNAL])
    def test_viewers_are_grant_gated_for_view_only(self, role):
        assert entry(role, Action.VIEW) == MatrixEntry.GRANT_GATED
        for action in (Action.UPLOAD, Action.REPLACE, Action.DELETE_DOC,
                       Action.CREATE_FOLDER, Action.INVITE, Action.ADMIN_ACTIONS):
            assert not is_role_allowed(role, action)

    def test_only_admin_has_admin_actions(self):
        assert entry(Role.ADMIN, Action.ADMIN_ACTIONS) == MatrixEntry.ALLOW
        assert entry(Role.ISSUER, Action.ADMIN_ACTIONS) == MatrixEntry.DENY

    def test_grant_gated_roles(self):
        assert GRANT_GATED_ROLES == {Role.MARKET_MAKER, Role.INVESTOR, Role.EXTERNAL}
        assert is_grant_gated(Role.INVESTOR, Action.VIEW)
        assert not is_grant_gated(Role.ISSUER, Action.VIEW)

    def test_management_rights(self):
        assert has_management_rights(Role.ISSUER)
        assert not has_management_rights(Role.MARKET_MAKER)


class TestActiveRoomRequirement:
    """Admin commands must work on expired rooms; everything else must not."""

    def test_admin_actions_do_not_need_active_room(self):
        assert not requires_active_room(Action.ADMIN_ACTIONS)

    @pytest.mark.parametrize("action", [Action.VIEW, Action.UPLOAD, Action.INVITE])
    def test_document_actions_need_active_room(self, action):
        assert requires_active_room(action)
