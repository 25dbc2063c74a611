"""Tests for profiles.py - user profiles and roles."""

import sqlite3
from unittest.mock import patch

import pytest

import storage
from errors import DataAccessError, PermissionDenied, ValidationError
from models import UserRole
from profiles import (
    MSG_NOT_ALLOWED,
    MSG_OWN_PROFILE,
    MSG_OWN_ROLE,
    change_role,
    delete_profile,
    list_profiles,
    open_session,
)


class TestOpenSession:
    """Tests for open_session function."""

    def test_first_profile_is_administrator(self, context):
        assert context.user.role == UserRole.ADMINISTRATOR

    def test_later_profiles_are_collaborators(self, other_context):
        assert other_context.user.role == UserRole.COLLABORATOR

    def test_reuses_existing_profile(self, context):
        again = open_session("ANA@example.com")
        assert again.user_id == context.user_id
        assert storage.count_profiles() == 1

    def test_rejects_invalid_email(self):
        with pytest.raises(ValidationError):
            open_session("ana")

    def test_storage_failure_raises_data_access_error(self):
        with patch("storage.get_profile_by_email", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(DataAccessError) as exc_info:
                open_session("ana@example.com")
        assert exc_info.value.message == "Erro ao carregar perfil."


class TestListProfiles:
    """Tests for list_profiles function."""

    def test_administrator_sees_everyone(self, context, other_context):
        names = [p.display_name for p in list_profiles(context)]
        assert names == ["Ana Souza", "Bruno Lima"]

    def test_collaborator_denied(self, other_context):
        with pytest.raises(PermissionDenied) as exc_info:
            list_profiles(other_context)
        assert exc_info.value.message == MSG_NOT_ALLOWED


class TestChangeRole:
    """Tests for change_role function."""

    def test_promote(self, context, other_context):
        change_role(context, other_context.user_id, UserRole.MANAGER)
        assert storage.get_profile(other_context.user_id).role == UserRole.MANAGER

    def test_own_role_refused(self, context):
        with pytest.raises(PermissionDenied) as exc_info:
            change_role(context, context.user_id, UserRole.COLLABORATOR)
        assert exc_info.value.message == MSG_OWN_ROLE
        assert storage.get_profile(context.user_id).role == UserRole.ADMINISTRATOR

    def test_collaborator_denied(self, context, other_context):
        with pytest.raises(PermissionDenied):
            change_role(other_context, context.user_id, UserRole.COLLABORATOR)


class TestDeleteProfile:
    """Tests for delete_profile function."""

    def test_delete_other(self, context, other_context):
        delete_profile(context, other_context.user_id)
        assert storage.get_profile(other_context.user_id) is None

    def test_own_profile_refused(self, context):
        with pytest.raises(PermissionDenied) as exc_info:
            delete_profile(context, context.user_id)
        assert exc_info.value.message == MSG_OWN_PROFILE
        assert storage.get_profile(context.user_id) is not None
