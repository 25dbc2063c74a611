"""User profiles and their roles."""

from __future__ import annotations

import logging
import sqlite3

import storage
from errors import DataAccessError, PermissionDenied, ValidationError
from models import SessionContext, UserProfile, UserRole

logger = logging.getLogger(__name__)

MSG_OWN_ROLE = "Você não pode alterar seu próprio cargo."
MSG_OWN_PROFILE = "Você não pode excluir seu próprio perfil."
MSG_NOT_ALLOWED = "Acesso restrito a gerentes e administradores."
MSG_EMAIL_REQUIRED = "Informe um e-mail válido."


def open_session(email: str, full_name: str | None = None) -> SessionContext:
    """Get or create the profile for ``email`` and wrap it in a session.

    The first profile ever created becomes an administrator.
    """
    email = email.strip()
    if "@" not in email:
        raise ValidationError(MSG_EMAIL_REQUIRED)

    try:
        profile = storage.get_profile_by_email(email)
        if profile is None:
            role = UserRole.ADMINISTRATOR if storage.count_profiles() == 0 else UserRole.COLLABORATOR
            profile = storage.save_profile(UserProfile(email=email, full_name=full_name, role=role))
            logger.info("Perfil criado para %s (%s)", email, role.value)
    except sqlite3.Error as e:
        logger.error("Erro ao abrir sessão de %s: %s", email, e, exc_info=True)
        raise DataAccessError("Erro ao carregar perfil.") from e
    return SessionContext(user=profile)


def list_profiles(context: SessionContext) -> list[UserProfile]:
    if not context.user.can_manage_users:
        raise PermissionDenied(MSG_NOT_ALLOWED)
    try:
        return storage.get_all_profiles()
    except sqlite3.Error as e:
        logger.error("Erro ao carregar usuários: %s", e, exc_info=True)
        raise DataAccessError("Erro ao carregar usuários.") from e


def change_role(context: SessionContext, profile_id: str, role: UserRole) -> UserProfile:
    if not context.user.can_manage_users:
        raise PermissionDenied(MSG_NOT_ALLOWED)
    if profile_id == context.user_id:
        raise PermissionDenied(MSG_OWN_ROLE)

    try:
        profile = storage.get_profile(profile_id)
        if profile is None:
            raise DataAccessError("Usuário não encontrado.")
        profile.role = role
        storage.save_profile(profile)
    except sqlite3.Error as e:
        logger.error("Erro ao alterar cargo de %s: %s", profile_id, e, exc_info=True)
        raise DataAccessError("Erro ao atualizar cargo.") from e
    logger.info("Cargo de %s alterado para %s", profile.email, role.value)
    return profile


def delete_profile(context: SessionContext, profile_id: str) -> None:
    if not context.user.can_manage_users:
        raise PermissionDenied(MSG_NOT_ALLOWED)
    if profile_id == context.user_id:
        raise PermissionDenied(MSG_OWN_PROFILE)

    try:
        storage.delete_profile(profile_id)
    except sqlite3.Error as e:
        logger.error("Erro ao excluir usuário %s: %s", profile_id, e, exc_info=True)
        raise DataAccessError("Erro ao excluir usuário.") from e
    logger.info("Perfil %s excluído", profile_id)
