"""User-facing console strings (en/es).

Notices shown by the admin page come from here; error texts returned by
Keycloak are shown as-is and only fall back to these strings when empty.
"""
from __future__ import annotations
from typing import Dict

CATALOGS: Dict[str, Dict[str, str]] = {
    "en": {
        "title": "Administration",
        "subtitle": "Manage users and permissions",
        "invite_success": "Invitation sent successfully",
        "invite_error": "Error sending invitation",
        "update_success": "User updated successfully",
        "update_error": "Error updating user",
        "delete_success": "User deleted successfully",
        "delete_error": "Error deleting user",
        "password_updated": "Password updated successfully",
        "password_error": "Error updating password",
        "auth_required": "Authentication required",
        "admin_required": "Administrator role required",
        "no_profile": "No profile",
        "never": "Never",
        "invite_user": "Invite user",
        "invite_title": "Invite new user",
        "send_invitation": "Send invitation",
        "sending": "Sending...",
        "edit": "Edit",
        "edit_title": "Edit user",
        "save": "Save changes",
        "delete": "Delete",
        "delete_title": "Delete user",
        "delete_confirm": "This permanently deletes",
        "cancel": "Cancel",
        "dismiss": "Dismiss",
        "email": "Email",
        "col_user": "User",
        "col_role": "Role",
        "col_created": "Registered",
        "col_last_sign_in": "Last sign-in",
        "col_actions": "Actions",
    },
    "es": {
        "title": "Panel de Administración",
        "subtitle": "Gestiona usuarios y permisos",
        "invite_success": "Invitación enviada correctamente",
        "invite_error": "Error al enviar invitación",
        "update_success": "Usuario actualizado correctamente",
        "update_error": "Error al actualizar usuario",
        "delete_success": "Usuario eliminado correctamente",
        "delete_error": "Error al eliminar usuario",
        "password_updated": "Contraseña actualizada correctamente",
        "password_error": "Error al actualizar contraseña",
        "auth_required": "Autenticación requerida",
        "admin_required": "Se requiere el rol de administrador",
        "no_profile": "Sin perfil",
        "never": "Nunca",
        "invite_user": "Invitar usuario",
        "invite_title": "Invitar nuevo usuario",
        "send_invitation": "Enviar invitación",
        "sending": "Enviando...",
        "edit": "Editar",
        "edit_title": "Editar usuario",
        "save": "Guardar cambios",
        "delete": "Eliminar",
        "delete_title": "Eliminar usuario",
        "delete_confirm": "Se eliminará permanentemente",
        "cancel": "Cancelar",
        "dismiss": "Cerrar",
        "email": "Correo electrónico",
        "col_user": "Usuario",
        "col_role": "Rol",
        "col_created": "Fecha de registro",
        "col_last_sign_in": "Último acceso",
        "col_actions": "Acciones",
    },
}

DEFAULT_LOCALE = "en"


class Messages:
    """Message lookup for one locale, falling back to English."""

    def __init__(self, locale: str = DEFAULT_LOCALE):
        self.locale = locale if locale in CATALOGS else DEFAULT_LOCALE
        self._catalog = CATALOGS[self.locale]

    def get(self, key: str) -> str:
        return self._catalog.get(key) or CATALOGS[DEFAULT_LOCALE].get(key, key)

    __getitem__ = get
