"""Admin page state: user table, invite/edit/delete dialogs and notices.

One ``DirectoryConsole`` is built per request with the caller's session
passed in. Mutations are single attempts; on success the list is read again
from Keycloak instead of being patched locally.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from admin_console.core.directory import DirectoryError
from admin_console.core.messages import Messages
from admin_console.core.models import ConsoleSession, DirectoryUser, Role

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = "%d/%m/%Y"

ROLE_BADGE_CLASSES = {
    Role.ADMIN: "badge-admin",
    Role.TECHNICIAN: "badge-technician",
    Role.NORMAL: "badge-normal",
}


@dataclass
class Notice:
    kind: str  # "success" | "error"
    text: str


@dataclass
class InviteForm:
    email: str = ""
    role: Role = Role.NORMAL
    open: bool = False
    submitting: bool = False


@dataclass
class EditDialog:
    target: Optional[DirectoryUser] = None
    role: Role = Role.NORMAL
    open: bool = False


@dataclass
class DeleteDialog:
    target: Optional[DirectoryUser] = None
    open: bool = False


@dataclass(frozen=True)
class UserRow:
    """One rendered table row."""

    id: str
    short_id: str
    email: str
    role_label: Optional[str]
    role_class: Optional[str]
    has_profile: bool
    created: str
    last_sign_in: str
    can_delete: bool


@dataclass
class DirectoryConsole:
    """Page state of the admin console for one request."""

    session: ConsoleSession
    directory: object
    messages: Messages = field(default_factory=Messages)
    date_format: str = DEFAULT_DATE_FORMAT
    reload_after_mutation: bool = True

    users: List[DirectoryUser] = field(default_factory=list)
    loading: bool = True
    invite: InviteForm = field(default_factory=InviteForm)
    edit: EditDialog = field(default_factory=EditDialog)
    delete: DeleteDialog = field(default_factory=DeleteDialog)
    notice: Optional[Notice] = None
    error_status: Optional[int] = None

    # ─────────────────────────────────────────────────────────────────────
    # List
    # ─────────────────────────────────────────────────────────────────────

    def load_users(self) -> None:
        """Fetch the user list; a failure is logged and leaves the list empty."""
        self.loading = True
        try:
            self.users = self.directory.list_users()
        except DirectoryError as exc:
            logger.error("[console] Error loading users: %s", exc.detail)
            self.users = []
        finally:
            self.loading = False

    def find_user(self, user_id: str) -> Optional[DirectoryUser]:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def can_delete(self, user: DirectoryUser) -> bool:
        """The signed-in admin cannot delete their own account."""
        return user.id != self.session.user_id

    def rows(self) -> List[UserRow]:
        never = self.messages.get("never")
        rows = []
        for user in self.users:
            role = user.role
            rows.append(UserRow(
                id=user.id,
                short_id=f"{user.id[:8]}...",
                email=user.email,
                role_label=role.label if role else None,
                role_class=ROLE_BADGE_CLASSES[role] if role else None,
                has_profile=user.profile is not None,
                created=self.format_date(user.created_at) or "",
                last_sign_in=self.format_date(user.last_sign_in_at) or never,
                can_delete=self.can_delete(user),
            ))
        return rows

    def format_date(self, value: Optional[datetime]) -> Optional[str]:
        if value is None:
            return None
        return value.strftime(self.date_format)

    # ─────────────────────────────────────────────────────────────────────
    # Invite
    # ─────────────────────────────────────────────────────────────────────

    def open_invite(self) -> None:
        self.invite.open = True

    def submit_invite(self, email: str, role=Role.NORMAL) -> bool:
        """Invite ``email`` with ``role``.

        An empty email is a no-op: no request is sent and no notice shown.
        On failure the dialog stays open with the entered values.
        """
        self.invite.open = True
        self.invite.email = (email or "").strip()
        try:
            self.invite.role = Role.parse(role) if role else Role.NORMAL
        except ValueError:
            self.invite.role = Role.NORMAL
        if not self.invite.email:
            return False

        self.invite.submitting = True
        try:
            self.directory.invite_user(self.invite.email, role or Role.NORMAL, operator=self.session.email)
        except DirectoryError as exc:
            self._fail(exc, "invite_error")
            return False
        finally:
            self.invite.submitting = False

        self.invite = InviteForm()
        self._succeed("invite_success")
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Edit role
    # ─────────────────────────────────────────────────────────────────────

    def open_edit(self, user_id: str) -> bool:
        """Open the edit dialog with the user's current role preselected."""
        user = self.find_user(user_id)
        if user is None:
            return False
        self.edit = EditDialog(target=user, role=user.role or Role.NORMAL, open=True)
        return True

    def submit_edit(self, user_id: str, role) -> bool:
        if not self.edit.open or self.edit.target is None or self.edit.target.id != user_id:
            self.open_edit(user_id)
        self.edit.open = True
        try:
            self.edit.role = Role.parse(role)
        except ValueError:
            pass

        try:
            self.directory.update_role(user_id, role, operator=self.session.email)
        except DirectoryError as exc:
            self._fail(exc, "update_error")
            return False

        self.edit = EditDialog()
        self._succeed("update_success")
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Delete
    # ─────────────────────────────────────────────────────────────────────

    def open_delete(self, user_id: str) -> bool:
        user = self.find_user(user_id)
        if user is None or not self.can_delete(user):
            return False
        self.delete = DeleteDialog(target=user, open=True)
        return True

    def submit_delete(self, user_id: str) -> bool:
        if not self.delete.open or self.delete.target is None or self.delete.target.id != user_id:
            self.delete = DeleteDialog(target=self.find_user(user_id), open=True)

        try:
            self.directory.delete_user(
                user_id,
                operator=self.session.email,
                acting_user_id=self.session.user_id,
            )
        except DirectoryError as exc:
            self._fail(exc, "delete_error")
            return False

        self.delete = DeleteDialog()
        self._succeed("delete_success")
        return True

    # ─────────────────────────────────────────────────────────────────────
    # Notices
    # ─────────────────────────────────────────────────────────────────────

    def dismiss_notice(self) -> None:
        self.notice = None

    def _succeed(self, key: str) -> None:
        self.notice = Notice("success", self.messages.get(key))
        self.error_status = None
        if self.reload_after_mutation:
            self.load_users()

    def _fail(self, exc: DirectoryError, fallback_key: str) -> None:
        logger.warning("[console] %s failed (%s): %s", fallback_key, exc.status, exc.detail)
        self.notice = Notice("error", exc.detail or self.messages.get(fallback_key))
        self.error_status = exc.status
