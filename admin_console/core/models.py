"""Directory data model and Keycloak -> console transformations.

A console *profile* is not a separate record in Keycloak: it is the realm
role mapping (one of the console roles) plus two user attributes holding the
profile timestamps. A user holding none of the console roles has no profile.

Usage:
    role = Role.parse("technician")
    user = DirectoryUser.from_keycloak(kc_user, role=role, last_sign_in_at=None)
    user.to_dict()["profile"]["role"]  # 'technician'
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

PROFILE_CREATED_ATTR = "profile_created_at"
PROFILE_UPDATED_ATTR = "profile_updated_at"
LAST_SIGN_IN_ATTR = "last_sign_in_at"


class Role(str, Enum):
    """Console roles, highest privilege first."""

    ADMIN = "admin"
    TECHNICIAN = "technician"
    NORMAL = "normal"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Parse a role name (case-insensitive).

        Raises:
            ValueError: If the value is not a console role
        """
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for role in cls:
            if role.value == normalized:
                return role
        allowed = ", ".join(role.value for role in cls)
        raise ValueError(f"Invalid role '{value}'. Allowed roles: {allowed}")

    @classmethod
    def highest(cls, names: Iterable[str]) -> Optional["Role"]:
        """Return the highest-precedence console role among ``names``, if any."""
        present = {str(name).lower() for name in names}
        for role in cls:
            if role.value in present:
                return role
        return None

    @property
    def label(self) -> str:
        return self.value.capitalize()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch_ms(value: Any) -> Optional[datetime]:
    """Convert a Keycloak millisecond timestamp to an aware UTC datetime."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def parse_iso(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (trailing ``Z`` accepted); None when invalid."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _first_attribute(kc_user: Dict[str, Any], name: str) -> Optional[str]:
    values = (kc_user.get("attributes") or {}).get(name)
    if isinstance(values, list):
        return values[0] if values else None
    return values


def recorded_sign_in(kc_user: Dict[str, Any]) -> Optional[datetime]:
    """Sign-in time stamped by the console at login, if any."""
    return parse_iso(_first_attribute(kc_user, LAST_SIGN_IN_ATTR))


@dataclass(frozen=True)
class Profile:
    """Role-bearing record associated with a user."""

    id: str
    email: str
    role: Role
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_keycloak(cls, kc_user: Dict[str, Any], role: Role) -> "Profile":
        created = from_epoch_ms(kc_user.get("createdTimestamp"))
        profile_created = parse_iso(_first_attribute(kc_user, PROFILE_CREATED_ATTR)) or created
        profile_updated = parse_iso(_first_attribute(kc_user, PROFILE_UPDATED_ATTR)) or profile_created
        return cls(
            id=kc_user.get("id", ""),
            email=kc_user.get("email") or "",
            role=role,
            created_at=profile_created,
            updated_at=profile_updated,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class DirectoryUser:
    """A user of the identity service, optionally paired with a profile."""

    id: str
    email: str
    created_at: Optional[datetime]
    last_sign_in_at: Optional[datetime]
    profile: Optional[Profile]

    @classmethod
    def from_keycloak(
        cls,
        kc_user: Dict[str, Any],
        role: Optional[Role],
        last_sign_in_at: Optional[datetime] = None,
    ) -> "DirectoryUser":
        return cls(
            id=kc_user.get("id", ""),
            email=kc_user.get("email") or kc_user.get("username") or "",
            created_at=from_epoch_ms(kc_user.get("createdTimestamp")),
            last_sign_in_at=last_sign_in_at,
            profile=Profile.from_keycloak(kc_user, role) if role is not None else None,
        )

    @property
    def role(self) -> Optional[Role]:
        return self.profile.role if self.profile else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "created_at": to_iso(self.created_at),
            "last_sign_in_at": to_iso(self.last_sign_in_at),
            "profile": self.profile.to_dict() if self.profile else None,
        }


@dataclass(frozen=True)
class ConsoleSession:
    """The caller's own user and profile, resolved once per request."""

    user_id: str
    email: str
    profile: Optional[Profile]

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role is Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": {"id": self.user_id, "email": self.email},
            "profile": self.profile.to_dict() if self.profile else None,
        }
