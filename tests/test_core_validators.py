import pytest

from admin_console.core.models import Role
from admin_console.core.validators import validate_invite_email, validate_password, validate_role


def test_validate_invite_email_trims():
    assert validate_invite_email("  alice@example.com ") == "alice@example.com"


@pytest.mark.parametrize("raw", ["", "   ", None, 42])
def test_validate_invite_email_requires_value(raw):
    with pytest.raises(ValueError, match="Email is required"):
        validate_invite_email(raw)


def test_validate_invite_email_does_not_check_format():
    assert validate_invite_email("not-an-email") == "not-an-email"


def test_validate_role_default_applies_to_empty_input():
    assert validate_role("", default=Role.NORMAL) is Role.NORMAL
    assert validate_role(None, default=Role.NORMAL) is Role.NORMAL


def test_validate_role_without_default_requires_value():
    with pytest.raises(ValueError, match="Role is required"):
        validate_role("  ")


def test_validate_role_rejects_unknown():
    with pytest.raises(ValueError, match="Invalid role"):
        validate_role("root", default=Role.NORMAL)


@pytest.mark.parametrize("password", ["", "12345", None, 123456])
def test_validate_password_rejects_short_or_missing(password):
    with pytest.raises(ValueError, match="Password must be at least 6 characters"):
        validate_password(password)


@pytest.mark.parametrize("password", ["123456", "a much longer passphrase"])
def test_validate_password_accepts_six_or_more(password):
    assert validate_password(password) == password


def test_validate_password_custom_minimum():
    with pytest.raises(ValueError, match="at least 10 characters"):
        validate_password("123456789", min_length=10)
