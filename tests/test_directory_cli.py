"""Command-line directory helper."""
import pytest

from admin_console.core.directory import DirectoryError
from admin_console.core.models import DirectoryUser, Profile, Role
from scripts import directory_cli
from tests.conftest import ADMIN_ID, SEED_CREATED, SEED_SIGN_IN, TECH_ID


@pytest.fixture()
def service(mocker):
    fake = mocker.Mock()
    mocker.patch.object(directory_cli, "build_directory", return_value=fake)
    return fake


def run(*argv):
    return directory_cli.main(["--svc-client-secret", "s3cret", *argv])


def test_no_command_prints_help(capsys):
    assert directory_cli.main([]) == 2
    assert "usage" in capsys.readouterr().out


def test_missing_secret_exits(monkeypatch):
    monkeypatch.delenv("KEYCLOAK_SERVICE_CLIENT_SECRET", raising=False)
    args = directory_cli.build_parser().parse_args(["list"])
    args.svc_client_secret = None
    with pytest.raises(SystemExit):
        directory_cli.build_directory(args)


def test_build_directory_uses_service_account():
    args = directory_cli.build_parser().parse_args([
        "--kc-url", "http://kc:8080", "--realm", "demo", "--svc-client-secret", "s3cret", "list",
    ])
    directory = directory_cli.build_directory(args)
    assert directory.realm == "demo"
    assert directory.client.base_url == "http://kc:8080"


def test_init_roles(service, capsys):
    service.ensure_console_roles.return_value = ["technician"]
    assert run("init-roles") == 0
    assert "Created: technician" in capsys.readouterr().out


def test_list(service, capsys):
    service.list_users.return_value = [
        DirectoryUser(ADMIN_ID, "admin@example.com", SEED_CREATED, SEED_SIGN_IN,
                      Profile(ADMIN_ID, "admin@example.com", Role.ADMIN, SEED_CREATED, SEED_CREATED)),
        DirectoryUser(TECH_ID, "orphan@example.com", SEED_CREATED, None, None),
    ]

    assert run("list") == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split("\t")[:3] == [ADMIN_ID, "admin@example.com", "admin"]
    assert lines[1].split("\t")[2:] == ["-", "never"]


def test_invite_defaults_to_normal(service):
    service.invite_user.return_value = "new-id"
    assert run("invite", "--email", "bob@example.com") == 0
    service.invite_user.assert_called_once_with("bob@example.com", "normal", operator="cli")


def test_set_role_resolves_email(service):
    service.find_user_id.return_value = TECH_ID
    assert run("set-role", "--email", "tech@example.com", "--role", "admin") == 0
    service.update_role.assert_called_once_with(TECH_ID, "admin", operator="cli")


def test_delete(service):
    service.find_user_id.return_value = TECH_ID
    assert run("--operator", "ops", "delete", "--email", "tech@example.com") == 0
    service.delete_user.assert_called_once_with(TECH_ID, operator="ops")


def test_directory_error_is_reported(service, capsys):
    service.find_user_id.side_effect = DirectoryError(404, "User not found")
    assert run("delete", "--email", "ghost@example.com") == 1
    assert "[delete] Error (404): User not found" in capsys.readouterr().err


def test_invalid_role_rejected_by_parser(service):
    with pytest.raises(SystemExit):
        run("invite", "--email", "bob@example.com", "--role", "root")
