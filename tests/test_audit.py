"""Unit tests for directory audit logging."""

import json

from scripts import audit


def test_log_directory_event_creates_file(temp_audit_dir):
    """Logging creates the audit file with owner-only permissions."""
    _, audit_file = temp_audit_dir

    assert not audit_file.exists()

    audit.log_directory_event(
        "invite",
        "alice@example.com",
        operator="admin@example.com",
        realm="demo",
        details={"role": "technician"},
    )

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600


def test_logged_event_fields(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_directory_event(
        "role_change",
        "user-1",
        operator="admin@example.com",
        details={"from_role": "admin", "to_role": "technician"},
    )

    event = json.loads(audit_file.read_text().splitlines()[0])
    assert event["event_type"] == "role_change"
    assert event["target"] == "user-1"
    assert event["operator"] == "admin@example.com"
    assert event["success"] is True
    assert event["details"]["to_role"] == "technician"
    assert "timestamp" in event
    assert "signature" in event


def test_log_multiple_events(temp_audit_dir):
    _, audit_file = temp_audit_dir

    for event_type, target in [("invite", "a@example.com"), ("role_change", "a"), ("delete", "a")]:
        audit.log_directory_event(event_type, target, operator="test")

    events = [json.loads(line) for line in audit_file.read_text().splitlines()]
    assert [event["event_type"] for event in events] == ["invite", "role_change", "delete"]


def test_verify_audit_log_with_valid_signatures(temp_audit_dir):
    for i in range(5):
        audit.log_directory_event("invite", f"user{i}@example.com", operator="test")

    assert audit.verify_audit_log() == (5, 5)


def test_verify_audit_log_detects_tampering(temp_audit_dir):
    _, audit_file = temp_audit_dir
    audit.log_directory_event("delete", "victim", operator="test")

    event = json.loads(audit_file.read_text())
    event["target"] = "someone-else"
    audit_file.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_verify_without_log_file(temp_audit_dir):
    assert audit.verify_audit_log() == (0, 0)


def test_log_event_without_signing_key(temp_audit_dir, monkeypatch):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")
    _, audit_file = temp_audit_dir

    audit.log_directory_event("invite", "x@example.com")

    event = json.loads(audit_file.read_text())
    assert "signature" not in event


def test_signing_key_read_from_file(temp_audit_dir, monkeypatch, tmp_path):
    key_file = tmp_path / "signing-key"
    key_file.write_text("file-key\n")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY_FILE", str(key_file))

    assert audit._get_signing_key() == b"file-key"


def test_log_failed_operation(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_directory_event(
        "invite",
        "dup@example.com",
        details={"error": "User exists with same username"},
        success=False,
    )

    event = json.loads(audit_file.read_text())
    assert event["success"] is False
    assert event["details"]["error"] == "User exists with same username"


def test_safe_log_reports_failure_instead_of_raising(temp_audit_dir, mocker):
    mocker.patch.object(audit, "log_directory_event", side_effect=OSError("disk full"))
    assert audit.safe_log_directory_event("delete", "user-1") is False


def test_safe_log_success(temp_audit_dir):
    assert audit.safe_log_directory_event("delete", "user-1") is True


def test_audit_directory_permissions(temp_audit_dir):
    audit_dir, _ = temp_audit_dir
    audit.log_directory_event("invite", "x@example.com")
    assert audit_dir.stat().st_mode & 0o777 == 0o700
