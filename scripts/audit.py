"""Signed audit trail for directory mutations (invite, role change, delete).

Events are appended as JSON lines to ``$AUDIT_LOG_DIR/directory-events.jsonl``.
When ``AUDIT_LOG_SIGNING_KEY`` (or ``AUDIT_LOG_SIGNING_KEY_FILE``) is set,
each event carries an HMAC-SHA256 signature over its canonical JSON form;
``python -m scripts.audit`` verifies the whole file.
"""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Literal

logger = logging.getLogger(__name__)

AUDIT_LOG_DIR = Path(os.environ.get("AUDIT_LOG_DIR", ".runtime/audit"))
AUDIT_LOG_FILE = AUDIT_LOG_DIR / "directory-events.jsonl"

EventType = Literal["invite", "role_change", "delete"]


def _get_signing_key() -> bytes:
    """Signing key from the key file when configured, else from the environment."""
    key_file = os.environ.get("AUDIT_LOG_SIGNING_KEY_FILE")
    if key_file:
        try:
            return Path(key_file).read_text(encoding="utf-8").strip().encode("utf-8")
        except OSError as exc:
            logger.warning("[audit] Cannot read signing key file %s: %s", key_file, exc)
    return os.environ.get("AUDIT_LOG_SIGNING_KEY", "").strip().encode("utf-8")


def _sign_event(event: dict[str, Any]) -> str:
    """HMAC-SHA256 over the canonical JSON form; empty when no key is configured."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def _append(event: dict[str, Any]) -> None:
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")
    AUDIT_LOG_FILE.chmod(0o600)


def log_directory_event(
    event_type: EventType,
    target: str,
    *,
    operator: str = "system",
    realm: str = "demo",
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append one directory event to the audit trail.

    Args:
        event_type: Directory operation
        target: Email or id of the affected user
        operator: Console user email, or "cli"
        realm: Keycloak realm of the directory
        details: Extra context (role, error message, status)
        success: Whether the operation succeeded
    """
    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "realm": realm,
        "target": target,
        "operator": operator,
        "success": success,
        "details": details or {},
    }
    signature = _sign_event(event)
    if signature:
        event["signature"] = signature
    _append(event)


def safe_log_directory_event(event_type: EventType, target: str, **kwargs: Any) -> bool:
    """Like log_directory_event, but a failure is logged and reported as False.

    A completed mutation must not turn into an error because its audit
    entry could not be written.
    """
    try:
        log_directory_event(event_type, target, **kwargs)
    except Exception as exc:
        logger.warning("[audit] Failed to log %s event for %s: %s", event_type, target, exc)
        return False
    return True


def _iter_events() -> Iterator[str]:
    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if line.strip():
                yield line


def verify_audit_log() -> tuple[int, int]:
    """Count events and valid signatures.

    Returns:
        (total_events, valid_signatures)
    """
    if not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = valid = 0
    for line in _iter_events():
        total += 1
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        stored = event.pop("signature", "")
        if stored and hmac.compare_digest(stored, _sign_event(event)):
            valid += 1
    return total, valid


if __name__ == "__main__":
    import sys
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
