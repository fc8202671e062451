"""Command-line access to the console's user directory.

Runs the same DirectoryService operations as the admin page, authenticated
with the service account.

Examples:
    python -m scripts.directory_cli init-roles
    python -m scripts.directory_cli invite --email alice@example.com --role technician
    python -m scripts.directory_cli set-role --email alice@example.com --role admin
    python -m scripts.directory_cli delete --email alice@example.com
"""
from __future__ import annotations
import argparse
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from admin_console.core.directory import DirectoryError, DirectoryService
from admin_console.core.keycloak import KeycloakClient
from admin_console.core.models import Role, to_iso


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Admin console directory helper")
    parser.add_argument("--kc-url", default=os.environ.get("KEYCLOAK_URL", "http://localhost:8080"))
    parser.add_argument("--realm", default=os.environ.get("KEYCLOAK_REALM", "demo"))
    parser.add_argument("--auth-realm", default=os.environ.get("KEYCLOAK_SERVICE_REALM"))
    parser.add_argument("--svc-client-id", default=os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "automation-cli"))
    parser.add_argument("--svc-client-secret", default=os.environ.get("KEYCLOAK_SERVICE_CLIENT_SECRET"))
    parser.add_argument("--invite-client-id", default=os.environ.get("OIDC_CLIENT_ID"))
    parser.add_argument("--invite-redirect-uri", default=os.environ.get("INVITE_REDIRECT_URI"))
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("init-roles", help="Create the admin/technician/normal realm roles")
    sub.add_parser("list", help="List users with their console role")

    si = sub.add_parser("invite", help="Create a user and email the invitation")
    si.add_argument("--email", required=True)
    si.add_argument("--role", default=Role.NORMAL.value, choices=[role.value for role in Role])

    sr = sub.add_parser("set-role", help="Change a user's console role")
    sr.add_argument("--email", required=True)
    sr.add_argument("--role", required=True, choices=[role.value for role in Role])

    sd = sub.add_parser("delete", help="Delete a user")
    sd.add_argument("--email", required=True)

    return parser


def build_directory(args) -> DirectoryService:
    if not args.svc_client_secret:
        raise SystemExit("KEYCLOAK_SERVICE_CLIENT_SECRET (or --svc-client-secret) is required")
    client = KeycloakClient(args.kc_url)
    client.configure_service_account(args.auth_realm or args.realm, args.svc_client_id, args.svc_client_secret)
    return DirectoryService(
        client,
        args.realm,
        invite_client_id=args.invite_client_id,
        invite_redirect_uri=args.invite_redirect_uri,
    )


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.cmd:
        parser.print_help()
        return 2

    directory = build_directory(args)

    try:
        if args.cmd == "init-roles":
            created = directory.ensure_console_roles()
            print(f"[init-roles] Created: {', '.join(created) if created else 'none (all present)'}")
        elif args.cmd == "list":
            for user in directory.list_users():
                role = user.role.value if user.role else "-"
                last = to_iso(user.last_sign_in_at) or "never"
                print(f"{user.id}\t{user.email}\t{role}\t{last}")
        elif args.cmd == "invite":
            user_id = directory.invite_user(args.email, args.role, operator=args.operator)
            print(f"[invite] Invitation sent to {args.email} (id={user_id}, role={args.role})")
        elif args.cmd == "set-role":
            user_id = directory.find_user_id(args.email)
            directory.update_role(user_id, args.role, operator=args.operator)
            print(f"[set-role] {args.email} is now {args.role}")
        elif args.cmd == "delete":
            user_id = directory.find_user_id(args.email)
            directory.delete_user(user_id, operator=args.operator)
            print(f"[delete] {args.email} deleted")
    except DirectoryError as exc:
        print(f"[{args.cmd}] Error ({exc.status}): {exc.detail}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
