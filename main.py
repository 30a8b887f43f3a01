#!/usr/bin/env python3
"""
OrgRegistry -- administration command line.

The HTTP API only ever creates USER identities. The first ADMIN, and any
later promotion, goes through this tool, run by someone with access to the
server and its DATABASE_URL.

Usage:
  python main.py create-admin --username admin --email admin@example.com --first-name Ada --last-name Admin
  python main.py promote alice
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

Environment variables (see core/config.py for the full list):
  DATABASE_URL  SQLAlchemy URL. Default: sqlite:///orgregistry.db next to this file.
  SECRET_KEY    Token signing key, at least 32 characters. Required unless DEBUG=true.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.credentials import create_admin, promote
from auth.models import Registration
from auth.store import UserStore
from core.results import Conflict

_MIN_PASSWORD = 6
_MAX_PASSWORD = 100


def _read_password() -> Optional[str]:
    """Prompt twice for a password without echoing it. None on mismatch."""
    password = getpass.getpass("  Password: ")
    if not _MIN_PASSWORD <= len(password) <= _MAX_PASSWORD:
        print(f"  [!] Password must be between {_MIN_PASSWORD} and {_MAX_PASSWORD} characters.")
        return None
    if getpass.getpass("  Repeat password: ") != password:
        print("  [!] Passwords do not match.")
        return None
    return password


def cmd_create_admin(args: argparse.Namespace) -> int:
    password = _read_password()
    if password is None:
        return 1
    store = UserStore(db_url=args.database_url)
    try:
        result = create_admin(
            store,
            Registration(
                username=args.username,
                password=password,
                email=args.email,
                first_name=args.first_name,
                last_name=args.last_name,
            ),
        )
    finally:
        store.close()
    if isinstance(result, Conflict):
        print(f"  [!] {result.message}")
        return 1
    print(f"  Created admin '{result.username}' (id={result.id}).")
    return 0


def cmd_promote(args: argparse.Namespace) -> int:
    store = UserStore(db_url=args.database_url)
    try:
        user = promote(store, args.username)
    finally:
        store.close()
    if user is None:
        print(f"  [!] No user named '{args.username}'.")
        return 1
    print(f"  '{user.username}' now holds: {', '.join(sorted(r.value for r in user.roles))}.")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orgregistry",
        description="OrgRegistry administration: bootstrap admins and run the API server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --username admin --email admin@example.com --first-name Ada --last-name Admin
  python main.py promote alice
  DEBUG=true python main.py serve --reload
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="Override DATABASE_URL for this command",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create an identity holding ADMIN and USER")
    admin.add_argument("--username", required=True)
    admin.add_argument("--email", required=True)
    admin.add_argument("--first-name", required=True)
    admin.add_argument("--last-name", required=True)
    admin.set_defaults(func=cmd_create_admin)

    prom = sub.add_parser("promote", help="Grant ADMIN to an existing identity")
    prom.add_argument("username")
    prom.set_defaults(func=cmd_promote)

    serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
