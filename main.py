#!/usr/bin/env python3
"""
Tours backend -- command-line entry point.

Usage:
  python main.py serve
  python main.py serve --port 8000 --reload
  python main.py create-user --name "Ada" --email ada@example.com --role admin
  python main.py create-user --name "Leo" --email leo@example.com --role lead-guide --password 's3cretpass'

Environment variables:
  SECRET_KEY     JWT signing key (>= 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file next to the package.
  PORT           Port for `serve` (default 3000).
  See core/config.py for the full list.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from auth.session import validate_email_address, validate_password
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import ValidationError


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    port = args.port or settings.port
    print(f"  Server listening on {args.host}:{port}")
    uvicorn.run("asgi:app", host=args.host, port=port, reload=args.reload)
    return 0


def _create_user(args: argparse.Namespace) -> int:
    """Insert an identity with any role. Signup over HTTP can only create `user` accounts."""
    settings = get_settings()

    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
    else:
        confirm = password

    try:
        role = Role.parse(args.role)
        email = validate_email_address(args.email)
        validate_password(password, confirm)
    except ValidationError as exc:
        print(f"  [!] {exc.message}")
        return 1

    store = UserStore(settings.database_url)
    try:
        user = User(
            name=args.name.strip(),
            email=email,
            hashed_password=hash_password(password, rounds=settings.bcrypt_rounds),
            role=role,
        )
        try:
            user_id = store.create_user(user)
        except IntegrityError:
            print(f"  [!] A user with email {email} already exists.")
            return 1
    finally:
        store.close()

    print(f"  Created {role.value} '{user.name}' <{email}> (id={user_id})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tours",
        description="Tours booking REST backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT setting, 3000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development)")
    serve.set_defaults(func=_serve)

    create = sub.add_parser("create-user", help="Create an account with a given role")
    create.add_argument("--name", required=True)
    create.add_argument("--email", required=True)
    create.add_argument(
        "--role",
        default=Role.user.value,
        choices=[r.value for r in Role],
        help="Role of the new account (default: user)",
    )
    create.add_argument("--password", default=None, help="Prompted for when omitted")
    create.set_defaults(func=_create_user)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
