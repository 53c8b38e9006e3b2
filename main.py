#!/usr/bin/env python3
"""
matricula-auth admin CLI -- seed reference data and provision accounts.

Usage:
  python main.py create-role user
  python main.py create-role admin
  python main.py register ana ana@x.com
  python main.py grant-role ana admin

Reads the same environment as the API (DATABASE_URL, BCRYPT_ROUNDS,
DEFAULT_ROLE, ...). Passwords are prompted for, never taken from argv, so
they do not end up in shell history or process listings.
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.errors import StoreConflict, StoreUnavailable, UsernameTaken
from auth.provisioner import AccountProvisioner
from auth.store import SqlAccountStore
from core.config import get_settings


def _read_password() -> Optional[str]:
    """Prompt twice for a password. Returns None if empty or the two entries differ."""
    first = getpass.getpass("  Password: ")
    if not first:
        print("  [!] Password must not be empty.")
        return None
    if getpass.getpass("  Repeat password: ") != first:
        print("  [!] Passwords do not match.")
        return None
    return first


def _cmd_create_role(store: SqlAccountStore, args: argparse.Namespace) -> int:
    try:
        role = store.create_role(args.name)
    except StoreConflict:
        print(f"  Role '{args.name}' already exists.")
        return 0
    print(f"  Role '{role.name}' created (id={role.id}).")
    return 0


def _cmd_register(store: SqlAccountStore, args: argparse.Namespace) -> int:
    password = _read_password()
    if password is None:
        return 1
    settings = get_settings()
    provisioner = AccountProvisioner(store, rounds=settings.bcrypt_rounds, default_role=settings.default_role)
    try:
        account = provisioner.register(args.username, password, args.email)
    except UsernameTaken:
        print(f"  [!] Username '{args.username}' already exists.")
        return 1
    roles = ", ".join(sorted(account.role_names())) or "none"
    print(f"  User created: {account.username} (id={account.id}, roles: {roles})")
    return 0


def _cmd_grant_role(store: SqlAccountStore, args: argparse.Namespace) -> int:
    if not store.grant_role(args.username, args.role):
        print(f"  [!] Unknown user '{args.username}' or role '{args.role}'.")
        return 1
    print(f"  Role '{args.role}' granted to '{args.username}'.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="matricula-auth",
        description="Admin tasks for the matricula-auth account store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-role user
  python main.py register ana ana@x.com
  python main.py grant-role ana admin
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_role = sub.add_parser("create-role", help="Seed a role (reference data)")
    p_role.add_argument("name", help="Role name, e.g. user or admin")
    p_role.set_defaults(func=_cmd_create_role)

    p_reg = sub.add_parser("register", help="Create an account with the default role")
    p_reg.add_argument("username")
    p_reg.add_argument("email")
    p_reg.set_defaults(func=_cmd_register)

    p_grant = sub.add_parser("grant-role", help="Attach an existing role to an account")
    p_grant.add_argument("username")
    p_grant.add_argument("role")
    p_grant.set_defaults(func=_cmd_grant_role)

    args = parser.parse_args(argv)

    store = SqlAccountStore(get_settings().database_url)
    try:
        return args.func(store, args)
    except StoreUnavailable as exc:
        print(f"  [!] {exc.message}")
        return 2
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
