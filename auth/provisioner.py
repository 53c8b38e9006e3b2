"""
auth/provisioner.py -- Account Provisioner: registration of new local accounts.

Flow:
  1. Advisory existence check (cheap early 409 for the common case).
  2. bcrypt hash with a fresh salt at the configured work factor.
  3. Attach the default role if it has been seeded. A missing default role is
     logged and the account is created without roles.
  4. Single-transaction insert. The store's UNIQUE(username) decides races:
     StoreConflict from the insert is reported as UsernameTaken.

The plaintext password goes into hash_password() and nowhere else.
"""

from __future__ import annotations

import logging

from auth.errors import StoreConflict, UsernameTaken
from auth.hashing import DEFAULT_ROUNDS, hash_password
from auth.models import Account
from auth.store import AccountStore

logger = logging.getLogger("matricula.auth.provisioner")

DEFAULT_ROLE = "user"


class AccountProvisioner:
    def __init__(
        self,
        store: AccountStore,
        rounds: int = DEFAULT_ROUNDS,
        default_role: str = DEFAULT_ROLE,
    ) -> None:
        self.store = store
        self.rounds = rounds
        self.default_role = default_role

    def register(self, username: str, password: str, email: str) -> Account:
        """Create and persist a new active account.

        Raises UsernameTaken if the username exists (before or during insert).
        StoreUnavailable from the store propagates unchanged.
        """
        if self.store.find_by_username(username) is not None:
            raise UsernameTaken(username)

        account = Account(
            username=username,
            email=email,
            password_hash=hash_password(password, self.rounds),
            is_active=True,
        )

        role = self.store.find_role_by_name(self.default_role)
        if role is None:
            logger.warning(
                "Default role %r not found; account %r created without roles",
                self.default_role,
                username,
            )
        else:
            account.roles.append(role)

        try:
            created = self.store.insert(account)
        except StoreConflict as exc:
            raise UsernameTaken(username) from exc

        logger.info("Account created: %r (roles=%s)", created.username, sorted(created.role_names()))
        return created
