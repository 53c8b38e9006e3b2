"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores build
Account/Role; the verifier, issuer and provisioner pass them around.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from auth.errors import Unauthorized


@dataclass
class Role:
    """A named authorization grant ("user", "admin"). Reference data -- read, never created by the core."""

    name: str
    id: int | None = None


@dataclass
class Account:
    """A registered principal.

    password_hash is a bcrypt string ($2b$<cost>$<salt><digest>). Salt and
    cost travel inside it, so verification needs nothing else from the store.
    The plaintext password is never assigned to any field.

    id is None until the store inserts the record.
    """

    username: str
    email: str
    password_hash: str
    id: int | None = None
    is_active: bool = True
    roles: list[Role] = field(default_factory=list)

    def role_names(self) -> frozenset[str]:
        return frozenset(role.name for role in self.roles)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of CredentialVerifier.verify().

    Exactly one side is populated: account + roles on success, failure
    otherwise.
    """

    account: Account | None = None
    roles: frozenset[str] = frozenset()
    failure: Unauthorized | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, account: Account, roles: frozenset[str]) -> VerificationResult:
        return cls(account=account, roles=roles)

    @classmethod
    def failed(cls, failure: Unauthorized) -> VerificationResult:
        return cls(failure=failure)

    def unwrap(self) -> tuple[Account, frozenset[str]]:
        """Return (account, roles) or raise the stored failure."""
        if self.failure is not None:
            raise self.failure
        assert self.account is not None
        return self.account, self.roles


@dataclass(frozen=True)
class IssuedToken:
    """A signed access token plus the claim values callers echo back.

    Timestamps are epoch seconds. Not persisted anywhere.
    """

    access_token: str
    issuer: str
    subject: str
    issued_at: int
    expires_at: int
    roles: frozenset[str]
    account_id: int | None
