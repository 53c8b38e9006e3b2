"""
auth/hashing.py -- bcrypt password hashing shared by login and registration.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

bcrypt only looks at the first 72 bytes of its input and newer releases raise
on anything longer, so both functions truncate to the same 72-byte prefix.
Hash and verify must agree on that, otherwise long passwords never match.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

from functools import lru_cache

import bcrypt

DEFAULT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the plaintext password.

    A fresh random salt is generated on every call, so hashing the same
    password twice yields two different strings. The salt and work factor
    are encoded in the result.
    """
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw re-derives the digest from the salt and cost stored in
    `hashed` and compares digests in constant time. A malformed hash is a
    mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy hashes, one per work factor.
# The verifier checks against the dummy when the username does not exist.
# It must carry the same cost as the real account hashes, otherwise the
# not-found path is measurably faster or slower than a wrong password.
@lru_cache(maxsize=None)
def dummy_hash(rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a throwaway bcrypt hash at the given cost, computed once per cost."""
    return hash_password("matricula_timing_dummy", rounds=rounds)
