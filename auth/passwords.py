"""
auth/passwords.py -- Password hashing and verification.

Security design decisions:
  bcrypt is used directly (no passlib wrapper). Its cost factor makes
  brute-force expensive, the salt is embedded in the hash, and checkpw()
  compares in constant time -- never compare hashes with ==.

  _DUMMY_HASH enables timing equalization in the login flow: an unknown
  username still pays for one bcrypt verification, so response time does not
  reveal whether the account exists.

  verify_password() is CPU-bound. The async flow calls verify_password_async(),
  which runs it in a worker thread so the event loop keeps serving requests.

Layer rule: no imports from api/, core/, or events/.
"""

from __future__ import annotations

import asyncio
import logging

import bcrypt

logger = logging.getLogger("loginservice.passwords")


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes. The API layer caps passwords at 255
    characters; hashes for provisioning should come from short passphrases.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash is a failed verification, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


async def verify_password_async(plain: str, hashed: str) -> bool:
    return await asyncio.to_thread(verify_password, plain, hashed)


# Computed once at import so the first unknown-user login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("loginservice_timing_dummy")


async def burn_verification(plain: str) -> None:
    """Run one verification against the dummy hash and discard the result."""
    await verify_password_async(plain, _DUMMY_HASH)
