"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
service do the work; these only own the shape.

LookupResult is a tagged union. The store never raises for an expected
outcome: a missing user is NotFound, a transport failure is StoreError with
the original exception attached. Callers branch with isinstance().

Layer rule: no imports from api/, core/, or events/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class UserRecord:
    """A stored credential. Provisioned externally; this service only reads it.

    password_hash is None when the item exists but carries no usable hash.
    Such a user can never log in.
    """

    username: str
    password_hash: str | None = None


# ---------------------------------------------------------------------------
# Lookup result variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Found:
    user: UserRecord


@dataclass(frozen=True)
class NotFound:
    username: str


@dataclass(frozen=True)
class StoreError:
    cause: BaseException

    @property
    def message(self) -> str:
        return str(self.cause)


LookupResult = Union[Found, NotFound, StoreError]


# ---------------------------------------------------------------------------
# Login outcome
# ---------------------------------------------------------------------------


class LoginStatus(str, Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class LoginOutcome:
    """Result of one login attempt, mapped to HTTP by the route layer.

    event_published records whether the login event reached the channel.
    It never changes the status.
    """

    status: LoginStatus
    username: str
    error: str | None = None
    event_published: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status is LoginStatus.SUCCESS
