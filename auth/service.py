"""
auth/service.py -- The per-request login flow.

    lookup -> verify -> publish -> outcome

Steps run strictly in that order within one request; concurrent requests
interleave at each await. The service holds no per-request state.

Information disclosure:
  An unknown username and a wrong password both produce INVALID_CREDENTIALS,
  and both pay for one bcrypt verification (against a dummy hash for the
  unknown user), so neither the status nor the timing tells them apart.

Publishing:
  Only after a successful verification. publish() returns a bool that is
  recorded on the outcome and otherwise ignored -- an event that cannot be
  delivered never downgrades a successful login.
"""

from __future__ import annotations

import logging

from auth.models import Found, LoginOutcome, LoginStatus, StoreError
from auth.passwords import burn_verification, verify_password_async
from auth.store import CredentialStore
from events.models import LoginEvent
from events.publisher import QueuePublisher

logger = logging.getLogger("loginservice.auth")


class AuthenticationService:
    """Orchestrates one login. Built once at startup with its collaborators."""

    def __init__(self, store: CredentialStore, publisher: QueuePublisher) -> None:
        self.store = store
        self.publisher = publisher

    async def login(self, username: str, password: str) -> LoginOutcome:
        result = await self.store.lookup(username)

        if isinstance(result, StoreError):
            return LoginOutcome(LoginStatus.STORE_ERROR, username, error=result.message)

        user = result.user if isinstance(result, Found) else None
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt.
            await burn_verification(password)
            logger.info("Login rejected for %r", username)
            return LoginOutcome(LoginStatus.INVALID_CREDENTIALS, username)

        if not await verify_password_async(password, user.password_hash):
            logger.info("Login rejected for %r", username)
            return LoginOutcome(LoginStatus.INVALID_CREDENTIALS, username)

        published = await self.publisher.publish(LoginEvent(username=user.username))
        logger.info("Login succeeded for %r (event published=%s)", user.username, published)
        return LoginOutcome(LoginStatus.SUCCESS, user.username, event_published=published)
