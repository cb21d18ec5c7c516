"""
auth/store.py -- DynamoDB-backed credential store.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_item_to_user is the mapper. The service never touches DynamoDB directly.

Client choice:
  The low-level boto3 client is used rather than the Table resource. Clients
  are thread-safe; resources are not. lookup() runs get_user() in a worker
  thread, so one shared client serves every concurrent request.

Credentials:
  from_secrets() builds the client from the bootstrapped SecretBundle only.
  No access key is ever read from local configuration.

Outcomes:
  Found(UserRecord) | NotFound | StoreError(cause). No retries here -- botocore
  applies its own transport retry policy before an error reaches us.

Layer rule: no imports from api/ or events/. core.bootstrap is imported for
the SecretBundle type only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import boto3
from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import BotoCoreError, ClientError

from auth.models import Found, LookupResult, NotFound, StoreError, UserRecord

if TYPE_CHECKING:
    from core.bootstrap import SecretBundle

logger = logging.getLogger("loginservice.store")

_deserializer = TypeDeserializer()


def _item_to_user(item: dict[str, Any], hash_attribute: str) -> UserRecord:
    """Map a raw DynamoDB item ({"S": ...} typed values) to a UserRecord."""
    plain = {key: _deserializer.deserialize(value) for key, value in item.items()}
    password_hash = plain.get(hash_attribute)
    if not isinstance(password_hash, str) or not password_hash:
        password_hash = None
    return UserRecord(username=str(plain["username"]), password_hash=password_hash)


class CredentialStore:
    """Read-only repository of UserRecords keyed by username.

    Usage:
        store = CredentialStore.from_secrets(bundle, region="us-east-2", table_name="UsersList_gr8")
        result = store.get_user("alice")          # blocking
        result = await store.lookup("alice")      # off the event loop
    """

    def __init__(self, client: Any, table_name: str, hash_attribute: str = "password") -> None:
        self._client = client
        self.table_name = table_name
        self.hash_attribute = hash_attribute

    @classmethod
    def from_secrets(
        cls,
        bundle: SecretBundle,
        region: str,
        table_name: str,
        hash_attribute: str = "password",
        client_factory: Callable[..., Any] = boto3.client,
    ) -> CredentialStore:
        """Configure the DynamoDB client from the bootstrapped secrets."""
        client = client_factory(
            "dynamodb",
            region_name=region,
            aws_access_key_id=bundle.access_key_id,
            aws_secret_access_key=bundle.secret_access_key,
            aws_session_token=bundle.session_token,
        )
        logger.info("Credential store configured (table=%s, region=%s)", table_name, region)
        return cls(client, table_name, hash_attribute)

    def get_user(self, username: str) -> LookupResult:
        """Fetch one user by primary key. Never raises for store failures."""
        try:
            response = self._client.get_item(
                TableName=self.table_name,
                Key={"username": {"S": username}},
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Error fetching user from %s: %s", self.table_name, e)
            return StoreError(cause=e)

        item = response.get("Item")
        if not item:
            return NotFound(username=username)
        try:
            user = _item_to_user(item, self.hash_attribute)
        except (KeyError, TypeError) as e:
            logger.error("Malformed user item in %s: %s", self.table_name, e)
            return StoreError(cause=e)
        if user.password_hash is None:
            logger.warning("User item has no '%s' attribute; login will be rejected", self.hash_attribute)
        return Found(user=user)

    async def lookup(self, username: str) -> LookupResult:
        """Awaitable get_user(): the blocking call runs in a worker thread."""
        return await asyncio.to_thread(self.get_user, username)
