"""
tests/conftest.py -- Shared fakes and fixtures for login service tests.

This module provides:
  - FakeLambdaClient:   stands in for boto3's Lambda client (invoke only)
  - FakeDynamoClient:   stands in for boto3's DynamoDB client (get_item only)
  - FakeBroker:         stands in for aio_pika.connect and records published messages
  - secret_payload():   builds the three-layer secret function response
  - make_client:        factory fixture yielding a TestClient over the REAL
                        lifespan, wired to the fakes above

Design: the fakes sit exactly at the AWS and AMQP boundaries, so every test
that goes through make_client exercises the real startup order, the real
store/publisher/service code and the real route handlers.
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.passwords import hash_password
from core.config import Settings

VALID_SECRETS = {
    "AWS_ACCESS_KEY_ID": "AKIATESTKEY",
    "AWS_SECRET_ACCESS_KEY": "test-secret-key",
}


# ---------------------------------------------------------------------------
# Secret function fakes
# ---------------------------------------------------------------------------


def secret_payload(secrets: dict | None = None, **outer: Any) -> bytes:
    """Build a Lambda Payload with secrets nested as string-in-string JSON."""
    body = json.dumps({"secret": json.dumps(VALID_SECRETS if secrets is None else secrets)})
    return json.dumps({"statusCode": 200, "body": body, **outer}).encode()


class FakeLambdaClient:
    """Returns a canned invoke() response, or raises a canned error."""

    def __init__(self, payload: bytes | None = None, error: Exception | None = None, function_error: str = "") -> None:
        self.payload = secret_payload() if payload is None else payload
        self.error = error
        self.function_error = function_error
        self.calls: list[dict] = []

    def invoke(self, **kwargs: Any) -> dict:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        response = {"StatusCode": 200, "Payload": io.BytesIO(self.payload)}
        if self.function_error:
            response["FunctionError"] = self.function_error
        return response


# ---------------------------------------------------------------------------
# DynamoDB fakes
# ---------------------------------------------------------------------------


class FakeDynamoClient:
    """In-memory users table speaking DynamoDB's typed-attribute wire format."""

    def __init__(self, users: dict[str, str | None] | None = None, error: Exception | None = None) -> None:
        self.users = users or {}
        self.error = error
        self.calls: list[dict] = []

    def get_item(self, **kwargs: Any) -> dict:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        username = kwargs["Key"]["username"]["S"]
        if username not in self.users:
            return {}
        item: dict = {"username": {"S": username}}
        password_hash = self.users[username]
        if password_hash is not None:
            item["password"] = {"S": password_hash}
        return {"Item": item}


class FakeDynamoFactory:
    """Replaces boto3.client; records the credentials it was built with."""

    def __init__(self, client: FakeDynamoClient) -> None:
        self.client = client
        self.calls: list[tuple[tuple, dict]] = []

    def __call__(self, *args: Any, **kwargs: Any) -> FakeDynamoClient:
        self.calls.append((args, kwargs))
        return self.client


# ---------------------------------------------------------------------------
# Broker fakes
# ---------------------------------------------------------------------------


class FakeExchange:
    def __init__(self, broker: FakeBroker) -> None:
        self.broker = broker

    async def publish(self, message: Any, routing_key: str) -> None:
        if self.broker.publish_error is not None:
            raise self.broker.publish_error
        self.broker.published.append((routing_key, message))


class FakeChannel:
    def __init__(self, broker: FakeBroker, publisher_confirms: bool) -> None:
        self.broker = broker
        self.publisher_confirms = publisher_confirms
        self.is_closed = False
        self.default_exchange = FakeExchange(broker)

    async def declare_queue(self, name: str, durable: bool = False) -> dict:
        if self.broker.declare_error is not None:
            raise self.broker.declare_error
        self.broker.declared.append((name, durable))
        return {"name": name, "durable": durable}


class FakeConnection:
    def __init__(self, broker: FakeBroker) -> None:
        self.broker = broker
        self.closed = False

    async def channel(self, publisher_confirms: bool = True) -> FakeChannel:
        channel = FakeChannel(self.broker, publisher_confirms)
        self.broker.channels.append(channel)
        return channel

    async def close(self) -> None:
        self.closed = True


class FakeBroker:
    """Replaces aio_pika.connect. The first `failures` connects are refused."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.connect_calls: list[tuple[str, dict]] = []
        self.connections: list[FakeConnection] = []
        self.channels: list[FakeChannel] = []
        self.declared: list[tuple[str, bool]] = []
        self.published: list[tuple[str, Any]] = []
        self.publish_error: Exception | None = None
        self.declare_error: Exception | None = None

    async def __call__(self, url: str, **kwargs: Any) -> FakeConnection:
        self.connect_calls.append((url, kwargs))
        if len(self.connect_calls) <= self.failures:
            raise ConnectionRefusedError(111, "Connection refused")
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    @property
    def events(self) -> list[dict]:
        """Decoded JSON bodies of every published message, in order."""
        return [json.loads(message.body) for _key, message in self.published]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def alice_hash() -> str:
    """bcrypt hash of "secret123" -- computed once, bcrypt is slow on purpose."""
    return hash_password("secret123")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        queue_connect_attempts=2,
        queue_connect_backoff_seconds=0,
        login_rate_limit="10000/minute",
    )


@pytest.fixture
def make_client(settings: Settings, alice_hash: str) -> Generator[Callable[..., Any], None, None]:
    """Yield a factory: make_client(**overrides) -> (client, lambda, dynamo, broker).

    Overrides: lambda_client, dynamo, broker, settings. The TestClient is
    entered (lifespan started) before it is returned and exited at teardown.
    """
    clients: list[TestClient] = []

    def _make(
        lambda_client: FakeLambdaClient | None = None,
        dynamo: FakeDynamoClient | None = None,
        broker: FakeBroker | None = None,
        app_settings: Settings | None = None,
    ) -> tuple[TestClient, FakeLambdaClient, FakeDynamoFactory, FakeBroker]:
        lambda_client = lambda_client or FakeLambdaClient()
        factory = FakeDynamoFactory(dynamo or FakeDynamoClient({"alice": alice_hash}))
        broker = broker or FakeBroker()
        app = create_app(
            app_settings or settings,
            lambda_client=lambda_client,
            dynamodb_client_factory=factory,
            amqp_connect=broker,
        )
        client = TestClient(app, raise_server_exceptions=True)
        client.__enter__()
        clients.append(client)
        return client, lambda_client, factory, broker

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
