"""
core/bootstrap.py -- One-shot secret resolution at process startup.

The deployment secrets live behind an AWS Lambda function. Its response is
three layers of JSON, each a string inside the previous one:

    Payload (stream)  -> InvocationPayload   {errorMessage?, statusCode?, body}
    body    (string)  -> SecretResponseBody  {secret}
    secret  (string)  -> SecretBundle        {AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, ...}

Each layer has its own model and its own failure branch so the log line says
exactly which layer was malformed. Every failure surfaces as SecretFetchError
with the original exception chained as __cause__ and kept on .cause.

fetch_secrets() is blocking (boto3). The lifespan runs it in a worker thread.
It must run exactly once, before the credential store or the broker are
touched; a failure is fatal to startup.

Layer rule: no imports from api/, auth/, or events/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from types import MappingProxyType
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger("loginservice.bootstrap")

REQUIRED_SECRET_KEYS = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")

_FLAT_SECRETS = TypeAdapter(dict[str, str])


class SecretFetchError(Exception):
    """The secret bundle could not be resolved. Fatal to startup."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


# ---------------------------------------------------------------------------
# Response layers
# ---------------------------------------------------------------------------


class InvocationPayload(BaseModel):
    """Outer layer: the Lambda function's return value, decoded from Payload."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    error_message: str | None = Field(default=None, alias="errorMessage")
    status_code: int | None = Field(default=None, alias="statusCode")
    body: str | None = None


class SecretResponseBody(BaseModel):
    """Middle layer: the JSON document carried in InvocationPayload.body."""

    model_config = ConfigDict(extra="ignore")

    secret: str


class SecretBundle(Mapping[str, str]):
    """Inner layer: the flat, read-only set of named deployment secrets.

    Behaves as an immutable mapping. repr() lists key names only so a stray
    log statement cannot leak values.
    """

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"SecretBundle(keys={sorted(self._values)})"

    @property
    def access_key_id(self) -> str:
        return self._values["AWS_ACCESS_KEY_ID"]

    @property
    def secret_access_key(self) -> str:
        return self._values["AWS_SECRET_ACCESS_KEY"]

    @property
    def session_token(self) -> str | None:
        return self._values.get("AWS_SESSION_TOKEN") or None


# ---------------------------------------------------------------------------
# Unwrapping -- one function per layer
# ---------------------------------------------------------------------------


def parse_invocation_payload(raw: bytes | str) -> InvocationPayload:
    """Decode the Lambda Payload and reject function-level errors."""
    try:
        payload = InvocationPayload.model_validate_json(raw)
    except ValidationError as e:
        raise SecretFetchError("Secret function returned a malformed payload", cause=e) from e
    if payload.error_message:
        raise SecretFetchError(f"Secret function reported an error: {payload.error_message}")
    if payload.status_code is not None and payload.status_code >= 400:
        raise SecretFetchError(f"Secret function returned status {payload.status_code}")
    if payload.body is None:
        raise SecretFetchError("Secret function payload has no body")
    return payload


def parse_response_body(body: str) -> SecretResponseBody:
    """Decode the body string into its {secret} document."""
    try:
        return SecretResponseBody.model_validate_json(body)
    except ValidationError as e:
        raise SecretFetchError("Secret function body is not a valid secret document", cause=e) from e


def parse_secret_bundle(secret: str) -> SecretBundle:
    """Decode the secret string into a flat SecretBundle and check required keys."""
    try:
        values = _FLAT_SECRETS.validate_json(secret)
    except ValidationError as e:
        raise SecretFetchError("Secret value is not a flat JSON object of strings", cause=e) from e
    missing = [key for key in REQUIRED_SECRET_KEYS if not values.get(key)]
    if missing:
        raise SecretFetchError(f"Secret bundle is missing required keys: {', '.join(missing)}")
    return SecretBundle(values)


# ---------------------------------------------------------------------------
# Bootstrapper
# ---------------------------------------------------------------------------


class SecretBootstrapper:
    """Invokes the secret-resolution function and returns the unwrapped bundle.

    Usage:
        bundle = SecretBootstrapper(region="us-east-2", function_name="fetchSecrets").fetch_secrets()
        bundle.access_key_id

    lambda_client is injectable for tests; by default a boto3 Lambda client is
    created on the ambient credential chain.
    """

    def __init__(self, region: str, function_name: str, lambda_client: Any = None) -> None:
        self.region = region
        self.function_name = function_name
        self._client = lambda_client

    def _lambda(self) -> Any:
        if self._client is None:
            self._client = boto3.client("lambda", region_name=self.region)
        return self._client

    def _invoke(self) -> bytes:
        try:
            response = self._lambda().invoke(FunctionName=self.function_name)
            # The payload is a stream; reading it can still time out or break.
            raw = response["Payload"].read()
        except (BotoCoreError, ClientError, KeyError) as e:
            raise SecretFetchError(f"Could not invoke secret function {self.function_name}", cause=e) from e
        if response.get("FunctionError"):
            # Unhandled errors still carry errorMessage in the Payload; that text wins.
            parse_invocation_payload(raw)
            raise SecretFetchError(f"Secret function failed: {response['FunctionError']}")
        return raw

    def fetch_secrets(self) -> SecretBundle:
        """Resolve the secret bundle. Raises SecretFetchError on any failure."""
        logger.info("Resolving secrets via %s (%s)", self.function_name, self.region)
        try:
            payload = parse_invocation_payload(self._invoke())
            body = parse_response_body(payload.body)
            bundle = parse_secret_bundle(body.secret)
        except SecretFetchError as e:
            logger.error("Secret bootstrap failed: %s", e)
            raise
        logger.info("Secrets resolved (%d keys: %s)", len(bundle), ", ".join(sorted(bundle)))
        return bundle
