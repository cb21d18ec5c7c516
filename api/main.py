"""
api/main.py -- FastAPI application entry point for the login service.

Run with:  python main.py serve
           uvicorn asgi:app

Startup sequence (lifespan), strictly in order:
  1. Secret bootstrap  -- invoke the secret Lambda, unwrap the bundle.
                          Failure is fatal: the lifespan raises, so the ASGI
                          server exits before it ever binds its listener and
                          the broker is never contacted.
  2. Credential store  -- DynamoDB client configured from the bundle.
  3. Queue publisher   -- broker connection, channel, durable queue, with
                          retry/backoff. Failure is fatal when QUEUE_REQUIRED
                          is set; otherwise the service starts degraded and
                          login events are dropped (and /health says so).
  4. Auth service      -- built from 2 and 3, stored on app.state.

Only after all four does the lifespan yield and the server accept requests.
Shutdown closes the broker connection.

Middleware stack (outermost to innermost; Starlette wraps the last-added
outermost):
  1. log_requests       -- one log line per request with latency
  2. SlowAPIMiddleware  -- finds the per-app Limiter on app.state
  3. CORSMiddleware     -- browser origins from CORS_ORIGINS
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import aio_pika
import boto3
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import create_limiter
from api.models import ErrorResponse, HealthResponse, LoginResponse
from api.routes.login import INVALID_CREDENTIALS_MESSAGE, build_router
from auth.dependencies import get_publisher
from auth.service import AuthenticationService
from auth.store import CredentialStore
from core.bootstrap import SecretBootstrapper, SecretFetchError
from core.config import Settings, get_settings
from events.publisher import QueueConnectError, QueuePublisher

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("loginservice.api")


# ---------------------------------------------------------------------------
# Lifespan -- ordered startup / symmetric shutdown
# ---------------------------------------------------------------------------


def build_lifespan(
    settings: Settings,
    lambda_client: Any = None,
    dynamodb_client_factory: Callable[..., Any] = boto3.client,
    amqp_connect: Callable[..., Awaitable[Any]] = aio_pika.connect,
):
    """Return the lifespan context manager for an app built with `settings`.

    The three keyword arguments are the AWS and AMQP boundaries. Production
    leaves them at their defaults; tests pass fakes so the real startup order
    runs without network access.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Login service starting up")

        # 1. Secrets -- nothing else may start before this succeeds.
        bootstrapper = SecretBootstrapper(
            region=settings.aws_region,
            function_name=settings.secrets_function_name,
            lambda_client=lambda_client,
        )
        try:
            bundle = await asyncio.to_thread(bootstrapper.fetch_secrets)
        except SecretFetchError as e:
            logger.error("Error starting service: %s", e)
            raise

        # 2. Credential store
        store = CredentialStore.from_secrets(
            bundle,
            region=settings.aws_region,
            table_name=settings.users_table_name,
            hash_attribute=settings.users_hash_attribute,
            client_factory=dynamodb_client_factory,
        )

        # 3. Broker
        publisher = QueuePublisher(
            url=settings.amqp_url,
            queue_name=settings.event_queue_name,
            connect_timeout=settings.queue_connect_timeout_seconds,
            connect_fn=amqp_connect,
        )
        try:
            await publisher.connect_with_retry(
                attempts=settings.queue_connect_attempts,
                backoff=settings.queue_connect_backoff_seconds,
            )
        except QueueConnectError as e:
            if settings.queue_required:
                logger.error("Error connecting to broker: %s (%s)", e, e.cause)
                raise
            logger.error(
                "Error connecting to broker: %s (%s) -- starting in degraded mode, login events will be dropped",
                e,
                e.cause,
            )

        # 4. Request-handling service
        app.state.credential_store = store
        app.state.publisher = publisher
        app.state.auth_service = AuthenticationService(store, publisher)
        logger.info("Login service ready (queue=%s)", "ok" if publisher.ready else "degraded")

        yield

        await publisher.close()
        logger.info("Login service shutdown complete")

    return lifespan


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    lambda_client: Any = None,
    dynamodb_client_factory: Callable[..., Any] = boto3.client,
    amqp_connect: Callable[..., Awaitable[Any]] = aio_pika.connect,
) -> FastAPI:
    """Build a fully wired FastAPI app. Collaborators are created in its lifespan."""
    if settings is None:
        settings = get_settings()
    logging.getLogger("loginservice").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="Login Service API",
        description="Verifies username/password credentials and emits login events.",
        version=settings.version,
        lifespan=build_lifespan(settings, lambda_client, dynamodb_client_factory, amqp_connect),
        docs_url="/api-docs",
        redoc_url=None,
    )
    app.state.settings = settings

    # -----------------------------------------------------------------------
    # Middleware stack -- innermost first.
    # -----------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(SlowAPIMiddleware)
    # SlowAPI looks for app.state.limiter by convention.
    limiter = create_limiter()
    app.state.limiter = limiter

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    app.include_router(build_router(limiter, settings.login_rate_limit), tags=["Login"])

    @app.get("/", response_class=PlainTextResponse, tags=["Health"])
    async def root() -> str:
        """Liveness probe."""
        return "Login Service Running"

    @app.get("/health", tags=["Health"])
    async def health(request: Request) -> HealthResponse:
        """Report readiness of the credential store and the event queue."""
        publisher = get_publisher(request)
        queue_ok = publisher is not None and publisher.ready
        store_ok = getattr(request.app.state, "credential_store", None) is not None
        return HealthResponse(
            status="ok" if queue_ok and store_ok else "degraded",
            version=settings.version,
            components={
                "credential_store": "ok" if store_ok else "unavailable",
                "queue": "ok" if queue_ok else "unavailable",
            },
        )

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Reject malformed login bodies before any store access.

        On POST /login a missing or non-string field gets the same 401 body as
        a wrong password. Any other route gets a plain 422 ErrorResponse.
        """
        logger.info("Rejected malformed request on %s: %s", request.url.path, exc.errors())
        if request.url.path != "/login":
            return JSONResponse(
                status_code=422,
                content=ErrorResponse(message="Invalid request.", detail=str(exc.errors())).model_dump(),
            )
        resp = JSONResponse(
            status_code=401,
            content=LoginResponse(success=False, message=INVALID_CREDENTIALS_MESSAGE).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with Retry-After when a client exceeds the login rate limit."""
        retry_after = int(getattr(exc, "retry_after", 60))
        response = JSONResponse(
            status_code=429,
            content=ErrorResponse(message="Too many requests.", detail=str(exc.detail)).model_dump(),
        )
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(message=str(exc.detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected server errors.

        The traceback goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(message="An unexpected error occurred.").model_dump(),
        )

    return app
