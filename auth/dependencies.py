"""
auth/dependencies.py -- FastAPI Depends() helpers for the login flow.

The service and its collaborators are built once in the lifespan and stored on
app.state. Routes receive them through these dependencies instead of reaching
for module globals, so a route can only run against fully initialized objects.

Layer rule: no imports from api/. This module may import from fastapi (for
Request/HTTPException) because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.service import AuthenticationService
from events.publisher import QueuePublisher


def get_auth_service(request: Request) -> AuthenticationService:
    """Return the AuthenticationService built at startup.

    Raises HTTP 503 if the lifespan never got that far. The ASGI server does
    not accept connections before startup completes, so this only fires when
    the app is mounted without its lifespan.
    """
    service: AuthenticationService | None = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service is not initialized.")
    return service


def get_publisher(request: Request) -> QueuePublisher | None:
    """Return the startup publisher, or None outside a running lifespan."""
    return getattr(request.app.state, "publisher", None)
