"""
API request and response models for the login service.

These Pydantic v2 models define the HTTP transport contract. They are kept
separate from the dataclasses in auth/models.py, which own the internal
domain representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /login.

    Both fields must be non-empty strings. Pydantic v2 does not coerce numbers
    to str, so {"username": 42} is rejected along with missing fields -- all
    before the credential store is touched. The 255 cap keeps passwords well
    clear of anything that would make bcrypt work on oversized input.
    """

    model_config = ConfigDict(extra="ignore")

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Body for 200 and 401 responses from POST /login."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str


class StoreErrorResponse(BaseModel):
    """Body for 500 responses when the credential store lookup fails."""

    model_config = ConfigDict(frozen=True)

    message: str = "Error fetching user"
    error: str


class ErrorResponse(BaseModel):
    """Uniform body for framework-level errors (404, 429, unexpected 500)."""

    model_config = ConfigDict(frozen=True)

    message: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Response for GET /health.

    status is "degraded" when the broker never connected: logins still work
    but login events are being dropped.
    """

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
