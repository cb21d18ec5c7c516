"""
api/routes/login.py -- Login endpoint.

Routes:
  POST /login   -- verify username/password; publish a login event on success

Responses:
  200 {"success": true,  "message": "Login successful"}
  401 {"success": false, "message": "Invalid username or password"}
  500 {"message": "Error fetching user", "error": "<cause>"}
  401 malformed body, same body as a wrong password (api/main.py handler)
  429 rate limit exceeded

Security:
  Unknown user and wrong password return the same 401 body.
  POST /login is rate-limited per client IP (the app's LOGIN_RATE_LIMIT).
  Cache-Control: no-store on every login response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter

from api.models import LoginRequest, LoginResponse, StoreErrorResponse
from auth.dependencies import get_auth_service
from auth.models import LoginStatus
from auth.service import AuthenticationService

INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"


def build_router(limiter: Limiter, rate_limit: str) -> APIRouter:
    """Return a router serving POST /login, limited to `rate_limit` per client IP.

    @limiter.limit must sit below @router.post so the registered endpoint is
    the limited one.
    """
    router = APIRouter()

    @router.post(
        "/login",
        response_model=LoginResponse,
        responses={401: {"model": LoginResponse}, 500: {"model": StoreErrorResponse}},
    )
    @limiter.limit(rate_limit)
    async def login(
        request: Request,
        body: LoginRequest,
        service: AuthenticationService = Depends(get_auth_service),
    ) -> JSONResponse:
        """Log a user in with username and password."""
        outcome = await service.login(body.username, body.password)

        if outcome.status is LoginStatus.STORE_ERROR:
            resp = JSONResponse(
                status_code=500,
                content=StoreErrorResponse(error=outcome.error or "unknown error").model_dump(),
            )
        elif outcome.status is LoginStatus.INVALID_CREDENTIALS:
            resp = JSONResponse(
                status_code=401,
                content=LoginResponse(success=False, message=INVALID_CREDENTIALS_MESSAGE).model_dump(),
            )
        else:
            resp = JSONResponse(
                status_code=200,
                content=LoginResponse(success=True, message="Login successful").model_dump(),
            )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    return router
