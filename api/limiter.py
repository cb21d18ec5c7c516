"""
api/limiter.py -- slowapi rate limiter factory.

create_app() builds one Limiter per app. The same instance is attached to
app.state (SlowAPIMiddleware looks it up there) and handed to the login router
builder, which applies the app's own LOGIN_RATE_LIMIT to POST /login.

One limiter per app means one in-memory counter store per app: two apps in one
process never share counts, and an app's limit comes from the Settings it was
built with rather than from the environment.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address


def create_limiter() -> Limiter:
    """Return a Limiter keyed by client IP with in-memory counters."""
    return Limiter(key_func=get_remote_address, storage_uri="memory://")
