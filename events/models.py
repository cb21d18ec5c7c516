"""
events/models.py -- Events emitted to downstream consumers.

Wire format (JSON, one message per event):

    {"eventType": "UserLoggedIn", "data": {"username": "alice"}}

Events are built per successful login, serialized, handed to the publisher,
and discarded. No delivery receipt is kept.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

USER_LOGGED_IN = "UserLoggedIn"


@dataclass(frozen=True)
class LoginEvent:
    username: str
    event_type: str = USER_LOGGED_IN

    def to_dict(self) -> dict:
        return {"eventType": self.event_type, "data": {"username": self.username}}

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")
