# Overview: Request decorators for API routes; acting-user attribution.

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import request, jsonify, g


@dataclass(frozen=True)
class Actor:
    """Acting user as supplied by the identity layer. Opaque to the core."""
    id: str
    name: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


def require_actor(f):
    """
    Require an acting user for attribution.

    Authentication happens upstream; this core only reads the identity it
    is handed. Sets g.actor from:
    - X-User-Id (required)
    - X-User-Name (optional)

    Returns 401 if X-User-Id is missing.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = (request.headers.get("X-User-Id") or "").strip()
        if not user_id:
            return jsonify({"error": "Acting user required (X-User-Id header)"}), 401

        name = (request.headers.get("X-User-Name") or "").strip() or None
        g.actor = Actor(id=user_id, name=name)
        return f(*args, **kwargs)

    return decorated_function
