# Overview: Request decorators for admin API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an identified admin actor for the request.

    Authentication itself is handled upstream (reverse proxy / admin portal);
    this only establishes who is acting so lifecycle changes and archive
    records can be attributed.

    Sets g.actor to the stripped X-Actor-Id header value.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor:
            return jsonify({"error": "Actor identification required", "code": "UNAUTHENTICATED"}), 401
        if len(actor) > 128:
            return jsonify({"error": "Actor id too long", "code": "UNAUTHENTICATED"}), 401

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function
