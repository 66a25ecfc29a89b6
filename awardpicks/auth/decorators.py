"""Decorators for authenticated API routes."""

from functools import wraps

from flask import g, request

from .identity import verify_bearer_token


def token_required(f):
    """Verify the request's Firebase ID token before running the view.

    The verified user id and raw token are stored on ``g`` as ``user_id``
    and ``id_token``.

    Usage:
    @token_required
    def protected_view():
        ...
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        decoded_token = verify_bearer_token(request.headers.get("Authorization"))
        g.user_id = decoded_token["uid"]
        g.id_token = decoded_token["id_token"]
        return f(*args, **kwargs)

    return decorated_function
