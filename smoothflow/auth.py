"""Session tokens and the authorization guard shared by every protected route."""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .errors import AuthError, Forbidden, Unauthenticated
from .extensions import db
from .models import ROLE_ADMIN, User

TOKEN_SALT = "auth-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def build_token(user: User) -> str:
    return _serializer().dumps({"user_id": user.user_id, "role": user.role})


def read_token(token: str | None) -> dict | None:
    """Return the token payload, or None if it is missing, tampered with or expired."""
    if not token:
        return None
    try:
        payload = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except (SignatureExpired, BadSignature):
        return None
    return payload if isinstance(payload, dict) else None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def authorize(token: str | None, required_role: str | None = None) -> User | AuthError:
    """Resolve the caller behind ``token`` and check it against ``required_role``.

    Returns the ``User`` on success. On failure the error is returned, not
    raised: ``Unauthenticated`` when there is no usable session and
    ``Forbidden`` when the user lacks the role. The role is read from the
    database so a demoted admin loses access before the token expires.
    """
    payload = read_token(token)
    if payload is None:
        return Unauthenticated()

    user_id = payload.get("user_id")
    if not isinstance(user_id, int):
        return Unauthenticated()

    user = db.session.get(User, user_id)
    if user is None:
        return Unauthenticated()

    if required_role == ROLE_ADMIN and user.role != ROLE_ADMIN:
        return Forbidden()

    return user


def login_required(role: str | None = None):
    """Reject the request before the view runs unless ``authorize`` succeeds."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            result = authorize(bearer_token(), role)
            if isinstance(result, AuthError):
                return result.to_response()
            g.current_user = result
            return view(*args, **kwargs)

        return wrapper

    return decorator


admin_required = login_required(ROLE_ADMIN)
