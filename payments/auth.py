import logging
from dataclasses import dataclass

import jwt
from django.conf import settings

from .exceptions import AuthenticationRequired

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    subject: str
    email: str = ""


def _bearer_token(request) -> str:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return ""
    return auth.split(" ", 1)[1].strip()


def decode_bearer_token(token: str) -> dict:
    """Verify a bearer JWT issued by the auth backend and return its claims.

    Raises :class:`AuthenticationRequired` when the token cannot be verified
    or when no verification secret is configured.
    """
    conf = settings.AUTH_JWT
    secret = conf.get("SECRET")
    if not secret:
        logger.error("AUTH_JWT['SECRET'] missing; bearer tokens cannot be verified")
        raise AuthenticationRequired("JWT secret not configured")
    audience = conf.get("AUDIENCE") or None
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=conf.get("ALGORITHMS", ["HS256"]),
            audience=audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as e:
        raise AuthenticationRequired(
            f"Invalid bearer token: {e}",
            public_message="Invalid authentication. Please log in again.",
        )


def resolve_identity(request):
    """Return the caller's :class:`Identity`, or ``None`` when no credentials were sent.

    A logged-in session user wins over a bearer token.
    """
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return Identity(subject=str(user.pk), email=user.email or "")

    token = _bearer_token(request)
    if not token:
        return None
    claims = decode_bearer_token(token)
    return Identity(subject=str(claims["sub"]), email=str(claims.get("email") or ""))
