"""Verify identity assertions (JWTs issued by the external identity provider)."""

from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt

from strava_mirror.config import settings
from strava_mirror.core.errors import Unauthenticated


@dataclass
class Identity:
    subject: str
    email: str | None


def _get_jwt_verification_key_and_algorithms() -> tuple[str, list[str]]:
    """Return (key, algorithms) for verifying identity tokens."""
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), ["RS256"]
    return settings.secret_key, [settings.jwt_algorithm]


def decode_token(token: str) -> dict[str, Any]:
    key, algorithms = _get_jwt_verification_key_and_algorithms()
    options = {"verify_aud": bool(settings.jwt_audience)}
    return jwt.decode(
        token,
        key,
        algorithms=algorithms,
        audience=settings.jwt_audience or None,
        issuer=settings.jwt_issuer or None,
        options=options,
    )


def verify_identity(token: str | None) -> Identity:
    """Verified subject + email, or Unauthenticated."""
    if not token:
        raise Unauthenticated("Token missing")
    try:
        payload = decode_token(token)
    except JWTError as e:
        raise Unauthenticated("Invalid or expired token") from e
    subject = payload.get("sub") or payload.get("user_id")
    if not subject:
        raise Unauthenticated("Invalid token")
    return Identity(subject=str(subject), email=payload.get("email"))
