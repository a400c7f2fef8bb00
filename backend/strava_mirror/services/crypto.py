"""
Refresh tokens at rest. Strava refresh tokens are long-lived, so they are sealed
with Fernet (ENCRYPTION_KEY) before they reach the database. Access tokens
expire within hours and are stored as-is.
"""
import logging
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken

from strava_mirror.config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def _fernet_for(key: str) -> Fernet:
    return Fernet(key.encode())


def _cipher() -> Fernet | None:
    # No key configured: development mode, tokens stored in plaintext
    if not settings.encryption_key:
        return None
    return _fernet_for(settings.encryption_key)


def seal_refresh_token(token: str) -> str:
    if not token:
        return ""
    cipher = _cipher()
    return token if cipher is None else cipher.encrypt(token.encode()).decode()


def open_refresh_token(sealed: str) -> str:
    """Plaintext refresh token, or "" when it cannot be decrypted (the user must re-link)."""
    if not sealed:
        return ""
    cipher = _cipher()
    if cipher is None:
        return sealed
    try:
        return cipher.decrypt(sealed.encode()).decode()
    except InvalidToken:
        logger.warning("Stored Strava refresh token could not be decrypted; ENCRYPTION_KEY rotated?")
        return ""
