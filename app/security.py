from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.hash import bcrypt

from app.config import settings


def hash_password(password: str, rounds: int | None = None) -> str:
    """Hash *password* with bcrypt using the configured work factor."""
    if rounds is None:
        rounds = settings.BCRYPT_SALT_ROUNDS
    return bcrypt.using(rounds=rounds).hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    # Federated accounts carry no hash and can never match.
    if not password_hash:
        return False
    return bcrypt.verify(password, password_hash)


def create_access_token(payload: Dict[str, Any]) -> str:
    """Sign *payload* with ``iat`` and ``exp`` claims added."""
    now = datetime.now(timezone.utc)
    claims = {
        **payload,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRES_IN_DAYS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a token issued by ``create_access_token``.

    Raises ``jwt.ExpiredSignatureError`` / ``jwt.InvalidTokenError``; the
    HTTP layer decides how to answer them.
    """
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
