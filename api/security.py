"""Password hashing and signed bearer tokens."""
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from common.config import get_settings

settings = get_settings()

SALT_ROUNDS = 10


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=SALT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_token(user_id: str, expires_in: timedelta | None = None) -> str:
    if expires_in is None:
        expires_in = timedelta(days=settings.jwt_expire_days)
    now = datetime.now(timezone.utc)
    payload = {"id": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> str:
    """User id carried by ``token``. Raises ``jwt.PyJWTError`` for bad, forged or expired tokens."""
    payload = jwt.decode(
        token, settings.jwt_secret, algorithms=[settings.jwt_algorithm], options={"require": ["id", "exp"]}
    )
    return payload["id"]
