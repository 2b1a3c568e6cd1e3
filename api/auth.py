"""Identity dependencies.

Callers authenticate with ``Authorization: Bearer <token>`` where the token
comes from ``/api/auth/login`` or ``/api/auth/register``. The account is
loaded on every request so deleted users and role changes take effect
immediately.
"""
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from stores import users

from . import security
from .schemas import Identity

bearer = HTTPBearer(auto_error=False)

NOT_AUTHORIZED = "Not authorized to access this route"


def _identity(account: dict) -> Identity:
    return Identity(
        user_id=account["user_id"], role=account["role"], username=account["username"], email=account["email"]
    )


def optional_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Optional[Identity]:
    """Caller if a valid token was sent; bad tokens are treated as anonymous."""
    if credentials is None:
        return None
    try:
        user_id = security.decode_token(credentials.credentials)
    except jwt.PyJWTError:
        return None
    account = users.fetch_account(user_id)
    return _identity(account) if account else None


def current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Identity:
    if credentials is None:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    try:
        user_id = security.decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)

    account = users.fetch_account(user_id)
    if not account:
        raise HTTPException(status_code=401, detail="User not found")
    return _identity(account)


def admin_user(user: Identity = Depends(current_user)) -> Identity:
    if user.role != "admin":
        raise HTTPException(
            status_code=403, detail=f"User role '{user.role}' is not authorized to access this route"
        )
    return user
