from fastapi import APIRouter, Depends, HTTPException

from common.config import get_settings
from common.logging import get_logger
from stores import users

from . import security
from .auth import current_user
from .schemas import Identity, LoginIn, RegisterIn

settings = get_settings()
logger = get_logger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _public(account: dict) -> dict:
    return {
        "id": account["user_id"],
        "username": account["username"],
        "email": account["email"],
        "role": account["role"],
    }


@router.post("/register", status_code=201)
def register(body: RegisterIn):
    if users.account_exists(body.username, body.email):
        raise HTTPException(status_code=400, detail="User already exists")

    role = "admin" if body.email.lower() in settings.admin_emails else "user"
    account = users.create_account(body.username, body.email, security.hash_password(body.password), role)
    logger.info("Registered %s (%s)", account["username"], account["role"])
    return {"token": security.create_token(account["user_id"]), "user": _public(account)}


@router.post("/login")
def login(body: LoginIn):
    account = users.fetch_account_by_email(body.email)
    if not account or not security.verify_password(body.password, account["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": security.create_token(account["user_id"]), "user": _public(account)}


@router.get("/me")
def me(user: Identity = Depends(current_user)):
    return {"user": {"id": user.user_id, "username": user.username, "email": user.email, "role": user.role}}
