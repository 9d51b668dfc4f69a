import secrets
from typing import Optional

from fastapi import Header, HTTPException, status
from passlib.context import CryptContext

from toron.core.config import get_settings


pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def generate_callback_token() -> str:
    return secrets.token_urlsafe(32)


def hash_callback_token(token: str) -> str:
    return pwd_context.hash(token)


def verify_callback_token(plain_token: str, hashed_token: str) -> bool:
    return pwd_context.verify(plain_token, hashed_token)


def require_admin(
    x_admin_key: Optional[str] = Header(default=None, alias="X-Admin-Key"),
) -> None:
    if not x_admin_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing admin key")
    if not secrets.compare_digest(x_admin_key, get_settings().admin_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
