from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.hash import pbkdf2_sha256
from sqlalchemy.orm import Session
from .db import get_db
from .models import User
from docuchat.config import settings
from docuchat.utils.logging import logger

security = HTTPBearer()

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


def normalize_username(username: str) -> str:
    return username.strip().lower()


def hash_password(pwd: str) -> str:
    return pbkdf2_sha256.hash(pwd)


def verify_password(pwd: str, hashed: str) -> bool:
    try:
        return pbkdf2_sha256.verify(pwd, hashed)
    except ValueError:
        # not a pbkdf2 hash
        return False


def create_token(user_id: int, now: Optional[datetime] = None) -> Tuple[str, datetime]:
    """Signed bearer token for ``user_id`` and the moment it stops being accepted."""
    issued = now or datetime.now(timezone.utc)
    expires_at = issued + timedelta(minutes=settings.jwt_expire_minutes)
    claims = {"sub": str(user_id), "iat": int(issued.timestamp()), "exp": int(expires_at.timestamp())}
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algo)
    logger.info(f"Issued token for user_id={user_id}, expires_at={expires_at.isoformat()}")
    return token, expires_at


def user_id_from_token(token: str) -> int:
    # jose rejects an expired "exp" claim on its own
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algo])
    return int(payload["sub"])


def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    try:
        user_id = user_id_from_token(creds.credentials)
    except (JWTError, KeyError, ValueError) as exc:
        logger.warning(f"Rejected bearer token: {exc}")
        raise UNAUTHORIZED

    user = db.get(User, user_id)
    if user is None:
        logger.warning(f"Token refers to non-existent user_id={user_id}")
        raise UNAUTHORIZED
    return user
