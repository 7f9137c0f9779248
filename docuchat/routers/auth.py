from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session
from .. import schemas
from ..db import get_db
from ..models import User
from ..auth import create_token, get_current_user, hash_password, normalize_username, verify_password
from docuchat.utils.logging import logger

router = APIRouter(prefix="/api/auth")


def _token_response(user: User) -> schemas.TokenResponse:
    token, expires_at = create_token(user.id)
    return schemas.TokenResponse(
        token=token,
        expires_at=expires_at,
        user=schemas.UserOut.model_validate(user),
    )


@router.post("/register", response_model=schemas.TokenResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.Credentials, db: Session = Depends(get_db)):
    username = normalize_username(payload.username)
    if db.scalars(select(User).where(User.username == username)).first():
        logger.warning(f"Registration refused, username taken: {username}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")

    user = User(username=username, password_hash=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} registered as {username}")
    # signed in straight away so the first chat can be created
    return _token_response(user)


@router.post("/login", response_model=schemas.TokenResponse)
def login(payload: schemas.Credentials, db: Session = Depends(get_db)):
    username = normalize_username(payload.username)
    user = db.scalars(select(User).where(User.username == username)).first()
    # same answer for unknown user and bad password
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning(f"Failed sign-in for {username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    return _token_response(user)


@router.get("/me", response_model=schemas.UserOut)
def me(user: User = Depends(get_current_user)):
    return user
