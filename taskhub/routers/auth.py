# PURPOSE: /register, /login, /logout, /user

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from .. import auth as identity
from ..auth import get_current_token, get_current_user
from ..config import settings
from ..db import get_db
from ..db_models import AccessTokenDB, UserDB
from ..models import LoginRequest, MessageResponse, RegisterRequest, TokenResponse, UserPublic
from ..rate_limit import limiter

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_REGISTER)
def register_user(
    request: Request, response: Response, payload: RegisterRequest, db: Session = Depends(get_db)
):
    _, token = identity.register(db, payload)
    return TokenResponse(access_token=token, message="User registered successfully")


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.RATE_LIMIT_LOGIN)
def login(
    request: Request,
    response: Response,
    payload: LoginRequest,
    db: Session = Depends(get_db),
):
    _, token = identity.login(db, payload.email, payload.password)
    return TokenResponse(access_token=token)


@router.post("/logout", response_model=MessageResponse)
def logout(token: AccessTokenDB = Depends(get_current_token), db: Session = Depends(get_db)):
    identity.logout(db, token)
    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=UserPublic)
def me(user: UserDB = Depends(get_current_user)):
    # If token is valid, user is injected
    return user
