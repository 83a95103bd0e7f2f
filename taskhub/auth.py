# Identity store: password hashing, bearer token issuance/revocation and the
# FastAPI dependencies that resolve the acting user from a token.

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .db_models import AccessTokenDB, UserDB
from .errors import AuthenticationError, ValidationError
from .models import RegisterRequest
from .store_db import get_user, get_user_by_email

logger = logging.getLogger("taskhub.auth")

# bcrypt only looks at (and bcrypt>=5 refuses more than) 72 bytes of input
BCRYPT_MAX_BYTES = 72

# Bearer scheme; missing header is reported by get_current_token as 401
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


# --- Password helpers (bcrypt, no passlib) ---

def hash_password(password: str) -> str:
    """Return a bcrypt hash for the given plain password."""
    if not isinstance(password, str):
        raise TypeError("password must be a string")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password longer than {BCRYPT_MAX_BYTES} bytes")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain password against its bcrypt hash."""
    if len(plain_password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        return False


# --- JWT helpers ---

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def get_access_token_ttl_minutes() -> int:
    """
    Return access token TTL in minutes, parsed safely from settings.
    Falls back to 60 if env contains invalid value (e.g., '60m').
    """
    try:
        return int(settings.JWT_EXPIRE_MIN)
    except (TypeError, ValueError):
        return 60


def issue_token(db: Session, user: UserDB, name: str = "auth_token") -> str:
    """
    Persist a new token row for `user` and return the signed JWT.
    The JWT carries `sub` (user id) and `jti` (token row key).
    """
    purge_expired_tokens(db, user.id)
    jti = uuid.uuid4().hex
    expire = _now_utc() + timedelta(minutes=get_access_token_ttl_minutes())
    db.add(AccessTokenDB(user_id=user.id, jti=jti, name=name, expires_at=expire))
    db.commit()
    payload: Dict[str, Any] = {"sub": str(user.id), "jti": jti, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def purge_expired_tokens(db: Session, user_id: int) -> int:
    """Delete the user's token rows whose expiry has passed (no commit)."""
    return (
        db.query(AccessTokenDB)
        .filter(AccessTokenDB.user_id == user_id, AccessTokenDB.expires_at < _now_utc())
        .delete(synchronize_session=False)
    )


# --- Operations ---

def register(db: Session, payload: RegisterRequest) -> tuple[UserDB, str]:
    """Create a user and issue their first token."""
    errors: Dict[str, list[str]] = {}
    if get_user_by_email(db, payload.email) is not None:
        errors["email"] = ["The email has already been taken."]
    if len(payload.password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        errors["password"] = [f"The password field must not be greater than {BCRYPT_MAX_BYTES} bytes."]
    elif payload.password != payload.password_confirmation:
        errors["password"] = ["The password field confirmation does not match."]
    if errors:
        raise ValidationError(errors)

    user = UserDB(
        name=payload.name.strip(),
        email=payload.email,
        password_hash=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user registered user_id=%s", user.id)
    return user, issue_token(db, user)


def login(db: Session, email: str, password: str) -> tuple[UserDB, str]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid login credentials")
    return user, issue_token(db, user)


def logout(db: Session, token: AccessTokenDB) -> None:
    """Revoke exactly the presented token."""
    db.delete(token)
    db.commit()


# --- Dependencies ---

def get_current_token(
    token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> AccessTokenDB:
    """Decode the bearer JWT and load its (unrevoked) token row."""
    if not token:
        raise AuthenticationError()
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError()

    jti = payload.get("jti")
    if not jti:
        raise AuthenticationError()
    row = db.query(AccessTokenDB).filter(AccessTokenDB.jti == jti).one_or_none()
    if row is None or str(row.user_id) != str(payload.get("sub")):
        raise AuthenticationError()
    row.last_used_at = _now_utc()
    db.commit()
    return row


def get_current_user(
    token: AccessTokenDB = Depends(get_current_token), db: Session = Depends(get_db)
) -> UserDB:
    user = get_user(db, token.user_id)
    if user is None:
        raise AuthenticationError()
    return user
