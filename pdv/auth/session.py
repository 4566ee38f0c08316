from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Response, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..config import settings
from ..constants import SESSION_TOKEN_TYPE
from ..models.models import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_session_token(user: User) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.session_expire_minutes)
    payload = {"sub": str(user.id), "type": SESSION_TOKEN_TYPE, "exp": expire}
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.session_secret, algorithms=[settings.session_algorithm])


def set_session_cookie(response: Response, token: str) -> None:
    # No max_age: the cookie lives for the browser session, the token carries its own expiry.
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.session_cookie_name, path="/")


def resolve_session_user(db: Session, token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    user_id = payload.get("sub")
    if user_id is None or payload.get("type") != SESSION_TOKEN_TYPE:
        return None
    try:
        return db.get(User, int(user_id))
    except ValueError:
        return None


def get_session_token(
    auth_token: Optional[str] = Cookie(default=None, alias=settings.session_cookie_name),
) -> Optional[str]:
    return auth_token


def get_current_user(
    token: Optional[str] = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> User:
    user = resolve_session_user(db, token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
