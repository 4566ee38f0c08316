import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.session import (
    clear_session_cookie,
    create_session_token,
    get_current_user,
    set_session_cookie,
    verify_password,
)
from ..core.rate_limit import rate_limit_dependency
from ..models.models import User
from ..schemas.schemas import LoginRequest, LoginResponse, MessageResponse, UserRead

logger = logging.getLogger(__name__)

router = APIRouter()

login_rate_limit = rate_limit_dependency("login", limit=10, window_seconds=60)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(login_rate_limit)])
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> LoginResponse:
    user = db.query(User).filter(User.username == payload.username).first()
    if not user or not verify_password(payload.password, user.password):
        logger.info("Failed login for %s", payload.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    set_session_cookie(response, create_session_token(user))
    logger.info("User %s logged in", user.username)
    return LoginResponse(message="Login successful", user=UserRead.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    response = JSONResponse(MessageResponse(message="Logout successful").model_dump())
    clear_session_cookie(response)
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


@router.get("/me", response_model=UserRead)
def read_current_user(user: User = Depends(get_current_user)) -> User:
    return user
