import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .api import auth, backup, system
from .auth.session import get_password_hash
from .config import Base, SessionLocal, engine, settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import RequestIdMiddleware
from .core.security import SecurityHeadersMiddleware, log_security_warnings
from .models.models import User

configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


def ensure_default_admin(session: Session) -> None:
    if not settings.default_admin_username or not settings.default_admin_password:
        return
    if session.query(User).first() is not None:
        return
    admin = User(
        username=settings.default_admin_username,
        password=get_password_hash(settings.default_admin_password),
        name="Administrator",
        is_admin=True,
    )
    session.add(admin)
    session.commit()
    logger.info("Created default admin user %s", admin.username)


app = FastAPI(title="PDV System")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware, hsts=settings.session_cookie_secure)
app.add_middleware(RequestIdMiddleware)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(backup.router, prefix="/api/backup", tags=["backup"])
app.include_router(system.router, prefix="/api", tags=["system"])


@app.on_event("startup")
def startup() -> None:
    # Tables are created in place; there is no migration tooling for this schema.
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        ensure_default_admin(session)
    log_security_warnings(settings)
