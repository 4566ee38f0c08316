# pdv/config.py
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .constants import INSECURE_DEFAULT_SECRET


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # --- Database ---
    database_url: str = "sqlite:///pdv.db"

    # --- Session cookie ---
    session_secret: str = INSECURE_DEFAULT_SECRET
    session_algorithm: str = "HS256"
    session_expire_minutes: int = 60 * 12  # 12 hours
    session_cookie_name: str = "auth_token"
    session_cookie_secure: bool = False

    # --- Backups ---
    backup_dir: str = "backups"
    # None disables automatic pruning after a backup is created
    backup_keep_last: Optional[int] = Field(default=None, ge=1)

    # --- Bootstrap admin (created on startup when the users table is empty) ---
    default_admin_username: Optional[str] = None
    default_admin_password: Optional[str] = None

    # --- Logging ---
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    # --- Deployment metadata reported by /api/health ---
    app_env: str = "development"
    git_sha: Optional[str] = None
    build_time: Optional[str] = None

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:3000"]

    @property
    def backup_path(self) -> Path:
        return Path(self.backup_dir)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

# Ensure path directory exists (for SQLite)
if settings.database_url.startswith("sqlite:///"):
    db_path = Path(settings.database_url.replace("sqlite:///", "", 1))
    db_path.parent.mkdir(parents=True, exist_ok=True)


def enable_sqlite_foreign_keys(bind: Engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless every connection opts in."""

    @event.listens_for(bind, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# --- SQLAlchemy setup ---
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.is_sqlite else {},
    pool_pre_ping=not settings.is_sqlite,
)
if settings.is_sqlite:
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
