from typing import Generator

from sqlalchemy.orm import Session

from ..config import SessionLocal, settings
from ..services.backup_store import BackupStore


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_backup_store() -> BackupStore:
    return BackupStore(settings.backup_path)
