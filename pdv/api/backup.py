import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_backup_store, get_db
from ..auth.session import require_admin
from ..config import settings
from ..constants import BACKUP_ACTIONS
from ..models.models import User
from ..schemas.schemas import (
    BackupActionRequest,
    BackupActionResponse,
    BackupDeleteRequest,
    BackupFileRead,
    BackupList,
    MessageResponse,
)
from ..services import backup as backup_service
from ..services.backup_store import (
    BackupError,
    BackupFile,
    BackupNotFoundError,
    BackupStore,
    InvalidBackupNameError,
    InvalidSnapshotError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_read(backup: BackupFile) -> BackupFileRead:
    return BackupFileRead(
        filename=backup.filename,
        path=str(backup.path),
        size=backup.size_label,
        size_bytes=backup.size_bytes,
        created=backup.created_at,
    )


def _raise_http(exc: BackupError) -> NoReturn:
    if isinstance(exc, (InvalidBackupNameError, InvalidSnapshotError)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if isinstance(exc, BackupNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc


@router.get("", response_model=BackupList)
def list_backups(
    store: BackupStore = Depends(get_backup_store),
    _: User = Depends(require_admin),
) -> BackupList:
    try:
        backups = store.list_backups()
    except OSError as exc:
        raise HTTPException(status_code=500, detail=f"Could not list backups: {exc}") from exc
    return BackupList(backups=[_to_read(backup) for backup in backups], count=len(backups))


@router.post("", response_model=BackupActionResponse)
def run_backup_action(
    payload: BackupActionRequest,
    db: Session = Depends(get_db),
    store: BackupStore = Depends(get_backup_store),
    actor: User = Depends(require_admin),
) -> BackupActionResponse:
    if payload.action not in BACKUP_ACTIONS:
        raise HTTPException(status_code=400, detail="Invalid action")

    if payload.action == "create":
        try:
            backup = backup_service.create_snapshot(db, store, keep_last=settings.backup_keep_last)
        except BackupError as exc:
            logger.error("Backup requested by %s failed: %s", actor.username, exc)
            _raise_http(exc)
        return BackupActionResponse(message="Backup created successfully", filename=backup.filename)

    if not payload.filename:
        raise HTTPException(status_code=400, detail="Filename is required for restore")
    try:
        backup_service.restore_snapshot(db, store, payload.filename)
    except BackupError as exc:
        logger.error("Restore of %s requested by %s failed: %s", payload.filename, actor.username, exc)
        _raise_http(exc)
    return BackupActionResponse(message="Backup restored successfully", filename=payload.filename)


@router.delete("", response_model=MessageResponse)
def delete_backup(
    payload: BackupDeleteRequest = Body(...),
    store: BackupStore = Depends(get_backup_store),
    actor: User = Depends(require_admin),
) -> MessageResponse:
    try:
        store.delete_backup(payload.filename)
    except BackupError as exc:
        _raise_http(exc)
    logger.info("Backup %s deleted by %s", payload.filename, actor.username)
    return MessageResponse(message="Backup deleted successfully")
