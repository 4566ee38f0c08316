from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List

from ..constants import BACKUP_FILENAME_PREFIX, BACKUP_FILENAME_SUFFIX, BACKUP_TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

BACKUP_FILENAME_PATTERN = re.compile(
    rf"^{re.escape(BACKUP_FILENAME_PREFIX)}"
    r"(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{6}Z)"
    rf"{re.escape(BACKUP_FILENAME_SUFFIX)}$"
)


class BackupError(Exception):
    """Base class for backup/restore failures."""


class InvalidBackupNameError(BackupError):
    pass


class BackupNotFoundError(BackupError):
    pass


class InvalidSnapshotError(BackupError):
    pass


class BackupOperationError(BackupError):
    """A database or filesystem failure while creating or restoring a backup."""


@dataclass
class BackupFile:
    filename: str
    path: Path
    size_bytes: int
    created_at: datetime

    @property
    def size_label(self) -> str:
        return f"{self.size_bytes / 1024:.2f} KB"


def backup_filename_for(created_at: datetime) -> str:
    stamp = created_at.astimezone(timezone.utc).strftime(BACKUP_TIMESTAMP_FORMAT)
    return f"{BACKUP_FILENAME_PREFIX}{stamp}{BACKUP_FILENAME_SUFFIX}"


def parse_backup_filename(filename: str) -> datetime:
    match = BACKUP_FILENAME_PATTERN.fullmatch(filename or "")
    if not match:
        raise InvalidBackupNameError(f"Invalid backup filename: {filename!r}")
    return datetime.strptime(match.group("stamp"), BACKUP_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


class BackupStore:
    """Snapshot files kept in a single directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, filename: str) -> Path:
        # The pattern admits no separators, so the result always sits directly in the directory.
        parse_backup_filename(filename)
        return self.directory / filename

    def _describe(self, path: Path) -> BackupFile:
        return BackupFile(
            filename=path.name,
            path=path,
            size_bytes=path.stat().st_size,
            created_at=parse_backup_filename(path.name),
        )

    def resolve(self, filename: str) -> Path:
        path = self._path_for(filename)
        if not path.is_file():
            raise BackupNotFoundError(f"Backup not found: {filename}")
        return path

    def get(self, filename: str) -> BackupFile:
        return self._describe(self.resolve(filename))

    def list_backups(self) -> List[BackupFile]:
        if not self.directory.is_dir():
            return []
        backups = [
            self._describe(entry)
            for entry in self.directory.iterdir()
            if entry.is_file() and BACKUP_FILENAME_PATTERN.fullmatch(entry.name)
        ]
        backups.sort(key=lambda backup: backup.created_at, reverse=True)
        return backups

    def delete_backup(self, filename: str) -> None:
        path = self._path_for(filename)
        try:
            path.unlink()
        except FileNotFoundError:
            raise BackupNotFoundError(f"Backup not found: {filename}") from None
        except OSError as exc:
            raise BackupOperationError(f"Could not delete backup {filename}: {exc}") from exc
        logger.info("Deleted backup %s", filename)

    def prune(self, keep_last: int) -> List[str]:
        """Delete everything but the newest ``keep_last`` backups; returns removed filenames."""
        if keep_last < 1:
            raise ValueError("keep_last must be at least 1")
        removed = []
        for backup in self.list_backups()[keep_last:]:
            self.delete_backup(backup.filename)
            removed.append(backup.filename)
        if removed:
            logger.info("Pruned %d old backup(s), kept %d", len(removed), keep_last)
        return removed

    def read_document(self, filename: str) -> Any:
        path = self.resolve(filename)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise InvalidSnapshotError(f"Backup {filename} is not valid JSON: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise InvalidSnapshotError(f"Backup {filename} is not valid UTF-8 text") from exc
        except OSError as exc:
            raise BackupOperationError(f"Could not read backup {filename}: {exc}") from exc

    def _write_temporary(self, document: Dict[str, Any]) -> Path:
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp_", suffix=BACKUP_FILENAME_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return Path(tmp_name)

    def write_document(self, document: Dict[str, Any], created_at: datetime) -> BackupFile:
        """Write ``document`` under a name derived from ``created_at``.

        The JSON is written to a temporary file in the same directory and then
        hard-linked to its final name, so a listing never sees a partially
        written backup and an existing backup is never replaced. When the name
        is taken the instant moves forward one microsecond, and a ``timestamp``
        key in the document is rewritten to match the name it is stored under.
        """
        candidate = created_at.astimezone(timezone.utc)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            while True:
                target = self.directory / backup_filename_for(candidate)
                if target.exists():
                    candidate += timedelta(microseconds=1)
                    continue
                if isinstance(document, dict) and "timestamp" in document:
                    document = {**document, "timestamp": candidate.isoformat()}
                tmp_path = self._write_temporary(document)
                try:
                    os.link(tmp_path, target)
                except FileExistsError:
                    # Another writer claimed the name after the check above.
                    candidate += timedelta(microseconds=1)
                    continue
                finally:
                    tmp_path.unlink(missing_ok=True)
                break
        except OSError as exc:
            raise BackupOperationError(f"Could not write backup file: {exc}") from exc
        return self._describe(target)
