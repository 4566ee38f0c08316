import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from itertools import groupby
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, Integer, Numeric, String, Table, delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Base
from ..constants import SNAPSHOT_TABLES, SNAPSHOT_VERSION
from ..models import models  # noqa: F401  (registers the snapshot tables on Base.metadata)
from .backup_store import BackupError, BackupFile, BackupOperationError, BackupStore, InvalidSnapshotError

logger = logging.getLogger(__name__)

Rows = List[Dict[str, Any]]


def snapshot_tables() -> List[Table]:
    return [Base.metadata.tables[name] for name in SNAPSHOT_TABLES]


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def _from_json_value(column: Column, value: Any) -> Any:
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, DateTime):
        if not isinstance(value, str):
            raise ValueError(f"expected an ISO timestamp, got {value!r}")
        return datetime.fromisoformat(value)
    if isinstance(column_type, Date):
        if not isinstance(value, str):
            raise ValueError(f"expected an ISO date, got {value!r}")
        # Some drivers hand back DATE columns as midnight datetimes.
        return date.fromisoformat(value[:10])
    if isinstance(column_type, Numeric) and column_type.asdecimal:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValueError(f"expected a number, got {value!r}")
        return Decimal(str(value))
    if isinstance(column_type, Boolean):
        # MySQL dumps TINYINT(1) flags as 0/1
        if isinstance(value, bool) or (isinstance(value, int) and value in (0, 1)):
            return bool(value)
        raise ValueError(f"expected a boolean, got {value!r}")
    if isinstance(column_type, Integer):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"expected an integer, got {value!r}")
        return value
    if isinstance(column_type, Enum):
        if value not in column_type.enums:
            raise ValueError(f"expected one of {', '.join(column_type.enums)}, got {value!r}")
        return value
    if isinstance(column_type, String) and not isinstance(value, str):
        raise ValueError(f"expected text, got {value!r}")
    return value


def _database_message(exc: SQLAlchemyError) -> str:
    # str(exc) appends the SQL statement and its bound parameters
    return str(getattr(exc, "orig", None) or exc.__class__.__name__)


def validate_snapshot(document: Any) -> Dict[str, Rows]:
    """Check a parsed snapshot document and return its rows converted to column types.

    Raises ``InvalidSnapshotError`` on the first problem found; nothing is
    written to the database until the whole document has passed.
    """
    if not isinstance(document, dict):
        raise InvalidSnapshotError("Snapshot must be a JSON object.")
    if not isinstance(document.get("timestamp"), str):
        raise InvalidSnapshotError("Snapshot is missing its timestamp.")
    tables = document.get("tables")
    if not isinstance(tables, dict):
        raise InvalidSnapshotError("Snapshot is missing the 'tables' object.")

    missing = [name for name in SNAPSHOT_TABLES if name not in tables]
    unexpected = sorted(set(tables) - set(SNAPSHOT_TABLES))
    if missing or unexpected:
        problems = []
        if missing:
            problems.append(f"missing tables: {', '.join(missing)}")
        if unexpected:
            problems.append(f"unexpected tables: {', '.join(unexpected)}")
        raise InvalidSnapshotError("Snapshot table set does not match (" + "; ".join(problems) + ").")

    prepared: Dict[str, Rows] = {}
    for table in snapshot_tables():
        rows = tables[table.name]
        if not isinstance(rows, list):
            raise InvalidSnapshotError(f"Table '{table.name}' must be a list of rows.")
        converted: Rows = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise InvalidSnapshotError(f"Row {index} of '{table.name}' is not an object.")
            unknown = sorted(set(row) - set(table.columns.keys()))
            if unknown:
                raise InvalidSnapshotError(
                    f"Row {index} of '{table.name}' has unknown columns: {', '.join(unknown)}."
                )
            try:
                converted.append({key: _from_json_value(table.columns[key], value) for key, value in row.items()})
            except (TypeError, ValueError, InvalidOperation) as exc:
                raise InvalidSnapshotError(f"Row {index} of '{table.name}' has an invalid value: {exc}") from exc
        prepared[table.name] = converted
    return prepared


def create_snapshot(db: Session, store: BackupStore, keep_last: Optional[int] = None) -> BackupFile:
    """Dump every snapshot table into a new backup file in ``store``."""
    created_at = datetime.now(timezone.utc)
    document: Dict[str, Any] = {
        "timestamp": created_at.isoformat(),
        "version": SNAPSHOT_VERSION,
        "tables": {},
    }

    for table in snapshot_tables():
        statement = select(table).order_by(*table.primary_key.columns)
        try:
            rows = db.execute(statement).mappings().all()
        except SQLAlchemyError as exc:
            db.rollback()
            raise BackupOperationError(f"Could not read table '{table.name}': {_database_message(exc)}") from exc
        document["tables"][table.name] = [
            {key: _to_json_value(value) for key, value in row.items()} for row in rows
        ]

    backup = store.write_document(document, created_at)
    logger.info(
        "Backup %s created (%s)",
        backup.filename,
        ", ".join(f"{name}={len(rows)}" for name, rows in document["tables"].items()),
    )

    if keep_last:
        try:
            store.prune(keep_last)
        except (BackupError, OSError):
            # The new backup is already on disk; a failed cleanup does not undo it.
            logger.exception("Pruning after backup %s failed", backup.filename)
    return backup


def _reset_postgres_sequences(db: Session, tables: List[Table]) -> None:
    preparer = db.get_bind().dialect.identifier_preparer
    for table in tables:
        if "id" not in table.columns:
            continue
        quoted = preparer.quote(table.name)
        db.execute(
            text(
                f"SELECT setval(pg_get_serial_sequence(:table_name, 'id'), "
                f"COALESCE(MAX(id), 0) + 1, false) FROM {quoted}"
            ),
            {"table_name": table.name},
        )


def restore_snapshot(db: Session, store: BackupStore, filename: str) -> Dict[str, int]:
    """Replace the live contents of every snapshot table with the rows in ``filename``.

    Deletes run children-first and inserts parents-first inside one
    transaction; any database error rolls the whole restore back. Returns the
    number of rows restored per table.
    """
    document = store.read_document(filename)
    prepared = validate_snapshot(document)
    tables = snapshot_tables()

    logger.warning("Restoring backup %s over the live database", filename)
    try:
        for table in reversed(tables):
            db.execute(delete(table))
        for table in tables:
            rows = prepared[table.name]
            # executemany needs every row in a batch to carry the same columns
            for _, batch in groupby(rows, key=lambda row: tuple(sorted(row))):
                db.execute(table.insert(), list(batch))
        if db.get_bind().dialect.name == "postgresql":
            _reset_postgres_sequences(db, tables)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Restore of backup %s failed; changes rolled back", filename)
        raise BackupOperationError(f"Restore of {filename} failed: {_database_message(exc)}") from exc

    counts = {name: len(rows) for name, rows in prepared.items()}
    logger.info(
        "Backup %s restored (%s)",
        filename,
        ", ".join(f"{name}={count}" for name, count in counts.items()),
    )
    return counts
