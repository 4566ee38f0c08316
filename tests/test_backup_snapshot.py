import json
import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select, text

from pdv.constants import SNAPSHOT_TABLES, SNAPSHOT_VERSION
from pdv.services import backup as backup_service
from pdv.services.backup_store import BackupOperationError, parse_backup_filename


def test_snapshot_captures_every_table_with_live_row_counts(db_session, backup_store, seed_data):
    seed_data()

    backup = backup_service.create_snapshot(db_session, backup_store)

    document = json.loads(backup.path.read_text(encoding="utf-8"))
    assert document["version"] == SNAPSHOT_VERSION
    assert list(document["tables"]) == list(SNAPSHOT_TABLES)
    for table in backup_service.snapshot_tables():
        live_count = db_session.execute(select(func.count()).select_from(table)).scalar_one()
        assert len(document["tables"][table.name]) == live_count


def test_empty_tables_are_present_as_empty_lists(db_session, backup_store, create_user):
    create_user("admin")

    backup = backup_service.create_snapshot(db_session, backup_store)

    tables = json.loads(backup.path.read_text(encoding="utf-8"))["tables"]
    assert len(tables["users"]) == 1
    for name in SNAPSHOT_TABLES[1:]:
        assert tables[name] == []


def test_snapshot_serializes_dates_and_decimals_as_strings(db_session, backup_store, seed_data):
    seed_data()

    backup = backup_service.create_snapshot(db_session, backup_store)

    tables = json.loads(backup.path.read_text(encoding="utf-8"))["tables"]
    coffee = tables["products"][0]
    assert coffee["price"] == "18.90"
    assert isinstance(coffee["created_at"], str)
    assert tables["accounts"][0]["due_date"] == "2025-03-10"
    assert tables["users"][0]["is_admin"] is True


def test_filename_follows_generation_timestamp(db_session, backup_store):
    before = datetime.now(timezone.utc)
    backup = backup_service.create_snapshot(db_session, backup_store)
    after = datetime.now(timezone.utc)

    assert backup.filename.startswith("backup_") and backup.filename.endswith(".json")
    assert before <= parse_backup_filename(backup.filename) <= after
    document = json.loads(backup.path.read_text(encoding="utf-8"))
    assert datetime.fromisoformat(document["timestamp"]) == backup.created_at


def test_rapid_snapshots_never_collide(db_session, backup_store):
    names = {backup_service.create_snapshot(db_session, backup_store).filename for _ in range(5)}

    assert len(names) == 5
    assert len(backup_store.list_backups()) == 5


def test_failed_table_read_writes_no_file(db_session, backup_store, create_user):
    create_user("admin")
    db_session.execute(text("DROP TABLE movements"))
    db_session.commit()

    with pytest.raises(BackupOperationError) as exc:
        backup_service.create_snapshot(db_session, backup_store)

    assert "movements" in str(exc.value)
    assert backup_store.list_backups() == []
    leftovers = list(backup_store.directory.iterdir()) if backup_store.directory.exists() else []
    assert leftovers == []


def test_keep_last_prunes_older_snapshots(db_session, backup_store):
    for _ in range(3):
        backup_service.create_snapshot(db_session, backup_store)

    newest = backup_service.create_snapshot(db_session, backup_store, keep_last=2)

    remaining = backup_store.list_backups()
    assert len(remaining) == 2
    assert remaining[0].filename == newest.filename


def test_failed_prune_does_not_fail_the_backup(db_session, backup_store, monkeypatch, caplog):
    def _broken_prune(keep_last):
        raise BackupOperationError("Could not delete backup: read-only file system")

    monkeypatch.setattr(backup_store, "prune", _broken_prune)

    with caplog.at_level(logging.ERROR, logger="pdv.services.backup"):
        backup = backup_service.create_snapshot(db_session, backup_store, keep_last=1)

    assert backup.path.is_file()
    assert [item.filename for item in backup_store.list_backups()] == [backup.filename]
    assert "Pruning after backup" in caplog.text
