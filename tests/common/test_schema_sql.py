from pathlib import Path

from src.settlement_engine.settlement_engine.database.bootstrap import (
    _strip_comments,
    _strip_create_db_and_use,
    iter_sql_statements,
)

SCHEMA = Path(__file__).resolve().parents[2] / "database" / "schema.sql"


def test_schema_creates_every_table_without_database_switch():
    sql = _strip_comments(_strip_create_db_and_use(SCHEMA.read_text(encoding="utf-8")))
    statements = list(iter_sql_statements(sql))

    tables = [s.split()[5] for s in statements]
    assert tables == [
        "tasks",
        "task_attachments",
        "task_review_notes",
        "attendance_records",
        "settlements",
        "entity_locks",
    ]
    assert not any(s.upper().startswith(("USE", "CREATE DATABASE")) for s in statements)


def test_splitter_keeps_semicolons_inside_quotes():
    statements = list(iter_sql_statements("INSERT INTO t VALUES('a;b'); SELECT 1;"))
    assert statements == ["INSERT INTO t VALUES('a;b')", "SELECT 1"]
