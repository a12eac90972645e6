"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from ihk_trainer.db import get_connection, init_db


def test_init_db_creates_tables(tmp_db):
    conn = get_connection(tmp_db)
    init_db(conn)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = {row[0] for row in cursor.fetchall()}
    expected = {"users", "questions", "user_progress", "user_stats", "quiz_levels", "user_level_progress"}
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    conn = get_connection(tmp_db)
    init_db(conn)
    init_db(conn)  # should not raise
    assert len(conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()) > 0
    conn.close()


def test_get_connection_returns_row_factory():
    conn = get_connection()
    init_db(conn)
    conn.execute("INSERT INTO users (username, email) VALUES ('a', 'a@example.com')")
    row = conn.execute("SELECT * FROM users").fetchone()
    assert row["username"] == "a"
    conn.close()


def test_foreign_keys_enforced():
    conn = get_connection()
    init_db(conn)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO user_progress (user_id, question_id, correct, attempts) VALUES (1, 1, 0, 1)")
    conn.close()
