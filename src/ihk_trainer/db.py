"""Database initialization and connection management."""
import sqlite3

IN_MEMORY = ":memory:"

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category TEXT NOT NULL,
    question_text TEXT NOT NULL,
    options TEXT NOT NULL,
    correct_answer INTEGER NOT NULL,
    explanation TEXT,
    difficulty INTEGER DEFAULT 1,
    points REAL,
    answer_format TEXT,
    task_reference TEXT,
    kind TEXT DEFAULT 'multiple_choice'
);

CREATE TABLE IF NOT EXISTS user_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    question_id INTEGER NOT NULL REFERENCES questions(id),
    correct INTEGER DEFAULT 0,
    attempts INTEGER DEFAULT 0,
    last_attempted TEXT
);

CREATE TABLE IF NOT EXISTS user_stats (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
    total_questions INTEGER DEFAULT 0,
    correct_answers INTEGER DEFAULT 0,
    streak_days INTEGER DEFAULT 0,
    total_study_time INTEGER DEFAULT 0,
    last_active TEXT
);

CREATE TABLE IF NOT EXISTS quiz_levels (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    sort_order INTEGER NOT NULL,
    min_difficulty INTEGER DEFAULT 1,
    max_difficulty INTEGER DEFAULT 1,
    required_questions_to_unlock INTEGER DEFAULT 0,
    color TEXT DEFAULT '#6366f1',
    image_url TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS user_level_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id),
    level_id INTEGER NOT NULL REFERENCES quiz_levels(id),
    questions_completed INTEGER DEFAULT 0,
    questions_correct INTEGER DEFAULT 0,
    is_unlocked INTEGER DEFAULT 0,
    is_completed INTEGER DEFAULT 0,
    last_played TEXT,
    UNIQUE(user_id, level_id)
);
"""


def get_connection(db_path: str = IN_MEMORY) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled.

    The connection may be shared between threads; callers serialize access.
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables if they don't exist."""
    conn.executescript(SCHEMA)
    conn.commit()
