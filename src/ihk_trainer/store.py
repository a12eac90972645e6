"""In-memory repository for questions, progress, stats and levels."""
import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterable, Optional

from ihk_trainer.db import IN_MEMORY, get_connection, init_db
from ihk_trainer.errors import NotFoundError, PayloadValidationError
from ihk_trainer.models import (
    Question, QuestionKind, QuestionOption, QuizLevel, TaskReference, User,
    UserLevelProgress, UserProgress, UserStats,
)

logger = logging.getLogger(__name__)

COMPLETION_RATIO = 0.8

STATS_FIELDS = {"total_questions", "correct_answers", "streak_days", "total_study_time"}
LEVEL_PROGRESS_FIELDS = {"questions_completed", "questions_correct", "is_unlocked", "is_completed"}


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_question(row: sqlite3.Row) -> Question:
    task_ref = json.loads(row["task_reference"]) if row["task_reference"] else None
    return Question(
        id=row["id"],
        category=row["category"],
        question_text=row["question_text"],
        options=[QuestionOption.from_dict(o) for o in json.loads(row["options"])],
        correct_answer=row["correct_answer"],
        explanation=row["explanation"],
        difficulty=row["difficulty"],
        points=row["points"],
        answer_format=row["answer_format"],
        task_reference=TaskReference.from_dict(task_ref) if task_ref else None,
        kind=QuestionKind(row["kind"]),
    )


def _row_to_stats(row: sqlite3.Row) -> UserStats:
    return UserStats(
        id=row["id"],
        user_id=row["user_id"],
        total_questions=row["total_questions"],
        correct_answers=row["correct_answers"],
        streak_days=row["streak_days"],
        total_study_time=row["total_study_time"],
        last_active=_dt(row["last_active"]),
    )


def _row_to_level(row: sqlite3.Row) -> QuizLevel:
    return QuizLevel(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        order=row["sort_order"],
        min_difficulty=row["min_difficulty"],
        max_difficulty=row["max_difficulty"],
        required_questions_to_unlock=row["required_questions_to_unlock"],
        color=row["color"],
        image_url=row["image_url"],
    )


def _row_to_level_progress(row: sqlite3.Row) -> UserLevelProgress:
    return UserLevelProgress(
        id=row["id"],
        user_id=row["user_id"],
        level_id=row["level_id"],
        questions_completed=row["questions_completed"],
        questions_correct=row["questions_correct"],
        is_unlocked=bool(row["is_unlocked"]),
        is_completed=bool(row["is_completed"]),
        last_played=_dt(row["last_played"]),
    )


def _row_to_progress(row: sqlite3.Row) -> UserProgress:
    return UserProgress(
        id=row["id"],
        user_id=row["user_id"],
        question_id=row["question_id"],
        correct=bool(row["correct"]),
        attempts=row["attempts"],
        last_attempted=_dt(row["last_attempted"]),
    )


def next_streak(current: int, last_active: Optional[datetime], now: datetime) -> int:
    """Consecutive-day streak after activity at ``now``."""
    if last_active is None:
        return 1
    days = (now.date() - last_active.date()).days
    if days <= 0:
        return max(current, 1)
    if days == 1:
        return current + 1
    return 1


class QuestionStore:
    """Repository over one SQLite connection, in memory unless a path is given.

    Created once per process and handed to the API and the terminal app.
    Nothing survives a restart when the default in-memory database is used.
    """

    def __init__(self, db_path: str = IN_MEMORY, clock: Callable[[], datetime] = datetime.now):
        self._conn = get_connection(db_path)
        self._lock = threading.RLock()
        self._clock = clock
        init_db(self._conn)

    @contextmanager
    def _transaction(self):
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _query(self, sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, tuple(params)).fetchall()

    def _now(self) -> str:
        return self._clock().isoformat()

    def close(self) -> None:
        self._conn.close()

    # ---- users ----

    def get_user(self, user_id: int) -> User | None:
        rows = self._query("SELECT * FROM users WHERE id = ?", (user_id,))
        if not rows:
            return None
        r = rows[0]
        return User(id=r["id"], username=r["username"], email=r["email"], created_at=_dt(r["created_at"]))

    def get_user_by_username(self, username: str) -> User | None:
        rows = self._query("SELECT id FROM users WHERE username = ?", (username,))
        return self.get_user(rows[0]["id"]) if rows else None

    def create_user(self, username: str, email: str) -> User:
        """Create a user together with a zeroed stats row."""
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO users (username, email, created_at) VALUES (?, ?, ?)",
                (username, email, self._now()),
            )
            user_id = cur.lastrowid
            conn.execute(
                "INSERT INTO user_stats (user_id, last_active) VALUES (?, ?)",
                (user_id, self._now()),
            )
        return self.get_user(user_id)

    # ---- questions ----

    def get_questions(self) -> list[Question]:
        return [_row_to_question(r) for r in self._query("SELECT * FROM questions ORDER BY id")]

    def get_question(self, question_id: int) -> Question | None:
        rows = self._query("SELECT * FROM questions WHERE id = ?", (question_id,))
        return _row_to_question(rows[0]) if rows else None

    def get_questions_by_category(self, category: str) -> list[Question]:
        rows = self._query("SELECT * FROM questions WHERE category = ? ORDER BY id", (category,))
        return [_row_to_question(r) for r in rows]

    def get_questions_by_difficulty(self, difficulty: int) -> list[Question]:
        rows = self._query("SELECT * FROM questions WHERE difficulty = ? ORDER BY id", (difficulty,))
        return [_row_to_question(r) for r in rows]

    def get_questions_by_difficulty_range(self, min_difficulty: int, max_difficulty: int) -> list[Question]:
        """Questions whose difficulty lies in [min, max]; a missing difficulty counts as 1."""
        rows = self._query(
            "SELECT * FROM questions WHERE COALESCE(difficulty, 1) BETWEEN ? AND ? ORDER BY id",
            (min_difficulty, max_difficulty),
        )
        return [_row_to_question(r) for r in rows]

    def get_categories(self) -> list[str]:
        rows = self._query("SELECT category FROM questions GROUP BY category ORDER BY MIN(id)")
        return [r["category"] for r in rows]

    def _insert_question(self, conn: sqlite3.Connection, q: Question) -> int:
        cur = conn.execute(
            """INSERT INTO questions
            (category, question_text, options, correct_answer, explanation, difficulty,
             points, answer_format, task_reference, kind)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                q.category,
                q.question_text,
                json.dumps([o.to_dict() for o in q.options], ensure_ascii=False),
                q.correct_answer,
                q.explanation,
                q.difficulty,
                q.points,
                q.answer_format,
                json.dumps(q.task_reference.to_dict(), ensure_ascii=False) if q.task_reference else None,
                q.kind.value,
            ),
        )
        return cur.lastrowid

    def create_question(self, question: Question) -> Question:
        """Insert a question; the id it carries is replaced by a store id."""
        with self._transaction() as conn:
            new_id = self._insert_question(conn, question)
        return self.get_question(new_id)

    def create_questions(self, questions: list[Question]) -> list[Question]:
        with self._transaction() as conn:
            ids = [self._insert_question(conn, q) for q in questions]
        return [self.get_question(i) for i in ids]

    def import_questions(self, questions: list[Question]) -> dict:
        """Batch insert, skipping questions whose text already exists verbatim."""
        with self._lock:
            seen = {r["question_text"] for r in self._query("SELECT question_text FROM questions")}
            unique = []
            for q in questions:
                if q.question_text in seen:
                    continue
                seen.add(q.question_text)
                unique.append(q)
            created = self.create_questions(unique) if unique else []
        skipped = len(questions) - len(created)
        if not created:
            message = "No new questions found to import"
        else:
            message = f"Successfully imported {len(created)} questions"
        return {"imported": len(created), "skipped": skipped, "message": message, "questions": created}

    # ---- progress ----

    def get_user_progress(self, user_id: int) -> list[UserProgress]:
        rows = self._query("SELECT * FROM user_progress WHERE user_id = ? ORDER BY id", (user_id,))
        return [_row_to_progress(r) for r in rows]

    def record_user_progress(
        self, user_id: int, question_id: int, correct: bool, attempts: int = 1,
    ) -> UserProgress:
        """Record one answer and fold it into the user's stats."""
        now = self._clock()
        with self._transaction() as conn:
            try:
                cur = conn.execute(
                    """INSERT INTO user_progress (user_id, question_id, correct, attempts, last_attempted)
                    VALUES (?, ?, ?, ?, ?)""",
                    (user_id, question_id, int(correct), attempts, now.isoformat()),
                )
            except sqlite3.IntegrityError as e:
                raise NotFoundError(f"Unknown user {user_id} or question {question_id}", e) from e
            progress_id = cur.lastrowid
            stats = conn.execute("SELECT * FROM user_stats WHERE user_id = ?", (user_id,)).fetchone()
            if stats:
                streak = next_streak(stats["streak_days"], _dt(stats["last_active"]), now)
                conn.execute(
                    """UPDATE user_stats SET total_questions = total_questions + 1,
                    correct_answers = correct_answers + ?, streak_days = ?, last_active = ?
                    WHERE user_id = ?""",
                    (int(correct), streak, now.isoformat(), user_id),
                )
        rows = self._query("SELECT * FROM user_progress WHERE id = ?", (progress_id,))
        return _row_to_progress(rows[0])

    # ---- stats ----

    def get_user_stats(self, user_id: int) -> UserStats | None:
        rows = self._query("SELECT * FROM user_stats WHERE user_id = ?", (user_id,))
        return _row_to_stats(rows[0]) if rows else None

    def _require_stats(self, user_id: int) -> UserStats:
        stats = self.get_user_stats(user_id)
        if stats is None:
            raise NotFoundError(f"User stats not found for user {user_id}")
        return stats

    def update_user_stats(self, user_id: int, **changes) -> UserStats:
        """Overwrite the given counters. Raises NotFoundError for unknown users."""
        unknown = set(changes) - STATS_FIELDS
        if unknown:
            raise PayloadValidationError(f"Unknown stats fields: {', '.join(sorted(unknown))}")
        with self._lock:
            self._require_stats(user_id)
            assignments = ", ".join(f"{name} = ?" for name in changes)
            params = list(changes.values())
            sql = "UPDATE user_stats SET " + (assignments + ", " if assignments else "") + "last_active = ? WHERE user_id = ?"
            with self._transaction() as conn:
                conn.execute(sql, (*params, self._now(), user_id))
            return self.get_user_stats(user_id)

    def add_study_time(self, user_id: int, minutes: int) -> UserStats:
        with self._lock:
            self._require_stats(user_id)
            with self._transaction() as conn:
                conn.execute(
                    "UPDATE user_stats SET total_study_time = total_study_time + ?, last_active = ? WHERE user_id = ?",
                    (minutes, self._now(), user_id),
                )
            return self.get_user_stats(user_id)

    def reset_user_stats(self, user_id: int) -> UserStats:
        return self.update_user_stats(
            user_id, total_questions=0, correct_answers=0, streak_days=0, total_study_time=0,
        )

    # ---- levels ----

    def get_levels(self) -> list[QuizLevel]:
        return [_row_to_level(r) for r in self._query("SELECT * FROM quiz_levels ORDER BY sort_order, id")]

    def get_level(self, level_id: int) -> QuizLevel | None:
        rows = self._query("SELECT * FROM quiz_levels WHERE id = ?", (level_id,))
        return _row_to_level(rows[0]) if rows else None

    def create_level(
        self,
        name: str,
        description: str,
        order: int,
        min_difficulty: int = 1,
        max_difficulty: int = 1,
        required_questions_to_unlock: int = 0,
        color: str = "#6366f1",
        image_url: str | None = None,
    ) -> QuizLevel:
        with self._transaction() as conn:
            cur = conn.execute(
                """INSERT INTO quiz_levels
                (name, description, sort_order, min_difficulty, max_difficulty,
                 required_questions_to_unlock, color, image_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (name, description, order, min_difficulty, max_difficulty,
                 required_questions_to_unlock, color, image_url, self._now()),
            )
        return self.get_level(cur.lastrowid)

    def get_level_questions(self, level_id: int) -> list[Question]:
        level = self.get_level(level_id)
        if level is None:
            raise NotFoundError(f"Level {level_id} not found")
        return self.get_questions_by_difficulty_range(level.min_difficulty, level.max_difficulty)

    # ---- level progress ----

    def get_user_level_progress(self, user_id: int) -> list[UserLevelProgress]:
        rows = self._query("SELECT * FROM user_level_progress WHERE user_id = ? ORDER BY level_id", (user_id,))
        return [_row_to_level_progress(r) for r in rows]

    def get_level_progress(self, user_id: int, level_id: int) -> UserLevelProgress | None:
        rows = self._query(
            "SELECT * FROM user_level_progress WHERE user_id = ? AND level_id = ?", (user_id, level_id),
        )
        return _row_to_level_progress(rows[0]) if rows else None

    def create_level_progress(
        self,
        user_id: int,
        level_id: int,
        questions_completed: int = 0,
        questions_correct: int = 0,
        is_unlocked: bool = False,
        is_completed: bool = False,
    ) -> UserLevelProgress:
        with self._transaction() as conn:
            try:
                conn.execute(
                    """INSERT INTO user_level_progress
                    (user_id, level_id, questions_completed, questions_correct, is_unlocked, is_completed, last_played)
                    VALUES (?, ?, ?, ?, ?, ?, ?)""",
                    (user_id, level_id, questions_completed, questions_correct,
                     int(is_unlocked), int(is_completed), self._now()),
                )
            except sqlite3.IntegrityError as e:
                raise PayloadValidationError(
                    f"Cannot create level progress for user {user_id} and level {level_id}", e,
                ) from e
        return self.get_level_progress(user_id, level_id)

    def update_level_progress(self, user_id: int, level_id: int, **changes) -> UserLevelProgress:
        """Update an existing row; a missing row is an error, not an upsert."""
        unknown = set(changes) - LEVEL_PROGRESS_FIELDS
        if unknown:
            raise PayloadValidationError(f"Unknown level progress fields: {', '.join(sorted(unknown))}")
        with self._lock:
            if self.get_level_progress(user_id, level_id) is None:
                raise NotFoundError(f"User level progress not found for user {user_id} and level {level_id}")
            params = [int(v) if isinstance(v, bool) else v for v in changes.values()]
            assignments = "".join(f"{name} = ?, " for name in changes)
            with self._transaction() as conn:
                conn.execute(
                    f"UPDATE user_level_progress SET {assignments}last_played = ? WHERE user_id = ? AND level_id = ?",
                    (*params, self._now(), user_id, level_id),
                )
            return self.get_level_progress(user_id, level_id)

    def is_level_unlocked(self, user_id: int, level_id: int) -> bool:
        level = self.get_level(level_id)
        if level is None:
            return False
        progress = self.get_level_progress(user_id, level_id)
        if progress is not None:
            return progress.is_unlocked
        return level.required_questions_to_unlock == 0

    def record_level_session(self, user_id: int, level_id: int, answered: int, correct: int) -> UserLevelProgress:
        """Fold a finished quiz session into the user's level progress.

        Creates the progress row on first play, marks the level completed once
        at least 80% of the answered questions were correct and unlocks the
        next level when enough questions of this level have been answered.
        """
        level = self.get_level(level_id)
        if level is None:
            raise NotFoundError(f"Level {level_id} not found")
        with self._lock:
            progress = self.get_level_progress(user_id, level_id)
            if progress is None:
                progress = self.create_level_progress(user_id, level_id, is_unlocked=True)
            completed = progress.questions_completed + answered
            total_correct = progress.questions_correct + correct
            progress = self.update_level_progress(
                user_id, level_id,
                questions_completed=completed,
                questions_correct=total_correct,
                is_unlocked=True,
                is_completed=completed > 0 and total_correct >= COMPLETION_RATIO * completed,
            )
            next_level = next((l for l in self.get_levels() if l.order > level.order), None)
            if next_level and completed >= next_level.required_questions_to_unlock:
                if self.get_level_progress(user_id, next_level.id) is None:
                    self.create_level_progress(user_id, next_level.id, is_unlocked=True)
                    logger.info("Unlocked %s for user %d", next_level.name, user_id)
                else:
                    self.update_level_progress(user_id, next_level.id, is_unlocked=True)
        return progress
