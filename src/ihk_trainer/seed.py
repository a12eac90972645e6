"""Seed the store with example questions, the default user and the quiz levels."""
import json
import logging
from pathlib import Path

from ihk_trainer.models import Question, QuestionOption

logger = logging.getLogger(__name__)

CONTENT_DIR = Path(__file__).parent / "content"

DEFAULT_USERNAME = "testuser"
DEFAULT_EMAIL = "test@example.com"


def load_content(name: str) -> dict:
    return json.loads((CONTENT_DIR / name).read_text(encoding="utf-8"))


def is_seeded(store) -> bool:
    """Check whether the store already holds the default user."""
    return store.get_user_by_username(DEFAULT_USERNAME) is not None


def seed_user(store):
    """Create the default user together with its stats row."""
    return store.create_user(DEFAULT_USERNAME, DEFAULT_EMAIL)


def seed_questions(store) -> list[Question]:
    """Insert the example multiple-choice questions from example_questions.json."""
    data = load_content("example_questions.json")
    questions = [
        Question(
            id=0,
            category=q["category"],
            question_text=q["question_text"],
            options=[QuestionOption(text=text) for text in q["options"]],
            correct_answer=q["correct_answer"],
            explanation=q["explanation"],
            difficulty=q["difficulty"],
        )
        for q in data["questions"]
    ]
    return store.create_questions(questions)


def seed_levels(store, user_id: int) -> None:
    """Insert the levels from levels.json; the first one starts unlocked for ``user_id``."""
    data = load_content("levels.json")
    for i, level in enumerate(data["levels"]):
        created = store.create_level(**level)
        if i == 0:
            store.create_level_progress(user_id, created.id, is_unlocked=True)


def seed_all(store) -> None:
    """Run all seed steps. Safe to call on a store that was already seeded."""
    if is_seeded(store):
        return
    user = seed_user(store)
    seed_questions(store)
    seed_levels(store, user.id)
    logger.info("Seeded store with example questions and %d levels", len(store.get_levels()))


def load_example_exam() -> dict:
    """The bundled AP1 example exam document as decoded JSON."""
    return load_content("example_exam.json")
