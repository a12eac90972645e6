import pytest

from ihk_trainer.errors import TransportError
from ihk_trainer.gateway import FeedbackGateway
from ihk_trainer.llm_client import LLMClient
from ihk_trainer.seed import seed_all
from ihk_trainer.store import QuestionStore


class FakeLLMClient(LLMClient):
    """Returns canned replies and records every prompt it was given."""

    def __init__(self, reply="", fail_when=None):
        self.reply = reply
        self.fail_when = fail_when
        self.prompts = []

    def generate(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        if self.fail_when and self.fail_when in prompt:
            raise TransportError("connection reset")
        return self.reply(prompt) if callable(self.reply) else self.reply


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_trainer.db")
    return db_path


@pytest.fixture
def store():
    s = QuestionStore()
    yield s
    s.close()


@pytest.fixture
def seeded_store(store):
    seed_all(store)
    return store


@pytest.fixture
def fake_llm():
    return FakeLLMClient(reply="- Punktzahl: 4 / 5\n- Feedback: Gut gemacht.\n- Korrekt: Ja")


@pytest.fixture
def gateway(fake_llm):
    return FeedbackGateway(fake_llm)


@pytest.fixture
def exam_dict():
    """A small exam document: two tasks, four gradable questions and one skipped subtask."""
    return {
        "exam_metadata": {"exam_title": "AP1", "profession": "Fachinformatiker"},
        "tasks": [
            {
                "task_number": 1,
                "title": "Netzwerk",
                "subtasks": [
                    {
                        "part_letter": "a",
                        "description": "Planung",
                        "question": "Nennen Sie zwei Vorteile.",
                        "points": 3,
                        "answer_format": "Freitext",
                    },
                    {
                        "part_letter": "b",
                        "description": "Subnetting",
                        "scenario_context": "Netz 10.0.0.0/24",
                        "sub_parts": [
                            {"sub_part_letter": "ba", "question": "Maske?", "points": 2, "answer_format": "Ja/Nein"},
                            {"sub_part_letter": "bb", "question": "Broadcast?", "points": 6, "answer_format": "Liste"},
                        ],
                    },
                ],
            },
            {
                "task_number": 2,
                "title": "SQL",
                "category": "Datenbanken",
                "subtasks": [
                    {"part_letter": "a", "description": "Nur Tabelle"},
                    {
                        "part_letter": "b",
                        "description": "Abfrage",
                        "question": "Schreiben Sie die Abfrage.",
                        "points": 5,
                        "explanation": "SELECT ...",
                    },
                ],
            },
        ],
    }
