"""Data classes for the trainer domain model."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class QuestionKind(str, Enum):
    """How a question is answered and scored.

    MULTIPLE_CHOICE questions are scored by comparing the picked option with
    ``correct_answer``. FREE_TEXT questions come from imported exams; their
    options are placeholders and real scoring happens through AI grading.
    """
    MULTIPLE_CHOICE = "multiple_choice"
    FREE_TEXT = "free_text"


@dataclass
class QuestionOption:
    text: str
    is_correct: Optional[bool] = None

    def to_dict(self) -> dict:
        data = {"text": self.text}
        if self.is_correct is not None:
            data["isCorrect"] = self.is_correct
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionOption":
        return cls(text=data["text"], is_correct=data.get("isCorrect"))


@dataclass
class TaskReference:
    """Points back to the exam task/subtask a question was derived from."""
    task_number: int
    task_title: str
    subtask_letter: str
    points: float

    def to_dict(self) -> dict:
        return {
            "taskNumber": self.task_number,
            "taskTitle": self.task_title,
            "subtaskLetter": self.subtask_letter,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TaskReference":
        return cls(
            task_number=data["taskNumber"],
            task_title=data["taskTitle"],
            subtask_letter=data["subtaskLetter"],
            points=data["points"],
        )


@dataclass
class Question:
    id: int
    category: str
    question_text: str
    options: list[QuestionOption]
    correct_answer: int
    explanation: Optional[str] = None
    difficulty: int = 1
    points: Optional[float] = None
    answer_format: Optional[str] = None
    task_reference: Optional[TaskReference] = None
    kind: QuestionKind = QuestionKind.MULTIPLE_CHOICE

    @property
    def correct_option_text(self) -> str:
        if 0 <= self.correct_answer < len(self.options):
            return self.options[self.correct_answer].text
        return ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "questionText": self.question_text,
            "options": [o.to_dict() for o in self.options],
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
            "difficulty": self.difficulty,
            "points": self.points,
            "answerFormat": self.answer_format,
            "originalTask": self.task_reference.to_dict() if self.task_reference else None,
            "kind": self.kind.value,
        }


@dataclass
class User:
    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class UserProgress:
    id: int
    user_id: int
    question_id: int
    correct: bool = False
    attempts: int = 0
    last_attempted: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "questionId": self.question_id,
            "correct": self.correct,
            "attempts": self.attempts,
            "lastAttempted": _iso(self.last_attempted),
        }


@dataclass
class UserStats:
    id: int
    user_id: int
    total_questions: int = 0
    correct_answers: int = 0
    streak_days: int = 0
    total_study_time: int = 0  # minutes
    last_active: Optional[datetime] = None

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return round(self.correct_answers / self.total_questions * 100, 1)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "streakDays": self.streak_days,
            "totalStudyTime": self.total_study_time,
            "lastActive": _iso(self.last_active),
        }


@dataclass
class QuizLevel:
    id: int
    name: str
    description: str
    order: int
    min_difficulty: int = 1
    max_difficulty: int = 1
    required_questions_to_unlock: int = 0
    color: str = "#6366f1"
    image_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "order": self.order,
            "minDifficulty": self.min_difficulty,
            "maxDifficulty": self.max_difficulty,
            "requiredQuestionsToUnlock": self.required_questions_to_unlock,
            "color": self.color,
            "imageUrl": self.image_url,
        }


@dataclass
class UserLevelProgress:
    id: int
    user_id: int
    level_id: int
    questions_completed: int = 0
    questions_correct: int = 0
    is_unlocked: bool = False
    is_completed: bool = False
    last_played: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "levelId": self.level_id,
            "questionsCompleted": self.questions_completed,
            "questionsCorrect": self.questions_correct,
            "isUnlocked": self.is_unlocked,
            "isCompleted": self.is_completed,
            "lastPlayed": _iso(self.last_played),
        }


@dataclass
class GradingRequest:
    question_text: str
    user_answer: str
    correct_answer: str
    difficulty: int
    max_points: float


@dataclass
class GradingResult:
    feedback: str
    is_correct: bool
    score: float
    max_score: float

    def to_dict(self) -> dict:
        return {
            "feedback": self.feedback,
            "isCorrect": self.is_correct,
            "score": self.score,
            "maxScore": self.max_score,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
