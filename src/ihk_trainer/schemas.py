"""Request bodies accepted by the HTTP API (camelCase on the wire)."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ihk_trainer.models import (
    GradingRequest, Question, QuestionKind, QuestionOption, TaskReference,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionOptionIn(ApiModel):
    text: str
    is_correct: Optional[bool] = None


class TaskReferenceIn(ApiModel):
    task_number: int
    task_title: str
    subtask_letter: str
    points: float


class QuestionIn(ApiModel):
    category: str
    question_text: str = Field(min_length=1)
    options: List[QuestionOptionIn]
    correct_answer: int = Field(ge=0)
    explanation: Optional[str] = None
    difficulty: int = Field(default=1, ge=1, le=3)
    points: Optional[float] = None
    answer_format: Optional[str] = None
    original_task: Optional[TaskReferenceIn] = None
    kind: QuestionKind = QuestionKind.MULTIPLE_CHOICE

    @model_validator(mode="after")
    def check_correct_answer(self) -> "QuestionIn":
        if not self.options:
            raise ValueError("at least one option is required")
        if self.correct_answer >= len(self.options):
            raise ValueError("correctAnswer must point at one of the options")
        return self

    def to_question(self) -> Question:
        task = self.original_task
        return Question(
            id=0,
            category=self.category,
            question_text=self.question_text,
            options=[QuestionOption(text=o.text, is_correct=o.is_correct) for o in self.options],
            correct_answer=self.correct_answer,
            explanation=self.explanation,
            difficulty=self.difficulty,
            points=self.points,
            answer_format=self.answer_format,
            task_reference=TaskReference(**task.model_dump()) if task else None,
            kind=self.kind,
        )


class BatchQuestionsIn(ApiModel):
    questions: List[QuestionIn]


class ImportUrlIn(ApiModel):
    url: str = Field(min_length=1)


class ProgressIn(ApiModel):
    user_id: int
    question_id: int
    correct: bool
    attempts: int = Field(default=1, ge=1)


class StatsPatchIn(ApiModel):
    total_questions: Optional[int] = Field(default=None, ge=0)
    correct_answers: Optional[int] = Field(default=None, ge=0)
    streak_days: Optional[int] = Field(default=None, ge=0)
    total_study_time: Optional[int] = Field(default=None, ge=0)


class StudyTimeIn(ApiModel):
    minutes: int = Field(gt=0)


class LevelIn(ApiModel):
    name: str = Field(min_length=1)
    description: str
    order: int
    min_difficulty: int = Field(default=1, ge=1, le=3)
    max_difficulty: int = Field(default=1, ge=1, le=3)
    required_questions_to_unlock: int = Field(default=0, ge=0)
    color: str = "#6366f1"
    image_url: Optional[str] = None


class LevelProgressIn(ApiModel):
    user_id: int
    level_id: int
    questions_completed: int = Field(default=0, ge=0)
    questions_correct: int = Field(default=0, ge=0)
    is_unlocked: bool = False
    is_completed: bool = False


class LevelProgressPatchIn(ApiModel):
    questions_completed: Optional[int] = Field(default=None, ge=0)
    questions_correct: Optional[int] = Field(default=None, ge=0)
    is_unlocked: Optional[bool] = None
    is_completed: Optional[bool] = None


class LevelSessionIn(ApiModel):
    answered: int = Field(ge=0)
    correct: int = Field(ge=0)


class FeedbackIn(ApiModel):
    question_text: str
    user_answer: str
    correct_answer: str
    difficulty: int
    max_points: float = Field(ge=0)

    def to_request(self) -> GradingRequest:
        return GradingRequest(**self.model_dump())


class ChatIn(ApiModel):
    message: str = Field(min_length=1)


class StudyTipIn(ApiModel):
    prompt: str = Field(min_length=1)


class QuestionHintIn(ApiModel):
    prompt: str = Field(min_length=1)
    question_id: Optional[int] = None
    category: Optional[str] = None
