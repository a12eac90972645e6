"""
Timed exam simulation.

An ``ExamSession`` walks through a list of questions, collects free-text
answers while a countdown runs, and on submission has every answered
question graded by the AI gateway in parallel. The session lives in memory
only and is discarded when the user leaves the exam.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from ihk_trainer.config import Config
from ihk_trainer.errors import TrainerError
from ihk_trainer.models import GradingRequest, Question, QuestionKind

logger = logging.getLogger(__name__)

GRADING_FAILED_FEEDBACK = (
    "Fehler bei der Bewertung durch die KI. Bitte überprüfe deine Internetverbindung."
)
PASS_PERCENTAGE = 50

GRADE_BANDS = [
    (92, "Sehr gut"),
    (81, "Gut"),
    (67, "Befriedigend"),
    (50, "Ausreichend"),
    (30, "Mangelhaft"),
    (0, "Ungenügend"),
]

GRADE_COLORS = {
    "Sehr gut": "bold green",
    "Gut": "green",
    "Befriedigend": "yellow",
    "Ausreichend": "dark_orange",
    "Mangelhaft": "red",
    "Ungenügend": "bold red",
}


def get_grade_label(percentage: float) -> str:
    for threshold, label in GRADE_BANDS:
        if percentage >= threshold:
            return label
    return GRADE_BANDS[-1][1]


def is_passed(percentage: float) -> bool:
    return percentage >= PASS_PERCENTAGE


def format_time(total_seconds: int) -> str:
    minutes, seconds = divmod(max(total_seconds, 0), 60)
    return f"{minutes:02d}:{seconds:02d}"


class ExamState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    NO_QUESTIONS = "no_questions"
    EVALUATING = "evaluating"
    SCORED = "scored"


@dataclass
class QuestionResult:
    index: int
    question_id: int
    answer: str
    feedback: str
    is_correct: bool
    score: float
    max_score: float
    failed: bool = False

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "questionId": self.question_id,
            "answer": self.answer,
            "feedback": self.feedback,
            "isCorrect": self.is_correct,
            "score": self.score,
            "maxScore": self.max_score,
            "failed": self.failed,
        }


@dataclass
class ExamResult:
    total_score: float
    max_score: float
    percentage: float
    grade: str
    passed: bool
    results: list[QuestionResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalScore": self.total_score,
            "maxScore": self.max_score,
            "percentage": self.percentage,
            "grade": self.grade,
            "passed": self.passed,
            "results": [r.to_dict() for r in self.results],
        }


class Countdown(threading.Thread):
    """Background thread calling ``session.tick()`` once per interval until cancelled."""

    def __init__(self, session: "ExamSession", interval: float = 1.0):
        super().__init__(daemon=True, name="exam-countdown")
        self.session = session
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.session.tick()
            if self.session.state != ExamState.IN_PROGRESS:
                break

    def cancel(self) -> None:
        self._stopped.set()

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()


class ExamSession:
    """State machine for one exam simulation.

    LOADING -> IN_PROGRESS -> EVALUATING -> SCORED, or LOADING -> NO_QUESTIONS
    when there is nothing to ask. Answers are keyed by question index.
    """

    def __init__(
        self,
        gateway,
        duration_minutes: int | None = None,
        point_weight: int | None = None,
        on_timeout: Optional[Callable[["ExamSession"], None]] = None,
    ):
        self.gateway = gateway
        self.duration_seconds = (duration_minutes or Config.EXAM_TIME_MINUTES) * 60
        self.point_weight = point_weight or Config.EXAM_POINT_WEIGHT
        self.on_timeout = on_timeout
        self.state = ExamState.LOADING
        self.questions: list[Question] = []
        self.current_index = 0
        self.answers: dict[int, str] = {}
        self.remaining_time = self.duration_seconds
        self.results: dict[int, QuestionResult] = {}
        self._countdown: Countdown | None = None
        self._lock = threading.Lock()

    # ---- loading & navigation ----

    def load(self, questions: list[Question]) -> ExamState:
        self.questions = list(questions)
        self.current_index = 0
        self.answers = {}
        self.results = {}
        self.remaining_time = self.duration_seconds
        self.state = ExamState.IN_PROGRESS if self.questions else ExamState.NO_QUESTIONS
        logger.info("Exam loaded with %d questions", len(self.questions))
        return self.state

    @property
    def current_question(self) -> Question | None:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    def go_to(self, index: int) -> int:
        if self.state == ExamState.IN_PROGRESS:
            self.current_index = min(max(index, 0), len(self.questions) - 1)
        return self.current_index

    def next_question(self) -> int:
        return self.go_to(self.current_index + 1)

    def previous_question(self) -> int:
        return self.go_to(self.current_index - 1)

    # ---- answers ----

    def set_answer(self, text: str, index: int | None = None) -> bool:
        """Store the answer for ``index`` (default: current question).

        Blank text removes the answer. Returns False when answers are no
        longer accepted.
        """
        with self._lock:
            if self.state != ExamState.IN_PROGRESS:
                return False
            index = self.current_index if index is None else index
            if not 0 <= index < len(self.questions):
                raise IndexError(f"No question at index {index}")
            if text and text.strip():
                self.answers[index] = text
            else:
                self.answers.pop(index, None)
            return True

    def get_answer(self, index: int | None = None) -> str:
        return self.answers.get(self.current_index if index is None else index, "")

    def is_answered(self, index: int) -> bool:
        return bool(self.answers.get(index, "").strip())

    @property
    def answered_count(self) -> int:
        return sum(1 for i in self.answers if self.is_answered(i))

    @property
    def progress_percentage(self) -> float:
        if not self.questions:
            return 0.0
        return self.answered_count / len(self.questions) * 100

    # ---- countdown & submission ----

    def start_countdown(self, interval: float = 1.0) -> Countdown:
        self._countdown = Countdown(self, interval)
        self._countdown.start()
        return self._countdown

    def tick(self) -> None:
        """Advance the clock by one second; the last second forces a submission."""
        with self._lock:
            if self.state != ExamState.IN_PROGRESS:
                return
            self.remaining_time = max(self.remaining_time - 1, 0)
            expired = self.remaining_time == 0
        if expired and self.submit():
            logger.info("Time is up, exam submitted automatically")
            if self.on_timeout:
                self.on_timeout(self)

    def submit(self) -> bool:
        """Move to EVALUATING. Returns False if the exam was already submitted."""
        with self._lock:
            if self.state != ExamState.IN_PROGRESS:
                return False
            self.state = ExamState.EVALUATING
        self._stop_countdown()
        return True

    def _stop_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()

    def close(self) -> None:
        """Stop the countdown; call when leaving the exam."""
        self._stop_countdown()

    # ---- grading ----

    def max_points_for(self, question: Question) -> float:
        return (question.difficulty or 1) * self.point_weight

    def _reference_answer(self, question: Question) -> str:
        if question.kind == QuestionKind.FREE_TEXT:
            return question.explanation or ""
        return question.correct_option_text

    def _failed_result(self, index: int, question: Question, answer: str, max_points: float) -> QuestionResult:
        return QuestionResult(
            index=index, question_id=question.id, answer=answer,
            feedback=GRADING_FAILED_FEEDBACK, is_correct=False,
            score=0, max_score=max_points, failed=True,
        )

    def _grade(self, index: int) -> QuestionResult:
        question = self.questions[index]
        answer = self.answers[index]
        max_points = self.max_points_for(question)
        request = GradingRequest(
            question_text=question.question_text,
            user_answer=answer,
            correct_answer=self._reference_answer(question),
            difficulty=question.difficulty or 1,
            max_points=max_points,
        )
        try:
            graded = self.gateway.grade_answer(request)
        except TrainerError as e:
            logger.warning("Grading failed for question %d: %s", question.id, e.message)
            return self._failed_result(index, question, answer, max_points)
        except Exception:
            logger.exception("Unexpected error while grading question %d", question.id)
            return self._failed_result(index, question, answer, max_points)
        return QuestionResult(
            index=index, question_id=question.id, answer=answer,
            feedback=graded.feedback, is_correct=graded.is_correct,
            score=graded.score, max_score=max_points,
        )

    def evaluate(self, max_workers: int | None = None) -> ExamResult:
        """Grade all answered questions concurrently and move to SCORED."""
        if self.state == ExamState.SCORED:
            return self.result()
        if self.state == ExamState.IN_PROGRESS:
            self.submit()
        if self.state != ExamState.EVALUATING:
            raise RuntimeError(f"Cannot evaluate an exam in state {self.state.value}")

        indices = sorted(i for i in self.answers if self.is_answered(i))
        if indices:
            with ThreadPoolExecutor(max_workers=max_workers or len(indices)) as pool:
                for graded in pool.map(self._grade, indices):
                    self.results[graded.index] = graded
        self.state = ExamState.SCORED
        result = self.result()
        logger.info("Exam scored: %s/%s (%s)", result.total_score, result.max_score, result.grade)
        return result

    def result(self) -> ExamResult:
        ordered = [self.results[i] for i in sorted(self.results)]
        total = sum(r.score for r in ordered)
        maximum = sum(r.max_score for r in ordered)
        percentage = total / maximum * 100 if maximum else 0.0
        return ExamResult(
            total_score=total,
            max_score=maximum,
            percentage=round(percentage, 1),
            grade=get_grade_label(percentage),
            passed=is_passed(percentage),
            results=ordered,
        )
