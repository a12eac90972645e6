"""Convert IHK exam documents into flat lists of trainer questions."""
from typing import Optional, Union

from ihk_trainer.config import Config
from ihk_trainer.exam_document import ExamDocument, ExamMetadata, ExamSubtask, ExamTask, parse_document
from ihk_trainer.models import Question, QuestionKind, QuestionOption, TaskReference

DEFAULT_CATEGORY = "Allgemein"
DEFAULT_EXPLANATION = "Siehe IHK-Lösung für detaillierte Erklärung."
CONTEXT_PREFIX = "Kontext: "


def calculate_difficulty(points: float, thresholds: tuple[int, int] | None = None) -> int:
    """Map exam points onto the 1-3 difficulty scale.

    ``thresholds`` is ``(low, mid)``: points <= low is 1, points <= mid is 2,
    anything above is 3.
    """
    low, mid = thresholds or Config.DIFFICULTY_THRESHOLDS
    if points <= low:
        return 1
    if points <= mid:
        return 2
    return 3


def generate_options(answer_format: str | None) -> list[QuestionOption]:
    """Placeholder options for exam questions that have no multiple-choice candidates.

    Option 0 is marked correct by convention.
    """
    answer_format = answer_format or ""
    if "Ja/Nein" in answer_format:
        texts = ["Ja", "Nein"]
    elif "Liste" in answer_format:
        texts = [f"Option {i}" for i in range(1, 5)]
    else:
        texts = [f"Antwortmöglichkeit {i}" for i in range(1, 5)]
    return [QuestionOption(text=t, is_correct=(i == 0)) for i, t in enumerate(texts)]


def derive_category(task: ExamTask, metadata: ExamMetadata) -> str:
    if task.category:
        return task.category
    if metadata.profession and task.title:
        return f"{metadata.profession} - {task.title}"
    return task.title or DEFAULT_CATEGORY


def build_question_text(description: str, scenario_context: str | None, question: str) -> str:
    parts = [description.strip()]
    if scenario_context:
        parts.append(CONTEXT_PREFIX + scenario_context.strip())
    parts.append(question.strip())
    return "\n\n".join(p for p in parts if p)


def _has_question(question: Optional[str], points) -> bool:
    return bool(question and question.strip()) and points is not None


def _make_question(
    question_id: int,
    category: str,
    task: ExamTask,
    subtask: ExamSubtask,
    question: str,
    points: float,
    answer_format: str | None,
    scenario_context: str | None,
    explanation: str | None,
    thresholds: tuple[int, int] | None,
) -> Question:
    return Question(
        id=question_id,
        category=category,
        question_text=build_question_text(subtask.description, scenario_context, question),
        options=generate_options(answer_format),
        correct_answer=0,
        explanation=explanation or DEFAULT_EXPLANATION,
        difficulty=calculate_difficulty(points, thresholds),
        points=points,
        answer_format=answer_format or None,
        task_reference=TaskReference(
            task_number=task.task_number,
            task_title=task.title,
            subtask_letter=subtask.part_letter,
            points=points,
        ),
        kind=QuestionKind.FREE_TEXT,
    )


def transform(
    doc: ExamDocument,
    start_id: int = 1,
    thresholds: tuple[int, int] | None = None,
) -> list[Question]:
    """Flatten an exam document into questions in task/subtask/sub-part order.

    Every subtask with a question and points yields one question, followed by
    one question per sub-part that has a question and points.
    """
    questions: list[Question] = []
    next_id = start_id
    for task in doc.tasks:
        category = derive_category(task, doc.exam_metadata)
        for subtask in task.subtasks:
            if _has_question(subtask.question, subtask.points):
                questions.append(_make_question(
                    next_id, category, task, subtask,
                    question=subtask.question,
                    points=subtask.points,
                    answer_format=subtask.answer_format,
                    scenario_context=subtask.scenario_context,
                    explanation=subtask.calculation_needed or subtask.explanation,
                    thresholds=thresholds,
                ))
                next_id += 1
            for sub_part in subtask.sub_parts:
                if not _has_question(sub_part.question, sub_part.points):
                    continue
                questions.append(_make_question(
                    next_id, category, task, subtask,
                    question=sub_part.question,
                    points=sub_part.points,
                    answer_format=sub_part.answer_format,
                    scenario_context=sub_part.scenario_context or subtask.scenario_context,
                    explanation=sub_part.calculation_needed or sub_part.explanation,
                    thresholds=thresholds,
                ))
                next_id += 1
    return questions


def convert_exam_json(raw: Union[str, bytes, dict], thresholds: tuple[int, int] | None = None) -> list[Question]:
    """Parse and transform in one step. Raises MalformedDocumentError on bad input."""
    return transform(parse_document(raw), thresholds=thresholds)
