"""Quiz engine for multiple-choice practice questions."""
import random

from ihk_trainer.models import Question, QuestionKind


def _sample(questions: list[Question], count: int) -> list[Question]:
    return random.sample(questions, min(count, len(questions)))


def get_quiz_questions(store, count: int = 10, category: str | None = None) -> list[Question]:
    """Random multiple-choice questions, optionally limited to one category."""
    if category:
        questions = store.get_questions_by_category(category)
    else:
        questions = store.get_questions()
    return _sample([q for q in questions if q.kind == QuestionKind.MULTIPLE_CHOICE], count)


def get_level_quiz_questions(store, level_id: int, count: int = 10) -> list[Question]:
    questions = store.get_level_questions(level_id)
    return _sample([q for q in questions if q.kind == QuestionKind.MULTIPLE_CHOICE], count)


def get_exam_questions(store, count: int = 10) -> list[Question]:
    """Questions for a timed exam; imported exam questions come first, in document order."""
    questions = store.get_questions()
    free_text = [q for q in questions if q.kind == QuestionKind.FREE_TEXT]
    if free_text:
        return free_text[:count]
    return _sample(questions, count)


def record_quiz_answer(store, user_id: int, question: Question, answer_index: int) -> bool:
    is_correct = answer_index == question.correct_answer
    store.record_user_progress(user_id, question.id, is_correct)
    return is_correct


def get_quiz_score(store, user_id: int) -> float:
    """Overall quiz score as percentage."""
    progress = store.get_user_progress(user_id)
    if not progress:
        return 0.0
    correct = sum(1 for p in progress if p.correct)
    return round(correct / len(progress) * 100, 1)


def get_category_quiz_scores(store, user_id: int) -> dict:
    """Quiz scores broken down by category."""
    totals: dict[str, list[int]] = {}
    for p in store.get_user_progress(user_id):
        question = store.get_question(p.question_id)
        if question is None:
            continue
        bucket = totals.setdefault(question.category, [0, 0])
        bucket[0] += 1
        bucket[1] += int(p.correct)
    return {
        category: round(correct / total * 100, 1)
        for category, (total, correct) in totals.items()
    }
