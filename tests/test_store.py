from datetime import datetime, timedelta

import pytest

from ihk_trainer.errors import NotFoundError, PayloadValidationError
from ihk_trainer.models import Question, QuestionKind, QuestionOption, TaskReference
from ihk_trainer.store import QuestionStore, next_streak


def make_question(text, category="Datenbanken", difficulty=1, **kwargs):
    return Question(
        id=0,
        category=category,
        question_text=text,
        options=[QuestionOption(text="A"), QuestionOption(text="B")],
        correct_answer=1,
        difficulty=difficulty,
        **kwargs,
    )


def test_create_and_get_question(store):
    created = store.create_question(make_question(
        "Was ist SQL?",
        points=4,
        answer_format="Freitext",
        task_reference=TaskReference(task_number=1, task_title="DB", subtask_letter="a", points=4),
        kind=QuestionKind.FREE_TEXT,
    ))
    assert created.id == 1
    fetched = store.get_question(created.id)
    assert fetched == created
    assert fetched.task_reference.task_title == "DB"
    assert fetched.kind == QuestionKind.FREE_TEXT


def test_get_missing_question_returns_none(store):
    assert store.get_question(99) is None


def test_ids_are_sequential(store):
    created = store.create_questions([make_question("a"), make_question("b"), make_question("c")])
    assert [q.id for q in created] == [1, 2, 3]


def test_filters(store):
    store.create_questions([
        make_question("q1", "Datenbanken", 1),
        make_question("q2", "Netzwerktechnik", 2),
        make_question("q3", "Datenbanken", 3),
    ])
    assert [q.question_text for q in store.get_questions_by_category("Datenbanken")] == ["q1", "q3"]
    assert store.get_questions_by_category("datenbanken") == []
    assert [q.question_text for q in store.get_questions_by_difficulty(2)] == ["q2"]
    assert [q.question_text for q in store.get_questions_by_difficulty_range(2, 3)] == ["q2", "q3"]
    assert store.get_categories() == ["Datenbanken", "Netzwerktechnik"]


def test_difficulty_range_treats_missing_as_one(store):
    store.create_question(make_question("legacy"))
    store._conn.execute("UPDATE questions SET difficulty = NULL")
    assert [q.question_text for q in store.get_questions_by_difficulty_range(1, 1)] == ["legacy"]


def test_import_questions_deduplicates(store):
    store.create_question(make_question("exists"))
    batch = [make_question("exists"), make_question("new 1"), make_question("new 2"), make_question("new 1")]
    result = store.import_questions(batch)
    assert result["imported"] == 2
    assert result["skipped"] == 2
    assert result["message"] == "Successfully imported 2 questions"
    assert [q.question_text for q in result["questions"]] == ["new 1", "new 2"]
    assert len(store.get_questions()) == 3


def test_import_questions_nothing_new(store):
    store.create_question(make_question("exists"))
    result = store.import_questions([make_question("exists")])
    assert result == {
        "imported": 0, "skipped": 1, "message": "No new questions found to import", "questions": [],
    }


def test_create_user_creates_stats(store):
    user = store.create_user("anna", "anna@example.com")
    assert store.get_user_by_username("anna") == user
    stats = store.get_user_stats(user.id)
    assert stats.total_questions == 0
    assert stats.accuracy == 0.0


def test_record_user_progress_updates_stats(store):
    user = store.create_user("anna", "anna@example.com")
    q = store.create_question(make_question("q"))
    store.record_user_progress(user.id, q.id, True)
    store.record_user_progress(user.id, q.id, False)
    stats = store.get_user_stats(user.id)
    assert stats.total_questions == 2
    assert stats.correct_answers == 1
    assert stats.streak_days == 1
    assert len(store.get_user_progress(user.id)) == 2


def test_record_user_progress_unknown_question(store):
    user = store.create_user("anna", "anna@example.com")
    with pytest.raises(NotFoundError):
        store.record_user_progress(user.id, 42, True)


def test_streak_counts_consecutive_days():
    now = datetime(2025, 3, 10, 9, 0)
    assert next_streak(0, None, now) == 1
    assert next_streak(0, now - timedelta(hours=1), now) == 1
    assert next_streak(4, now - timedelta(hours=1), now) == 4
    assert next_streak(4, now - timedelta(days=1), now) == 5
    assert next_streak(4, now - timedelta(days=3), now) == 1


def test_streak_over_two_days():
    clock = {"now": datetime(2025, 3, 10, 20, 0)}
    store = QuestionStore(clock=lambda: clock["now"])
    user = store.create_user("anna", "anna@example.com")
    q = store.create_question(make_question("q"))
    store.record_user_progress(user.id, q.id, True)
    clock["now"] += timedelta(days=1)
    store.record_user_progress(user.id, q.id, True)
    assert store.get_user_stats(user.id).streak_days == 2
    store.close()


def test_update_user_stats(store):
    user = store.create_user("anna", "anna@example.com")
    stats = store.update_user_stats(user.id, total_study_time=30, streak_days=3)
    assert stats.total_study_time == 30
    assert stats.streak_days == 3
    assert store.add_study_time(user.id, 15).total_study_time == 45
    reset = store.reset_user_stats(user.id)
    assert (reset.total_questions, reset.correct_answers, reset.streak_days, reset.total_study_time) == (0, 0, 0, 0)


def test_update_user_stats_unknown_user(store):
    with pytest.raises(NotFoundError):
        store.update_user_stats(7, streak_days=1)


def test_update_user_stats_unknown_field(store):
    user = store.create_user("anna", "anna@example.com")
    with pytest.raises(PayloadValidationError):
        store.update_user_stats(user.id, karma=5)


def test_levels_ordered(store):
    store.create_level("Zwei", "b", order=2)
    store.create_level("Eins", "a", order=1)
    assert [l.name for l in store.get_levels()] == ["Eins", "Zwei"]


def test_update_level_progress_is_not_upsert(store):
    user = store.create_user("anna", "anna@example.com")
    level = store.create_level("Eins", "a", order=1)
    with pytest.raises(NotFoundError):
        store.update_level_progress(user.id, level.id, questions_completed=3)
    assert store.get_level_progress(user.id, level.id) is None


def test_level_progress_create_and_update(store):
    user = store.create_user("anna", "anna@example.com")
    level = store.create_level("Eins", "a", order=1)
    store.create_level_progress(user.id, level.id, is_unlocked=True)
    updated = store.update_level_progress(user.id, level.id, questions_completed=3, is_completed=True)
    assert updated.questions_completed == 3
    assert updated.is_completed is True
    assert updated.is_unlocked is True
    assert store.get_user_level_progress(user.id) == [updated]


def test_create_level_progress_twice_rejected(store):
    user = store.create_user("anna", "anna@example.com")
    level = store.create_level("Eins", "a", order=1)
    store.create_level_progress(user.id, level.id)
    with pytest.raises(PayloadValidationError):
        store.create_level_progress(user.id, level.id)


def test_record_level_session_unlocks_next_level(store):
    user = store.create_user("anna", "anna@example.com")
    first = store.create_level("Eins", "a", order=1)
    second = store.create_level("Zwei", "b", order=2, required_questions_to_unlock=5)
    assert store.is_level_unlocked(user.id, first.id)
    assert not store.is_level_unlocked(user.id, second.id)

    progress = store.record_level_session(user.id, first.id, answered=3, correct=3)
    assert progress.is_completed
    assert not store.is_level_unlocked(user.id, second.id)

    progress = store.record_level_session(user.id, first.id, answered=2, correct=0)
    assert progress.questions_completed == 5
    assert progress.questions_correct == 3
    assert not progress.is_completed
    assert store.is_level_unlocked(user.id, second.id)


def test_record_level_session_unknown_level(store):
    user = store.create_user("anna", "anna@example.com")
    with pytest.raises(NotFoundError):
        store.record_level_session(user.id, 99, 1, 1)


def test_file_backed_store(tmp_db):
    store = QuestionStore(tmp_db)
    store.create_question(make_question("persisted"))
    store.close()
    reopened = QuestionStore(tmp_db)
    assert [q.question_text for q in reopened.get_questions()] == ["persisted"]
    reopened.close()
