from ihk_trainer.dashboard import (
    calc_readiness_score, format_study_time, get_category_scores, get_readiness_color,
    get_readiness_label, get_study_stats,
)
from ihk_trainer.quiz import record_quiz_answer


def test_readiness_label():
    assert get_readiness_label(85) == "BEREIT"
    assert get_readiness_label(70) == "FAST BEREIT"
    assert get_readiness_label(55) == "AUSBAUFÄHIG"
    assert get_readiness_label(30) == "NICHT BEREIT"


def test_readiness_color():
    assert get_readiness_color(80) == "green"
    assert get_readiness_color(65) == "yellow"
    assert get_readiness_color(50) == "dark_orange"
    assert get_readiness_color(10) == "red"


def test_readiness_score_empty(seeded_store):
    assert calc_readiness_score(seeded_store, 1) == 0.0


def test_readiness_score(seeded_store):
    seeded_store.update_user_stats(1, total_questions=10, correct_answers=8)
    first = seeded_store.get_levels()[0]
    seeded_store.update_level_progress(1, first.id, is_completed=True)
    # 80 * 0.7 + (1/3 * 100) * 0.3
    assert calc_readiness_score(seeded_store, 1) == 66.0


def test_category_scores(seeded_store):
    q = seeded_store.get_question(2)
    record_quiz_answer(seeded_store, 1, q, q.correct_answer)
    assert get_category_scores(seeded_store, 1) == [
        {"category": "Datenbanken", "score": 100.0, "label": "BEREIT"},
    ]


def test_format_study_time():
    assert format_study_time(0) == "0h 0m"
    assert format_study_time(135) == "2h 15m"


def test_study_stats(seeded_store):
    seeded_store.add_study_time(1, 90)
    stats = get_study_stats(seeded_store, 1)
    assert stats["study_time"] == "1h 30m"
    assert stats["levels_unlocked"] == 1
    assert stats["levels_completed"] == 0
    assert stats["accuracy"] == 0.0


def test_study_stats_unknown_user(seeded_store):
    assert get_study_stats(seeded_store, 99)["total_questions"] == 0
