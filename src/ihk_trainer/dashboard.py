"""Readiness dashboard scoring and statistics."""
from ihk_trainer.quiz import get_category_quiz_scores


def get_readiness_label(score: float) -> str:
    if score >= 80:
        return "BEREIT"
    elif score >= 65:
        return "FAST BEREIT"
    elif score >= 50:
        return "AUSBAUFÄHIG"
    return "NICHT BEREIT"


def get_readiness_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 65:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def _level_completion(store, user_id: int) -> float:
    levels = store.get_levels()
    if not levels:
        return 0.0
    completed = sum(1 for p in store.get_user_level_progress(user_id) if p.is_completed)
    return completed / len(levels) * 100


def calc_readiness_score(store, user_id: int) -> float:
    stats = store.get_user_stats(user_id)
    accuracy = stats.accuracy if stats else 0.0
    # Weighted: answer accuracy 70%, completed levels 30%
    score = accuracy * 0.7 + _level_completion(store, user_id) * 0.3
    return round(score, 1)


def get_category_scores(store, user_id: int) -> list[dict]:
    scores = get_category_quiz_scores(store, user_id)
    return [
        {"category": category, "score": score, "label": get_readiness_label(score)}
        for category, score in sorted(scores.items())
    ]


def format_study_time(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m"


def get_study_stats(store, user_id: int) -> dict:
    stats = store.get_user_stats(user_id)
    progress = store.get_user_level_progress(user_id)
    if stats is None:
        return {
            "total_questions": 0, "correct_answers": 0, "accuracy": 0.0,
            "streak_days": 0, "study_time": format_study_time(0),
            "levels_unlocked": 0, "levels_completed": 0,
        }
    return {
        "total_questions": stats.total_questions,
        "correct_answers": stats.correct_answers,
        "accuracy": stats.accuracy,
        "streak_days": stats.streak_days,
        "study_time": format_study_time(stats.total_study_time),
        "levels_unlocked": sum(1 for p in progress if p.is_unlocked),
        "levels_completed": sum(1 for p in progress if p.is_completed),
    }
