"""Weekly study plan built from the stored categories and the user's quiz results."""
from dataclasses import dataclass, field

from ihk_trainer.errors import PayloadValidationError
from ihk_trainer.quiz import get_category_quiz_scores

WEEKDAYS = ["Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag"]
DEFAULT_TOPIC = "Allgemeine Wiederholung"
FOCUS_TOPIC_COUNT = 3

GENERAL_ACTIVITIES = [
    "Karteikarten durchgehen",
    "Quiz-Fragen beantworten",
    "Lernnotizen erstellen",
]

# First keyword contained in the topic (case-insensitive) wins.
TOPIC_ACTIVITIES = [
    ("datenbank", ["SQL-Abfragen üben", "ER-Diagramme zeichnen", "Normalformen wiederholen"]),
    ("sql", ["SQL-Abfragen üben", "ER-Diagramme zeichnen", "Normalformen wiederholen"]),
    ("programmier", ["UML-Klassendiagramme erstellen", "Design Patterns erklären", "Code-Beispiele analysieren"]),
    ("netzwerk", ["IP-Adressierung wiederholen", "OSI-Schichtenmodell erklären", "Routing-Konzepte zusammenfassen"]),
    ("sicherheit", [
        "Verschlüsselungsverfahren wiederholen",
        "Sicherheitskonzepte dokumentieren",
        "Authentifizierungsmethoden vergleichen",
    ]),
    ("anwendungsentwicklung", [
        "Agile Methoden vergleichen",
        "SCRUM-Prozesse visualisieren",
        "Projektmanagement-Tools recherchieren",
    ]),
    ("web", ["HTTP-Protokoll wiederholen", "REST-Prinzipien erklären", "Frontend vs. Backend Konzepte zusammenfassen"]),
]
DEFAULT_ACTIVITIES = ["Kernkonzepte wiederholen", "Praxisbeispiele durchgehen", "Übungsaufgaben lösen"]


@dataclass
class StudySession:
    day: str
    topic: str
    duration: int  # minutes
    activities: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "topic": self.topic,
            "duration": self.duration,
            "activities": list(self.activities),
        }


@dataclass
class StudyPlan:
    sessions: list[StudySession]
    focus_topics: list[str]
    daily_goal: int  # minutes

    @property
    def weekly_minutes(self) -> int:
        return sum(s.duration for s in self.sessions)

    def to_dict(self) -> dict:
        return {
            "sessions": [s.to_dict() for s in self.sessions],
            "focusTopics": list(self.focus_topics),
            "dailyGoal": self.daily_goal,
        }


def activities_for_topic(topic: str) -> list[str]:
    """Two topic-specific activities followed by one general one."""
    lowered = topic.lower()
    specific = next((acts for key, acts in TOPIC_ACTIVITIES if key in lowered), DEFAULT_ACTIVITIES)
    return specific[:2] + GENERAL_ACTIVITIES[:1]


def get_focus_topics(store, user_id: int, limit: int = FOCUS_TOPIC_COUNT) -> list[str]:
    """Weakest categories first, then categories the user has not practised yet."""
    scores = get_category_quiz_scores(store, user_id)
    categories = store.get_categories()
    weakest = sorted(scores, key=lambda c: scores[c])
    untouched = [c for c in categories if c not in scores]
    return (weakest + untouched)[:limit]


def build_study_plan(store, user_id: int, days_per_week: int = 5, minutes_per_day: int = 60) -> StudyPlan:
    """Plan one session per study day, rotating through the categories with focus topics first."""
    if not 1 <= days_per_week <= len(WEEKDAYS):
        raise PayloadValidationError(f"days_per_week must be between 1 and {len(WEEKDAYS)}")
    if minutes_per_day <= 0:
        raise PayloadValidationError("minutes_per_day must be positive")

    focus = get_focus_topics(store, user_id)
    topics = focus + [c for c in store.get_categories() if c not in focus]
    if not topics:
        topics = [DEFAULT_TOPIC]

    sessions = []
    for i, day in enumerate(WEEKDAYS[:days_per_week]):
        topic = topics[i % len(topics)]
        sessions.append(StudySession(
            day=day,
            topic=topic,
            duration=minutes_per_day,
            activities=activities_for_topic(topic),
        ))
    return StudyPlan(sessions=sessions, focus_topics=focus, daily_goal=minutes_per_day)
