"""
AI feedback gateway: grading, chat, study tips and question hints.

Every call goes through an ``LLMClient``. The gateway owns the German prompts
and the parsing of the replies; transport concerns (timeouts, rate limits)
are raised by the client as trainer errors and propagate unchanged.
"""
import logging
import re
from typing import Optional

from ihk_trainer.errors import MissingCredentialError, TrainerError
from ihk_trainer.llm_client import LLMClient
from ihk_trainer.models import GradingRequest, GradingResult, Question, UserStats

logger = logging.getLogger(__name__)

NO_FEEDBACK = "Keine Bewertung verfügbar."

SCORE_RE = re.compile(r"Punktzahl:?\s*(\d+)\s*/\s*\d+", re.IGNORECASE)
CORRECT_RE = re.compile(r"Korrekt:?\s*(Ja|Nein)", re.IGNORECASE)
FEEDBACK_RE = re.compile(r"Feedback:?([\s\S]*?)(?=\n- Korrekt:|$)", re.IGNORECASE)
WRAPPING_QUOTES_RE = re.compile(r"^[\"']|[\"']$")
NUMBERED_HINT_RE = re.compile(r"\d+\.\s+[^\n.]+")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

GRADING_PROMPT = """Du bist ein IHK-Prüfer für Fachinformatiker. Bitte bewerte die Antwort eines Prüflings auf eine Prüfungsfrage.

Prüfungsfrage: {question_text}

Richtige Antwort gemäß Lösungsschlüssel: {correct_answer}

Antwort des Prüflings: {user_answer}

Schwierigkeitsgrad der Frage: {difficulty}/3
Maximale Punktzahl: {max_points}

Bitte bewerte die Antwort nach den folgenden Kriterien:
1. Inhaltliche Richtigkeit
2. Vollständigkeit
3. Fachliche Präzision

Gib deine Bewertung im folgenden Format zurück:
- Punktzahl: X / {max_points}
- Feedback: Dein detailliertes Feedback zur Antwort
- Korrekt: Ja/Nein (Ist die Antwort insgesamt richtig oder falsch?)

Halte das Feedback konstruktiv und gib spezifische Hinweise, wie die Antwort verbessert werden könnte.
Beziehe dich auf konkrete fachliche Aspekte der Antwort."""

CHAT_PROMPT = """Du bist ein Assistent für IHK-Prüfungen im Bereich Fachinformatiker für Anwendungsentwicklung.
Der Nutzer bereitet sich auf diese Prüfung vor und hat folgende Frage:

{message}

Gib eine klare, hilfreiche und fachlich korrekte Antwort. Verwende Beispiele wo möglich und stelle sicher,
dass deine Erklärungen dem Niveau der IHK-Prüfung entsprechen. Beziehe dich auf relevante Konzepte
der Anwendungsentwicklung, Programmierung, Datenbanken oder IT-Systeme, je nachdem, was für die Frage relevant ist."""

HINT_PROMPT = """Als Lernassistent für die IHK-Prüfungsvorbereitung, gib mir eine Hilfestellung zu folgender Frage:

"{question_text}"

Wichtig: Verrate NICHT die Antwort! Biete stattdessen:
1. Eine allgemeine Erklärung des Themas
2. 1-2 Hinweise, die zum Denken anregen
3. Einen Ansatz zur Lösungsfindung

Formatiere deine Antwort als einfachen Text, maximal 200 Wörter."""

FALLBACK_HINTS = {
    "Anwendungsentwicklung": [
        "Überlege, welche Konzepte der Softwareentwicklung hier relevant sein könnten.",
        "Denke an die grundlegenden Prinzipien der Programmierung.",
        "Beziehe dich auf den Entwicklungsprozess von Software.",
    ],
    "Netzwerktechnik": [
        "Denke an die verschiedenen Netzwerkschichten und ihre Funktionen.",
        "Überlege, welche Protokolle hier relevant sein könnten.",
        "Beziehe Netzwerktopologien und ihre Eigenschaften ein.",
    ],
    "Datenbanken": [
        "Überlege, welche Datenbankkonzepte hier eine Rolle spielen könnten.",
        "Denke an die Normalformen und Datenbankdesign.",
        "Beziehe SQL-Konzepte und Abfragetypen ein.",
    ],
}
DEFAULT_HINTS = [
    "Analysiere die Frage sorgfältig und identifiziere die Schlüsselkonzepte.",
    "Überlege, welche grundlegenden Prinzipien hier angewendet werden könnten.",
    "Versuche, das Problem in kleinere Teilaspekte zu zerlegen.",
]


def build_grading_prompt(request: GradingRequest) -> str:
    return GRADING_PROMPT.format(
        question_text=request.question_text,
        correct_answer=request.correct_answer,
        user_answer=request.user_answer,
        difficulty=request.difficulty,
        max_points=_format_points(request.max_points),
    )


def build_study_tip_prompt(stats: UserStats, category: Optional[str] = None) -> str:
    """Prompt for a short personalised study tip based on the user's stats."""
    hours, minutes = divmod(stats.total_study_time, 60)
    lines = [
        "Als KI-Lernassistent für die IHK-Fachinformatiker-Prüfung, gib mir einen personalisierten Lerntipp.",
        "Berücksichtige folgende Nutzerdaten:",
        f"- Beantwortete Fragen: {stats.total_questions}",
        f"- Korrekte Antworten: {stats.correct_answers} ({round(stats.accuracy)}%)",
        f"- Aktuelle Streak: {stats.streak_days} Tage",
        f"- Gesamte Lernzeit: {hours}h {minutes}m",
    ]
    if category:
        lines.append(f"- Aktuell lernt der Nutzer: {category}")
    lines.append("")
    lines.append(
        "Gib nur einen kurzen, prägnanten Tipp (max. 120 Zeichen), der motivierend und hilfreich ist. "
        "Formatiere die Antwort als einfachen Text ohne Einleitung oder Abschluss."
    )
    return "\n".join(lines)


def build_hint_prompt(question_text: str) -> str:
    return HINT_PROMPT.format(question_text=question_text)


def parse_grading_reply(text: str, max_points: float) -> GradingResult:
    """Pull score, verdict and feedback out of a free-form grading reply.

    Each field is parsed on its own: a missing score counts as 0, a missing
    verdict as not correct, and without a Feedback section the whole reply
    is the feedback.
    """
    score = 0.0
    match = SCORE_RE.search(text)
    if match:
        score = float(match.group(1))
    score = min(max(score, 0.0), float(max_points))

    match = CORRECT_RE.search(text)
    is_correct = bool(match) and match.group(1).lower() == "ja"

    match = FEEDBACK_RE.search(text)
    if match and match.group(1).strip():
        feedback = match.group(1).strip()
    else:
        feedback = text.strip() or NO_FEEDBACK

    return GradingResult(feedback=feedback, is_correct=is_correct, score=score, max_score=max_points)


def clean_tip(text: str) -> str:
    return WRAPPING_QUOTES_RE.sub("", text.strip())


def extract_hints(text: str) -> list[str]:
    """Short hints from a hint reply: numbered items if there are at least two, else the first sentences."""
    numbered = NUMBERED_HINT_RE.findall(text)
    if len(numbered) >= 2:
        return [h.strip() for h in numbered]
    sentences = [s.strip() for s in SENTENCE_SPLIT_RE.split(text) if len(s.strip()) > 20]
    return sentences[:3]


def fallback_hints(category: Optional[str]) -> list[str]:
    return list(FALLBACK_HINTS.get(category or "", DEFAULT_HINTS))


def _format_points(points: float) -> str:
    return str(int(points)) if float(points).is_integer() else str(points)


class FeedbackGateway:
    """Entry point for all AI features.

    Args:
        client: LLM client to use. ``None`` means no API key is configured;
            every call then raises ``MissingCredentialError`` without any
            network activity.
    """

    def __init__(self, client: LLMClient | None):
        self.client = client

    @property
    def available(self) -> bool:
        return self.client is not None

    def _generate(self, prompt: str) -> str:
        if self.client is None:
            raise MissingCredentialError("Gemini API key not configured")
        return self.client.generate(prompt)

    def grade_answer(self, request: GradingRequest) -> GradingResult:
        text = self._generate(build_grading_prompt(request))
        result = parse_grading_reply(text, request.max_points)
        logger.debug("Graded answer: %s/%s", result.score, result.max_score)
        return result

    def chat(self, message: str) -> str:
        return self._generate(CHAT_PROMPT.format(message=message))

    def study_tip(self, prompt: str) -> str:
        return clean_tip(self._generate(prompt))

    def question_hint(self, prompt: str, question_id: int | None = None) -> dict:
        hint = self._generate(prompt).strip()
        return {"hint": hint, "questionId": question_id, "hints": extract_hints(hint)}

    def hint_for_question(self, question: Question) -> dict:
        """Hint for a stored question, degraded to canned category hints when the AI call fails."""
        try:
            return self.question_hint(build_hint_prompt(question.question_text), question.id)
        except TrainerError as e:
            logger.warning("Falling back to canned hints for question %d: %s", question.id, e.message)
            return {
                "hint": None,
                "questionId": question.id,
                "hints": fallback_hints(question.category),
                "fallback": True,
            }
