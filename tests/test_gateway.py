import pytest

from ihk_trainer.errors import GatewayTimeoutError, MissingCredentialError
from ihk_trainer.gateway import (
    NO_FEEDBACK, FeedbackGateway, build_grading_prompt, build_hint_prompt, build_study_tip_prompt,
    clean_tip, extract_hints, fallback_hints, parse_grading_reply,
)
from ihk_trainer.models import GradingRequest, Question, QuestionOption, UserStats

from conftest import FakeLLMClient


def grading_request(max_points=10):
    return GradingRequest(
        question_text="Was ist ein Router?",
        user_answer="Ein Gerät auf Schicht 3",
        correct_answer="Router",
        difficulty=2,
        max_points=max_points,
    )


def test_grading_prompt_contains_request_fields():
    prompt = build_grading_prompt(grading_request())
    assert "Prüfungsfrage: Was ist ein Router?" in prompt
    assert "Antwort des Prüflings: Ein Gerät auf Schicht 3" in prompt
    assert "Schwierigkeitsgrad der Frage: 2/3" in prompt
    assert "- Punktzahl: X / 10" in prompt


def test_parse_well_formed_reply():
    text = "- Punktzahl: 7 / 10\n- Feedback: Gute Antwort,\naber unvollständig.\n- Korrekt: Ja"
    result = parse_grading_reply(text, 10)
    assert result.score == 7
    assert result.is_correct is True
    assert result.feedback == "Gute Antwort,\naber unvollständig."
    assert result.max_score == 10


def test_parse_is_case_insensitive():
    result = parse_grading_reply("punktzahl 3/10\nfeedback: knapp\n- korrekt: nein", 10)
    assert result.score == 3
    assert result.is_correct is False


def test_parse_unstructured_reply_falls_back():
    result = parse_grading_reply("Die Antwort ist leider falsch.", 10)
    assert result.score == 0
    assert result.is_correct is False
    assert result.feedback == "Die Antwort ist leider falsch."


def test_parse_empty_reply():
    assert parse_grading_reply("", 5).feedback == NO_FEEDBACK


def test_parse_clamps_score():
    assert parse_grading_reply("- Punktzahl: 15 / 10\n- Korrekt: Ja", 10).score == 10


def test_grade_answer_uses_client(gateway, fake_llm):
    result = gateway.grade_answer(grading_request(max_points=5))
    assert result.score == 4
    assert result.is_correct
    assert result.feedback == "Gut gemacht."
    assert len(fake_llm.prompts) == 1


def test_missing_credentials_fail_fast():
    gateway = FeedbackGateway(None)
    assert not gateway.available
    with pytest.raises(MissingCredentialError):
        gateway.grade_answer(grading_request())
    with pytest.raises(MissingCredentialError):
        gateway.chat("Hallo")
    with pytest.raises(MissingCredentialError):
        gateway.study_tip("Tipp")
    with pytest.raises(MissingCredentialError):
        gateway.question_hint("Hinweis")


def test_chat_wraps_message():
    client = FakeLLMClient(reply="Normalisierung reduziert Redundanz.")
    reply = FeedbackGateway(client).chat("Was ist Normalisierung?")
    assert reply == "Normalisierung reduziert Redundanz."
    assert "Was ist Normalisierung?" in client.prompts[0]
    assert "Fachinformatiker für Anwendungsentwicklung" in client.prompts[0]


def test_study_tip_strips_quotes():
    client = FakeLLMClient(reply='  "Wiederhole täglich 10 Fragen."  ')
    assert FeedbackGateway(client).study_tip("prompt") == "Wiederhole täglich 10 Fragen."
    assert clean_tip("'Kurz'") == "Kurz"


def test_study_tip_prompt_uses_stats():
    stats = UserStats(id=1, user_id=1, total_questions=20, correct_answers=15, streak_days=3, total_study_time=125)
    prompt = build_study_tip_prompt(stats, "Datenbanken")
    assert "- Beantwortete Fragen: 20" in prompt
    assert "- Korrekte Antworten: 15 (75%)" in prompt
    assert "- Gesamte Lernzeit: 2h 5m" in prompt
    assert "- Aktuell lernt der Nutzer: Datenbanken" in prompt
    assert "max. 120 Zeichen" in prompt
    assert "Aktuell lernt" not in build_study_tip_prompt(stats)


def test_hint_prompt():
    prompt = build_hint_prompt("Was ist ACID?")
    assert '"Was ist ACID?"' in prompt
    assert "Verrate NICHT die Antwort" in prompt


def test_extract_numbered_hints():
    text = "1. Denke an Transaktionen\n2. Was passiert bei einem Absturz\n3. Isolation"
    assert extract_hints(text) == [
        "1. Denke an Transaktionen", "2. Was passiert bei einem Absturz", "3. Isolation",
    ]


def test_extract_sentence_hints():
    text = "Kurz. Überlege dir, was eine Transaktion ausmacht! Denke an parallele Zugriffe auf Daten? Ja. Noch ein langer Satz mit Inhalt."
    assert extract_hints(text) == [
        "Überlege dir, was eine Transaktion ausmacht",
        "Denke an parallele Zugriffe auf Daten",
        "Noch ein langer Satz mit Inhalt",
    ]


def test_fallback_hints():
    assert fallback_hints("Datenbanken")[1] == "Denke an die Normalformen und Datenbankdesign."
    assert fallback_hints("Netzwerktechnik")[0].startswith("Denke an die verschiedenen Netzwerkschichten")
    assert fallback_hints("Unbekannt") == fallback_hints(None)
    assert len(fallback_hints(None)) == 3


def test_question_hint():
    client = FakeLLMClient(reply="1. Erster Hinweis\n2. Zweiter Hinweis")
    hint = FeedbackGateway(client).question_hint("prompt", question_id=3)
    assert hint["questionId"] == 3
    assert hint["hints"] == ["1. Erster Hinweis", "2. Zweiter Hinweis"]


def test_hint_for_question_falls_back_on_error():
    class TimeoutClient(FakeLLMClient):
        def generate(self, prompt, **kwargs):
            raise GatewayTimeoutError("timed out")

    question = Question(
        id=5, category="Datenbanken", question_text="Was ist ACID?",
        options=[QuestionOption(text="a")], correct_answer=0,
    )
    hint = FeedbackGateway(TimeoutClient()).hint_for_question(question)
    assert hint["fallback"] is True
    assert hint["hints"] == fallback_hints("Datenbanken")
