"""Interactive CLI application."""
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from ihk_trainer.config import Config, setup_logging
from ihk_trainer.dashboard import (
    calc_readiness_score, get_category_scores, get_readiness_color, get_readiness_label,
    get_study_stats,
)
from ihk_trainer.errors import TrainerError
from ihk_trainer.flashcards import FlashcardDeck, build_deck, card_back, finish_deck
from ihk_trainer.gateway import FeedbackGateway, build_study_tip_prompt
from ihk_trainer.llm_client import get_default_llm_client
from ihk_trainer.loader import import_exam_file, import_exam_url
from ihk_trainer.models import Question, QuestionKind
from ihk_trainer.quiz import get_exam_questions, get_level_quiz_questions, get_quiz_questions, record_quiz_answer
from ihk_trainer.seed import seed_all
from ihk_trainer.session import GRADE_COLORS, ExamSession, ExamState, format_time
from ihk_trainer.store import QuestionStore
from ihk_trainer.study_plan import build_study_plan

console = Console()

LETTERS = "abcdefgh"
EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user types q or menu inside a quiz or flashcard session."""


def session_prompt(prompt: str, choices: list[str] | None = None, default: str | None = None) -> str:
    if choices is not None:
        choices = list(choices) + [w for w in EXIT_WORDS if w not in choices]
    if default is None:
        answer = Prompt.ask(prompt, choices=choices)
    else:
        answer = Prompt.ask(prompt, choices=choices, default=default)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None) -> int:
    return int(session_prompt(prompt, choices=choices))


def show_welcome():
    console.print(Panel(
        "[bold]IHK Prüfungstrainer[/bold]\n[dim]Fachinformatiker/-in Anwendungsentwicklung[/dim]",
        title="Willkommen", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Befehle:[/bold]")
    commands = [
        ("quiz", "Übungsquiz"),
        ("levels", "Level-Quiz"),
        ("flashcards", "Karteikarten"),
        ("exam", "Prüfungssimulation mit KI-Bewertung"),
        ("stats", "Statistik + Prüfungsreife"),
        ("plan", "Wochen-Lernplan"),
        ("import", "Prüfungsdatei oder URL importieren"),
        ("chat", "Frage an den KI-Assistenten"),
        ("tip", "Persönlicher Lerntipp"),
        ("quit", "Beenden"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_hints(gateway: FeedbackGateway, question: Question) -> None:
    hint = gateway.hint_for_question(question)
    if hint.get("fallback"):
        console.print("[dim]KI-Hilfestellung nicht verfügbar, allgemeine Hinweise:[/dim]")
    for h in hint["hints"]:
        console.print(f"  [yellow]•[/yellow] {h}")


def run_quiz_session(
    store: QuestionStore,
    user_id: int,
    questions: list[Question],
    gateway: FeedbackGateway | None = None,
) -> tuple[int, int]:
    if not questions:
        console.print("[yellow]Keine Fragen verfügbar![/yellow]")
        return 0, 0
    correct = 0
    console.print(f"\n[bold]Quiz[/bold] - {len(questions)} Fragen\n")
    for i, q in enumerate(questions, 1):
        console.print(f"[bold]F{i}.[/bold] [dim]({q.category})[/dim] {q.question_text}\n")
        letters = list(LETTERS[:len(q.options)])
        for letter, option in zip(letters, q.options):
            console.print(f"  [cyan]{letter})[/cyan] {option.text}")
        choices = letters + (["?"] if gateway else [])
        answer = session_prompt("\nDeine Antwort" + (" (? = Hilfestellung)" if gateway else ""), choices=choices)
        while answer == "?":
            show_hints(gateway, q)
            answer = session_prompt("\nDeine Antwort", choices=letters)
        is_correct = record_quiz_answer(store, user_id, q, letters.index(answer))
        if is_correct:
            console.print("[green]Richtig![/green]")
            correct += 1
        else:
            right = LETTERS[q.correct_answer] if q.correct_answer < len(LETTERS) else "?"
            console.print(f"[red]Falsch.[/red] Antwort: [green]{right}) {q.correct_option_text}[/green]")
        if q.explanation:
            console.print(f"[dim]{q.explanation}[/dim]")
        console.print()
    console.print(f"[bold]Ergebnis: {correct}/{len(questions)} ({correct/len(questions)*100:.0f}%)[/bold]\n")
    return correct, len(questions)


def run_flashcard_session(store: QuestionStore, user_id: int, deck: FlashcardDeck) -> None:
    if not deck.cards:
        console.print("[yellow]Keine Karteikarten verfügbar![/yellow]")
        return
    console.print(f"\n[bold]Karteikarten[/bold] - {len(deck.cards)} Karten\n")
    while deck.current is not None:
        card = deck.current
        number = len(deck.known) + len(deck.unknown) + 1
        console.print(Panel(card.question_text, title=f"Karte {number}/{len(deck.cards)}", border_style="cyan"))
        session_prompt("[dim]Enter drücken, um die Antwort zu zeigen[/dim]", default="")
        console.print(Panel(card_back(card) or "-", border_style="green"))
        knew_it = session_prompt("Gewusst?", choices=["j", "n"]) == "j"
        deck.mark(knew_it)
        console.print()
    minutes = finish_deck(store, user_id, deck)
    console.print(
        f"[bold]Gewusst: [green]{len(deck.known)}[/green]  |  "
        f"Nicht gewusst: [red]{len(deck.unknown)}[/red]  |  Lernzeit: {minutes} min[/bold]"
    )


def cmd_quiz(store: QuestionStore, gateway: FeedbackGateway, user_id: int):
    console.print("\n[bold]Übungsquiz[/bold]")
    mode = Prompt.ask("Modus", choices=["alle", "kategorie"], default="alle")
    count = IntPrompt.ask("Anzahl Fragen", default=10)
    category = None
    if mode == "kategorie":
        categories = store.get_categories()
        for i, c in enumerate(categories, 1):
            console.print(f"  [cyan]{i}[/cyan]) {c}")
        index = IntPrompt.ask("Kategorie wählen", choices=[str(i) for i in range(1, len(categories) + 1)])
        category = categories[index - 1]
    questions = get_quiz_questions(store, count=count, category=category)
    run_quiz_session(store, user_id, questions, gateway if gateway.available else None)


def cmd_levels(store: QuestionStore, gateway: FeedbackGateway, user_id: int):
    levels = store.get_levels()
    table = Table(title="Level")
    table.add_column("#", justify="right")
    table.add_column("Level")
    table.add_column("Fortschritt", justify="right")
    table.add_column("Status")
    for level in levels:
        progress = store.get_level_progress(user_id, level.id)
        unlocked = store.is_level_unlocked(user_id, level.id)
        done = f"{progress.questions_correct}/{progress.questions_completed}" if progress else "0/0"
        if progress and progress.is_completed:
            status = "[green]Abgeschlossen[/green]"
        elif unlocked:
            status = "[cyan]Freigeschaltet[/cyan]"
        else:
            status = f"[dim]Gesperrt ({level.required_questions_to_unlock} Fragen)[/dim]"
        table.add_row(str(level.id), f"{level.name}\n[dim]{level.description}[/dim]", done, status)
    console.print(table)

    level_id = IntPrompt.ask("Level wählen", choices=[str(l.id) for l in levels])
    if not store.is_level_unlocked(user_id, level_id):
        console.print("[yellow]Dieses Level ist noch gesperrt.[/yellow]")
        return
    questions = get_level_quiz_questions(store, level_id)
    correct, total = run_quiz_session(store, user_id, questions, gateway if gateway.available else None)
    if total:
        progress = store.record_level_session(user_id, level_id, total, correct)
        if progress.is_completed:
            console.print("[green]Level abgeschlossen![/green]")


def cmd_flashcards(store: QuestionStore, user_id: int):
    console.print("\n[bold]Karteikarten[/bold]")
    run_flashcard_session(store, user_id, build_deck(store, limit=15))


def _print_exam_question(session: ExamSession) -> None:
    q = session.current_question
    index = session.current_index
    header = (
        f"Frage {index + 1}/{len(session.questions)}  |  "
        f"Beantwortet: {session.answered_count} ({session.progress_percentage:.0f}%)  |  "
        f"Restzeit: {format_time(session.remaining_time)}"
    )
    body = q.question_text
    if q.kind == QuestionKind.MULTIPLE_CHOICE:
        body += "\n\n" + "\n".join(f"- {o.text}" for o in q.options)
    if session.is_answered(index):
        body += f"\n\n[green]Deine Antwort:[/green] {session.get_answer(index)}"
    console.print(Panel(body, title=header, border_style="magenta"))


def _print_exam_result(session: ExamSession) -> None:
    result = session.result()
    table = Table(title="Auswertung")
    table.add_column("Frage", justify="right")
    table.add_column("Punkte", justify="right")
    table.add_column("Feedback")
    for r in result.results:
        color = "green" if r.is_correct else "red"
        table.add_row(str(r.index + 1), f"[{color}]{r.score:g}/{r.max_score:g}[/{color}]", r.feedback)
    console.print(table)
    color = GRADE_COLORS.get(result.grade, "white")
    verdict = "[green]Bestanden[/green]" if result.passed else "[red]Nicht bestanden[/red]"
    console.print(
        f"\n  Gesamt: [bold]{result.total_score:g}/{result.max_score:g}[/bold] "
        f"({result.percentage}%)  Note: [{color}]{result.grade}[/{color}]  {verdict}\n"
    )


def cmd_exam(store: QuestionStore, gateway: FeedbackGateway):
    console.print("\n[bold]Prüfungssimulation[/bold]")
    if not gateway.available:
        console.print("[yellow]Kein Gemini API-Schlüssel konfiguriert, die KI-Bewertung wird fehlschlagen.[/yellow]")
    count = IntPrompt.ask("Anzahl Fragen", default=10)
    session = ExamSession(gateway)
    if session.load(get_exam_questions(store, count)) == ExamState.NO_QUESTIONS:
        console.print("[yellow]Keine Prüfungsfragen gefunden. Importiere zuerst eine Prüfung.[/yellow]")
        return
    session.start_countdown()
    try:
        while session.state == ExamState.IN_PROGRESS:
            _print_exam_question(session)
            action = Prompt.ask(
                "[a]ntworten, [n]ächste, [p] vorherige, [g]ehe zu, [s] abgeben",
                choices=["a", "n", "p", "g", "s"], default="a",
            )
            if action == "a":
                text = Prompt.ask("Deine Antwort", default=session.get_answer())
                if not session.set_answer(text):
                    console.print("[red]Die Zeit ist abgelaufen, die Antwort wurde nicht gespeichert.[/red]")
                else:
                    session.next_question()
            elif action == "n":
                session.next_question()
            elif action == "p":
                session.previous_question()
            elif action == "g":
                session.go_to(IntPrompt.ask("Frage Nr.") - 1)
            else:
                session.submit()
    finally:
        session.close()

    if session.remaining_time == 0:
        console.print("[red]Die Zeit ist abgelaufen, die Prüfung wurde automatisch abgegeben.[/red]")
    with console.status("Die KI analysiert deine Antworten..."):
        session.evaluate()
    _print_exam_result(session)


def cmd_stats(store: QuestionStore, user_id: int):
    score = calc_readiness_score(store, user_id)
    label = get_readiness_label(score)
    color = get_readiness_color(score)
    stats = get_study_stats(store, user_id)

    console.print(Panel("[bold]Dein Lernstand[/bold]", title="Prüfungsreife", border_style="blue"))

    bar_filled = int(score / 5)
    bar_empty = 20 - bar_filled
    bar = f"[{color}]{'█' * bar_filled}{'░' * bar_empty}[/{color}]"
    console.print(f"\n  Prüfungsreife: [bold]{score}%[/bold] {bar} [{color}]{label}[/{color}]\n")

    category_scores = get_category_scores(store, user_id)
    table = Table(title="Kategorien")
    table.add_column("Kategorie", style="cyan")
    table.add_column("Quote", justify="right")
    table.add_column("Status")
    for cs in category_scores:
        sc_color = get_readiness_color(cs["score"])
        table.add_row(cs["category"], f"{cs['score']}%", f"[{sc_color}]{cs['label']}[/{sc_color}]")
    console.print(table)

    console.print(f"\n  Fragen: [bold]{stats['total_questions']}[/bold]  |  "
                  f"Richtig: [bold]{stats['correct_answers']}[/bold] ({stats['accuracy']}%)  |  "
                  f"Streak: [bold]{stats['streak_days']} Tage[/bold]  |  "
                  f"Lernzeit: [bold]{stats['study_time']}[/bold]  |  "
                  f"Level: [bold]{stats['levels_completed']}[/bold] abgeschlossen")

    if category_scores:
        weakest = min(category_scores, key=lambda c: c["score"])
        if weakest["score"] < 70:
            console.print(f"\n  [yellow]Empfehlung: {weakest['category']} wiederholen[/yellow]")


def cmd_plan(store: QuestionStore, user_id: int):
    days = IntPrompt.ask("Lerntage pro Woche", choices=[str(i) for i in range(1, 8)], default=5)
    minutes = IntPrompt.ask("Minuten pro Tag", default=60)
    plan = build_study_plan(store, user_id, days_per_week=days, minutes_per_day=minutes)

    table = Table(title="Wochen-Lernplan")
    table.add_column("Tag")
    table.add_column("Thema", style="cyan")
    table.add_column("Dauer", justify="right")
    table.add_column("Aktivitäten")
    for s in plan.sessions:
        table.add_row(s.day, s.topic, f"{s.duration} min", "\n".join(s.activities))
    console.print(table)
    if plan.focus_topics:
        console.print(f"\n  Schwerpunkte: [bold]{', '.join(plan.focus_topics)}[/bold]")
    console.print(f"  Tagesziel: [bold]{plan.daily_goal} min[/bold]  |  Pro Woche: {plan.weekly_minutes} min\n")


def cmd_import(store: QuestionStore):
    source = Prompt.ask("Dateipfad oder URL").strip()
    if source.startswith(("http://", "https://")):
        result = import_exam_url(store, source)
    else:
        if not Path(source).exists():
            console.print(f"[red]Datei nicht gefunden: {source}[/red]")
            return
        result = import_exam_file(store, source)
    color = "green" if result["imported"] else "yellow"
    console.print(
        f"[{color}]{result['message']}[/{color}] "
        f"[dim](importiert: {result['imported']}, übersprungen: {result['skipped']})[/dim]"
    )


def cmd_chat(gateway: FeedbackGateway):
    console.print("\n[bold]KI-Assistent[/bold] [dim](leere Eingabe beendet den Chat)[/dim]")
    while True:
        message = Prompt.ask("\n[bold]Du[/bold]", default="").strip()
        if not message:
            return
        with console.status("Denke nach..."):
            reply = gateway.chat(message)
        console.print(Panel(reply, title="Assistent", border_style="green"))


def cmd_tip(store: QuestionStore, gateway: FeedbackGateway, user_id: int):
    stats = store.get_user_stats(user_id)
    if stats is None:
        console.print("[yellow]Keine Statistik vorhanden.[/yellow]")
        return
    tip = gateway.study_tip(build_study_tip_prompt(stats))
    console.print(Panel(tip, title="Lerntipp", border_style="yellow"))


def main():
    setup_logging("WARNING")
    store = QuestionStore()
    seed_all(store)
    gateway = FeedbackGateway(get_default_llm_client())
    user_id = Config.DEFAULT_USER_ID

    show_welcome()

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="quiz").strip().lower()
        try:
            if choice == "quiz":
                cmd_quiz(store, gateway, user_id)
            elif choice == "levels":
                cmd_levels(store, gateway, user_id)
            elif choice == "flashcards":
                cmd_flashcards(store, user_id)
            elif choice == "exam":
                cmd_exam(store, gateway)
            elif choice == "stats":
                cmd_stats(store, user_id)
            elif choice == "plan":
                cmd_plan(store, user_id)
            elif choice == "import":
                cmd_import(store)
            elif choice == "chat":
                cmd_chat(gateway)
            elif choice == "tip":
                cmd_tip(store, gateway, user_id)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Viel Erfolg bei der Prüfung![/dim]")
                break
            else:
                console.print("[red]Unbekannter Befehl. Bitte erneut versuchen.[/red]")
        except SessionExitRequested:
            console.print("[dim]Sitzung beendet, zurück zum Menü.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Mit 'quit' beenden.[/dim]")
        except TrainerError as e:
            console.print(f"[red]Fehler: {e.message}[/red]")
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
