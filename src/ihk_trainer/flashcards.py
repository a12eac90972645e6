"""Flashcard sessions over the stored questions."""
import random
import time
from dataclasses import dataclass, field

from ihk_trainer.models import Question


@dataclass
class FlashcardDeck:
    """One pass through a shuffled set of cards, tracking what the user knew."""
    cards: list[Question]
    known: list[int] = field(default_factory=list)
    unknown: list[int] = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def remaining(self) -> int:
        return len(self.cards) - len(self.known) - len(self.unknown)

    @property
    def current(self) -> Question | None:
        reviewed = len(self.known) + len(self.unknown)
        if reviewed >= len(self.cards):
            return None
        return self.cards[reviewed]

    def mark(self, knew_it: bool) -> None:
        card = self.current
        if card is None:
            raise IndexError("No cards left in this deck")
        (self.known if knew_it else self.unknown).append(card.id)

    def elapsed_minutes(self) -> int:
        return int((time.monotonic() - self.started_at) // 60)


def card_back(question: Question) -> str:
    """Answer side of a card: the correct option and the explanation."""
    parts = []
    if question.correct_option_text:
        parts.append(question.correct_option_text)
    if question.explanation:
        parts.append(question.explanation)
    return "\n\n".join(parts)


def build_deck(store, limit: int = 15, category: str | None = None) -> FlashcardDeck:
    if category:
        questions = store.get_questions_by_category(category)
    else:
        questions = store.get_questions()
    questions = list(questions)
    random.shuffle(questions)
    return FlashcardDeck(cards=questions[:limit])


def finish_deck(store, user_id: int, deck: FlashcardDeck) -> int:
    """Book the time spent on the deck as study time; returns the minutes booked."""
    minutes = max(deck.elapsed_minutes(), 1) if deck.known or deck.unknown else 0
    if minutes:
        store.add_study_time(user_id, minutes)
    return minutes
