from __future__ import annotations

from dataclasses import dataclass
from datetime import date

# `None` means the card has never been shown; 0 means it was reviewed and reset.
Interval = int | None


@dataclass(frozen=True, slots=True)
class Card:
    title: str
    front: str
    back: str


@dataclass(eq=False, slots=True)
class DueEntry:
    """A card that may be shown this run.

    Entries compare by identity: the object handed out by
    `Scheduler.pick_new_card` stays the same object while the scheduler
    relinks it, so it doubles as the handle for `putback_card`.
    """

    card: Card
    last_interval: Interval = None

    @property
    def title(self) -> str:
        return self.card.title


@dataclass(frozen=True, slots=True)
class FutureEntry:
    due_date: date
    card: Card
    last_interval: Interval = None

    @property
    def title(self) -> str:
        return self.card.title

    @property
    def sort_key(self) -> tuple[date, str]:
        return (self.due_date, self.card.title)
