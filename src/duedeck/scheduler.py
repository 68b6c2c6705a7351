from __future__ import annotations

import bisect
import logging
import random
from collections import OrderedDict
from datetime import date, timedelta
from typing import Iterator

from duedeck.models import Card, DueEntry, FutureEntry, Interval

logger = logging.getLogger(__name__)


class StaleEntryError(LookupError):
    """A handle was put back that is no longer in the due-now sequence."""


def local_today() -> date:
    """Return today's calendar date in the local timezone."""
    return date.today()


class Scheduler:
    """Tracks which cards are due now and when the others come due.

    Due-now entries live in an insertion-ordered mapping used purely as a
    linked list: entries are never copied, only relinked, so a handle from
    `pick_new_card` survives any reordering. Future entries are kept sorted
    by (due date, title).

    `today` is fixed at construction and used for every due/not-due decision
    of the run.
    """

    def __init__(
        self, *, today: date | None = None, rng: random.Random | None = None
    ):
        self._today = today if today is not None else local_today()
        self._rng = rng if rng is not None else random.Random()
        self._due: OrderedDict[DueEntry, None] = OrderedDict()
        self._future: list[FutureEntry] = []
        self._dirty = False

    @property
    def today(self) -> date:
        return self._today

    @property
    def dirty(self) -> bool:
        """True when the in-memory schedule differs from what was last persisted."""
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    @property
    def due_count(self) -> int:
        return len(self._due)

    @property
    def future_count(self) -> int:
        return len(self._future)

    def due_entries(self) -> Iterator[DueEntry]:
        """Yield due-now entries in review order."""
        return iter(self._due)

    def future_entries(self) -> Iterator[FutureEntry]:
        """Yield future entries by due date, then title."""
        return iter(self._future)

    def titles(self) -> set[str]:
        """Return the titles of every scheduled card."""
        scheduled = {entry.title for entry in self._due}
        scheduled.update(entry.title for entry in self._future)
        return scheduled

    def add_due_card(self, card: Card, last_interval: Interval = None) -> DueEntry:
        """Append `card` to the due-now tail unconditionally."""
        entry = DueEntry(card=card, last_interval=last_interval)
        self._due[entry] = None
        self._dirty = True
        return entry

    def add_card(
        self, card: Card, due_date: date, last_interval: Interval = None
    ) -> None:
        """Schedule a persisted card, moving it to due-now if it is already due."""
        if due_date <= self._today:
            logger.debug("%s was due on %s, now due", card.title, due_date)
            self.add_due_card(card, last_interval)
        else:
            self._insert_future(
                FutureEntry(due_date=due_date, card=card, last_interval=last_interval)
            )

    def pick_new_card(self) -> DueEntry | None:
        """Return the head of the due-now sequence without removing it.

        Returns None once nothing is left to review today.
        """
        return next(iter(self._due), None)

    def putback_card(self, entry: DueEntry, next_interval_days: int) -> None:
        """Reschedule a picked entry `next_interval_days` from today.

        A non-positive interval keeps the card due: it goes to the back of
        the due-now sequence with its interval reset to 0. A positive one
        moves it to the future set.
        """
        if entry not in self._due:
            raise StaleEntryError(f"Card `{entry.title}` is not due now")

        if next_interval_days <= 0:
            entry.last_interval = 0
            self._due.move_to_end(entry)
            return

        due_date = self._today + timedelta(days=next_interval_days)
        del self._due[entry]
        self._insert_future(
            FutureEntry(
                due_date=due_date, card=entry.card, last_interval=next_interval_days
            )
        )
        self._dirty = True

    def shuffle_due_cards(self) -> None:
        """Put the due-now sequence in a uniformly random order.

        Entries are relinked in shuffled order, never recreated.
        """
        order = list(self._due)
        self._rng.shuffle(order)
        for entry in order:
            self._due.move_to_end(entry)

    def _insert_future(self, entry: FutureEntry) -> None:
        bisect.insort_right(self._future, entry, key=lambda e: e.sort_key)
