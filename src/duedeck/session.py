from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

import typer

from duedeck.models import Card
from duedeck.scheduler import Scheduler

logger = logging.getLogger(__name__)

INTERVAL_QUESTION = "In how many days should this card be shown again?"


def clear_screen() -> None:
    typer.echo("\033[2J\033[1;1H", nl=False)


class CancellationToken:
    """Asks a review loop to stop at the next cycle boundary.

    `waiting` is True only while the session blocks on user input, the one
    place where it is safe to abandon a cycle midway.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._waiting = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def waiting(self) -> bool:
        return self._waiting

    @contextmanager
    def interruptible(self) -> Iterator[None]:
        self._waiting = True
        try:
            yield
        finally:
            self._waiting = False


@dataclass(slots=True)
class ReviewSession:
    """Drives the pick, show, putback loop over a scheduler.

    `echo`, `prompt` and `clear` write to the terminal through typer and are
    injectable for tests.
    """

    scheduler: Scheduler
    flip: bool = False
    token: CancellationToken = field(default_factory=CancellationToken)
    echo: Callable[..., Any] = typer.echo
    prompt: Callable[..., Any] = typer.prompt
    clear: Callable[[], Any] = clear_screen
    reviewed: int = 0

    def _sides(self, card: Card) -> tuple[str, str]:
        if self.flip:
            return card.back, card.front
        return card.front, card.back

    def _wait_for_enter(self) -> bool:
        """Block until Enter is pressed. False means input ended or was interrupted."""
        try:
            with self.token.interruptible():
                self.prompt("", default="", show_default=False, prompt_suffix="")
        except (typer.Abort, KeyboardInterrupt):
            self.token.cancel()
            return False
        return True

    def _ask_interval(self) -> int | None:
        while True:
            try:
                with self.token.interruptible():
                    days = self.prompt(INTERVAL_QUESTION, type=int)
            except (typer.Abort, KeyboardInterrupt):
                self.token.cancel()
                return None
            if days >= 0:
                return days

    def review_one(self) -> bool:
        """Run one complete cycle. Returns False when the loop should stop."""
        entry = self.scheduler.pick_new_card()
        if entry is None:
            self.echo("No more cards to review!")
            return False

        shown, hidden = self._sides(entry.card)
        self.clear()
        self.echo(shown)
        if not self._wait_for_enter():
            return False
        self.echo(hidden)
        self.echo("")

        days = self._ask_interval()
        if days is None:
            return False
        self.echo("")

        self.scheduler.putback_card(entry, days)
        self.reviewed += 1
        logger.debug("%s reviewed, next in %d day(s)", entry.title, days)
        return True

    def run(self) -> int:
        """Review until nothing is due or the token is cancelled.

        Returns the number of completed reviews.
        """
        due = self.scheduler.due_count
        self.echo(f"{due} card(s) to review. Press Enter to start.")
        if not self.token.cancelled and not self._wait_for_enter():
            return self.reviewed
        while not self.token.cancelled:
            if not self.review_one():
                break
        return self.reviewed
