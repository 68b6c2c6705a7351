from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from duedeck.scheduler import Scheduler


@dataclass(slots=True)
class DueDateStatistics:
    """How many cards come due in how many days, plus average and longest wait."""

    cards_by_days: Counter[int] = field(default_factory=Counter)
    cumulative_days: int = 0
    card_count: int = 0
    longest_days: int | None = None

    def add(self, days: int) -> None:
        self.cards_by_days[days] += 1
        self.cumulative_days += days
        self.card_count += 1
        if self.longest_days is None or days > self.longest_days:
            self.longest_days = days

    @classmethod
    def from_scheduler(cls, scheduler: Scheduler) -> DueDateStatistics:
        stats = cls()
        for _ in scheduler.due_entries():
            stats.add(0)
        for entry in scheduler.future_entries():
            stats.add((entry.due_date - scheduler.today).days)
        return stats

    @property
    def average_days(self) -> float:
        if self.card_count == 0:
            return 0.0
        return self.cumulative_days / self.card_count

    def lines(self) -> list[str]:
        if self.card_count == 0:
            return []
        lines = [
            f"Cards due in {days} days: {count}"
            for days, count in sorted(self.cards_by_days.items())
        ]
        lines.append("")
        lines.append(
            f"Average number of days until each card is shown: {self.average_days:.1f}"
        )
        lines.append(
            f"Longest number of days until a card is shown: {self.longest_days}"
        )
        return lines
