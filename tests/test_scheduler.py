import random
from collections import Counter
from datetime import date, timedelta

import pytest

from duedeck.models import Card
from duedeck.scheduler import Scheduler, StaleEntryError

TODAY = date(2024, 3, 10)


def _card(title: str) -> Card:
    return Card(title=title, front=f"{title} front", back=f"{title} back")


def _due_titles(scheduler: Scheduler) -> list[str]:
    return [entry.title for entry in scheduler.due_entries()]


def _future(scheduler: Scheduler) -> list[tuple[date, str, int | None]]:
    return [(e.due_date, e.title, e.last_interval) for e in scheduler.future_entries()]


def test_new_scheduler_is_empty_and_clean() -> None:
    scheduler = Scheduler(today=TODAY)
    assert scheduler.today == TODAY
    assert scheduler.pick_new_card() is None
    assert scheduler.due_count == 0
    assert scheduler.future_count == 0
    assert not scheduler.dirty


def test_add_due_card_appends_and_marks_dirty() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    scheduler.add_due_card(_card("b"), 3)

    assert _due_titles(scheduler) == ["a", "b"]
    assert [e.last_interval for e in scheduler.due_entries()] == [None, 3]
    assert scheduler.dirty


def test_add_card_overdue_goes_due_now_and_marks_dirty() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_card(_card("past"), TODAY - timedelta(days=2), 4)
    scheduler.add_card(_card("today"), TODAY)

    assert _due_titles(scheduler) == ["past", "today"]
    assert scheduler.future_count == 0
    assert scheduler.dirty


def test_add_card_future_keeps_scheduler_clean() -> None:
    scheduler = Scheduler(today=TODAY)
    tomorrow = TODAY + timedelta(days=1)
    scheduler.add_card(_card("b"), tomorrow, 1)
    scheduler.add_card(_card("a"), tomorrow + timedelta(days=1))
    scheduler.add_card(_card("c"), tomorrow)

    assert scheduler.due_count == 0
    assert not scheduler.dirty
    assert _future(scheduler) == [
        (tomorrow, "b", 1),
        (tomorrow, "c", None),
        (tomorrow + timedelta(days=1), "a", None),
    ]


def test_pick_is_idempotent_until_putback() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    scheduler.add_due_card(_card("b"))

    first = scheduler.pick_new_card()
    assert first is not None
    assert scheduler.pick_new_card() is first
    assert first.title == "a"
    assert scheduler.due_count == 2


def test_putback_zero_moves_to_tail_and_resets_interval() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_card(_card("a"), TODAY, 7)
    scheduler.add_card(_card("b"), TODAY, 2)
    scheduler.mark_clean()

    entry = scheduler.pick_new_card()
    assert entry is not None
    scheduler.putback_card(entry, 0)

    assert _due_titles(scheduler) == ["b", "a"]
    assert entry.last_interval == 0
    assert scheduler.due_count + scheduler.future_count == 2
    assert not scheduler.dirty


def test_putback_negative_behaves_like_zero() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    scheduler.add_due_card(_card("b"))
    scheduler.mark_clean()

    entry = scheduler.pick_new_card()
    assert entry is not None
    scheduler.putback_card(entry, -3)

    assert _due_titles(scheduler) == ["b", "a"]
    assert entry.last_interval == 0
    assert not scheduler.dirty


def test_putback_positive_moves_to_future_and_marks_dirty() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    scheduler.add_card(_card("z"), TODAY + timedelta(days=5))
    scheduler.mark_clean()

    entry = scheduler.pick_new_card()
    assert entry is not None
    scheduler.putback_card(entry, 5)

    assert scheduler.pick_new_card() is None
    assert _future(scheduler) == [
        (TODAY + timedelta(days=5), "a", 5),
        (TODAY + timedelta(days=5), "z", None),
    ]
    assert scheduler.dirty


def test_putback_of_demoted_entry_is_rejected() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    entry = scheduler.pick_new_card()
    assert entry is not None
    scheduler.putback_card(entry, 1)

    with pytest.raises(StaleEntryError):
        scheduler.putback_card(entry, 1)


def test_demoted_card_is_due_again_on_a_later_run() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    entry = scheduler.pick_new_card()
    assert entry is not None
    scheduler.putback_card(entry, 3)
    (future,) = list(scheduler.future_entries())

    same_day = Scheduler(today=TODAY + timedelta(days=2))
    same_day.add_card(future.card, future.due_date, future.last_interval)
    assert same_day.due_count == 0

    later = Scheduler(today=TODAY + timedelta(days=3))
    later.add_card(future.card, future.due_date, future.last_interval)
    picked = later.pick_new_card()
    assert picked is not None
    assert picked.title == "a"
    assert picked.last_interval == 3


def test_shuffle_keeps_entries_and_outstanding_handle() -> None:
    scheduler = Scheduler(today=TODAY, rng=random.Random(1234))
    cards = [_card(t) for t in "abcdef"]
    for i, card in enumerate(cards):
        scheduler.add_due_card(card, i)

    before = list(scheduler.due_entries())
    handle = scheduler.pick_new_card()
    assert handle is not None
    scheduler.shuffle_due_cards()

    after = list(scheduler.due_entries())
    assert len(after) == len(before)
    assert {id(e) for e in after} == {id(e) for e in before}
    assert all(e.last_interval == cards.index(e.card) for e in after)

    # The handle picked before shuffling is still usable.
    scheduler.putback_card(handle, 2)
    assert handle not in list(scheduler.due_entries())
    assert [e.title for e in scheduler.future_entries()] == ["a"]


def test_shuffle_is_roughly_uniform() -> None:
    scheduler = Scheduler(today=TODAY, rng=random.Random(42))
    for title in "abcd":
        scheduler.add_due_card(_card(title))

    rounds = 4000
    placements: Counter[tuple[int, str]] = Counter()
    for _ in range(rounds):
        scheduler.shuffle_due_cards()
        for position, title in enumerate(_due_titles(scheduler)):
            placements[(position, title)] += 1

    for position in range(4):
        for title in "abcd":
            assert abs(placements[(position, title)] / rounds - 0.25) < 0.05


def test_three_card_walkthrough() -> None:
    scheduler = Scheduler(today=TODAY)
    for title in "ABC":
        scheduler.add_due_card(_card(title))
    assert [e.last_interval for e in scheduler.due_entries()] == [None, None, None]

    a = scheduler.pick_new_card()
    assert a is not None and a.title == "A"
    scheduler.putback_card(a, 0)
    assert _due_titles(scheduler) == ["B", "C", "A"]

    b = scheduler.pick_new_card()
    assert b is not None and b.title == "B"
    scheduler.putback_card(b, 5)
    assert _due_titles(scheduler) == ["C", "A"]
    assert _future(scheduler) == [(TODAY + timedelta(days=5), "B", 5)]


def test_titles_covers_both_orderings() -> None:
    scheduler = Scheduler(today=TODAY)
    scheduler.add_due_card(_card("a"))
    scheduler.add_card(_card("b"), TODAY + timedelta(days=1))
    assert scheduler.titles() == {"a", "b"}
