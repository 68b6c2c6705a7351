from __future__ import annotations

import logging
import signal
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from duedeck.catalog import CatalogError, load_catalog
from duedeck.scheduler import Scheduler
from duedeck.session import CancellationToken, ReviewSession
from duedeck.state import (
    ScheduleFileError,
    ScheduleStore,
    add_new_cards,
    default_schedule_path,
)
from duedeck.stats import DueDateStatistics

logger = logging.getLogger(__name__)


@contextmanager
def cancel_on_signals(token: CancellationToken) -> Iterator[None]:
    """Route SIGINT and SIGTERM to `token` for the duration of the block.

    The handler only interrupts the running code while the session waits on
    input; otherwise the loop notices the cancellation after the current
    cycle.
    """

    def handler(signum: int, frame: object) -> None:
        logger.debug("Received signal %d, stopping after this card", signum)
        token.cancel()
        if token.waiting:
            raise KeyboardInterrupt

    signals = (signal.SIGINT, signal.SIGTERM)
    previous = {sig: signal.signal(sig, handler) for sig in signals}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)


def run_review(
    catalog_path: Path,
    schedule_path: Path,
    *,
    reverse: bool = False,
    new_cards: int | None = None,
    show_stats: bool = True,
    scheduler: Scheduler | None = None,
) -> None:
    """Load, review, then save when anything changed. Errors propagate to the caller."""
    typer.echo("Reading cards...")
    catalog = load_catalog(catalog_path)

    scheduler = scheduler if scheduler is not None else Scheduler()
    store = ScheduleStore(path=schedule_path)
    result = store.load_into(scheduler, catalog)
    if not result.found:
        typer.echo("Schedule file not found, starting from an empty schedule.")
    for title in result.unknown_titles:
        typer.echo(f"Card `{title}` is not in the catalog, skipping it.")

    added = add_new_cards(scheduler, catalog, limit=new_cards)
    if added:
        typer.echo(f"Introducing {added} new card(s).")
    scheduler.shuffle_due_cards()

    token = CancellationToken()
    session = ReviewSession(scheduler, flip=reverse, token=token)
    with cancel_on_signals(token):
        reviewed = session.run()
    logger.debug("Session ended after %d review(s)", reviewed)

    if scheduler.dirty:
        typer.echo("Updating cards due dates...")
        store.save(scheduler)
    else:
        typer.echo("Schedule unchanged.")

    if show_stats:
        for line in DueDateStatistics.from_scheduler(scheduler).lines():
            typer.echo(line)


def main(
    ctx: typer.Context,
    catalog: Optional[Path] = typer.Argument(
        None,
        dir_okay=False,
        help="Card catalog JSON file: an object mapping titles to [front, back].",
    ),
    schedule: Optional[Path] = typer.Argument(
        None,
        dir_okay=False,
        help="Due dates JSON file (default: <catalog stem>_due_dates.json beside it).",
    ),
    reverse: bool = typer.Option(
        False, "-r", "--reverse", help="Show the back of each card first."
    ),
    new_cards: Optional[int] = typer.Option(
        None,
        "-n",
        "--new-cards",
        help="Introduce at most this many never-seen cards this run.",
    ),
    stats: bool = typer.Option(
        True,
        "--stats/--no-stats",
        help="Print upcoming due date statistics at the end.",
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Enable debug logging."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if catalog is None:
        typer.echo(ctx.get_help())
        return

    if new_cards is not None and new_cards < 0:
        typer.echo("--new-cards must not be negative.")
        return

    catalog = catalog.expanduser()
    if schedule is None:
        schedule = default_schedule_path(catalog)
    schedule = schedule.expanduser()

    try:
        run_review(
            catalog,
            schedule,
            reverse=reverse,
            new_cards=new_cards,
            show_stats=stats,
        )
    except (CatalogError, ScheduleFileError) as e:
        typer.echo(str(e))


def entrypoint() -> None:
    typer.run(main)
