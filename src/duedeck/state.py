from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import MAXYEAR, MINYEAR, date
from pathlib import Path

from duedeck.catalog import CardCatalog, DuplicateKeyError, reject_duplicate_keys
from duedeck.models import Interval
from duedeck.scheduler import Scheduler

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")


@dataclass(frozen=True, slots=True)
class ScheduleFileError(Exception):
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def parse_date(text: str) -> date:
    """Parse a strict `YYYY-MM-DD` date, rejecting days the month does not have."""
    match = _DATE_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid date '{text}', expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    if not MINYEAR <= year <= MAXYEAR:
        raise ValueError(
            f"invalid date '{text}': year {year} is out of range {MINYEAR}-{MAXYEAR}"
        )
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ValueError(f"invalid date '{text}': {e}") from None


def format_date(value: date) -> str:
    return value.isoformat()


def parse_entry(value: object) -> tuple[date, Interval]:
    """Decode one snapshot value: `"YYYY-MM-DD"` or `["YYYY-MM-DD", days]`."""
    if isinstance(value, str):
        return parse_date(value), None

    if not isinstance(value, list) or len(value) != 2:
        raise TypeError("must be a date string or a [date, interval] array")

    raw_date, interval = value
    if not isinstance(raw_date, str):
        raise TypeError("the first array element must be a date string")
    # bool is an int subclass; `true` is not an interval.
    if not isinstance(interval, int) or isinstance(interval, bool) or interval < 0:
        raise TypeError("the interval must be a non-negative integer")
    return parse_date(raw_date), interval


def _encode_entry(due_date: date, interval: Interval) -> object:
    if interval is None:
        return format_date(due_date)
    return [format_date(due_date), interval]


def default_schedule_path(catalog_path: Path) -> Path:
    """Return `<dir>/<stem>_due_dates.json` next to the catalog."""
    return catalog_path.with_name(f"{catalog_path.stem}_due_dates.json")


@dataclass(frozen=True, slots=True)
class LoadResult:
    found: bool
    unknown_titles: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ScheduleStore:
    """Reads and writes the due-date snapshot of one catalog."""

    path: Path

    def load_into(self, scheduler: Scheduler, catalog: CardCatalog) -> LoadResult:
        """Feed every snapshot entry to `scheduler`.

        A missing file is an empty schedule. Entries whose title is not in
        `catalog` are skipped and listed in the result.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No schedule at %s, starting empty", self.path)
            return LoadResult(found=False)
        except OSError as e:
            msg = f"Could not read schedule file: {e}"
            raise ScheduleFileError(path=self.path, message=msg)

        try:
            raw = json.loads(text, object_pairs_hook=reject_duplicate_keys)
        except DuplicateKeyError as e:
            msg = f"Card `{e}` is scheduled twice."
            raise ScheduleFileError(path=self.path, message=msg)
        except json.JSONDecodeError as e:
            msg = f"Invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
            raise ScheduleFileError(path=self.path, message=msg)

        if not isinstance(raw, dict):
            raise ScheduleFileError(
                path=self.path, message="Schedule file must be a JSON object."
            )

        unknown: list[str] = []
        for title, value in raw.items():
            if not title:
                raise ScheduleFileError(
                    path=self.path, message="Card titles must not be empty."
                )
            try:
                due_date, interval = parse_entry(value)
            except (TypeError, ValueError) as e:
                msg = f"Invalid entry for `{title}`: {e}"
                raise ScheduleFileError(path=self.path, message=msg)

            card = catalog.lookup(title)
            if card is None:
                logger.debug("Skipping unknown card %s", title)
                unknown.append(title)
                continue
            scheduler.add_card(card, due_date, interval)

        logger.debug(
            "Loaded schedule from %s: %d due, %d upcoming",
            self.path,
            scheduler.due_count,
            scheduler.future_count,
        )
        return LoadResult(found=True, unknown_titles=tuple(unknown))

    def save(self, scheduler: Scheduler) -> None:
        """Write the snapshot: due-now cards first, then upcoming ones by date."""
        payload: dict[str, object] = {}
        for entry in scheduler.due_entries():
            payload[entry.title] = _encode_entry(scheduler.today, entry.last_interval)
        for entry in scheduler.future_entries():
            payload[entry.title] = _encode_entry(entry.due_date, entry.last_interval)

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            msg = f"Could not write schedule file: {e}"
            raise ScheduleFileError(path=self.path, message=msg)
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        logger.debug("Saved %d card(s) to %s", len(payload), self.path)
        scheduler.mark_clean()


def add_new_cards(
    scheduler: Scheduler, catalog: CardCatalog, limit: int | None = None
) -> int:
    """Queue catalog cards the schedule has never seen, at most `limit` of them."""
    scheduled = scheduler.titles()
    added = 0
    for card in catalog.iterate():
        if limit is not None and added >= limit:
            break
        if card.title in scheduled:
            continue
        scheduler.add_due_card(card)
        added += 1
    logger.debug("Introduced %d new card(s)", added)
    return added
