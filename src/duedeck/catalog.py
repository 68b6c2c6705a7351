from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from duedeck.models import Card

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogError(Exception):
    path: Path
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class DuplicateKeyError(ValueError):
    pass


@dataclass(slots=True)
class CardCatalog:
    """Every known card, keyed by its unique title.

    The catalog owns its cards; schedulers only hold shared references to
    them and must not outlive the catalog they were seeded from.
    """

    _cards: dict[str, Card] = field(default_factory=dict)

    def register(self, card: Card) -> bool:
        """Add `card`, returning False (and changing nothing) if its title is taken."""
        if card.title in self._cards:
            return False
        self._cards[card.title] = card
        return True

    def lookup(self, title: str) -> Card | None:
        return self._cards.get(title)

    def iterate(self) -> Iterator[Card]:
        """Yield every card. Callers must not depend on the order."""
        return iter(self._cards.values())

    def __iter__(self) -> Iterator[Card]:
        return self.iterate()

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, title: object) -> bool:
        return title in self._cards


def reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        if key in obj:
            raise DuplicateKeyError(key)
        obj[key] = value
    return obj


def load_catalog(path: Path) -> CardCatalog:
    """Load and validate a card catalog from disk.

    Format: a JSON object mapping each title to `[front, back]`, both
    non-empty strings. Any problem aborts the whole load.
    """
    logger.debug("Reading cards from %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(path=path, message=f"Could not read file: {e}")

    try:
        data = json.loads(text, object_pairs_hook=reject_duplicate_keys)
    except DuplicateKeyError as e:
        raise CatalogError(path=path, message=f"Card `{e}` already present.")
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        raise CatalogError(path=path, message=msg)

    if not isinstance(data, dict):
        raise CatalogError(
            path=path, message="Catalog JSON must be an object mapping titles to cards."
        )

    catalog = CardCatalog()
    for title, sides in data.items():
        if not title:
            raise CatalogError(path=path, message="Card titles must not be empty.")
        if not isinstance(sides, list):
            raise CatalogError(
                path=path, message=f"Card `{title}`: must be an array of 2 sides."
            )
        if len(sides) != 2:
            raise CatalogError(
                path=path, message=f"Card `{title}`: a card can only have 2 sides."
            )
        if not all(isinstance(side, str) and side for side in sides):
            raise CatalogError(
                path=path, message=f"Card `{title}`: sides must be non-empty strings."
            )

        front, back = sides
        if not catalog.register(Card(title=title, front=front, back=back)):
            raise CatalogError(path=path, message=f"Card `{title}` already present.")

    logger.debug("Loaded %d card(s) from %s", len(catalog), path)
    return catalog
