"""Authoritative in-memory store of categorised numbers.

The server owns exactly one ``CategoryStore``. Every mutation goes through
``add``, ``remove_at`` or ``remove_by_id``; each call is atomic with respect
to the asyncio event loop (no awaits inside), so the broadcast channel gets
a total order over mutations without any locking.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class BoardError(Exception):
    """Base class for all number board errors."""


class EntryValidationError(BoardError, ValueError):
    """Input value is empty or contains something other than digits."""


class InvalidCategoryError(BoardError, ValueError):
    """Category name is not one of the enumerated categories."""

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Unknown category: {name!r}")


class PositionOutOfRangeError(BoardError, IndexError):
    """Delete addressed a position that no longer exists in the list."""

    def __init__(self, category: Category, position: int, length: int) -> None:
        self.category = category
        self.position = position
        self.length = length
        super().__init__(
            f"Position {position} out of range for {category.value} (length {length})"
        )


class UnknownEntryError(BoardError, LookupError):
    """Delete addressed an entry identifier that is not in the list."""

    def __init__(self, category: Category, entry_id: int) -> None:
        self.category = category
        self.entry_id = entry_id
        super().__init__(f"No entry {entry_id} in {category.value}")


class ConnectionLostError(BoardError):
    """A mutation was attempted while the client is reconnecting."""


class Category(StrEnum):
    """The fixed set of lists numbers are filed under."""

    DRS = "DRS"
    OVERRIDE = "Override"
    CHECK_DATE = "Check Date"

    @classmethod
    def parse(cls, name: object) -> Category:
        """Resolve a wire name to a Category.

        Raises:
            InvalidCategoryError: If ``name`` is not an enumerated category.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise InvalidCategoryError(name) from None


def validate_value(value: str | None) -> str:
    """Return ``value`` stripped, or raise if it is not a non-empty digit string.

    ``str.isdigit`` accepts superscripts and other Unicode digits, so the
    check is restricted to ASCII 0-9.
    """
    cleaned = (value or "").strip()
    if not cleaned:
        raise EntryValidationError("Enter a number first")
    if not (cleaned.isascii() and cleaned.isdigit()):
        raise EntryValidationError(f"Numbers only: {cleaned!r}")
    return cleaned


@dataclass(frozen=True)
class Entry:
    """A single number filed under a category.

    ``entry_id`` is unique for the lifetime of the store; the entry's
    position is not stored because it shifts as earlier entries go.
    """

    entry_id: int
    value: str


class CategoryStore:
    """One ordered list of entries per category."""

    def __init__(self) -> None:
        self._lists: dict[Category, list[Entry]] = {c: [] for c in Category}
        self._ids = itertools.count(1)

    def add(self, category: Category | str, value: str) -> tuple[int, Entry]:
        """Append ``value`` to the category's list.

        Returns:
            ``(position, entry)`` where position is the old list length.
        """
        cat = Category.parse(category)
        entry = Entry(entry_id=next(self._ids), value=value)
        entries = self._lists[cat]
        entries.append(entry)
        return len(entries) - 1, entry

    def remove_at(self, category: Category | str, position: int) -> Entry:
        """Remove the entry at ``position``; later entries shift down by one."""
        cat = Category.parse(category)
        entries = self._lists[cat]
        # Negative indexes would silently address the tail.
        if not 0 <= position < len(entries):
            raise PositionOutOfRangeError(cat, position, len(entries))
        return entries.pop(position)

    def remove_by_id(
        self, category: Category | str, entry_id: int
    ) -> tuple[int, Entry]:
        """Remove the entry with ``entry_id`` wherever it currently sits.

        Returns:
            ``(position, entry)`` with the position it held when removed.
        """
        cat = Category.parse(category)
        entries = self._lists[cat]
        for position, entry in enumerate(entries):
            if entry.entry_id == entry_id:
                del entries[position]
                return position, entry
        raise UnknownEntryError(cat, entry_id)

    def entries(self, category: Category | str) -> list[Entry]:
        """Return a copy of one category's list."""
        return list(self._lists[Category.parse(category)])

    def snapshot(self) -> dict[Category, list[Entry]]:
        """Return a full copy of every list, in category declaration order."""
        return {cat: list(entries) for cat, entries in self._lists.items()}

    def values(self) -> dict[Category, list[str]]:
        """Return the plain numbers per category."""
        return {
            cat: [e.value for e in entries] for cat, entries in self._lists.items()
        }

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._lists.values())
