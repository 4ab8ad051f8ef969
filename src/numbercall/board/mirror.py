"""Client-side mirror of the board and reconciliation with server events.

Each client applies its own additions and deletions to its mirror straight
away and tells the server afterwards. The server echoes every mutation to
every client, so the reconciler has to recognise the echo of its own
optimistic add (same ``(category, value)`` key, still awaiting
confirmation) and treat it as a confirmation rather than a new entry.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import ValidationError

from numbercall.board.announcer import compose_summary
from numbercall.board.events import (
    Added,
    InitialState,
    NumberAdded,
    NumberDeleteRequest,
    Removed,
    Repeat,
    RepeatRequest,
    SessionResumed,
    parse_client_message,
)
from numbercall.board.store import (
    Category,
    ConnectionLostError,
    PositionOutOfRangeError,
    validate_value,
)

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

AnnounceKey = tuple[Category, str]


class ConnectionState(Enum):
    CONNECTING = "connecting"
    LIVE = "live"
    RECONNECTING = "reconnecting"


@dataclass
class MirrorEntry:
    """A number as the client sees it.

    ``entry_id`` is None while the entry is an unconfirmed optimistic add.
    """

    value: str
    entry_id: int | None = None

    @property
    def confirmed(self) -> bool:
        return self.entry_id is not None


class ClientMirror:
    """Local copy of the board plus the set of already-announced keys."""

    def __init__(self) -> None:
        self.lists: dict[Category, list[MirrorEntry]] = {c: [] for c in Category}
        self.announced: set[AnnounceKey] = set()

    def values(self) -> dict[Category, list[str]]:
        return {cat: [e.value for e in entries] for cat, entries in self.lists.items()}

    def is_empty(self) -> bool:
        return not any(self.lists.values())

    def replace(self, state: InitialState) -> None:
        """Overwrite every list with an authoritative snapshot."""
        lists: dict[Category, list[MirrorEntry]] = {c: [] for c in Category}
        for name, entries in state.entries.items():
            try:
                cat = Category.parse(name)
            except ValueError:
                logger.warning("Ignoring unknown category in snapshot: %r", name)
                continue
            lists[cat] = [MirrorEntry(e.value, e.entry_id) for e in entries]
        self.lists = lists

    def append(
        self, category: Category, value: str, entry_id: int | None = None
    ) -> int:
        """Add an entry and return its position.

        Unconfirmed entries go to the end. Confirmed entries are kept in
        identifier order ahead of any unconfirmed ones, which is the order
        the server holds them in.
        """
        entry = MirrorEntry(value, entry_id)
        if entry_id is None:
            self.lists[category].append(entry)
            return len(self.lists[category]) - 1
        return self._insert_confirmed(category, entry)

    def _insert_confirmed(self, category: Category, entry: MirrorEntry) -> int:
        entries = self.lists[category]
        for position, other in enumerate(entries):
            if other.entry_id is None or other.entry_id > entry.entry_id:
                entries.insert(position, entry)
                return position
        entries.append(entry)
        return len(entries) - 1

    def remove_at(self, category: Category, position: int) -> MirrorEntry:
        entries = self.lists[category]
        if not 0 <= position < len(entries):
            raise PositionOutOfRangeError(category, position, len(entries))
        return entries.pop(position)

    def index_of_id(self, category: Category, entry_id: int) -> int | None:
        for position, entry in enumerate(self.lists[category]):
            if entry.entry_id == entry_id:
                return position
        return None

    def confirm(self, category: Category, value: str, entry_id: int) -> bool:
        """Attach a server identifier to the oldest unconfirmed matching entry."""
        entries = self.lists[category]
        for position, entry in enumerate(entries):
            if not entry.confirmed and entry.value == value:
                del entries[position]
                entry.entry_id = entry_id
                self._insert_confirmed(category, entry)
                return True
        return False


class ClientReconciler:
    """Keeps one client's mirror in step with the server.

    Args:
        session_id: This client's session identity, used to skip the echo
            of its own deletions.
        send: Transport callback taking a server-bound wire dict.
        speak: Speech callback; never called while muted.
        muted: Initial mute state (local only, never transmitted).
        on_change: Called after every change to the mirror or state.
    """

    def __init__(
        self,
        session_id: str,
        send: Callable[[dict], None],
        speak: Callable[[str], None],
        *,
        muted: bool = False,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.session_id = session_id
        self.mirror = ClientMirror()
        self.muted = muted
        self.state = ConnectionState.CONNECTING
        self.last_seq = 0
        self._send = send
        self._speak = speak
        self._on_change = on_change
        self._pending: Counter[AnnounceKey] = Counter()
        # Local deletes of entries the server has not confirmed yet.
        self._deferred_deletes: Counter[AnnounceKey] = Counter()
        # Replayed events still to come after session-resumed.
        self._replay_remaining: int | None = None

    @property
    def live(self) -> bool:
        return self.state is ConnectionState.LIVE

    def pending(self, category: Category | str, value: str) -> int:
        """Number of optimistic adds of this key still awaiting their echo."""
        return self._pending[(Category.parse(category), value)]

    # ------------------------------------------------------------------
    # Local user actions
    # ------------------------------------------------------------------
    def add(self, category: Category | str, value: str) -> MirrorEntry:
        """Validate, apply optimistically, announce locally, then send.

        Raises:
            EntryValidationError: Empty or non-digit input; nothing is sent.
            ConnectionLostError: The client is not connected.
        """
        value = validate_value(value)
        cat = Category.parse(category)
        self._require_live()

        position = self.mirror.append(cat, value)
        key = (cat, value)
        self._pending[key] += 1
        text = f"{cat.value} {value}"
        self._announce(key, text)
        self._changed()
        self._send(
            NumberAdded(category=cat.value, value=value, announce_text=text).to_wire()
        )
        return self.mirror.lists[cat][position]

    def delete(self, category: Category | str, position: int) -> MirrorEntry:
        """Remove locally, forget the announcement, then notify the server.

        Deleting an entry whose add is still unconfirmed sends nothing yet;
        the request goes out, addressed by identifier, when the server's
        echo of the add assigns one.

        Raises:
            PositionOutOfRangeError: Nothing at ``position`` in the mirror.
            ConnectionLostError: The client is not connected.
        """
        cat = Category.parse(category)
        self._require_live()

        entry = self.mirror.remove_at(cat, position)
        self.mirror.announced.discard((cat, entry.value))
        self._changed()
        if entry.entry_id is None:
            # Sent with the identifier once the echo of the add arrives.
            self._deferred_deletes[(cat, entry.value)] += 1
            return entry
        self._send(
            NumberDeleteRequest(
                category=cat.value, position=position, entry_id=entry.entry_id
            ).to_wire()
        )
        return entry

    def repeat(self, text: str) -> None:
        """Tell the server about a periodic summary, if connected."""
        if self.live:
            self._send(RepeatRequest(text=text).to_wire())

    def summary(self) -> str:
        return compose_summary(self.mirror.values())

    def connection_lost(self) -> None:
        """Suppress announcements until the next snapshot or replay."""
        if self.state is not ConnectionState.RECONNECTING:
            self.state = ConnectionState.RECONNECTING
            logger.info("CONNECTION_LOST: session=%s", self.session_id[:8])
            self._changed()

    # ------------------------------------------------------------------
    # Server events
    # ------------------------------------------------------------------
    def receive(self, payload: dict) -> None:
        """Apply one client-bound wire message."""
        try:
            message = parse_client_message(payload)
        except ValidationError as exc:
            logger.warning(
                "Ignoring malformed server message: %s", exc.errors(include_url=False)
            )
            return

        match message:
            case InitialState():
                self._on_initial_state(message)
            case SessionResumed():
                self.state = ConnectionState.LIVE
                self._replay_remaining = message.replayed
            case Added():
                self._on_added(message)
            case Removed():
                self._on_removed(message)
            case Repeat():
                if message.origin != self.session_id:
                    self._announce(None, message.text)
        seq = getattr(message, "seq", None)
        if seq is not None:
            self.last_seq = max(self.last_seq, seq)
            if self._replay_remaining and not isinstance(message, SessionResumed):
                self._replay_remaining -= 1
        if self._replay_remaining == 0:
            self._replay_remaining = None
            self._resend_unconfirmed()
        self._changed()

    def _on_initial_state(self, message: InitialState) -> None:
        self.mirror.replace(message)
        self._pending.clear()
        self._deferred_deletes.clear()
        self._replay_remaining = None
        self.state = ConnectionState.LIVE

    def _on_added(self, message: Added) -> None:
        try:
            cat = Category.parse(message.category)
        except ValueError:
            logger.warning("Ignoring add for unknown category %r", message.category)
            return
        key = (cat, message.value)
        if self._pending[key] > 0:
            # Echo of our own optimistic add: confirmation only.
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]
            if not self.mirror.confirm(cat, message.value, message.entry_id):
                self._send_deferred_delete(cat, message)
            return
        self.mirror.append(cat, message.value, message.entry_id)
        self._announce(key, message.announce_text)

    def _send_deferred_delete(self, category: Category, message: Added) -> None:
        key = (category, message.value)
        if not self._deferred_deletes[key]:
            logger.debug("No local entry left to confirm for %s", key)
            return
        self._deferred_deletes[key] -= 1
        if not self._deferred_deletes[key]:
            del self._deferred_deletes[key]
        self._send(
            NumberDeleteRequest(
                category=category.value,
                position=message.position,
                entry_id=message.entry_id,
            ).to_wire()
        )

    def _resend_unconfirmed(self) -> None:
        """Send again every add the server never applied.

        Runs once a resume's replay is complete: any add the server had
        applied was confirmed by the replay, so what is still unconfirmed
        was lost with the old connection.
        """
        self._pending.clear()
        self._deferred_deletes.clear()
        resent = 0
        for cat, entries in self.mirror.lists.items():
            for entry in entries:
                if entry.confirmed:
                    continue
                self._pending[(cat, entry.value)] += 1
                self._send(
                    NumberAdded(
                        category=cat.value,
                        value=entry.value,
                        announce_text=f"{cat.value} {entry.value}",
                    ).to_wire()
                )
                resent += 1
        if resent:
            logger.info(
                "RESENT_UNCONFIRMED: session=%s count=%d", self.session_id[:8], resent
            )

    def _on_removed(self, message: Removed) -> None:
        if message.origin == self.session_id:
            return
        try:
            cat = Category.parse(message.category)
        except ValueError:
            logger.warning("Ignoring delete for unknown category %r", message.category)
            return
        position = self.mirror.index_of_id(cat, message.entry_id)
        if position is None:
            logger.debug(
                "Entry %d already gone from %s mirror", message.entry_id, cat.value
            )
            return
        self.mirror.remove_at(cat, position)

    # ------------------------------------------------------------------
    def _announce(self, key: AnnounceKey | None, text: str) -> None:
        if self.muted or not self.live:
            return
        if key is not None:
            if key in self.mirror.announced:
                return
            self.mirror.announced.add(key)
        self._speak(text)

    def _require_live(self) -> None:
        if not self.live:
            msg = "Not connected to the board server"
            raise ConnectionLostError(msg)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
