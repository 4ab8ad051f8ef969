"""Server-side broadcast channel for the shared number board.

This module owns the single ``CategoryStore`` and every connected session.
Inbound client messages are applied to the store and the resulting event is
fanned out to every live session, the originator included. Handlers never
await, so on the asyncio event loop each message is applied and broadcast
to completion before the next one is looked at.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

from numbercall.board.events import (
    Added,
    EntryPayload,
    InitialState,
    NumberAdded,
    NumberDeleteRequest,
    Removed,
    Repeat,
    RepeatRequest,
    SessionResumed,
    parse_server_message,
)
from numbercall.board.sessions import EventLog, SessionRegistry
from numbercall.board.store import (
    BoardError,
    Category,
    CategoryStore,
    validate_value,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from numbercall.board.sessions import Session
    from numbercall.config import Settings

logger = logging.getLogger(__name__)


def announcement_for(category: Category, value: str) -> str:
    """Default spoken text for a newly added number, e.g. ``"DRS 7"``."""
    return f"{category.value} {value}"


class BroadcastChannel:
    """Applies client mutations to the store and broadcasts the results.

    Args:
        store: Store to mutate; a fresh empty one when omitted.
        recovery_window: Seconds a disconnected session may resume.
        event_log_size: Number of recent events kept for replay.
        delete_by_id: Resolve deletes by entry identifier when the request
            carries one. When False, deletes are addressed by position only.
        relay_repeat_messages: Forward periodic summaries to other sessions.
        clock: Monotonic time source for the recovery window.
    """

    def __init__(
        self,
        store: CategoryStore | None = None,
        *,
        recovery_window: float = 120.0,
        event_log_size: int = 256,
        delete_by_id: bool = True,
        relay_repeat_messages: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store if store is not None else CategoryStore()
        self.sessions = SessionRegistry(recovery_window, clock=clock)
        self.log = EventLog(event_log_size)
        self.delete_by_id = delete_by_id
        self.relay_repeat_messages = relay_repeat_messages

    @classmethod
    def from_settings(cls, settings: Settings) -> BroadcastChannel:
        return cls(
            recovery_window=settings.sync.recovery_window_seconds,
            event_log_size=settings.sync.event_log_size,
            delete_by_id=settings.sync.delete_by_id,
            relay_repeat_messages=settings.sync.relay_repeat_messages,
        )

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------
    def connect(
        self,
        session_id: str,
        deliver: Callable[[dict], None],
        on_expire: Callable[[], None] | None = None,
    ) -> bool:
        """Attach a session and bring it up to date.

        A session reconnecting inside the recovery window, whose missed
        events are all still in the log, receives ``session-resumed``
        followed by exactly those events. Anyone else receives
        ``initial-state``.

        Returns:
            True if the session was resumed by replay.
        """
        session = self.sessions.resumable(session_id)
        if session is not None:
            missed = self.log.since(session.last_seq)
            if missed is not None:
                session.deliver = deliver
                if on_expire is not None:
                    session.on_expire = on_expire
                session.live = True
                session.disconnected_at = None
                deliver(
                    SessionResumed(replayed=len(missed), seq=self.log.seq).to_wire()
                )
                for message in missed:
                    deliver(message)
                session.last_seq = self.log.seq
                logger.info(
                    "SESSION_RESUMED: session=%s replayed=%d",
                    session_id[:8],
                    len(missed),
                )
                return True
            logger.info(
                "SESSION_RESYNC: session=%s last_seq=%d no longer in log",
                session_id[:8],
                session.last_seq,
            )

        session = self.sessions.open(session_id, deliver, on_expire)
        deliver(self.initial_state().to_wire())
        session.last_seq = self.log.seq
        logger.info(
            "SESSION_OPENED: session=%s total=%d", session_id[:8], len(self.sessions)
        )
        return False

    def disconnect(self, session_id: str) -> None:
        """Stop live delivery; the session stays resumable for the window."""
        self.sessions.mark_disconnected(session_id)
        logger.info("SESSION_DISCONNECTED: session=%s", session_id[:8])

    def close(self, session_id: str) -> None:
        """Forget a session immediately (no further replay)."""
        if self.sessions.drop(session_id) is not None:
            logger.info("SESSION_CLOSED: session=%s", session_id[:8])

    def initial_state(self) -> InitialState:
        return InitialState(
            entries={
                cat.value: [
                    EntryPayload(value=e.value, entry_id=e.entry_id) for e in entries
                ]
                for cat, entries in self.store.snapshot().items()
            },
            seq=self.log.seq,
        )

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def handle(self, session_id: str, payload: dict) -> None:
        """Apply one server-bound wire message from ``session_id``.

        Malformed payloads and rejected mutations are logged and dropped;
        nothing is broadcast for them and nothing propagates to the caller.
        """
        try:
            message = parse_server_message(payload)
        except ValidationError as exc:
            logger.warning(
                "Dropping malformed message from %s: %s",
                session_id[:8],
                exc.errors(include_url=False),
            )
            return

        try:
            if isinstance(message, NumberAdded):
                self.add(
                    message.category,
                    message.value,
                    announce_text=message.announce_text,
                )
            elif isinstance(message, NumberDeleteRequest):
                self.delete(
                    message.category,
                    message.position,
                    entry_id=message.entry_id,
                    origin=session_id,
                )
            elif isinstance(message, RepeatRequest):
                self.repeat(message.text, origin=session_id)
        except BoardError as exc:
            logger.warning(
                "%s_DROPPED: session=%s %s",
                "DELETE" if isinstance(message, NumberDeleteRequest) else "ADD",
                session_id[:8],
                exc,
            )

    def add(
        self,
        category: Category | str,
        value: str,
        *,
        announce_text: str | None = None,
    ) -> Added:
        """Append a number and broadcast ``number-update``."""
        cat = Category.parse(category)
        value = validate_value(value)
        position, entry = self.store.add(cat, value)
        text = announce_text or announcement_for(cat, value)
        event = Added.model_validate(
            self._broadcast(
                lambda seq: Added(
                    category=cat.value,
                    value=value,
                    position=position,
                    announce_text=text,
                    entry_id=entry.entry_id,
                    seq=seq,
                ).to_wire()
            )
        )
        logger.info(
            "NUMBER_ADDED: %s %s at %d (seq=%d)", cat.value, value, position, event.seq
        )
        return event

    def delete(
        self,
        category: Category | str,
        position: int,
        *,
        entry_id: int | None = None,
        origin: str | None = None,
    ) -> Removed:
        """Delete an entry and broadcast ``number-deleted``.

        With ``delete_by_id`` on and an ``entry_id`` given, the entry is
        found wherever it now sits. Otherwise ``position`` is trusted as-is,
        which may remove a different entry than the client saw if the list
        shifted underneath it.

        Raises:
            PositionOutOfRangeError: Position-addressed delete past the end.
            UnknownEntryError: Identifier-addressed delete of a gone entry.
        """
        cat = Category.parse(category)
        if self.delete_by_id and entry_id is not None:
            position, entry = self.store.remove_by_id(cat, entry_id)
        else:
            entry = self.store.remove_at(cat, position)
        event = Removed.model_validate(
            self._broadcast(
                lambda seq: Removed(
                    category=cat.value,
                    position=position,
                    entry_id=entry.entry_id,
                    seq=seq,
                    origin=origin,
                ).to_wire()
            )
        )
        logger.info(
            "NUMBER_REMOVED: %s %s from %d (seq=%d)",
            cat.value,
            entry.value,
            position,
            event.seq,
        )
        return event

    def repeat(self, text: str, *, origin: str | None = None) -> None:
        """Log a client's periodic summary and optionally relay it."""
        logger.info("REPEAT_MESSAGE: session=%s %s", (origin or "-")[:8], text)
        if not self.relay_repeat_messages:
            return
        message = Repeat(text=text, origin=origin).to_wire()
        for session in self.sessions.live_sessions():
            if session.session_id != origin:
                self._deliver(session, message)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------
    def _broadcast(self, build: Callable[[int], dict]) -> dict:
        self.sessions.prune()
        seq, message = self.log.append(build)
        for session in self.sessions.live_sessions():
            if self._deliver(session, message):
                session.last_seq = seq
        return message

    @staticmethod
    def _deliver(session: Session, message: dict) -> bool:
        try:
            session.deliver(message)
        except Exception:
            # One broken connection must not block the others.
            logger.warning(
                "Delivery to %s failed", session.session_id[:8], exc_info=True
            )
            return False
        return True


# Global channel instance
_channel: BroadcastChannel | None = None


def get_channel() -> BroadcastChannel:
    """Get the global broadcast channel, built from settings on first use."""
    global _channel
    if _channel is None:
        from numbercall.config import get_settings

        _channel = BroadcastChannel.from_settings(get_settings())
    return _channel


def reset_channel() -> None:
    """Discard the global channel (tests and server restarts)."""
    global _channel
    _channel = None
