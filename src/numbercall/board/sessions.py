"""Connected sessions and the bounded log used for disconnect recovery.

Every broadcast mutation gets the next global sequence number and is kept
in a bounded ``EventLog``. A ``Session`` remembers the last sequence number
delivered to it; if it reconnects within the recovery window and the log
still holds everything after that number, the missed events are replayed
instead of a full snapshot.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Per-connection context on the server side."""

    session_id: str
    deliver: Callable[[dict], None]
    live: bool = True
    last_seq: int = 0
    disconnected_at: float | None = None
    on_expire: Callable[[], None] | None = field(default=None, repr=False)


class EventLog:
    """Bounded log of ``(seq, wire_message)`` pairs in sequence order."""

    def __init__(self, maxlen: int) -> None:
        if maxlen < 1:
            msg = f"EventLog maxlen must be >= 1, got {maxlen}"
            raise ValueError(msg)
        self._events: deque[tuple[int, dict]] = deque(maxlen=maxlen)
        self._seq = 0

    @property
    def seq(self) -> int:
        """Sequence number of the most recent event (0 before any event)."""
        return self._seq

    def append(self, build: Callable[[int], dict]) -> tuple[int, dict]:
        """Allocate the next sequence number and record the built message."""
        self._seq += 1
        message = build(self._seq)
        self._events.append((self._seq, message))
        return self._seq, message

    def since(self, seq: int) -> list[dict] | None:
        """Return messages after ``seq``, or None if some were already evicted."""
        if seq >= self._seq:
            return []
        if not self._events or self._events[0][0] > seq + 1:
            return None
        return [message for s, message in self._events if s > seq]

    def __len__(self) -> int:
        return len(self._events)


class SessionRegistry:
    """Tracks sessions by identity and applies the recovery window.

    Args:
        recovery_window: Seconds a disconnected session stays resumable.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        recovery_window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.recovery_window = recovery_window
        self._clock = clock
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def all_sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def live_sessions(self) -> list[Session]:
        # Snapshot: delivery callbacks may disconnect sessions mid-iteration.
        return [s for s in list(self._sessions.values()) if s.live]

    def open(
        self,
        session_id: str,
        deliver: Callable[[dict], None],
        on_expire: Callable[[], None] | None = None,
    ) -> Session:
        """Register a brand-new (or no longer resumable) session as live."""
        session = Session(session_id=session_id, deliver=deliver, on_expire=on_expire)
        self._sessions[session_id] = session
        return session

    def resumable(self, session_id: str) -> Session | None:
        """Return the disconnected session if it is still inside its window."""
        self.prune()
        session = self._sessions.get(session_id)
        if session is None or session.live:
            return None
        return session

    def mark_disconnected(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or not session.live:
            return
        session.live = False
        session.disconnected_at = self._clock()

    def drop(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def prune(self) -> list[str]:
        """Forget sessions disconnected for longer than the recovery window.

        Returns:
            IDs of sessions that expired on this call.
        """
        now = self._clock()
        expired = [
            s
            for s in list(self._sessions.values())
            if not s.live
            and s.disconnected_at is not None
            and now - s.disconnected_at > self.recovery_window
        ]
        for session in expired:
            self._sessions.pop(session.session_id, None)
            logger.info("SESSION_EXPIRED: session=%s", session.session_id[:8])
            if session.on_expire is not None:
                try:
                    session.on_expire()
                except Exception:
                    logger.warning(
                        "Session expiry callback failed: %s",
                        session.session_id[:8],
                        exc_info=True,
                    )
        return [s.session_id for s in expired]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
