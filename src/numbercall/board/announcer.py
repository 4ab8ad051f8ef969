"""Periodic spoken summary of the board, one timer per client."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from typing import TYPE_CHECKING

from numbercall.board.store import Category

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 1


def compose_summary(lists: Mapping[Category, Sequence[str]]) -> str:
    """Build the summary sentence, e.g. ``"DRS: 7, 9. Override: none. ..."``."""
    return ". ".join(
        f"{cat.value}: {', '.join(lists.get(cat, ())) or 'none'}" for cat in Category
    )


def validate_interval(minutes: object) -> int:
    """Return ``minutes`` as an int, rejecting anything below one minute."""
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        msg = f"Repeat interval must be a whole number of minutes, got {minutes!r}"
        raise ValueError(msg)
    if (
        not math.isfinite(minutes)
        or minutes != int(minutes)
        or minutes < MIN_INTERVAL_MINUTES
    ):
        msg = f"Repeat interval must be a whole number >= {MIN_INTERVAL_MINUTES}"
        raise ValueError(msg)
    return int(minutes)


class PeriodicAnnouncer:
    """Cancellable repeating task that speaks the board summary.

    The schedule restarts when the interval changes but is not touched by
    board mutations; each firing reads whatever the mirror holds then.

    Args:
        source: Returns the current lists to summarise.
        speak: Speech callback.
        notify: Optional callback handed the summary text (e.g. to tell
            the server); called whether or not the client is muted.
        is_muted: Returns True while local speech is muted.
        interval_minutes: Initial period.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        source: Callable[[], Mapping[Category, Sequence[str]]],
        speak: Callable[[str], None],
        *,
        notify: Callable[[str], None] | None = None,
        is_muted: Callable[[], bool] = lambda: False,
        interval_minutes: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.interval_minutes = validate_interval(interval_minutes)
        self._source = source
        self._speak = speak
        self._notify = notify
        self._is_muted = is_muted
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer on the running event loop (no-op if running)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="periodic-announcer"
        )

    def stop(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def aclose(self) -> None:
        """Cancel the timer and wait for the task to finish."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def set_interval(self, minutes: object) -> None:
        """Change the period; a running timer restarts its schedule."""
        self.interval_minutes = validate_interval(minutes)
        if self.running:
            self.stop()
            self.start()
        logger.debug("Announcer interval set to %d min", self.interval_minutes)

    def fire(self) -> str | None:
        """Announce the summary now.

        Returns:
            The summary text, or None when every category is empty (in
            which case nothing is spoken and nothing is sent).
        """
        lists = self._source()
        if not any(lists.values()):
            return None
        text = compose_summary(lists)
        if self._notify is not None:
            self._notify(text)
        if not self._is_muted():
            self._speak(text)
        return text

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval_minutes * 60)
            try:
                self.fire()
            except Exception:
                logger.warning("Periodic announcement failed", exc_info=True)
