"""Shared fixtures for unit tests."""

from __future__ import annotations

import pytest

from numbercall.board import BroadcastChannel


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Inbox:
    """Collects wire messages delivered to one session."""

    def __init__(self) -> None:
        self.messages: list[dict] = []

    def __call__(self, message: dict) -> None:
        self.messages.append(message)

    def types(self) -> list[str]:
        return [m["type"] for m in self.messages]

    def clear(self) -> None:
        self.messages.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def channel(clock: FakeClock) -> BroadcastChannel:
    """Channel with a 120 s window and a small replay log."""
    return BroadcastChannel(recovery_window=120.0, event_log_size=8, clock=clock)


@pytest.fixture
def make_inbox() -> type[Inbox]:
    return Inbox
