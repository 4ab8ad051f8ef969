"""Tests for the periodic spoken summary."""

from __future__ import annotations

import asyncio

import pytest

from numbercall.board import Category, PeriodicAnnouncer, compose_summary
from numbercall.board.announcer import validate_interval


class FakeSleep:
    """Awaitable sleep that records delays and returns only when ticked."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._gate: asyncio.Queue[None] = asyncio.Queue()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await self._gate.get()

    def tick(self) -> None:
        self._gate.put_nowait(None)


async def _yield(times: int = 3) -> None:
    for _ in range(times):
        await asyncio.sleep(0)


class Board:
    def __init__(self) -> None:
        self.lists: dict[Category, list[str]] = {c: [] for c in Category}

    def __call__(self) -> dict[Category, list[str]]:
        return self.lists


class TestComposeSummary:
    def test_all_categories_in_order(self) -> None:
        lists = {Category.DRS: ["7", "9"], Category.CHECK_DATE: ["31"]}
        assert compose_summary(lists) == (
            "DRS: 7, 9. Override: none. Check Date: 31"
        )

    def test_everything_empty(self) -> None:
        assert compose_summary({}) == "DRS: none. Override: none. Check Date: none"


class TestValidateInterval:
    @pytest.mark.parametrize(("value", "expected"), [(1, 1), (5, 5), (10.0, 10)])
    def test_accepts_whole_minutes(self, value: float, expected: int) -> None:
        assert validate_interval(value) == expected

    @pytest.mark.parametrize(
        "value", [0, -3, 1.5, None, "5", True, float("inf"), float("nan")]
    )
    def test_rejects(self, value: object) -> None:
        with pytest.raises(ValueError, match="Repeat interval"):
            validate_interval(value)


class TestFire:
    def test_empty_board_is_silent_and_not_sent(self) -> None:
        spoken: list[str] = []
        sent: list[str] = []
        announcer = PeriodicAnnouncer(Board(), spoken.append, notify=sent.append)
        assert announcer.fire() is None
        assert spoken == []
        assert sent == []

    def test_speaks_and_notifies(self) -> None:
        board = Board()
        board.lists[Category.OVERRIDE] = ["12"]
        spoken: list[str] = []
        sent: list[str] = []
        announcer = PeriodicAnnouncer(board, spoken.append, notify=sent.append)
        text = announcer.fire()
        assert text == "DRS: none. Override: 12. Check Date: none"
        assert spoken == [text]
        assert sent == [text]

    def test_muted_still_notifies(self) -> None:
        board = Board()
        board.lists[Category.DRS] = ["7"]
        spoken: list[str] = []
        sent: list[str] = []
        announcer = PeriodicAnnouncer(
            board, spoken.append, notify=sent.append, is_muted=lambda: True
        )
        announcer.fire()
        assert spoken == []
        assert len(sent) == 1

    def test_reads_board_at_fire_time(self) -> None:
        board = Board()
        spoken: list[str] = []
        announcer = PeriodicAnnouncer(board, spoken.append)
        board.lists[Category.DRS] = ["1"]
        announcer.fire()
        board.lists[Category.DRS] = ["1", "2"]
        announcer.fire()
        assert spoken[-1].startswith("DRS: 1, 2.")


class TestTimer:
    @pytest.mark.asyncio
    async def test_fires_every_interval(self) -> None:
        board = Board()
        board.lists[Category.DRS] = ["7"]
        spoken: list[str] = []
        sleep = FakeSleep()
        announcer = PeriodicAnnouncer(
            board, spoken.append, interval_minutes=5, sleep=sleep
        )
        announcer.start()
        await _yield()
        assert sleep.delays == [300]
        assert spoken == []

        sleep.tick()
        await _yield()
        assert len(spoken) == 1
        assert sleep.delays == [300, 300]
        await announcer.aclose()
        assert not announcer.running

    @pytest.mark.asyncio
    async def test_set_interval_restarts_schedule(self) -> None:
        sleep = FakeSleep()
        announcer = PeriodicAnnouncer(Board(), lambda _: None, sleep=sleep)
        announcer.start()
        await _yield()
        announcer.set_interval(2)
        await _yield()
        assert sleep.delays == [300, 120]
        assert announcer.interval_minutes == 2
        await announcer.aclose()

    @pytest.mark.asyncio
    async def test_set_interval_rejects_below_one(self) -> None:
        announcer = PeriodicAnnouncer(Board(), lambda _: None, sleep=FakeSleep())
        with pytest.raises(ValueError):
            announcer.set_interval(0)
        assert announcer.interval_minutes == 5

    @pytest.mark.asyncio
    async def test_stop_cancels_and_is_idempotent(self) -> None:
        sleep = FakeSleep()
        spoken: list[str] = []
        board = Board()
        board.lists[Category.DRS] = ["7"]
        announcer = PeriodicAnnouncer(board, spoken.append, sleep=sleep)
        announcer.start()
        await _yield()
        announcer.stop()
        announcer.stop()
        sleep.tick()
        await _yield()
        assert spoken == []
        assert not announcer.running

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_task(self) -> None:
        sleep = FakeSleep()
        announcer = PeriodicAnnouncer(Board(), lambda _: None, sleep=sleep)
        announcer.start()
        announcer.start()
        await _yield()
        assert sleep.delays == [300]
        await announcer.aclose()

    @pytest.mark.asyncio
    async def test_failed_firing_keeps_timer_alive(self) -> None:
        board = Board()
        board.lists[Category.DRS] = ["7"]

        def broken(_: str) -> None:
            raise RuntimeError("speech engine gone")

        sleep = FakeSleep()
        announcer = PeriodicAnnouncer(board, broken, sleep=sleep)
        announcer.start()
        await _yield()
        sleep.tick()
        await _yield()
        assert announcer.running
        assert len(sleep.delays) == 2
        await announcer.aclose()
