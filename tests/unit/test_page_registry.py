"""Tests for page registration and navigation grouping."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from numbercall.pages import registry
from numbercall.pages.registry import PageMeta, get_pages_by_category

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def pages(monkeypatch: pytest.MonkeyPatch) -> Iterator[dict[str, PageMeta]]:
    fake: dict[str, PageMeta] = {}
    monkeypatch.setattr(registry, "_page_registry", fake)
    yield fake


class TestGetPagesByCategory:
    def test_groups_sorts_and_hides(self, pages: dict[str, PageMeta]) -> None:
        pages["/status"] = PageMeta("/status", "Status", "monitor", "admin", 20)
        pages["/"] = PageMeta("/", "Board", "campaign", "main", 10)
        pages["/help"] = PageMeta("/help", "Help", "help", "main", 5)
        pages["/secret"] = PageMeta("/secret", "Secret", "lock", "hidden", 1)

        grouped = get_pages_by_category()

        assert [p.route for p in grouped["main"]] == ["/help", "/"]
        assert [p.route for p in grouped["admin"]] == ["/status"]
        assert "hidden" not in grouped
