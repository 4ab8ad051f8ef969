"""Shared pytest fixtures for Number Call tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from dotenv import load_dotenv

from numbercall.board.channel import reset_channel
from numbercall.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Iterator

load_dotenv()


@pytest.fixture(autouse=True)
def _reset_globals() -> Iterator[None]:
    """Each test starts with a fresh global channel and uncached settings."""
    reset_channel()
    get_settings.cache_clear()
    yield
    reset_channel()
    get_settings.cache_clear()
