"""Page registration system for data-driven navigation.

Provides a decorator for registering pages with metadata so the layout
can build its navigation drawer from whatever pages exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from nicegui import ui

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass
class PageMeta:
    """Metadata for a registered page."""

    route: str
    title: str
    icon: str
    category: Literal["main", "admin", "hidden"] = "main"
    order: int = field(default=100)


# Global registry of all pages
_page_registry: dict[str, PageMeta] = {}


def page_route(
    route: str,
    *,
    title: str,
    icon: str,
    category: Literal["main", "admin", "hidden"] = "main",
    order: int = 100,
) -> Callable:
    """Decorator to register a page with navigation metadata.

    Usage:
        @page_route("/status", title="Status", icon="monitor_heart", order=20)
        async def status_page():
            ...

    Args:
        route: URL path for the page.
        title: Display title in navigation.
        icon: Material icon name.
        category: Navigation section (main, admin, hidden).
        order: Sort order within category (lower = higher).

    Returns:
        Decorated function registered with NiceGUI and the page registry.
    """

    def decorator(func: Callable) -> Callable:
        _page_registry[route] = PageMeta(
            route=route,
            title=title,
            icon=icon,
            category=category,
            order=order,
        )
        return ui.page(route, title=title)(func)

    return decorator


def get_pages_by_category() -> dict[str, list[PageMeta]]:
    """Get visible pages grouped by category, each group sorted by order."""
    by_category: dict[str, list[PageMeta]] = {}
    for meta in sorted(_page_registry.values(), key=lambda p: p.order):
        if meta.category == "hidden":
            continue
        by_category.setdefault(meta.category, []).append(meta)
    return by_category
