"""Shared layout components for the number board.

Provides a consistent header, navigation drawer, and page structure.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from nicegui import ui

from numbercall.pages.registry import get_pages_by_category

if TYPE_CHECKING:
    from collections.abc import Iterator


def _nav_item(label: str, route: str, icon: str | None = None) -> None:
    """Create a navigation item in the drawer."""
    with ui.item(on_click=lambda: ui.navigate.to(route)).classes("w-full"):
        if icon:
            with ui.item_section().props("avatar"):
                ui.icon(icon)
        with ui.item_section():
            ui.item_label(label)


@contextmanager
def page_layout(title: str = "Number Call") -> Iterator[ui.row]:
    """Context manager for consistent page layout with header and nav drawer.

    Usage:
        @page_route("/my-page", title="My Page", icon="star")
        async def my_page():
            with page_layout("My Page") as header_slot:
                ui.label("Page content here")

    Args:
        title: Page title shown in header.

    Yields:
        A row at the right of the header for page-specific indicators.
    """
    with ui.header().classes("bg-primary items-center q-py-xs"):
        menu_btn = ui.button(icon="menu").props("flat color=white")
        ui.label(title).classes("text-h6 text-white q-ml-sm")
        ui.element("div").classes("flex-grow")
        header_slot = ui.row().classes("items-center")

    with ui.left_drawer(value=False).classes("bg-grey-2") as drawer:
        ui.label("Navigation").classes("text-h6 q-pa-md")
        ui.separator()

        with ui.list().props("padding"):
            pages_by_cat = get_pages_by_category()
            for category in ["main", "admin"]:
                pages = pages_by_cat.get(category, [])
                if not pages:
                    continue
                if category == "admin":
                    ui.separator().classes("q-my-md")
                    ui.label("Admin").classes("text-caption q-px-md text-grey-7")
                for page in pages:
                    _nav_item(page.title, page.route, page.icon)

    menu_btn.on("click", drawer.toggle)

    with ui.element("div").classes("q-pa-md w-full"):
        yield header_slot
