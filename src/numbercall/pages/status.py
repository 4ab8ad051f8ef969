"""Server status page: connected sessions, event log and board totals.

Route: /status
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from nicegui import ui

from numbercall import get_version_string
from numbercall.board import get_channel
from numbercall.pages.layout import page_layout
from numbercall.pages.registry import page_route

if TYPE_CHECKING:
    from numbercall.board import BroadcastChannel


def session_rows(channel: BroadcastChannel) -> list[dict]:
    """Table rows describing every session the channel still remembers."""
    head = channel.log.seq
    return [
        {
            "session": s.session_id[:8],
            "state": "live" if s.live else "disconnected",
            "last_seq": s.last_seq,
            "behind": head - s.last_seq,
        }
        for s in sorted(
            channel.sessions.all_sessions(), key=lambda s: (not s.live, s.session_id)
        )
    ]


@page_route("/status", title="Status", icon="monitor_heart", category="admin")
async def status_page() -> None:
    """Read-only view of the broadcast channel."""
    channel = get_channel()

    with page_layout("Status"):
        ui.label(f"Number Call v{get_version_string()}").classes("text-caption")

        @ui.refreshable
        def summary() -> None:
            with ui.row().classes("gap-8"):
                for cat, values in channel.store.values().items():
                    ui.label(f"{cat.value}: {len(values)}").classes("text-lg")
                ui.label(f"Events: {channel.log.seq}").classes("text-lg")
                ui.label(f"Replay buffer: {len(channel.log)}").classes("text-lg")

        summary()
        table = ui.table(
            columns=[
                {"name": "session", "label": "Session", "field": "session"},
                {"name": "state", "label": "State", "field": "state"},
                {"name": "last_seq", "label": "Last seq", "field": "last_seq"},
                {"name": "behind", "label": "Behind", "field": "behind"},
            ],
            rows=session_rows(channel),
            row_key="session",
        ).classes("w-full max-w-3xl")

        def _tick() -> None:
            summary.refresh()
            table.rows = session_rows(channel)
            table.update()

        ui.timer(2.0, _tick)
