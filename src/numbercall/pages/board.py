"""Shared number board page.

Route: /

Each browser tab gets its own ``BoardView``: a client mirror reconciled
against the global broadcast channel, a browser speaker, and a periodic
announcer. The NiceGUI client id is the session identity, so a tab whose
websocket drops and comes back within the recovery window resumes with
a replay of what it missed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from nicegui import ui

from numbercall.board import (
    BoardError,
    Category,
    ClientReconciler,
    ConnectionState,
    EntryValidationError,
    PeriodicAnnouncer,
    get_channel,
)
from numbercall.config import get_settings
from numbercall.pages.layout import page_layout
from numbercall.pages.registry import page_route
from numbercall.speech import BrowserSpeaker

if TYPE_CHECKING:
    from nicegui import Client
    from nicegui.events import KeyEventArguments, ValueChangeEventArguments

    from numbercall.board import BroadcastChannel
    from numbercall.config import Settings

logger = logging.getLogger(__name__)

# Tasks spawned from disconnect handlers; held so they are not GC'd mid-flight.
_background_tasks: set[asyncio.Task[None]] = set()

_CATEGORY_COLOURS = {
    Category.DRS: "blue",
    Category.OVERRIDE: "green",
    Category.CHECK_DATE: "amber",
}

_STATE_BADGES = {
    ConnectionState.CONNECTING: ("Connecting", "grey"),
    ConnectionState.LIVE: ("Live", "positive"),
    ConnectionState.RECONNECTING: ("Reconnecting", "warning"),
}


class BoardView:
    """One browser tab's view of the board."""

    def __init__(
        self, client: Client, channel: BroadcastChannel, settings: Settings
    ) -> None:
        self.client = client
        self.channel = channel
        self.session_id = str(client.id)
        self.recovery_window = settings.sync.recovery_window_seconds
        self.typed = ""
        self.speaker = BrowserSpeaker(
            client,
            lang=settings.announcer.voice_lang,
            rate=settings.announcer.voice_rate,
        )
        self.reconciler = ClientReconciler(
            self.session_id,
            send=self._send,
            speak=self.speaker.speak,
            muted=settings.announcer.start_muted,
            on_change=self._refresh,
        )
        self.announcer = PeriodicAnnouncer(
            self.reconciler.mirror.values,
            self.speaker.speak,
            notify=self.reconciler.repeat,
            is_muted=lambda: self.reconciler.muted,
            interval_minutes=settings.announcer.interval_minutes,
        )
        self._entry_input: ui.input | None = None
        self._error_label: ui.label | None = None
        self._state_badge: ui.badge | None = None

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _send(self, payload: dict) -> None:
        self.channel.handle(self.session_id, payload)

    def attach(self) -> None:
        """Handshake with the channel and start the announcer."""
        self.channel.connect(
            self.session_id, self.reconciler.receive, on_expire=self.teardown
        )
        self.announcer.start()
        self.client.on_disconnect(self._on_disconnect)
        self.client.on_connect(self._on_reconnect)

    def _on_disconnect(self) -> None:
        self.reconciler.connection_lost()
        self.channel.disconnect(self.session_id)
        task = asyncio.create_task(self._expire_after_window())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    def _on_reconnect(self) -> None:
        self.channel.connect(
            self.session_id, self.reconciler.receive, on_expire=self.teardown
        )
        if not self.announcer.running:
            self.announcer.start()

    async def _expire_after_window(self) -> None:
        # Slightly past the window so the registry sees it as elapsed.
        await asyncio.sleep(self.recovery_window + 1)
        self.channel.sessions.prune()

    def teardown(self) -> None:
        """Release the timer and the session; the tab is gone for good."""
        self.announcer.stop()
        self.channel.close(self.session_id)
        logger.info("BOARD_TEARDOWN: session=%s", self.session_id[:8])

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    def on_key(self, e: KeyEventArguments) -> None:
        if not e.action.keydown:
            return
        if e.key.number is not None:
            self.typed += str(e.key.number)
        elif e.key.backspace:
            self.typed = self.typed[:-1]
        elif e.key.escape:
            self.typed = ""
        else:
            return
        self._show_typed()

    def on_category(self, category: Category) -> None:
        try:
            self.reconciler.add(category, self.typed)
        except EntryValidationError as exc:
            self._show_error(str(exc))
            return
        except BoardError as exc:
            ui.notify(str(exc), type="warning")
            return
        self.typed = ""
        self._show_typed()

    def on_delete(self, category: Category, position: int) -> None:
        try:
            self.reconciler.delete(category, position)
        except BoardError as exc:
            ui.notify(str(exc), type="warning")

    def on_mute(self, e: ValueChangeEventArguments) -> None:
        self.reconciler.muted = bool(e.value)

    def on_interval(self, e: ValueChangeEventArguments) -> None:
        try:
            self.announcer.set_interval(e.value)
        except ValueError as exc:
            ui.notify(str(exc), type="warning")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def build(self, header_slot: ui.row) -> None:
        with header_slot:
            self._state_badge = ui.badge().props('data-testid="connection-state"')
        ui.keyboard(on_key=self.on_key, ignore=["input", "select", "textarea"])

        with ui.column().classes("w-full max-w-4xl gap-4"):
            with ui.row().classes("items-end gap-2"):
                self._entry_input = (
                    ui.input(placeholder="Type numbers...")
                    .props('readonly outlined data-testid="entry-input"')
                    .classes("w-48")
                )
                ui.button(
                    "Test audio", on_click=lambda: self.speaker.speak("Manual test")
                ).props("color=grey")
                for cat in Category:
                    ui.button(
                        cat.value, on_click=lambda c=cat: self.on_category(c)
                    ).props(
                        f'color={_CATEGORY_COLOURS[cat]} data-testid="add-{cat.name}"'
                    )
            self._error_label = ui.label("").classes("text-negative text-sm")

            with ui.row().classes("items-center gap-4"):
                ui.number(
                    "Repeat interval (minutes)",
                    value=self.announcer.interval_minutes,
                    min=1,
                    step=1,
                    format="%d",
                    on_change=self.on_interval,
                ).classes("w-56")
                ui.switch(
                    "Mute", value=self.reconciler.muted, on_change=self.on_mute
                ).props('data-testid="mute-toggle"')

            self.render_lists()
        self._refresh_badge()

    @ui.refreshable_method
    def render_lists(self) -> None:
        with ui.grid(columns=3).classes("w-full gap-4"):
            for cat, entries in self.reconciler.mirror.lists.items():
                with ui.card().classes("w-full"):
                    ui.label(cat.value).classes("text-xl font-semibold")
                    if not entries:
                        ui.label("none").classes("text-grey-6")
                    for position, entry in enumerate(entries):
                        with ui.row().classes("items-center gap-1"):
                            label = ui.label(entry.value)
                            if not entry.confirmed:
                                label.classes("text-grey-7 italic")
                            ui.button(
                                icon="close",
                                on_click=lambda c=cat, p=position: self.on_delete(
                                    c, p
                                ),
                            ).props("flat dense round size=sm color=negative")

    def _refresh(self) -> None:
        self.render_lists.refresh()
        self._refresh_badge()

    def _refresh_badge(self) -> None:
        if self._state_badge is None:
            return
        text, colour = _STATE_BADGES[self.reconciler.state]
        self._state_badge.set_text(text)
        self._state_badge.props(f"color={colour}")

    def _show_typed(self) -> None:
        if self._entry_input is not None:
            self._entry_input.set_value(self.typed)
        if self._error_label is not None:
            self._error_label.set_text("")

    def _show_error(self, message: str) -> None:
        if self._error_label is not None:
            self._error_label.set_text(message)


@page_route("/", title="Board", icon="campaign", order=10)
async def board_page() -> None:
    """The shared number board."""
    client = ui.context.client
    view = BoardView(client, get_channel(), get_settings())

    with page_layout("Number Call") as header_slot:
        view.build(header_slot)

    # Wait for the websocket before handshaking so the snapshot is not lost.
    await client.connected()
    view.attach()
