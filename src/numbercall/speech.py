"""Text-to-speech on the connected browser.

Speech runs in each browser tab through the Web Speech API; the server only
pushes the utterance over the NiceGUI client connection.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from nicegui import Client

logger = logging.getLogger(__name__)


class Speaker(Protocol):
    def speak(self, text: str) -> None: ...


def render_speech_js(text: str, *, lang: str = "en-US", rate: float = 1.0) -> str:
    """Build the JS snippet that queues ``text`` for speech.

    Values go through ``json.dumps`` so quotes and newlines in ``text``
    cannot break out of the string literal.
    """
    return (
        "(() => {"
        f"const u = new SpeechSynthesisUtterance({json.dumps(text)});"
        f"u.lang = {json.dumps(lang)};"
        f"u.rate = {json.dumps(rate)};"
        "window.speechSynthesis.speak(u);"
        "})()"
    )


class BrowserSpeaker:
    """Speaks on one NiceGUI client's browser.

    Uses ``client.run_javascript()`` rather than ``ui.run_javascript()`` so
    it is safe to call from broadcast callbacks running outside the
    client's own UI context.
    """

    def __init__(
        self, client: Client, *, lang: str = "en-US", rate: float = 1.0
    ) -> None:
        self.client = client
        self.lang = lang
        self.rate = rate

    def speak(self, text: str) -> None:
        logger.debug("SPEAK: client=%s %s", str(self.client.id)[:8], text)
        try:
            self.client.run_javascript(
                render_speech_js(text, lang=self.lang, rate=self.rate)
            )
        except Exception:
            # Client may have disconnected
            logger.debug(
                "Speech dropped for %s", str(self.client.id)[:8], exc_info=True
            )
