"""Wire messages exchanged between the board server and its clients.

Messages are JSON objects discriminated by ``type``. Field names are
camelCase on the wire (``announceText``, ``entryId``) and snake_case in
Python; ``to_wire()`` produces the wire dict and the ``parse_*`` helpers
validate an incoming dict into the matching model.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Serialise to the JSON-compatible wire dict."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Server-bound
# ---------------------------------------------------------------------------
class NumberAdded(_WireModel):
    """Client asks the server to append a number."""

    type: Literal["number-added"] = "number-added"
    category: str
    value: str
    announce_text: str | None = None


class NumberDeleteRequest(_WireModel):
    """Client asks the server to delete an entry.

    ``position`` is always sent. ``entry_id`` is sent when the client knows
    the server-assigned identifier of the entry it is deleting.
    """

    type: Literal["number-deleted"] = "number-deleted"
    category: str
    position: int
    entry_id: int | None = None


class RepeatRequest(_WireModel):
    """Informational: a client's periodic summary, for logging and relay."""

    type: Literal["repeat-message"] = "repeat-message"
    text: str


ServerMessage = Annotated[
    NumberAdded | NumberDeleteRequest | RepeatRequest,
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Client-bound
# ---------------------------------------------------------------------------
class EntryPayload(_WireModel):
    value: str
    entry_id: int


class InitialState(_WireModel):
    """Full snapshot pushed on connect (or on reconnect outside the window)."""

    type: Literal["initial-state"] = "initial-state"
    entries: dict[str, list[EntryPayload]]
    seq: int


class Added(_WireModel):
    type: Literal["number-update"] = "number-update"
    category: str
    value: str
    position: int
    announce_text: str
    entry_id: int
    seq: int


class Removed(_WireModel):
    type: Literal["number-deleted"] = "number-deleted"
    category: str
    position: int
    entry_id: int
    seq: int
    origin: str | None = None


class Repeat(_WireModel):
    type: Literal["repeat-message"] = "repeat-message"
    text: str
    origin: str | None = None


class SessionResumed(_WireModel):
    """Sent ahead of replayed events when a session resumes in the window."""

    type: Literal["session-resumed"] = "session-resumed"
    replayed: int
    seq: int


ClientMessage = Annotated[
    InitialState | Added | Removed | Repeat | SessionResumed,
    Field(discriminator="type"),
]

_server_adapter: TypeAdapter[NumberAdded | NumberDeleteRequest | RepeatRequest] = (
    TypeAdapter(ServerMessage)
)
_client_adapter: TypeAdapter[
    InitialState | Added | Removed | Repeat | SessionResumed
] = TypeAdapter(ClientMessage)


def parse_server_message(
    payload: dict,
) -> NumberAdded | NumberDeleteRequest | RepeatRequest:
    """Validate a server-bound wire dict.

    Raises:
        pydantic.ValidationError: If the payload is malformed.
    """
    return _server_adapter.validate_python(payload)


def parse_client_message(
    payload: dict,
) -> InitialState | Added | Removed | Repeat | SessionResumed:
    """Validate a client-bound wire dict.

    Raises:
        pydantic.ValidationError: If the payload is malformed.
    """
    return _client_adapter.validate_python(payload)
