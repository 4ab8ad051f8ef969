"""Tests for wire message encoding and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from numbercall.board.events import (
    Added,
    EntryPayload,
    InitialState,
    NumberAdded,
    NumberDeleteRequest,
    Removed,
    RepeatRequest,
    SessionResumed,
    parse_client_message,
    parse_server_message,
)


class TestServerBound:
    def test_number_added_uses_camel_case(self) -> None:
        wire = NumberAdded(category="DRS", value="7", announce_text="DRS 7").to_wire()
        assert wire == {
            "type": "number-added",
            "category": "DRS",
            "value": "7",
            "announceText": "DRS 7",
        }

    def test_parse_dispatches_on_type(self) -> None:
        msg = parse_server_message(
            {"type": "number-deleted", "category": "DRS", "position": 1}
        )
        assert isinstance(msg, NumberDeleteRequest)
        assert msg.entry_id is None

    def test_parse_accepts_entry_id_alias(self) -> None:
        msg = parse_server_message(
            {"type": "number-deleted", "category": "DRS", "position": 0, "entryId": 4}
        )
        assert isinstance(msg, NumberDeleteRequest)
        assert msg.entry_id == 4

    def test_repeat_message(self) -> None:
        msg = parse_server_message({"type": "repeat-message", "text": "DRS: none"})
        assert msg == RepeatRequest(text="DRS: none")

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"type": "explode"},
            {"type": "number-added", "category": "DRS"},
            {"type": "number-deleted", "category": "DRS", "position": "first"},
        ],
    )
    def test_malformed_payloads_raise(self, payload: dict) -> None:
        with pytest.raises(ValidationError):
            parse_server_message(payload)


class TestClientBound:
    def test_initial_state_nests_entries(self) -> None:
        state = InitialState(
            entries={"DRS": [EntryPayload(value="7", entry_id=1)], "Override": []},
            seq=3,
        )
        assert state.to_wire() == {
            "type": "initial-state",
            "entries": {"DRS": [{"value": "7", "entryId": 1}], "Override": []},
            "seq": 3,
        }

    def test_added_round_trip_through_parse(self) -> None:
        added = Added(
            category="DRS",
            value="7",
            position=0,
            announce_text="DRS 7",
            entry_id=1,
            seq=1,
        )
        assert parse_client_message(added.to_wire()) == added

    def test_removed_and_number_deleted_share_type_name(self) -> None:
        wire = Removed(category="DRS", position=0, entry_id=1, seq=2).to_wire()
        assert wire["type"] == "number-deleted"
        assert isinstance(parse_client_message(wire), Removed)

    def test_session_resumed(self) -> None:
        msg = parse_client_message({"type": "session-resumed", "replayed": 2, "seq": 9})
        assert msg == SessionResumed(replayed=2, seq=9)

    def test_models_are_frozen(self) -> None:
        msg = SessionResumed(replayed=0, seq=0)
        with pytest.raises(ValidationError):
            msg.replayed = 5  # type: ignore[misc]
