"""End-to-end board scenarios over the in-process loopback network."""

from __future__ import annotations

from numbercall.board import Category
from numbercall.simulation import (
    Network,
    run_broadcast,
    run_race,
    run_recovery,
)


class TestBroadcastScenario:
    def test_every_mirror_matches_and_speech_is_once(self) -> None:
        result = run_broadcast()
        assert result.converged
        assert result.store[Category.DRS] == ["7"]
        assert result.spoken == {"alice": ["DRS 7"], "bob": ["DRS 7"], "carol": []}


class TestRaceScenario:
    def test_delete_by_id_converges_to_empty(self) -> None:
        result = run_race()
        assert result.converged
        assert result.store[Category.DRS] == []

    def test_legacy_position_deletes_diverge(self) -> None:
        result = run_race(legacy=True)
        assert result.store[Category.DRS] == ["9"]
        assert result.mirrors["bob"][Category.DRS] == []
        assert not result.converged
        assert any("dropped" in note for note in result.notes)


class TestRecoveryScenario:
    def test_resumed_client_replays_missed_adds(self) -> None:
        result = run_recovery()
        assert result.converged
        assert result.mirrors["carol"][Category.OVERRIDE] == ["12"]
        assert result.mirrors["carol"][Category.CHECK_DATE] == ["31"]
        assert result.spoken["carol"] == ["Override 12", "Check Date 31"]
        assert "no full snapshot on reconnect" in result.notes


class TestNetwork:
    def test_late_joiner_gets_snapshot_silently(self) -> None:
        network = Network()
        alice = network.join("alice")
        alice.reconciler.add(Category.DRS, "7")
        network.settle()
        dave = network.join("dave")
        assert dave.values()[Category.DRS] == ["7"]
        assert dave.spoken == []

    def test_disconnect_drops_in_flight_messages(self) -> None:
        network = Network()
        alice = network.join("alice")
        bob = network.join("bob")
        alice.reconciler.add(Category.DRS, "7")
        alice.flush_out()
        bob.disconnect()
        assert not bob.inbox
        assert bob.values()[Category.DRS] == []


class TestUnconfirmedEntries:
    def test_deleting_own_unconfirmed_add_spares_other_clients_entry(self) -> None:
        network = Network()
        alice = network.join("alice")
        bob = network.join("bob")
        bob.reconciler.add(Category.DRS, "3")
        bob.flush_out()

        alice.reconciler.add(Category.DRS, "5")
        alice.flush_out()
        alice.reconciler.delete(Category.DRS, 0)
        network.settle()

        store = network.channel.store.values()
        assert store[Category.DRS] == ["3"]
        assert alice.values() == store
        assert bob.values() == store

    def test_add_lost_in_disconnect_reaches_server_after_resume(self) -> None:
        network = Network()
        alice = network.join("alice")
        bob = network.join("bob")
        alice.reconciler.add(Category.DRS, "5")
        alice.disconnect()

        assert alice.connect() is True
        alice.flush_in()
        network.settle()

        store = network.channel.store.values()
        assert store[Category.DRS] == ["5"]
        assert alice.values() == store
        assert bob.values() == store
        assert alice.spoken == ["DRS 5"]
