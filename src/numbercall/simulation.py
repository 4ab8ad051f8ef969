"""In-process multi-client simulation over a controllable loopback network.

Messages in each direction sit in per-client queues until flushed, which
makes it possible to reproduce the interleavings that matter: two clients
acting on the same stale view before either hears about the other.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from numbercall.board import BroadcastChannel, Category, ClientReconciler


class SimulatedClient:
    """A board client whose transport is a pair of in-memory queues."""

    def __init__(
        self, name: str, network: Network, *, muted: bool = False
    ) -> None:
        self.name = name
        self.network = network
        self.spoken: list[str] = []
        self.received: list[dict] = []
        self.inbox: deque[dict] = deque()
        self.outbox: deque[dict] = deque()
        self.connected = False
        self.reconciler = ClientReconciler(
            name, send=self.outbox.append, speak=self.spoken.append, muted=muted
        )

    def connect(self) -> bool:
        """Handshake with the server; True if the session was resumed."""
        self.connected = True
        return self.network.channel.connect(self.name, self._deliver)

    def disconnect(self) -> None:
        """Drop the connection. Messages still in flight are lost."""
        self.connected = False
        self.inbox.clear()
        self.outbox.clear()
        self.reconciler.connection_lost()
        self.network.channel.disconnect(self.name)

    def _deliver(self, payload: dict) -> None:
        if self.connected:
            self.inbox.append(payload)

    def flush_out(self) -> int:
        """Deliver queued client messages to the server."""
        sent = 0
        while self.outbox:
            self.network.channel.handle(self.name, self.outbox.popleft())
            sent += 1
        return sent

    def flush_in(self) -> int:
        """Apply queued server messages to the mirror."""
        applied = 0
        while self.inbox:
            payload = self.inbox.popleft()
            self.received.append(payload)
            self.reconciler.receive(payload)
            applied += 1
        return applied

    def values(self) -> dict[Category, list[str]]:
        return self.reconciler.mirror.values()


class Network:
    """Holds a broadcast channel and the simulated clients attached to it."""

    def __init__(self, channel: BroadcastChannel | None = None) -> None:
        self.channel = channel if channel is not None else BroadcastChannel()
        self.clients: dict[str, SimulatedClient] = {}

    def join(self, name: str, *, muted: bool = False) -> SimulatedClient:
        """Create, connect and sync a client."""
        client = SimulatedClient(name, self, muted=muted)
        self.clients[name] = client
        client.connect()
        client.flush_in()
        return client

    def settle(self) -> None:
        """Flush every queue until nothing is left in flight."""
        while True:
            moved = sum(c.flush_out() for c in self.clients.values())
            moved += sum(c.flush_in() for c in self.clients.values())
            if not moved:
                return


@dataclass
class ScenarioResult:
    name: str
    store: dict[Category, list[str]]
    mirrors: dict[str, dict[Category, list[str]]]
    spoken: dict[str, list[str]]
    notes: list[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return all(m == self.store for m in self.mirrors.values())


def _result(name: str, network: Network, notes: list[str]) -> ScenarioResult:
    return ScenarioResult(
        name=name,
        store=network.channel.store.values(),
        mirrors={n: c.values() for n, c in network.clients.items()},
        spoken={n: list(c.spoken) for n, c in network.clients.items()},
        notes=notes,
    )


def run_broadcast(*, legacy: bool = False) -> ScenarioResult:
    """One client adds a number; everyone else hears it exactly once."""
    network = Network(BroadcastChannel(delete_by_id=not legacy))
    alice = network.join("alice")
    network.join("bob")
    network.join("carol", muted=True)

    alice.reconciler.add(Category.DRS, "7")
    network.settle()
    return _result(
        "broadcast", network, ["alice adds DRS 7", "carol is muted and stays silent"]
    )


def run_race(*, legacy: bool = False) -> ScenarioResult:
    """Two clients delete from the same list before hearing about each other.

    Both start from ``DRS = ["7", "9"]``. Alice deletes position 0 ("7")
    and Bob, still looking at the old list, deletes position 1 ("9").
    Position-addressed (legacy) deletes make Bob's request miss; deletes
    addressed by entry identifier remove the entry Bob actually clicked.
    """
    network = Network(BroadcastChannel(delete_by_id=not legacy))
    alice = network.join("alice")
    bob = network.join("bob")
    alice.reconciler.add(Category.DRS, "7")
    alice.reconciler.add(Category.DRS, "9")
    network.settle()

    alice.reconciler.delete(Category.DRS, 0)
    bob.reconciler.delete(Category.DRS, 1)
    alice.flush_out()
    notes = ["alice deletes DRS[0] ('7'); bob deletes DRS[1] ('9') concurrently"]
    before = len(network.channel.store)
    bob.flush_out()
    if len(network.channel.store) == before:
        notes.append("bob's delete was dropped by the server: position out of range")
    network.settle()
    return _result("race-legacy" if legacy else "race", network, notes)


def run_recovery(*, legacy: bool = False) -> ScenarioResult:
    """A client drops, misses two adds, and resumes inside the window."""
    network = Network(BroadcastChannel(delete_by_id=not legacy))
    alice = network.join("alice")
    carol = network.join("carol")

    carol.disconnect()
    alice.reconciler.add(Category.OVERRIDE, "12")
    alice.reconciler.add(Category.CHECK_DATE, "31")
    network.settle()

    carol.received.clear()
    resumed = carol.connect()
    carol.flush_in()
    kinds = [p["type"] for p in carol.received]
    notes = [
        f"carol resumed={resumed}, replayed {kinds.count('number-update')} event(s)",
        "full snapshot sent"
        if "initial-state" in kinds
        else "no full snapshot on reconnect",
    ]
    return _result("recovery", network, notes)


SCENARIOS = {
    "broadcast": run_broadcast,
    "race": run_race,
    "recovery": run_recovery,
}

