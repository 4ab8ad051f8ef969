"""Real-time synchronization core for the shared number board."""

from numbercall.board.announcer import PeriodicAnnouncer, compose_summary
from numbercall.board.channel import BroadcastChannel, get_channel
from numbercall.board.mirror import ClientMirror, ClientReconciler, ConnectionState
from numbercall.board.store import (
    BoardError,
    Category,
    CategoryStore,
    ConnectionLostError,
    Entry,
    EntryValidationError,
    InvalidCategoryError,
    PositionOutOfRangeError,
    UnknownEntryError,
)

__all__ = [
    "BoardError",
    "BroadcastChannel",
    "Category",
    "CategoryStore",
    "ClientMirror",
    "ClientReconciler",
    "ConnectionLostError",
    "ConnectionState",
    "Entry",
    "EntryValidationError",
    "InvalidCategoryError",
    "PeriodicAnnouncer",
    "PositionOutOfRangeError",
    "UnknownEntryError",
    "compose_summary",
    "get_channel",
]
