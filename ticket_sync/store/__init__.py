"""Ticket store interface and in-memory implementation."""

from .base import Listener, Note, Status, Ticket, TicketStore, Unsubscribe
from .memory import InMemoryTicketStore

__all__ = [
    "InMemoryTicketStore",
    "Listener",
    "Note",
    "Status",
    "Ticket",
    "TicketStore",
    "Unsubscribe",
]
