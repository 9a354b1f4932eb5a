"""File-backed persistence: atomic JSON collections and the session ledger."""

from edge.storage.json_store import JsonCollection
from edge.storage.ledger import LedgerStore

__all__ = ["JsonCollection", "LedgerStore"]
