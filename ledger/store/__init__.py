from ledger.store.base import LedgerStore, LedgerUnit
from ledger.store.memory import InMemoryLedgerStore
from ledger.store.sql import SqlLedgerStore

__all__ = ["LedgerStore", "LedgerUnit", "InMemoryLedgerStore", "SqlLedgerStore"]
