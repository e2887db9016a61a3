"""Pytest configuration and fixtures."""

from decimal import Decimal
from typing import Dict

import pytest

from ledger.domain import AccountRecord
from ledger.services import BalanceQueryService, RecipientResolver, TransferEngine
from ledger.store import InMemoryLedgerStore, SqlLedgerStore


async def _sql_store(tmp_path) -> SqlLedgerStore:
    store = SqlLedgerStore.from_url(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await store.init_schema()
    return store


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    """Fresh in-memory store."""
    return InMemoryLedgerStore()


@pytest.fixture
async def sql_store(tmp_path):
    """SQL store on a temporary SQLite file."""
    store = await _sql_store(tmp_path)
    try:
        yield store
    finally:
        await store.close()


@pytest.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    """Each test using this runs once per store implementation."""
    if request.param == "memory":
        yield InMemoryLedgerStore()
        return
    sql = await _sql_store(tmp_path)
    try:
        yield sql
    finally:
        await sql.close()


@pytest.fixture
async def accounts(store) -> Dict[str, AccountRecord]:
    """Three accounts: alice 100.00, bob 50.00, carol 0.00."""
    return {
        "alice": await store.open_account("Alice Souza", "111.444.777-35", Decimal("100.00")),
        "bob": await store.open_account("Bob Lima", "529.982.247-25", Decimal("50.00")),
        "carol": await store.open_account("Carol Abcde", "12.345.678/0001-95", Decimal("0.00")),
    }


@pytest.fixture
def engine(store) -> TransferEngine:
    return TransferEngine(store)


@pytest.fixture
def balances(store) -> BalanceQueryService:
    return BalanceQueryService(store, page_size=2)


@pytest.fixture
def resolver(store) -> RecipientResolver:
    return RecipientResolver(store, limit=10, min_length=3)
