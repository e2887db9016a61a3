"""Concurrent transfers, run against both store implementations.

The in-memory store yields to the event loop on every read and write and the
SQL store waits on the database, so ``asyncio.gather`` interleaves the
transfers the way independent requests would.
"""

import asyncio
import random
from decimal import Decimal

import pytest

from ledger.errors import InsufficientFundsError
from ledger.services import TransferEngine


async def _balance(store, account) -> Decimal:
    return (await store.get_account(account.id)).balance


async def _total(store, opened) -> Decimal:
    return sum([await _balance(store, a) for a in opened], Decimal("0.00"))


async def _history_len(store, account) -> int:
    return len(await store.history_page(account.id, 10000))


@pytest.fixture
async def funded(store):
    sender = await store.open_account("Sender", "100", Decimal("100.00"))
    first = await store.open_account("First", "200", Decimal("0.00"))
    second = await store.open_account("Second", "300", Decimal("0.00"))
    return sender, first, second


async def test_concurrent_debits_cannot_overdraw(store, funded):
    sender, first, second = funded
    engine = TransferEngine(store)

    results = await asyncio.gather(
        engine.transfer(sender.id, "60.00", recipient_id=first.id),
        engine.transfer(sender.id, "60.00", recipient_id=second.id),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientFundsError)
    assert failures[0].current_balance == Decimal("40.00")
    assert await _balance(store, sender) == Decimal("40.00")
    assert await _total(store, funded) == Decimal("100.00")
    assert await _history_len(store, sender) == 1


async def test_concurrent_debits_that_fit_both_succeed(store, funded):
    sender, first, second = funded
    engine = TransferEngine(store)

    results = await asyncio.gather(
        engine.transfer(sender.id, "40.00", recipient_id=first.id),
        engine.transfer(sender.id, "60.00", recipient_id=second.id),
    )

    assert Decimal("0.00") in [r.new_balance for r in results]
    assert await _balance(store, sender) == Decimal("0.00")
    assert await _total(store, funded) == Decimal("100.00")


async def test_mutual_transfers_do_not_deadlock(store):
    a = await store.open_account("A", "1", Decimal("500.00"))
    b = await store.open_account("B", "2", Decimal("500.00"))
    engine = TransferEngine(store)

    calls = []
    for _ in range(20):
        calls.append(engine.transfer(a.id, "7.00", recipient_id=b.id))
        calls.append(engine.transfer(b.id, "3.00", recipient_id=a.id))

    await asyncio.wait_for(asyncio.gather(*calls), timeout=30)

    assert await _balance(store, a) == Decimal("420.00")
    assert await _balance(store, b) == Decimal("580.00")
    assert await _history_len(store, a) == 40


async def test_random_load_preserves_invariants(store):
    rng = random.Random(42)
    opened = [await store.open_account(f"Client {i}", f"tax-{i}", Decimal("50.00")) for i in range(6)]
    engine = TransferEngine(store)
    total_before = await _total(store, opened)

    async def attempt():
        sender, recipient = rng.sample(opened, 2)
        amount = Decimal(rng.randint(1, 4000)) / 100
        try:
            await engine.transfer(sender.id, amount, recipient_id=recipient.id)
            return True
        except InsufficientFundsError:
            return False

    outcomes = await asyncio.wait_for(asyncio.gather(*(attempt() for _ in range(100))), timeout=60)

    assert await _total(store, opened) == total_before
    assert all([await _balance(store, a) >= 0 for a in opened])
    recorded = sum([await _history_len(store, a) for a in opened])
    # every transaction shows up once for its sender and once for its recipient
    assert recorded == 2 * sum(outcomes)
