"""Store contract tests, run against both implementations."""

from decimal import Decimal

import pytest

from ledger.domain import Direction
from ledger.errors import AccountNotFoundError, BalanceConflictError, DuplicateAccountError


class TestAccounts:
    async def test_open_and_read(self, store):
        opened = await store.open_account("Ana Clara", "123", Decimal("12.5"))

        by_id = await store.get_account(opened.id)
        by_tax = await store.get_account_by_tax_id("123")

        assert by_id.name == "Ana Clara"
        assert by_id.balance == Decimal("12.50")
        assert by_tax.id == opened.id

    async def test_missing_account(self, store):
        assert await store.get_account(42) is None
        assert await store.get_account_by_tax_id("nope") is None

    async def test_duplicate_tax_id(self, store):
        await store.open_account("Ana", "123", Decimal("0"))
        with pytest.raises(DuplicateAccountError):
            await store.open_account("Other Ana", "123", Decimal("0"))

    async def test_remove_cascades_transactions(self, store, engine, accounts):
        alice, bob, carol = accounts["alice"], accounts["bob"], accounts["carol"]
        await engine.transfer(alice.id, "10", recipient_id=bob.id)
        await engine.transfer(bob.id, "5", recipient_id=carol.id)

        assert await store.remove_account(alice.id) is True

        assert await store.get_account(alice.id) is None
        bob_history = await store.history_page(bob.id, 10)
        assert [e.counterparty_id for e in bob_history] == [carol.id]
        assert await store.remove_account(alice.id) is False


class TestUnitOfWork:
    async def test_commit_publishes_changes(self, store, accounts):
        alice, bob = accounts["alice"], accounts["bob"]

        async def move(unit):
            await unit.apply_delta(alice.id, Decimal("-10.00"))
            await unit.apply_delta(bob.id, Decimal("10.00"))
            return await unit.append_transaction(alice.id, bob.id, Decimal("10.00"), "ref-1")

        record = await store.with_transaction(move, lock_ids=[bob.id, alice.id])

        assert record.reference == "ref-1"
        assert (await store.get_account(alice.id)).balance == Decimal("90.00")
        assert (await store.find_transfer(alice.id, "ref-1")).id == record.id

    async def test_unit_sees_its_own_writes(self, store, accounts):
        alice = accounts["alice"]

        async def read_back(unit):
            await unit.apply_delta(alice.id, Decimal("-30.00"))
            return await unit.get_account(alice.id)

        seen = await store.with_transaction(read_back, lock_ids=[alice.id])
        assert seen.balance == Decimal("70.00")

    async def test_conditional_update_refuses_overdraft(self, store, accounts):
        alice = accounts["alice"]

        async def overdraw(unit):
            await unit.apply_delta(alice.id, Decimal("-100.01"))

        with pytest.raises(BalanceConflictError) as exc_info:
            await store.with_transaction(overdraw, lock_ids=[alice.id])

        assert exc_info.value.current_balance == Decimal("100.00")
        assert (await store.get_account(alice.id)).balance == Decimal("100.00")

    async def test_apply_delta_unknown_account(self, store, accounts):
        async def touch(unit):
            await unit.apply_delta(999, Decimal("1.00"))

        with pytest.raises(AccountNotFoundError):
            await store.with_transaction(touch, lock_ids=[999])

    async def test_exception_rolls_back_everything(self, store, accounts):
        alice, bob = accounts["alice"], accounts["bob"]

        async def half_done(unit):
            await unit.apply_delta(alice.id, Decimal("-10.00"))
            await unit.apply_delta(bob.id, Decimal("10.00"))
            await unit.append_transaction(alice.id, bob.id, Decimal("10.00"))
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await store.with_transaction(half_done, lock_ids=[alice.id, bob.id])

        assert (await store.get_account(alice.id)).balance == Decimal("100.00")
        assert (await store.get_account(bob.id)).balance == Decimal("50.00")
        assert await store.history_page(alice.id, 10) == []

    async def test_self_transaction_violates_constraint(self, store, accounts):
        alice = accounts["alice"]

        async def to_self(unit):
            await unit.append_transaction(alice.id, alice.id, Decimal("1.00"))

        with pytest.raises(Exception):
            await store.with_transaction(to_self, lock_ids=[alice.id])
        assert await store.history_page(alice.id, 10) == []


class TestSearch:
    async def test_case_insensitive_name_and_tax_id(self, store, accounts):
        by_name = await store.search_accounts("ALICE", exclude_id=None, limit=10)
        by_tax = await store.search_accounts("982.247", exclude_id=None, limit=10)

        assert [a.id for a in by_name] == [accounts["alice"].id]
        assert [a.id for a in by_tax] == [accounts["bob"].id]

    async def test_excludes_given_id(self, store, accounts):
        matches = await store.search_accounts("li", exclude_id=accounts["alice"].id, limit=10)
        assert [a.id for a in matches] == [accounts["bob"].id]

    async def test_limit(self, store):
        for i in range(5):
            await store.open_account(f"Maria {i}", f"tax-{i}", Decimal("0"))
        assert len(await store.search_accounts("maria", exclude_id=None, limit=3)) == 3

    async def test_wildcards_are_literal(self, store, accounts):
        await store.open_account("100% Corp", "99", Decimal("0"))

        assert [a.name for a in await store.search_accounts("0% c", None, 10)] == ["100% Corp"]
        assert await store.search_accounts("%%%", None, 10) == []
        assert await store.search_accounts("___", None, 10) == []


class TestHistory:
    async def test_direction_and_counterparty(self, store, engine, accounts):
        alice, bob = accounts["alice"], accounts["bob"]
        await engine.transfer(alice.id, "10", recipient_id=bob.id)
        await engine.transfer(bob.id, "3", recipient_id=alice.id)

        entries = await store.history_page(alice.id, 10)

        assert [(e.direction, e.counterparty_name, e.amount) for e in entries] == [
            (Direction.CREDIT, "Bob Lima", Decimal("3.00")),
            (Direction.DEBIT, "Bob Lima", Decimal("10.00")),
        ]

    async def test_keyset_pages(self, store, engine, accounts):
        alice, bob = accounts["alice"], accounts["bob"]
        for amount in ("1", "2", "3", "4", "5"):
            await engine.transfer(alice.id, amount, recipient_id=bob.id)

        first = await store.history_page(alice.id, 2)
        second = await store.history_page(alice.id, 2, before_id=first[-1].id)
        third = await store.history_page(alice.id, 2, before_id=second[-1].id)

        amounts = [e.amount for e in first + second + third]
        assert amounts == [Decimal(v) for v in ("5", "4", "3", "2", "1")]
        assert len(third) == 1

    async def test_unknown_cursor_gives_empty_page(self, store, accounts):
        assert await store.history_page(accounts["alice"].id, 10, before_id=12345) == []
