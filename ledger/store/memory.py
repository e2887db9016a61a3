"""
In-memory ledger store.

Dict-backed stand-in for the SQL store with the same unit-of-work contract:
per-account locks taken in ascending id order, writes staged inside the unit
and published only when the callback returns.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from ledger.domain import CENT, AccountRecord, Direction, HistoryEntry, TransactionRecord
from ledger.errors import AccountNotFoundError, BalanceConflictError, DuplicateAccountError
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore, LedgerUnit

logger = get_logger("ledger.store.memory")

T = TypeVar("T")


class IntegrityViolation(Exception):
    """Raised when a staged write breaks a table constraint."""


class InMemoryLedgerUnit(LedgerUnit):
    def __init__(self, store: "InMemoryLedgerStore"):
        self.store = store
        self.balances: Dict[int, Decimal] = {}
        self.transactions: List[TransactionRecord] = []

    async def get_account(self, account_id: int) -> Optional[AccountRecord]:
        await asyncio.sleep(0)
        account = self.store.accounts.get(account_id)
        if account is None:
            return None
        if account_id in self.balances:
            return replace(account, balance=self.balances[account_id])
        return account

    async def apply_delta(self, account_id: int, delta: Decimal) -> Decimal:
        await asyncio.sleep(0)
        account = self.store.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        current = self.balances.get(account_id, account.balance)
        new_balance = (current + delta).quantize(CENT)
        if new_balance < 0:
            raise BalanceConflictError(account_id, current)
        self.balances[account_id] = new_balance
        return new_balance

    async def append_transaction(
        self, sender_id: int, recipient_id: int, amount: Decimal, reference: Optional[str] = None
    ) -> TransactionRecord:
        await asyncio.sleep(0)
        if amount <= 0:
            raise IntegrityViolation("amount must be positive")
        if sender_id == recipient_id:
            raise IntegrityViolation("sender and recipient must differ")
        if reference is not None and (
            self.store.find_transfer_now(sender_id, reference) is not None
            or any(t.sender_id == sender_id and t.reference == reference for t in self.transactions)
        ):
            raise IntegrityViolation(f"duplicate reference {reference!r} for sender {sender_id}")
        record = TransactionRecord(
            id=self.store.next_transaction_id(),
            sender_id=sender_id,
            recipient_id=recipient_id,
            amount=amount,
            created_at=datetime.utcnow(),
            reference=reference,
        )
        self.transactions.append(record)
        return record

    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        await asyncio.sleep(0)
        for record in self.transactions:
            if record.sender_id == sender_id and record.reference == reference:
                return record
        return self.store.find_transfer_now(sender_id, reference)

    def publish(self) -> None:
        missing = [account_id for account_id in self.balances if account_id not in self.store.accounts]
        if missing:
            raise IntegrityViolation(f"accounts {missing} disappeared before commit")
        for account_id, balance in self.balances.items():
            self.store.accounts[account_id] = replace(self.store.accounts[account_id], balance=balance)
        self.store.transactions.extend(self.transactions)


class InMemoryLedgerStore(LedgerStore):
    def __init__(self):
        self.accounts: Dict[int, AccountRecord] = {}
        self.transactions: List[TransactionRecord] = []
        self._locks: Dict[int, asyncio.Lock] = {}
        self._account_seq = 0
        self._transaction_seq = 0

    def next_transaction_id(self) -> int:
        self._transaction_seq += 1
        return self._transaction_seq

    def find_transfer_now(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        for record in self.transactions:
            if record.sender_id == sender_id and record.reference == reference:
                return record
        return None

    def total_balance(self) -> Decimal:
        return sum((a.balance for a in self.accounts.values()), Decimal("0.00"))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_account(self, account_id: int) -> Optional[AccountRecord]:
        await asyncio.sleep(0)
        return self.accounts.get(account_id)

    async def get_account_by_tax_id(self, tax_id: str) -> Optional[AccountRecord]:
        await asyncio.sleep(0)
        for account in self.accounts.values():
            if account.tax_id == tax_id:
                return account
        return None

    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        await asyncio.sleep(0)
        return self.find_transfer_now(sender_id, reference)

    async def search_accounts(self, term: str, exclude_id: Optional[int], limit: int) -> List[AccountRecord]:
        await asyncio.sleep(0)
        needle = term.lower()
        matches = [
            a
            for a in self.accounts.values()
            if a.id != exclude_id and (needle in a.name.lower() or needle in a.tax_id.lower())
        ]
        matches.sort(key=lambda a: (a.name, a.id))
        return matches[:limit]

    async def history_page(
        self, account_id: int, limit: int, before_id: Optional[int] = None
    ) -> List[HistoryEntry]:
        await asyncio.sleep(0)
        rows = [t for t in self.transactions if account_id in (t.sender_id, t.recipient_id)]
        rows.sort(key=lambda t: (t.created_at, t.id), reverse=True)
        if before_id is not None:
            cursor = next((t for t in self.transactions if t.id == before_id), None)
            if cursor is None:
                return []
            key: Tuple[datetime, int] = (cursor.created_at, cursor.id)
            rows = [t for t in rows if (t.created_at, t.id) < key]

        entries = []
        for t in rows[:limit]:
            outgoing = t.sender_id == account_id
            counterparty_id = t.recipient_id if outgoing else t.sender_id
            counterparty = self.accounts.get(counterparty_id)
            entries.append(
                HistoryEntry(
                    id=t.id,
                    counterparty_id=counterparty_id,
                    counterparty_name=counterparty.name if counterparty else "",
                    amount=t.amount,
                    created_at=t.created_at,
                    direction=Direction.DEBIT if outgoing else Direction.CREDIT,
                )
            )
        return entries

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def with_transaction(self, fn: Callable[[LedgerUnit], Awaitable[T]], lock_ids: Iterable[int]) -> T:
        held: List[asyncio.Lock] = []
        try:
            for account_id in sorted(set(lock_ids)):
                lock = self._locks.setdefault(account_id, asyncio.Lock())
                await lock.acquire()
                held.append(lock)
            unit = InMemoryLedgerUnit(self)
            result = await fn(unit)
            unit.publish()
            return result
        finally:
            for lock in reversed(held):
                lock.release()

    async def open_account(self, name: str, tax_id: str, balance: Decimal) -> AccountRecord:
        if any(a.tax_id == tax_id for a in self.accounts.values()):
            raise DuplicateAccountError()
        if balance < 0:
            raise IntegrityViolation("balance must be non-negative")
        self._account_seq += 1
        record = AccountRecord(
            id=self._account_seq,
            name=name,
            tax_id=tax_id,
            balance=balance.quantize(CENT),
            created_at=datetime.utcnow(),
        )
        self.accounts[record.id] = record
        logger.info("Opened account id=%s tax_id=%s balance=%s", record.id, record.tax_id, record.balance)
        return record

    async def remove_account(self, account_id: int) -> bool:
        removed = self.accounts.pop(account_id, None) is not None
        self.transactions = [t for t in self.transactions if account_id not in (t.sender_id, t.recipient_id)]
        self._locks.pop(account_id, None)
        logger.info("Removed account id=%s removed=%s", account_id, removed)
        return removed
