"""
Storage boundary used by the transfer engine and the read-side services.

A store owns persisted accounts and transactions. The only way to change a
balance is inside ``with_transaction``: the store opens one atomic unit,
locks the requested accounts in ascending id order, hands a LedgerUnit to the
callback and commits when it returns. Any exception rolls the whole unit back
and is re-raised unchanged.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from ledger.domain import AccountRecord, HistoryEntry, TransactionRecord

T = TypeVar("T")


class LedgerUnit(ABC):
    """Operations available inside one atomic unit."""

    @abstractmethod
    async def get_account(self, account_id: int) -> Optional[AccountRecord]:
        """Read an account as seen by this unit (after its own writes)."""

    @abstractmethod
    async def apply_delta(self, account_id: int, delta: Decimal) -> Decimal:
        """
        Add ``delta`` to the balance and return the new balance.

        Raises BalanceConflictError if the result would be negative and
        AccountNotFoundError if the account does not exist.
        """

    @abstractmethod
    async def append_transaction(
        self, sender_id: int, recipient_id: int, amount: Decimal, reference: Optional[str] = None
    ) -> TransactionRecord:
        """Record a committed-with-the-unit transfer."""

    @abstractmethod
    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        """Look up an earlier transfer by the sender's reference."""


class LedgerStore(ABC):
    @abstractmethod
    async def get_account(self, account_id: int) -> Optional[AccountRecord]: ...

    @abstractmethod
    async def get_account_by_tax_id(self, tax_id: str) -> Optional[AccountRecord]: ...

    @abstractmethod
    async def search_accounts(self, term: str, exclude_id: Optional[int], limit: int) -> List[AccountRecord]:
        """Case-insensitive substring match on name or tax id."""

    @abstractmethod
    async def history_page(
        self, account_id: int, limit: int, before_id: Optional[int] = None
    ) -> List[HistoryEntry]:
        """Newest-first transactions touching ``account_id``, older than ``before_id``."""

    @abstractmethod
    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        """Committed transfer recorded by ``sender_id`` under ``reference``, if any."""

    @abstractmethod
    async def with_transaction(self, fn: Callable[[LedgerUnit], Awaitable[T]], lock_ids: Iterable[int]) -> T: ...

    @abstractmethod
    async def open_account(self, name: str, tax_id: str, balance: Decimal) -> AccountRecord: ...

    @abstractmethod
    async def remove_account(self, account_id: int) -> bool:
        """Delete an account and every transaction it took part in."""

    async def init_schema(self) -> None:
        return None

    async def close(self) -> None:
        return None
