from decimal import Decimal
from typing import AsyncIterator, List, Optional

from ledger.domain import AccountRecord, HistoryEntry
from ledger.errors import AccountNotFoundError
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore

logger = get_logger("ledger.services.balance")


class BalanceQueryService:
    """
    Read-only balance and history projection.
    """

    def __init__(self, store: LedgerStore, page_size: int = 50):
        self.store = store
        self.page_size = page_size

    async def get_account(self, account_id: int) -> AccountRecord:
        account = await self.store.get_account(account_id)
        if account is None:
            logger.warning("Account not found account_id=%s", account_id)
            raise AccountNotFoundError()
        return account

    async def get_balance(self, account_id: int) -> Decimal:
        account = await self.get_account(account_id)
        return account.balance

    async def get_history_page(
        self, account_id: int, limit: Optional[int] = None, before_id: Optional[int] = None
    ) -> List[HistoryEntry]:
        await self.get_account(account_id)
        size = limit or self.page_size
        logger.info("Fetching history account_id=%s limit=%s before_id=%s", account_id, size, before_id)
        return await self.store.history_page(account_id, size, before_id)

    async def iter_history(self, account_id: int, page_size: Optional[int] = None) -> AsyncIterator[HistoryEntry]:
        """
        Walk the full history newest first, one page in memory at a time.
        """
        await self.get_account(account_id)
        size = page_size or self.page_size
        before_id = None
        while True:
            page = await self.store.history_page(account_id, size, before_id)
            for entry in page:
                yield entry
            if len(page) < size:
                return
            before_id = page[-1].id
