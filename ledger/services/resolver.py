from typing import List

from ledger.domain import RecipientMatch
from ledger.errors import SearchTermTooShortError
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore

logger = get_logger("ledger.services.resolver")


class RecipientResolver:
    """
    Finds transfer recipients by partial name or tax id, never the caller.
    """

    def __init__(self, store: LedgerStore, limit: int = 10, min_length: int = 3):
        self.store = store
        self.limit = limit
        self.min_length = min_length

    async def search(self, caller_id: int, term: str) -> List[RecipientMatch]:
        needle = (term or "").strip()
        if len(needle) < self.min_length:
            raise SearchTermTooShortError(self.min_length)

        logger.info("Recipient search caller=%s term=%s", caller_id, needle)
        accounts = await self.store.search_accounts(needle, exclude_id=caller_id, limit=self.limit)
        return [RecipientMatch(id=a.id, name=a.name, tax_id=a.tax_id) for a in accounts]
