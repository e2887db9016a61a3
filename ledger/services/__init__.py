from ledger.services.balance import BalanceQueryService
from ledger.services.resolver import RecipientResolver
from ledger.services.transfer import TransferEngine

__all__ = ["BalanceQueryService", "RecipientResolver", "TransferEngine"]
