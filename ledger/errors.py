"""Exception hierarchy for the ledger service.

Every error a caller can see carries a stable ``kind`` string and the HTTP
status the API layer answers with.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all caller-visible ledger errors."""

    kind = "LedgerError"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error_kind": self.kind, "message": self.message}


class InvalidAmountError(LedgerError):
    kind = "InvalidAmount"
    default_message = "Amount must be greater than zero"


class MissingRecipientError(LedgerError):
    kind = "MissingRecipient"
    default_message = "Exactly one of recipient_id or tax_id must be provided"


class SelfTransferError(LedgerError):
    kind = "SelfTransfer"
    default_message = "Cannot transfer to your own account"


class SenderNotFoundError(LedgerError):
    kind = "SenderNotFound"
    status_code = 404
    default_message = "Sender account not found"


class RecipientNotFoundError(LedgerError):
    kind = "RecipientNotFound"
    status_code = 404
    default_message = "Recipient not found"


class InsufficientFundsError(LedgerError):
    kind = "InsufficientFunds"
    status_code = 422

    def __init__(self, current_balance: Decimal, message: Optional[str] = None):
        self.current_balance = current_balance
        super().__init__(message or f"Insufficient funds. Current balance: {current_balance:.2f}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["current_balance"] = str(self.current_balance)
        return data


class StorageFailureError(LedgerError):
    kind = "StorageFailure"
    status_code = 503
    default_message = "Transfer could not be completed"


class OutcomeUnknownError(LedgerError):
    """Raised when a transfer timed out; it may or may not have committed."""

    kind = "OutcomeUnknown"
    status_code = 504
    default_message = "Transfer outcome unknown; check your history before retrying"


class ReferenceConflictError(LedgerError):
    """Raised when a reference is reused for a different amount or recipient."""

    kind = "ReferenceConflict"
    status_code = 409
    default_message = "Reference already used for a different transfer"


class SearchTermTooShortError(LedgerError):
    kind = "InvalidSearchTerm"

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"Enter at least {min_length} characters to search")


class AccountNotFoundError(LedgerError):
    kind = "AccountNotFound"
    status_code = 404
    default_message = "Account not found"


class DuplicateAccountError(LedgerError):
    kind = "DuplicateAccount"
    status_code = 409
    default_message = "An account with this tax id already exists"


class UnauthorizedError(LedgerError):
    kind = "Unauthorized"
    status_code = 401
    default_message = "Missing or invalid credentials"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""


class BalanceConflictError(Exception):
    """Raised by a store when a conditional balance update is refused.

    Internal to the store/engine boundary; the engine turns it into
    InsufficientFundsError.
    """

    def __init__(self, account_id: int, current_balance: Decimal):
        self.account_id = account_id
        self.current_balance = current_balance
        super().__init__(f"Balance update refused for account {account_id} (balance={current_balance})")
