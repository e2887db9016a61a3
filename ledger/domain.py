"""
Plain value objects shared by the stores, services and API layer.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from ledger.errors import InvalidAmountError

CENT = Decimal("0.01")
# largest value a DECIMAL(15, 2) column holds
MAX_AMOUNT = Decimal("9999999999999.99")


def to_money(value: Any) -> Decimal:
    """
    Convert a user-supplied amount to a 2-place Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Anything that is not a
    finite number, or whose magnitude does not fit the balance column,
    raises InvalidAmountError.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError()
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError() from None
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        raise InvalidAmountError()
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmountError() from None


class Direction(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


@dataclass(frozen=True)
class AccountRecord:
    id: int
    name: str
    tax_id: str
    balance: Decimal
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransactionRecord:
    id: int
    sender_id: int
    recipient_id: int
    amount: Decimal
    created_at: datetime
    reference: Optional[str] = None


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    counterparty_id: int
    counterparty_name: str
    amount: Decimal
    created_at: datetime
    direction: Direction


@dataclass(frozen=True)
class RecipientMatch:
    id: int
    name: str
    tax_id: str


@dataclass(frozen=True)
class TransferResult:
    transaction_id: int
    recipient_id: int
    recipient_name: str
    recipient_tax_id: str
    amount: Decimal
    new_balance: Decimal
    created_at: datetime
    reference: Optional[str] = None
    replayed: bool = False
