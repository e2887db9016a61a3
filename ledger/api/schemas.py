from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ledger.domain import Direction


class TransferIn(BaseModel):
    recipient_id: Optional[int] = Field(None, examples=[2])
    tax_id: Optional[str] = Field(None, max_length=20, examples=["123.456.789-00"])
    amount: Optional[Decimal] = Field(None, examples=["100.00"])
    reference: Optional[str] = Field(None, max_length=64)


class RecipientOut(BaseModel):
    name: str
    tax_id: str


class TransferOut(BaseModel):
    transaction_id: int
    recipient: RecipientOut
    amount: Decimal
    new_balance: Decimal
    created_at: datetime
    reference: Optional[str] = None
    replayed: bool = False
    message: str = "Transfer completed"


class BalanceOut(BaseModel):
    balance: Decimal


class HistoryItemOut(BaseModel):
    id: int
    counterparty_id: int
    counterparty_name: str
    amount: Decimal
    created_at: datetime
    direction: Direction


class HistoryPageOut(BaseModel):
    items: List[HistoryItemOut]
    next_before_id: Optional[int] = None


class RecipientMatchOut(BaseModel):
    id: int
    name: str
    tax_id: str


class AccountOut(BaseModel):
    id: int
    name: str
    tax_id: str
    balance: Decimal
    created_at: Optional[datetime] = None


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    tax_id: str = Field(..., min_length=1, max_length=20)
    balance: Optional[Decimal] = Field(None, ge=0)


class ErrorOut(BaseModel):
    error_kind: str
    message: str
    current_balance: Optional[Decimal] = None
