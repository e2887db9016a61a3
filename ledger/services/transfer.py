"""
Transfer engine: moves money between two accounts as one atomic unit.

Validation is fail-fast and ordered so that request-shape errors never touch
storage, lookups never mutate, and the only mutating step runs inside the
store's ``with_transaction``. Inside the unit the sender balance is read again
under lock, so a transfer that lost a race to another debit is re-validated
against the committed balance rather than the one it saw before locking.
"""

from decimal import Decimal
from typing import Any, Optional

from ledger.domain import AccountRecord, TransactionRecord, TransferResult, to_money
from ledger.errors import (
    AccountNotFoundError,
    BalanceConflictError,
    InsufficientFundsError,
    InvalidAmountError,
    LedgerError,
    MissingRecipientError,
    RecipientNotFoundError,
    ReferenceConflictError,
    SelfTransferError,
    SenderNotFoundError,
    StorageFailureError,
)
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore, LedgerUnit

logger = get_logger("ledger.services.transfer")


class TransferEngine:
    """
    Orchestrates validation, locking, the balance mutation and the log append.

    The engine holds no state between calls besides its store; it never
    retries a failed or timed-out unit.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    async def transfer(
        self,
        caller_id: int,
        amount: Any,
        recipient_id: Optional[int] = None,
        tax_id: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> TransferResult:
        logger.info(
            "Transfer request caller=%s recipient_id=%s tax_id=%s amount=%s reference=%s",
            caller_id,
            recipient_id,
            tax_id,
            amount,
            reference,
        )
        try:
            return await self._transfer(caller_id, amount, recipient_id, tax_id, reference)
        except LedgerError as e:
            if not isinstance(e, StorageFailureError):
                logger.warning("Transfer rejected caller=%s kind=%s: %s", caller_id, e.kind, e.message)
            raise

    async def _transfer(
        self,
        caller_id: int,
        amount: Any,
        recipient_id: Optional[int],
        tax_id: Optional[str],
        reference: Optional[str],
    ) -> TransferResult:
        # 1. amount
        value = self._validate_amount(amount)

        # 2. exactly one recipient reference
        tax_id = tax_id.strip() if isinstance(tax_id, str) else tax_id
        if not tax_id:
            tax_id = None
        if recipient_id is None and tax_id is None:
            raise MissingRecipientError()
        if recipient_id is not None and tax_id is not None:
            raise MissingRecipientError("Provide either recipient_id or tax_id, not both")

        # 3. self-transfer by id, before any lookup
        if recipient_id is not None and recipient_id == caller_id:
            raise SelfTransferError()

        reference = reference.strip() if reference else None

        # 4. sender
        sender = await self.store.get_account(caller_id)
        if sender is None:
            raise SenderNotFoundError()

        if reference:
            previous = await self.store.find_transfer(sender.id, reference)
            if previous is not None:
                return await self._replay(previous, sender, value, recipient_id, tax_id)

        # 5. funds, as seen before locking
        if sender.balance < value:
            raise InsufficientFundsError(sender.balance)

        # 6. recipient
        if recipient_id is not None:
            recipient = await self.store.get_account(recipient_id)
        else:
            recipient = await self.store.get_account_by_tax_id(tax_id)
        if recipient is None:
            raise RecipientNotFoundError()

        # 7. self-transfer after resolution
        if recipient.id == sender.id:
            raise SelfTransferError()

        async def apply(unit: LedgerUnit) -> TransferResult:
            return await self._apply(unit, sender.id, recipient, value, reference)

        try:
            result = await self.store.with_transaction(apply, lock_ids=(sender.id, recipient.id))
        except LedgerError:
            raise
        except Exception as e:
            logger.exception(
                "Transfer failed (storage) caller=%s recipient=%s amount=%s: %s",
                sender.id,
                recipient.id,
                value,
                e,
            )
            raise StorageFailureError() from e

        if result.replayed:
            logger.info("Transfer replayed reference=%s txn_id=%s", reference, result.transaction_id)
        else:
            logger.info(
                "Transfer success txn_id=%s from=%s to=%s amount=%s new_balance=%s",
                result.transaction_id,
                sender.id,
                recipient.id,
                value,
                result.new_balance,
            )
        return result

    @staticmethod
    def _validate_amount(amount: Any) -> Decimal:
        value = to_money(amount)
        if value <= 0:
            raise InvalidAmountError()
        return value

    async def _apply(
        self,
        unit: LedgerUnit,
        sender_id: int,
        recipient: AccountRecord,
        amount: Decimal,
        reference: Optional[str],
    ) -> TransferResult:
        locked_sender = await unit.get_account(sender_id)
        if locked_sender is None:
            raise SenderNotFoundError()

        if reference:
            previous = await unit.find_transfer(sender_id, reference)
            if previous is not None:
                return await self._replay(previous, locked_sender, amount, recipient.id, None, unit)

        if locked_sender.balance < amount:
            raise InsufficientFundsError(locked_sender.balance)

        try:
            new_balance = await unit.apply_delta(sender_id, -amount)
        except BalanceConflictError as e:
            raise InsufficientFundsError(e.current_balance) from e

        try:
            await unit.apply_delta(recipient.id, amount)
        except AccountNotFoundError as e:
            raise RecipientNotFoundError() from e

        record = await unit.append_transaction(sender_id, recipient.id, amount, reference)
        return TransferResult(
            transaction_id=record.id,
            recipient_id=recipient.id,
            recipient_name=recipient.name,
            recipient_tax_id=recipient.tax_id,
            amount=amount,
            new_balance=new_balance,
            created_at=record.created_at,
            reference=record.reference,
        )

    async def _replay(
        self,
        previous: TransactionRecord,
        sender: AccountRecord,
        amount: Decimal,
        recipient_id: Optional[int],
        tax_id: Optional[str],
        unit: Optional[LedgerUnit] = None,
    ) -> TransferResult:
        reader = unit if unit is not None else self.store
        recipient = await reader.get_account(previous.recipient_id)
        if (
            previous.amount != amount
            or (recipient_id is not None and recipient_id != previous.recipient_id)
            or (tax_id is not None and (recipient is None or recipient.tax_id != tax_id))
        ):
            logger.warning(
                "Reference conflict sender=%s reference=%s txn_id=%s stored=(%s, %s) requested=(%s, %s)",
                sender.id,
                previous.reference,
                previous.id,
                previous.recipient_id,
                previous.amount,
                recipient_id if recipient_id is not None else tax_id,
                amount,
            )
            raise ReferenceConflictError()
        return TransferResult(
            transaction_id=previous.id,
            recipient_id=previous.recipient_id,
            recipient_name=recipient.name if recipient else "",
            recipient_tax_id=recipient.tax_id if recipient else "",
            amount=previous.amount,
            new_balance=sender.balance,
            created_at=previous.created_at,
            reference=previous.reference,
            replayed=True,
        )
