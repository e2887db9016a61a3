"""
SQLAlchemy (asyncio) implementation of the ledger store.

Row locks are taken with SELECT ... FOR UPDATE one account at a time in
ascending id order, so two transfers touching the same pair (A->B and B->A)
always queue on the same row first. Balance changes are a single conditional
UPDATE that refuses to go below zero, which keeps the non-negative invariant
even if a caller skipped the lock.
"""

from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

from sqlalchemy import and_, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from ledger.db.models import Account, Transaction
from ledger.db.session import Base, create_engine_and_sessionmaker
from ledger.domain import CENT, AccountRecord, Direction, HistoryEntry, TransactionRecord
from ledger.errors import AccountNotFoundError, BalanceConflictError, DuplicateAccountError
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore, LedgerUnit

logger = get_logger("ledger.store.sql")

T = TypeVar("T")

_ACCOUNT_COLUMNS = (Account.id, Account.name, Account.tax_id, Account.balance, Account.created_at)
_TRANSACTION_COLUMNS = (
    Transaction.id,
    Transaction.sender_id,
    Transaction.recipient_id,
    Transaction.amount,
    Transaction.created_at,
    Transaction.reference,
)


def _money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT)


def _account_record(row) -> Optional[AccountRecord]:
    if row is None:
        return None
    return AccountRecord(
        id=row.id,
        name=row.name,
        tax_id=row.tax_id,
        balance=_money(row.balance),
        created_at=row.created_at,
    )


def _transaction_record(row) -> Optional[TransactionRecord]:
    if row is None:
        return None
    return TransactionRecord(
        id=row.id,
        sender_id=row.sender_id,
        recipient_id=row.recipient_id,
        amount=_money(row.amount),
        created_at=row.created_at,
        reference=row.reference,
    )


async def _fetch_account(session: AsyncSession, account_id: int) -> Optional[AccountRecord]:
    res = await session.execute(select(*_ACCOUNT_COLUMNS).where(Account.id == account_id))
    return _account_record(res.first())


async def _fetch_transfer(session: AsyncSession, sender_id: int, reference: str) -> Optional[TransactionRecord]:
    stmt = select(*_TRANSACTION_COLUMNS).where(
        Transaction.sender_id == sender_id,
        Transaction.reference == reference,
    )
    res = await session.execute(stmt)
    return _transaction_record(res.first())


class SqlLedgerUnit(LedgerUnit):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock(self, account_ids: Iterable[int]) -> None:
        for account_id in sorted(set(account_ids)):
            await self.session.execute(select(Account.id).where(Account.id == account_id).with_for_update())

    async def get_account(self, account_id: int) -> Optional[AccountRecord]:
        return await _fetch_account(self.session, account_id)

    async def apply_delta(self, account_id: int, delta: Decimal) -> Decimal:
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.balance + delta >= 0)
            .values(balance=Account.balance + delta, updated_at=func.now())
            .returning(Account.balance)
            .execution_options(synchronize_session=False)
        )
        res = await self.session.execute(stmt)
        new_balance = res.scalar_one_or_none()
        if new_balance is None:
            current = await _fetch_account(self.session, account_id)
            if current is None:
                raise AccountNotFoundError(f"Account {account_id} not found")
            raise BalanceConflictError(account_id, current.balance)
        return _money(new_balance)

    async def append_transaction(
        self, sender_id: int, recipient_id: int, amount: Decimal, reference: Optional[str] = None
    ) -> TransactionRecord:
        created_at = datetime.utcnow()
        stmt = (
            insert(Transaction)
            .values(
                sender_id=sender_id,
                recipient_id=recipient_id,
                amount=amount,
                reference=reference,
                created_at=created_at,
            )
            .returning(*_TRANSACTION_COLUMNS)
        )
        res = await self.session.execute(stmt)
        return _transaction_record(res.first())

    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        return await _fetch_transfer(self.session, sender_id, reference)


class SqlLedgerStore(LedgerStore):
    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker):
        self.engine = engine
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlLedgerStore":
        engine, session_factory = create_engine_and_sessionmaker(database_url, echo=echo)
        return cls(engine, session_factory)

    async def init_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ensured on %s", self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_account(self, account_id: int) -> Optional[AccountRecord]:
        async with self.session_factory() as session:
            return await _fetch_account(session, account_id)

    async def get_account_by_tax_id(self, tax_id: str) -> Optional[AccountRecord]:
        async with self.session_factory() as session:
            res = await session.execute(select(*_ACCOUNT_COLUMNS).where(Account.tax_id == tax_id))
            return _account_record(res.first())

    async def find_transfer(self, sender_id: int, reference: str) -> Optional[TransactionRecord]:
        async with self.session_factory() as session:
            return await _fetch_transfer(session, sender_id, reference)

    async def search_accounts(self, term: str, exclude_id: Optional[int], limit: int) -> List[AccountRecord]:
        needle = term.lower()
        stmt = select(*_ACCOUNT_COLUMNS).where(
            or_(
                func.lower(Account.name).contains(needle, autoescape=True),
                func.lower(Account.tax_id).contains(needle, autoescape=True),
            )
        )
        if exclude_id is not None:
            stmt = stmt.where(Account.id != exclude_id)
        stmt = stmt.order_by(Account.name, Account.id).limit(limit)
        async with self.session_factory() as session:
            res = await session.execute(stmt)
            return [_account_record(row) for row in res.all()]

    async def history_page(
        self, account_id: int, limit: int, before_id: Optional[int] = None
    ) -> List[HistoryEntry]:
        sender = aliased(Account)
        recipient = aliased(Account)
        stmt = (
            select(
                Transaction.id,
                Transaction.sender_id,
                Transaction.recipient_id,
                Transaction.amount,
                Transaction.created_at,
                sender.name.label("sender_name"),
                recipient.name.label("recipient_name"),
            )
            .join(sender, sender.id == Transaction.sender_id)
            .join(recipient, recipient.id == Transaction.recipient_id)
            .where(or_(Transaction.sender_id == account_id, Transaction.recipient_id == account_id))
        )

        async with self.session_factory() as session:
            if before_id is not None:
                cursor_res = await session.execute(
                    select(Transaction.created_at).where(Transaction.id == before_id)
                )
                cursor_ts = cursor_res.scalar_one_or_none()
                if cursor_ts is None:
                    return []
                stmt = stmt.where(
                    or_(
                        Transaction.created_at < cursor_ts,
                        and_(Transaction.created_at == cursor_ts, Transaction.id < before_id),
                    )
                )
            stmt = stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit)
            res = await session.execute(stmt)
            rows = res.all()

        entries = []
        for row in rows:
            outgoing = row.sender_id == account_id
            entries.append(
                HistoryEntry(
                    id=row.id,
                    counterparty_id=row.recipient_id if outgoing else row.sender_id,
                    counterparty_name=row.recipient_name if outgoing else row.sender_name,
                    amount=_money(row.amount),
                    created_at=row.created_at,
                    direction=Direction.DEBIT if outgoing else Direction.CREDIT,
                )
            )
        return entries

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def with_transaction(self, fn: Callable[[LedgerUnit], Awaitable[T]], lock_ids: Iterable[int]) -> T:
        async with self.session_factory() as session:
            async with session.begin():
                unit = SqlLedgerUnit(session)
                await unit.lock(lock_ids)
                return await fn(unit)

    async def open_account(self, name: str, tax_id: str, balance: Decimal) -> AccountRecord:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    exists = await session.execute(select(Account.id).where(Account.tax_id == tax_id))
                    if exists.first() is not None:
                        raise DuplicateAccountError()
                    res = await session.execute(
                        insert(Account)
                        .values(name=name, tax_id=tax_id, balance=balance)
                        .returning(*_ACCOUNT_COLUMNS)
                    )
                    record = _account_record(res.first())
            except IntegrityError as e:
                logger.warning("open_account: integrity error for tax_id=%s: %s", tax_id, e)
                raise DuplicateAccountError() from e
        logger.info("Opened account id=%s tax_id=%s balance=%s", record.id, record.tax_id, record.balance)
        return record

    async def remove_account(self, account_id: int) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(
                    delete(Transaction).where(
                        or_(Transaction.sender_id == account_id, Transaction.recipient_id == account_id)
                    )
                )
                res = await session.execute(delete(Account).where(Account.id == account_id))
                removed = res.rowcount > 0
        logger.info("Removed account id=%s removed=%s", account_id, removed)
        return removed
