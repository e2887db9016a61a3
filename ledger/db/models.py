from sqlalchemy import (
    DECIMAL,
    TIMESTAMP,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from ledger.db.session import Base


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(20), unique=True, nullable=False)
    balance = Column(DECIMAL(15, 2), nullable=False, default=0)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now())


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("sender_id <> recipient_id", name="ck_transactions_distinct_parties"),
        UniqueConstraint("sender_id", "reference", name="uq_transactions_sender_reference"),
        Index("ix_transactions_sender_id", "sender_id"),
        Index("ix_transactions_recipient_id", "recipient_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    amount = Column(DECIMAL(15, 2), nullable=False)
    # Optional caller-supplied request id; NULLs never collide in the unique constraint
    reference = Column(String(64), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False)
