"""
Administrative endpoints: open, remove and seed accounts.

Protected by SIMPLE_ADMIN_TOKEN (``X-Admin-Token`` header). Registration and
profile management proper live in another service; these exist so an
operator can provision and clean up ledger accounts.
"""

from decimal import Decimal

from fastapi import APIRouter, Depends

from ledger.config import Settings
from ledger.errors import AccountNotFoundError, DuplicateAccountError
from ledger.logging_config import get_logger
from ledger.store.base import LedgerStore

from .deps import get_settings, get_store, require_admin
from .schemas import AccountCreate, AccountOut
from .serializers import serialize_account

logger = get_logger("ledger.api.admin")

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

DEMO_ACCOUNTS = [
    {"name": "John Doe", "tax_id": "11122233344", "balance": Decimal("5000.00")},
    {"name": "Jane Smith", "tax_id": "22233344455", "balance": Decimal("5500.00")},
    {"name": "Mike Wilson", "tax_id": "33344455566", "balance": Decimal("6000.00")},
    {"name": "Sarah Brown", "tax_id": "44455566677", "balance": Decimal("6500.00")},
    {"name": "David Jones Ltda", "tax_id": "12345678000199", "balance": Decimal("7000.00")},
]


@router.post("/accounts", response_model=AccountOut, status_code=201)
async def open_account(
    payload: AccountCreate,
    store: LedgerStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    balance = payload.balance if payload.balance is not None else settings.opening_balance
    logger.info("Opening account tax_id=%s balance=%s", payload.tax_id, balance)
    account = await store.open_account(payload.name.strip(), payload.tax_id.strip(), balance)
    return serialize_account(account)


@router.delete("/accounts/{account_id}")
async def remove_account(account_id: int, store: LedgerStore = Depends(get_store)):
    """
    Remove an account together with every transaction it took part in.
    """
    removed = await store.remove_account(account_id)
    if not removed:
        raise AccountNotFoundError()
    return {"removed": account_id}


@router.post("/seed")
async def seed_demo(store: LedgerStore = Depends(get_store)):
    """
    Idempotent seeding of demo accounts.
    """
    created = 0
    for demo in DEMO_ACCOUNTS:
        if await store.get_account_by_tax_id(demo["tax_id"]) is not None:
            continue
        try:
            await store.open_account(demo["name"], demo["tax_id"], demo["balance"])
            created += 1
        except DuplicateAccountError:
            # opened concurrently by another seed call
            continue
    logger.info("Admin seed complete; created=%s accounts", created)
    return {"seeded_accounts_created": created}
