from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ledger.logging_config import get_logger
from ledger.services import BalanceQueryService, RecipientResolver

from .deps import get_balance_service, get_caller_id, get_recipient_resolver
from .schemas import AccountOut, BalanceOut, HistoryPageOut, RecipientMatchOut
from .serializers import serialize_account, serialize_history_page, serialize_match

logger = get_logger("ledger.api.accounts")

router = APIRouter(tags=["accounts"])


@router.get("/me", response_model=AccountOut)
async def get_me(
    caller_id: int = Depends(get_caller_id),
    balances: BalanceQueryService = Depends(get_balance_service),
):
    """
    Profile of the authenticated account.
    """
    account = await balances.get_account(caller_id)
    return serialize_account(account)


@router.get("/balance", response_model=BalanceOut)
async def get_balance(
    caller_id: int = Depends(get_caller_id),
    balances: BalanceQueryService = Depends(get_balance_service),
):
    balance = await balances.get_balance(caller_id)
    return {"balance": balance}


@router.get("/transactions", response_model=HistoryPageOut)
async def get_transactions(
    limit: Optional[int] = Query(None, ge=1, le=500),
    before_id: Optional[int] = Query(None, ge=1),
    caller_id: int = Depends(get_caller_id),
    balances: BalanceQueryService = Depends(get_balance_service),
):
    """
    Transactions the caller sent or received, newest first.

    Pass ``next_before_id`` from one page as ``before_id`` to get the next.
    """
    size = limit or balances.page_size
    entries = await balances.get_history_page(caller_id, limit=size, before_id=before_id)
    return serialize_history_page(entries, size)


@router.get("/recipients", response_model=List[RecipientMatchOut])
async def search_recipients(
    term: str = Query(""),
    caller_id: int = Depends(get_caller_id),
    resolver: RecipientResolver = Depends(get_recipient_resolver),
):
    matches = await resolver.search(caller_id, term)
    return [serialize_match(m) for m in matches]
