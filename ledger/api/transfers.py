import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Header

from ledger.config import Settings
from ledger.errors import OutcomeUnknownError
from ledger.logging_config import get_logger
from ledger.services import TransferEngine

from .deps import get_caller_id, get_settings, get_transfer_engine
from .schemas import ErrorOut, TransferIn, TransferOut
from .serializers import serialize_transfer

logger = get_logger("ledger.api.transfers")

router = APIRouter(tags=["transfers"])


@router.post(
    "/transfers",
    response_model=TransferOut,
    responses={
        status: {"model": ErrorOut} for status in (400, 401, 404, 409, 422, 503, 504)
    },
)
async def transfer_funds(
    payload: TransferIn,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    caller_id: int = Depends(get_caller_id),
    engine: TransferEngine = Depends(get_transfer_engine),
    settings: Settings = Depends(get_settings),
):
    """
    Move ``amount`` from the caller to the recipient given by id or tax id.

    A request that exceeds the transfer timeout answers OutcomeUnknown and is
    not retried here; the caller should check its history (or resend with the
    same reference) before trying again.
    """
    reference = payload.reference or idempotency_key
    try:
        result = await asyncio.wait_for(
            engine.transfer(
                caller_id,
                payload.amount,
                recipient_id=payload.recipient_id,
                tax_id=payload.tax_id,
                reference=reference,
            ),
            timeout=settings.transfer_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(
            "Transfer timed out after %ss caller=%s reference=%s; outcome unknown",
            settings.transfer_timeout_seconds,
            caller_id,
            reference,
        )
        raise OutcomeUnknownError() from None
    return serialize_transfer(result)
