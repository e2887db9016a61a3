from typing import Optional

from fastapi import Depends, Header, Request

from ledger.config import Settings
from ledger.errors import UnauthorizedError
from ledger.logging_config import get_logger
from ledger.services import BalanceQueryService, RecipientResolver, TransferEngine
from ledger.store.base import LedgerStore

from .auth import caller_id_from_claims, verify_token

logger = get_logger("ledger.api.deps")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def get_transfer_engine(request: Request) -> TransferEngine:
    return request.app.state.transfer_engine


def get_balance_service(request: Request) -> BalanceQueryService:
    return request.app.state.balance_service


def get_recipient_resolver(request: Request) -> RecipientResolver:
    return request.app.state.recipient_resolver


async def get_caller_id(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> int:
    """
    Resolve the authenticated account id from ``Authorization: Bearer <jwt>``.
    """
    if not authorization:
        raise UnauthorizedError("Missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Missing bearer token")
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured; rejecting authenticated request")
        raise UnauthorizedError()

    claims = verify_token(token.strip(), settings.jwt_secret, settings.jwt_algorithm)
    if claims is None:
        logger.warning("Rejected invalid or expired token")
        raise UnauthorizedError("Invalid or expired token")
    caller_id = caller_id_from_claims(claims)
    if caller_id is None:
        logger.warning("Token without a usable id claim")
        raise UnauthorizedError("Invalid or expired token")
    return caller_id


async def require_admin(
    x_admin_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    if x_admin_token != settings.admin_token:
        logger.warning("Admin request unauthorized")
        raise UnauthorizedError("Unauthorized")
