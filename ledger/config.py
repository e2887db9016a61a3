"""
Environment-driven settings for the ledger service.

Values are read once by the process entry point (``load_settings``) and then
passed down explicitly; nothing below the application factory reads os.environ.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from ledger.errors import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./ledger.db"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    db_echo: bool = False
    create_schema: bool = True
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    admin_token: str = "letmein"
    search_result_limit: int = 10
    search_min_length: int = 3
    history_page_size: int = 50
    transfer_timeout_seconds: float = 10.0
    opening_balance: Decimal = Decimal("1000.00")
    log_level: str = "INFO"
    log_dir: str = "logs"


def _get_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {raw!r}")


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 1) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


def _get_decimal(env: Mapping[str, str], key: str, default: Decimal) -> Decimal:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise ConfigurationError(f"{key} must be a decimal amount, got {raw!r}") from None
    if not value.is_finite() or value < 0:
        raise ConfigurationError(f"{key} must be a non-negative amount, got {raw!r}")
    return value.quantize(Decimal("0.01"))


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    When ``env`` is omitted a ``.env`` file is loaded first (existing
    variables win) and ``os.environ`` is used.
    """
    if env is None:
        load_dotenv(find_dotenv(usecwd=True), override=False)
        env = os.environ

    return Settings(
        database_url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
        db_echo=_get_bool(env, "DB_ECHO", False),
        create_schema=_get_bool(env, "CREATE_SCHEMA", True),
        jwt_secret=env.get("JWT_SECRET") or None,
        jwt_algorithm=env.get("JWT_ALGORITHM") or "HS256",
        admin_token=env.get("SIMPLE_ADMIN_TOKEN") or "letmein",
        search_result_limit=_get_int(env, "SEARCH_RESULT_LIMIT", 10),
        search_min_length=_get_int(env, "SEARCH_MIN_LENGTH", 3),
        history_page_size=_get_int(env, "HISTORY_PAGE_SIZE", 50),
        transfer_timeout_seconds=_get_float(env, "TRANSFER_TIMEOUT_SECONDS", 10.0),
        opening_balance=_get_decimal(env, "OPENING_BALANCE", Decimal("1000.00")),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_dir=env.get("LOG_DIR") or "logs",
    )
