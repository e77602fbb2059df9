"""
Wallet core settings

Every value comes from the process environment, after `.env` in the project
root has been merged in. Sections are plain dataclasses so callers and tests
can build them directly with explicit values.

Environment variables:
    IC_TRANSPORT, IC_AGENT_URL
    IC_GATEWAY_URL, IC_GATEWAY_TIMEOUT, IC_GATEWAY_MAX_RETRIES, IC_GATEWAY_RETRY_DELAY
    ICP_LEDGER_ID, ICP_USDC_POOL_ID, SWAP_FACTORY_ID, PRICE_POOL_FEE,
    PRICE_ICP_USD_TTL, PRICE_TOKEN_ICP_TTL, PRICE_DEFAULT_TOKEN_DECIMALS
    BALANCE_REQUEST_SPACING, BALANCE_BATCH_SIZE, BALANCE_BATCH_DELAY
    CACHE_DIR, CACHE_PERSIST
    LOG_FILE, LOG_LEVEL, LOG_FORMAT, LOG_CONSOLE, LOG_MAX_BYTES, LOG_BACKUP_COUNT
"""

import os
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, List, Optional, TypeVar

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent

_T = TypeVar("_T")
_TRUE_VALUES = ("true", "1", "yes", "on")


def _load_env_file() -> bool:
    """Merge PROJECT_ROOT/.env into the environment; real env vars win"""
    env_file = PROJECT_ROOT / ".env"
    if not env_file.is_file():
        return False
    return load_dotenv(env_file, override=False)


_load_env_file()


def _env_str(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_typed(key: str, default: _T, cast: Callable[[str], _T]) -> _T:
    """Typed env lookup; unparsable values are logged and replaced by the default"""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logging.getLogger(__name__).warning(
            f"{key}={raw!r} is not a valid {cast.__name__}, falling back to {default!r}"
        )
        return default


def _env_float(key: str, default: float) -> float:
    return _env_typed(key, default, float)


def _env_int(key: str, default: int) -> int:
    return _env_typed(key, default, int)


def _env_bool(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


# ========== Sections ==========

@dataclass
class GatewayConfig:
    """Transport to the swap and ledger canisters"""
    url: str = field(default_factory=lambda: _env_str("IC_GATEWAY_URL"))
    timeout_seconds: float = field(default_factory=lambda: _env_float("IC_GATEWAY_TIMEOUT", 30.0))
    max_retries: int = field(default_factory=lambda: _env_int("IC_GATEWAY_MAX_RETRIES", 3))
    retry_delay_seconds: float = field(default_factory=lambda: _env_float("IC_GATEWAY_RETRY_DELAY", 1.0))
    # "agent" queries canisters through ic-py; "http" uses the JSON query gateway at `url`
    transport: str = field(default_factory=lambda: _env_str("IC_TRANSPORT", "agent"))
    agent_url: str = field(default_factory=lambda: _env_str("IC_AGENT_URL", "https://ic0.app"))


@dataclass
class PriceConfig:
    """
    Price oracle settings

    ICP/USD comes from one fixed ICP/USDC pool. A token's ICP price comes
    from its token/ICP pool at `pool_fee`.
    """
    icp_ledger_id: str = field(default_factory=lambda: _env_str("ICP_LEDGER_ID", "ryjl3-tyaaa-aaaaa-aaaba-cai"))
    icp_usdc_pool_id: str = field(default_factory=lambda: _env_str("ICP_USDC_POOL_ID", "mohjv-bqaaa-aaaag-qjyia-cai"))
    swap_factory_id: str = field(default_factory=lambda: _env_str("SWAP_FACTORY_ID", "4mmnk-kiaaa-aaaag-qbllq-cai"))
    icp_decimals: int = 8
    usdc_decimals: int = 6
    # 3000 = 0.3% fee tier
    pool_fee: int = field(default_factory=lambda: _env_int("PRICE_POOL_FEE", 3000))
    icp_usd_ttl_seconds: float = field(default_factory=lambda: _env_float("PRICE_ICP_USD_TTL", 60.0))
    token_icp_ttl_seconds: float = field(default_factory=lambda: _env_float("PRICE_TOKEN_ICP_TTL", 300.0))
    default_token_decimals: int = field(default_factory=lambda: _env_int("PRICE_DEFAULT_TOKEN_DECIMALS", 8))


@dataclass
class BalanceConfig:
    """Ledger request throttling"""
    request_spacing_seconds: float = field(default_factory=lambda: _env_float("BALANCE_REQUEST_SPACING", 0.2))
    batch_size: int = field(default_factory=lambda: _env_int("BALANCE_BATCH_SIZE", 5))
    batch_delay_seconds: float = field(default_factory=lambda: _env_float("BALANCE_BATCH_DELAY", 1.0))


@dataclass
class CacheConfig:
    """Where pool and price caches are persisted (persist=False keeps them in memory)"""
    directory: str = field(default_factory=lambda: _env_str("CACHE_DIR", str(PACKAGE_DIR / "cache")))
    persist: bool = field(default_factory=lambda: _env_bool("CACHE_PERSIST", True))


def _timestamped_log_file() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return str(PACKAGE_DIR / "log" / f"wallet_core_{stamp}.log")


@dataclass
class LoggingConfig:
    """
    Log destinations and format

    `log_file` defaults to icp_wallet_core/log/wallet_core_<utc stamp>.log;
    an empty value disables file output. Files rotate at `max_bytes`.
    """
    log_file: str = field(default_factory=lambda: _env_str("LOG_FILE", _timestamped_log_file()))
    log_level: str = field(default_factory=lambda: _env_str("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _env_str(
        "LOG_FORMAT",
        "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s",
    ))
    console_output: bool = field(default_factory=lambda: _env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))
    backup_count: int = field(default_factory=lambda: _env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.log_level.strip().upper())
        return level if isinstance(level, int) else logging.INFO


@dataclass
class Config:
    """
    All settings sections

    Usage:
        from icp_wallet_core.config import config

        config.gateway.url
        config.price.token_icp_ttl_seconds
    """
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    price: PriceConfig = field(default_factory=PriceConfig)
    balance: BalanceConfig = field(default_factory=BalanceConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def reload(cls) -> "Config":
        """Re-read .env and the environment"""
        _load_env_file()
        return cls()


config = Config()


def get_config() -> Config:
    return config


def reload_config() -> Config:
    """Replace the module-level config with a freshly loaded one"""
    global config
    config = Config.reload()
    return config


# ========== Logging ==========

class CorrelationIdFilter(logging.Filter):
    """Stamps each record with the active correlation id ("-" outside a context)"""

    def filter(self, record: logging.LogRecord) -> bool:
        from .infra.retry import get_correlation_id
        record.correlation_id = get_correlation_id() or "-"
        return True


def _build_handlers(log_config: LoggingConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if log_config.log_file:
        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_path,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding="utf-8",
        ))
    if log_config.console_output:
        handlers.append(logging.StreamHandler())
    return handlers


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "icp_wallet_core",
) -> logging.Logger:
    """
    Configure the package logger from LoggingConfig

    Existing handlers on the logger are closed and replaced, so calling this
    twice does not duplicate output. Module loggers (icp_wallet_core.*)
    propagate to it.

    Example:
        from icp_wallet_core.config import LoggingConfig, setup_logging
        setup_logging(LoggingConfig(log_file="", log_level="DEBUG"))
    """
    log_config = log_config or config.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    formatter = logging.Formatter(log_config.log_format)
    correlation = CorrelationIdFilter()
    for handler in _build_handlers(log_config):
        handler.setLevel(log_config.level)
        handler.setFormatter(formatter)
        handler.addFilter(correlation)
        logger.addHandler(handler)

    logger.debug(
        f"Logging configured: level={log_config.log_level}, "
        f"file={log_config.log_file or 'off'}, console={log_config.console_output}"
    )
    return logger
