"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

import sys
from decimal import Decimal

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chainwallet.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_REQUEST_TIMEOUT,
    FALLBACK_FEE_RATE,
)
from chainwallet.models import ConnectionStrategy, NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHAINWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    network_type: NetworkType = NetworkType.TESTNET

    # Bitcoin (BlockCypher)
    blockcypher_token: str = ""
    bitcoin_explorer: str | None = None
    dust_threshold: int = Field(default=DEFAULT_DUST_THRESHOLD, ge=0)
    fallback_fee_rate: Decimal = Field(default=FALLBACK_FEE_RATE, ge=0)

    # Ethereum
    ethereum_connection: ConnectionStrategy = ConnectionStrategy.INFURA
    infura_token: str = ""
    ethereum_rpc_url: str = ""
    ethereum_explorer: str | None = None

    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()


def setup_logging(level: str | None = None) -> None:
    """Configure loguru logging. The level defaults to the configured log_level."""
    if level is None:
        level = get_settings().log_level
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
