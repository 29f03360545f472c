"""
Core data models using Pydantic for validation.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from chainwallet.constants import (
    BITCOIN_EXPLORERS,
    ETHEREUM_CHAIN_IDS,
    ETHEREUM_EXPLORERS,
    LEGACY_TESTNET_CHAIN_IDS,
)


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    UNKNOWN = "unknown"


class ChainFamily(str, Enum):
    """Closed set of supported ledger families."""

    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"


class ConnectionStrategy(str, Enum):
    """How an adapter reaches its ledger. Resolved once at construction."""

    BLOCKCYPHER = "blockcypher"
    INFURA = "infura"
    HTTP_RPC = "http-rpc"


class ConfirmationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    EXHAUSTED = "exhausted"


DEFAULT_EXPLORERS: dict[ChainFamily, dict[str, str]] = {
    ChainFamily.BITCOIN: BITCOIN_EXPLORERS,
    ChainFamily.ETHEREUM: ETHEREUM_EXPLORERS,
}


def chain_id_for(network_type: NetworkType) -> int:
    """Ethereum chain id for a known network type."""
    if network_type == NetworkType.UNKNOWN:
        raise ValueError("No chain id for an unknown network type")
    return ETHEREUM_CHAIN_IDS[network_type.value]


def network_type_from_chain_id(chain_id: int | str) -> NetworkType:
    chain_id = int(chain_id)
    if chain_id == ETHEREUM_CHAIN_IDS["mainnet"]:
        return NetworkType.MAINNET
    if chain_id in LEGACY_TESTNET_CHAIN_IDS:
        return NetworkType.TESTNET
    return NetworkType.UNKNOWN


class NetworkConfig(BaseModel):
    """Static description of the ledger an adapter talks to."""

    protocol: ChainFamily
    network_type: NetworkType = NetworkType.TESTNET
    explorer_url: str | None = Field(default=None, description="Block explorer base URL")

    @field_validator("explorer_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.rstrip("/")

    @model_validator(mode="after")
    def set_default_explorer(self) -> NetworkConfig:
        """If no explorer is configured, use the well-known one for the chain."""
        if not self.explorer_url:
            key = "mainnet" if self.network_type == NetworkType.MAINNET else "testnet"
            object.__setattr__(self, "explorer_url", DEFAULT_EXPLORERS[self.protocol][key])
        return self
