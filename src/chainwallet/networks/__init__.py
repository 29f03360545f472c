"""
Network adapters for the supported chain families.
"""

from __future__ import annotations

from typing import Any

from chainwallet.config import Settings, get_settings
from chainwallet.models import ChainFamily
from chainwallet.networks.base import Keypair, NetworkAdapter, SignedTransaction
from chainwallet.networks.bitcoin import BitcoinNetwork
from chainwallet.networks.ethereum import EthereumNetwork


def create_network(
    family: ChainFamily | str, settings: Settings | None = None, **overrides: Any
) -> NetworkAdapter:
    """
    Build a configured adapter for a chain family.

    Keyword overrides take precedence over settings (e.g. ``client=`` or
    ``poller=`` for injection).
    """
    settings = settings or get_settings()
    family = ChainFamily(family)

    if family == ChainFamily.BITCOIN:
        options: dict[str, Any] = {
            "network_type": settings.network_type,
            "access_token": settings.blockcypher_token,
            "explorer": settings.bitcoin_explorer,
            "dust_threshold": settings.dust_threshold,
            "fallback_fee_rate": settings.fallback_fee_rate,
            "timeout": settings.request_timeout,
        }
        options.update(overrides)
        return BitcoinNetwork(**options)

    options = {
        "network_type": settings.network_type,
        "connection": settings.ethereum_connection,
        "access_token": settings.infura_token,
        "rpc_url": settings.ethereum_rpc_url,
        "explorer": settings.ethereum_explorer,
        "timeout": settings.request_timeout,
    }
    options.update(overrides)
    return EthereumNetwork(**options)


__all__ = [
    "BitcoinNetwork",
    "EthereumNetwork",
    "Keypair",
    "NetworkAdapter",
    "SignedTransaction",
    "create_network",
]
