"""
chainwallet - Chain-agnostic wallet core

Key generation, balance queries, coin selection, transaction assembly,
signing, broadcast and confirmation polling for Bitcoin and Ethereum.
"""

__version__ = "0.3.0"

from chainwallet.config import Settings, get_settings, setup_logging
from chainwallet.errors import (
    AmountTooLow,
    ConfirmationCancelled,
    ConfirmationError,
    ConfirmationTimeout,
    InsufficientFunds,
    InvalidKey,
    RpcError,
    SigningError,
    TransactionError,
    TransactionRejected,
    WalletError,
)
from chainwallet.models import (
    ChainFamily,
    ConfirmationState,
    ConnectionStrategy,
    NetworkConfig,
    NetworkType,
)
from chainwallet.networks import (
    BitcoinNetwork,
    EthereumNetwork,
    Keypair,
    NetworkAdapter,
    SignedTransaction,
    create_network,
)
from chainwallet.poller import ConfirmationPoller, ConfirmationResult
from chainwallet.state import AccountState
from chainwallet.units import normalize

__all__ = [
    "AccountState",
    "AmountTooLow",
    "BitcoinNetwork",
    "ChainFamily",
    "ConfirmationCancelled",
    "ConfirmationError",
    "ConfirmationPoller",
    "ConfirmationResult",
    "ConfirmationState",
    "ConfirmationTimeout",
    "ConnectionStrategy",
    "EthereumNetwork",
    "InsufficientFunds",
    "InvalidKey",
    "Keypair",
    "NetworkAdapter",
    "NetworkConfig",
    "NetworkType",
    "RpcError",
    "Settings",
    "SignedTransaction",
    "SigningError",
    "TransactionError",
    "TransactionRejected",
    "WalletError",
    "create_network",
    "get_settings",
    "normalize",
    "setup_logging",
]
