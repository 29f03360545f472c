"""
Ledger client implementations.

Available clients:
- BlockCypherClient: Bitcoin mainnet/testnet3 via the BlockCypher REST API
- Web3Client: Ethereum via any JSON-RPC endpoint (Infura or self-hosted)
"""

from chainwallet.backends.base import (
    AccountLedgerClient,
    LedgerClient,
    TransactionStatus,
    UnspentOutput,
    UTXOLedgerClient,
)
from chainwallet.backends.blockcypher import BlockCypherClient
from chainwallet.backends.throttle import RequestThrottle
from chainwallet.backends.web3_rpc import Web3Client

__all__ = [
    "AccountLedgerClient",
    "BlockCypherClient",
    "LedgerClient",
    "RequestThrottle",
    "TransactionStatus",
    "UnspentOutput",
    "UTXOLedgerClient",
    "Web3Client",
]
