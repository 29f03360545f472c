"""
Ledger and wallet constants shared by both chain families.

Size constants follow the estimate used for a legacy 1-input transaction:
- BASE_TX_SIZE: one input plus one or two outputs (bytes)
- EXTRA_INPUT_SIZE: each additional input (bytes)
"""

from __future__ import annotations

from decimal import Decimal

# Standard P2PKH dust limit in Bitcoin Core
STANDARD_DUST_LIMIT = 546  # satoshis
DEFAULT_DUST_THRESHOLD = STANDARD_DUST_LIMIT

BASE_TX_SIZE = 225
EXTRA_INPUT_SIZE = 179

# Used when the fee-rate endpoint is unreachable (sat/byte)
FALLBACK_FEE_RATE = Decimal(10)

# Confirmation polling delays, consumed in order (milliseconds)
BACKOFF_SCHEDULE_MS: tuple[int, ...] = (1250, 2500, 5000, 10000, 20000)

# Upstream BlockCypher limit is 3 requests per second
BLOCKCYPHER_MIN_INTERVAL = 0.333  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds

BLOCKCYPHER_ENDPOINTS: dict[str, str] = {
    "mainnet": "https://api.blockcypher.com/v1/btc/main",
    "testnet": "https://api.blockcypher.com/v1/btc/test3",
}

INFURA_ENDPOINTS: dict[str, str] = {
    "mainnet": "https://mainnet.infura.io/v3/{token}",
    "testnet": "https://sepolia.infura.io/v3/{token}",
}

BITCOIN_EXPLORERS: dict[str, str] = {
    "mainnet": "https://live.blockcypher.com/btc",
    "testnet": "https://live.blockcypher.com/btc-testnet",
}

ETHEREUM_EXPLORERS: dict[str, str] = {
    "mainnet": "https://etherscan.io",
    "testnet": "https://sepolia.etherscan.io",
}

ETHEREUM_CHAIN_IDS: dict[str, int] = {
    "mainnet": 1,
    "testnet": 11155111,
}

# Ropsten (3) is still recognised when reading a node's chain id
LEGACY_TESTNET_CHAIN_IDS = frozenset({3, 11155111})

# Upper bound passed to eth_estimateGas for plain value transfers
ESTIMATE_GAS_CAP = 30000

ETHER_DECIMALS = 18
