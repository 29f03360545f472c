"""
Base ledger client interfaces.

A ledger client is the only component that performs network I/O. Each chain
family implements one; the selection, assembly and polling logic only depend
on these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class UnspentOutput:
    txid: str
    output_index: int
    value: int
    script: str  # scriptPubKey hex


@dataclass
class TransactionStatus:
    """Point-in-time view of a broadcast transaction."""

    found: bool
    confirmations: int = 0
    rejected: bool = False
    reason: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.found and not self.rejected and self.confirmations >= 1


class LedgerClient(ABC):
    """Operations every ledger family provides."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Get confirmed balance for an address in the smallest unit"""

    @abstractmethod
    async def push_transaction(self, raw_hex: str) -> str:
        """Broadcast a signed transaction, returns its hash"""

    @abstractmethod
    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        """Get inclusion status of a transaction"""

    async def close(self) -> None:
        """Close client connection"""
        pass


class UTXOLedgerClient(LedgerClient):
    @abstractmethod
    async def get_spendable_outputs(self, address: str) -> list[UnspentOutput]:
        """Get unspent outputs owned by an address"""

    @abstractmethod
    async def get_raw_transaction(self, txid: str) -> bytes:
        """Get serialized transaction bytes"""

    @abstractmethod
    async def get_fee_rate(self) -> Decimal:
        """Get current fee rate in smallest unit per byte"""

    @abstractmethod
    async def decode_transaction(self, raw_hex: str) -> dict:
        """Decode a raw transaction into the ledger's JSON representation"""


class AccountLedgerClient(LedgerClient):
    @abstractmethod
    async def estimate_gas(self, transaction: dict) -> int:
        """Estimate gas units for a transaction"""

    @abstractmethod
    async def get_gas_price(self) -> int:
        """Get current gas price in wei"""

    @abstractmethod
    async def get_nonce(self, address: str) -> int:
        """Get transaction count for an address, including pending transactions"""

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Get the chain id reported by the node"""
