"""
Chain-agnostic network adapter interface.

Every supported chain is a subclass of NetworkAdapter. Callers drive the full
transaction lifecycle through the same methods whatever the ledger model:

    keypair = network.generate_keypair()
    await network.connect(keypair.private_key)
    unsigned = await network.create_transaction(network.address, receiver, amount)
    signed = await network.sign_transaction(unsigned)
    tx_hash = await network.broadcast_transaction(signed)
    await network.wait_for_confirmation(tx_hash)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from chainwallet.backends.base import LedgerClient, TransactionStatus
from chainwallet.errors import SigningError
from chainwallet.models import ChainFamily, NetworkConfig, NetworkType
from chainwallet.poller import ConfirmationPoller, ConfirmationResult
from chainwallet.state import AccountState, ChangeHandler


@dataclass(frozen=True)
class Keypair:
    address: str
    private_key: str


@dataclass(frozen=True)
class SignedTransaction:
    raw_hex: str
    tx_hash: str


class NetworkAdapter(ABC):
    """
    Base class for chain adapters.

    Holds the observable account state, the explorer configuration and the
    confirmation poller. Subclasses provide the ledger-specific operations.
    """

    family: ChainFamily
    client: LedgerClient

    def __init__(
        self,
        network_type: NetworkType = NetworkType.TESTNET,
        explorer: str | None = None,
        poller: ConfirmationPoller | None = None,
        on_account_change: ChangeHandler | None = None,
        on_network_change: ChangeHandler | None = None,
    ):
        self._explorer = explorer
        self.state = AccountState(
            network_type=network_type,
            on_account_change=on_account_change,
            on_network_change=on_network_change,
        )
        self.state.protocol = self.family
        self.poller = poller or ConfirmationPoller()

    @property
    def address(self) -> str | None:
        return self.state.address

    @address.setter
    def address(self, value: str | None) -> None:
        self.state.address = value

    @property
    def network_type(self) -> NetworkType:
        return self.state.network_type

    @network_type.setter
    def network_type(self, value: NetworkType) -> None:
        self.state.network_type = value

    @property
    def protocol(self) -> ChainFamily | None:
        return self.state.protocol

    @property
    def on_account_change(self) -> ChangeHandler | None:
        return self.state.on_account_change

    @on_account_change.setter
    def on_account_change(self, handler: ChangeHandler | None) -> None:
        self.state.on_account_change = handler

    @property
    def on_network_change(self) -> ChangeHandler | None:
        return self.state.on_network_change

    @on_network_change.setter
    def on_network_change(self, handler: ChangeHandler | None) -> None:
        self.state.on_network_change = handler

    @property
    def config(self) -> NetworkConfig:
        """Current network description; follows network type changes."""
        return NetworkConfig(
            protocol=self.family, network_type=self.network_type, explorer_url=self._explorer
        )

    @property
    def explorer(self) -> str:
        return self.config.explorer_url or ""

    def transaction_link(self, tx_hash: str) -> str:
        return f"{self.explorer}/tx/{tx_hash}"

    def address_link(self, address: str) -> str:
        return f"{self.explorer}/address/{address}"

    def block_link(self, block_number: int | str) -> str:
        return f"{self.explorer}/block/{block_number}"

    @staticmethod
    def _require_key(key: Any) -> Any:
        if key is None:
            raise SigningError("No private key connected; call connect() first")
        return key

    @abstractmethod
    def generate_keypair(self) -> Keypair:
        """Create a new random keypair for this network"""

    @abstractmethod
    async def connect(self, private_key: str) -> list[str]:
        """Load a private key for signing and make its address the active account"""

    @abstractmethod
    async def get_balance(self, address: str | None = None) -> int:
        """Balance in the smallest unit (defaults to the active account)"""

    @abstractmethod
    async def create_transaction(self, sender: str, receiver: str, amount: int | str) -> Any:
        """Build an unsigned transaction"""

    @abstractmethod
    async def sign_transaction(self, transaction: Any) -> SignedTransaction:
        """Sign an unsigned transaction with the connected key"""

    @abstractmethod
    async def broadcast_transaction(self, transaction: SignedTransaction | str) -> str:
        """Broadcast a signed transaction, returns its hash"""

    @abstractmethod
    async def recover_transaction(self, raw_hex: str) -> list[str]:
        """Addresses that signed a raw transaction"""

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        return await self.client.get_transaction_status(tx_hash)

    async def wait_for_confirmation(
        self, tx_hash: str, cancel: asyncio.Event | None = None
    ) -> ConfirmationResult:
        return await self.poller.wait(tx_hash, self.get_transaction_status, cancel)

    async def close(self) -> None:
        await self.client.close()
