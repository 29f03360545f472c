"""
Bitcoin (UTXO ledger) network adapter.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from decimal import Decimal

from coincurve import PrivateKey
from loguru import logger

from chainwallet.backends.base import UnspentOutput, UTXOLedgerClient
from chainwallet.backends.blockcypher import BlockCypherClient
from chainwallet.bitcoin.address import (
    private_key_to_wif,
    pubkey_to_p2pkh_address,
    pubkey_to_p2wpkh_address,
    wif_to_private_key,
)
from chainwallet.bitcoin.coin_selection import select_coins
from chainwallet.bitcoin.signing import sign_transaction
from chainwallet.bitcoin.transaction import (
    UnsignedBitcoinTransaction,
    assemble_transaction,
    txid_of,
)
from chainwallet.constants import (
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_REQUEST_TIMEOUT,
    FALLBACK_FEE_RATE,
)
from chainwallet.errors import RpcError, TransactionError
from chainwallet.models import ChainFamily, ConnectionStrategy, NetworkType
from chainwallet.networks.base import Keypair, NetworkAdapter, SignedTransaction
from chainwallet.poller import ConfirmationPoller
from chainwallet.state import ChangeHandler

ADDRESS_ENCODERS: dict[str, Callable[[bytes, NetworkType], str]] = {
    "p2wpkh": pubkey_to_p2wpkh_address,
    "p2pkh": pubkey_to_p2pkh_address,
}


class BitcoinNetwork(NetworkAdapter):
    """
    Bitcoin adapter over a UTXO ledger client (BlockCypher by default).

    Amounts are in satoshis. Keys are exchanged as WIF strings.
    """

    family = ChainFamily.BITCOIN

    def __init__(
        self,
        network_type: NetworkType = NetworkType.TESTNET,
        access_token: str = "",
        explorer: str | None = None,
        client: UTXOLedgerClient | None = None,
        connection: ConnectionStrategy = ConnectionStrategy.BLOCKCYPHER,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        fallback_fee_rate: Decimal = FALLBACK_FEE_RATE,
        address_type: str = "p2wpkh",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        poller: ConfirmationPoller | None = None,
        on_account_change: ChangeHandler | None = None,
        on_network_change: ChangeHandler | None = None,
    ):
        if connection != ConnectionStrategy.BLOCKCYPHER:
            raise ValueError(f"Unsupported connection strategy for Bitcoin: {connection.value}")
        if address_type not in ADDRESS_ENCODERS:
            raise ValueError(f"Unsupported address type: {address_type}")

        super().__init__(
            network_type=network_type,
            explorer=explorer,
            poller=poller,
            on_account_change=on_account_change,
            on_network_change=on_network_change,
        )
        self.client: UTXOLedgerClient = client or BlockCypherClient(
            network_type=network_type, access_token=access_token, timeout=timeout
        )
        self.dust_threshold = dust_threshold
        self.fallback_fee_rate = Decimal(fallback_fee_rate)
        self.address_type = address_type
        self._private_key: PrivateKey | None = None

    def address_for(self, private_key: PrivateKey) -> str:
        pubkey = private_key.public_key.format(compressed=True)
        return ADDRESS_ENCODERS[self.address_type](pubkey, self.network_type)

    def generate_keypair(self) -> Keypair:
        private_key = PrivateKey()
        return Keypair(
            address=self.address_for(private_key),
            private_key=private_key_to_wif(private_key, self.network_type),
        )

    async def connect(self, private_key: str) -> list[str]:
        """Import a WIF key; raises InvalidKey if it is malformed or for another network."""
        key = wif_to_private_key(private_key.strip(), self.network_type)
        self._private_key = key
        self.address = self.address_for(key)
        logger.info(f"Connected Bitcoin account {self.address}")
        return [self.address]

    async def get_balance(self, address: str | None = None) -> int:
        return await self.client.get_balance(address or self._require_key(self.address))

    async def get_spendable_outputs(self, address: str | None = None) -> list[UnspentOutput]:
        return await self.client.get_spendable_outputs(
            address or self._require_key(self.address)
        )

    async def get_fee_rate(self) -> Decimal:
        """Current fee rate in sat/byte, or the fallback rate if the lookup fails."""
        try:
            return await self.client.get_fee_rate()
        except RpcError as e:
            logger.warning(
                f"Fee rate lookup failed ({e}), using fallback {self.fallback_fee_rate} sat/byte"
            )
            return self.fallback_fee_rate

    async def create_transaction(
        self, sender: str, receiver: str, amount: int | str
    ) -> UnsignedBitcoinTransaction:
        """
        Select coins from ``sender`` and build an unsigned payment to ``receiver``.

        Raises:
            AmountTooLow: amount is not positive or below the dust threshold
            InsufficientFunds: the sender cannot cover amount plus fee
        """
        amount = int(amount)
        candidates, fee_rate = await asyncio.gather(
            self.client.get_spendable_outputs(sender), self.get_fee_rate()
        )
        selection = select_coins(amount, candidates, fee_rate, self.dust_threshold)
        logger.info(
            f"Selected {len(selection.selected_inputs)} input(s) for {amount} sat, "
            f"fee {selection.fee} sat, change {selection.change_value} sat"
        )
        return await assemble_transaction(self.client, selection, sender, receiver)

    async def sign_transaction(self, transaction: UnsignedBitcoinTransaction) -> SignedTransaction:
        key = self._require_key(self._private_key)
        raw = sign_transaction(transaction, key)
        return SignedTransaction(raw_hex=raw.hex(), tx_hash=txid_of(raw))

    async def broadcast_transaction(self, transaction: SignedTransaction | str) -> str:
        raw_hex = transaction.raw_hex if isinstance(transaction, SignedTransaction) else transaction
        try:
            return await self.client.push_transaction(raw_hex)
        except RpcError as e:
            # 4xx means the API refused the transaction itself
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise TransactionError.from_exception(e) from e
            raise

    async def recover_transaction(self, raw_hex: str) -> list[str]:
        """Unique input addresses of a raw transaction, in order of appearance."""
        decoded = await self.client.decode_transaction(raw_hex)
        addresses: list[str] = []
        for inp in decoded.get("inputs", []):
            for address in inp.get("addresses") or []:
                if address not in addresses:
                    addresses.append(address)
        return addresses
