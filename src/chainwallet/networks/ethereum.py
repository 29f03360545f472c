"""
Ethereum (account ledger) network adapter.
"""

from __future__ import annotations

import asyncio
from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3

from chainwallet.backends.base import AccountLedgerClient
from chainwallet.backends.web3_rpc import Web3Client
from chainwallet.constants import DEFAULT_REQUEST_TIMEOUT, ESTIMATE_GAS_CAP, INFURA_ENDPOINTS
from chainwallet.errors import (
    InsufficientFunds,
    InvalidKey,
    RpcError,
    SigningError,
    TransactionError,
    known_transaction_message,
)
from chainwallet.models import (
    ChainFamily,
    ConnectionStrategy,
    NetworkType,
    chain_id_for,
    network_type_from_chain_id,
)
from chainwallet.networks.base import Keypair, NetworkAdapter, SignedTransaction
from chainwallet.poller import ConfirmationPoller
from chainwallet.state import ChangeHandler

# secp256k1 group order
_CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def sanitize_private_key(private_key: str | None) -> str:
    """
    Normalize a hex private key to its 0x-prefixed form.

    64 hex characters get a 0x prefix, 66 characters are taken as is,
    anything else is rejected.
    """
    key = (private_key or "").strip()
    if len(key) == 64:
        key = f"0x{key}"
    elif len(key) != 66:
        raise InvalidKey("Invalid privateKey")

    try:
        secret = int.from_bytes(bytes.fromhex(key[2:]), "big")
    except ValueError as e:
        raise InvalidKey("Invalid privateKey", original_error=e) from e
    if not key.startswith("0x") or not 0 < secret < _CURVE_ORDER:
        raise InvalidKey("Invalid privateKey")
    return key


def resolve_endpoint(
    connection: ConnectionStrategy,
    network_type: NetworkType,
    access_token: str = "",
    rpc_url: str = "",
) -> str:
    """JSON-RPC URL for a connection strategy."""
    if connection == ConnectionStrategy.INFURA:
        if not access_token:
            raise ValueError("Infura connection requires an access token")
        key = "mainnet" if network_type == NetworkType.MAINNET else "testnet"
        return INFURA_ENDPOINTS[key].format(token=access_token)
    if connection == ConnectionStrategy.HTTP_RPC:
        if not rpc_url:
            raise ValueError("HTTP RPC connection requires an rpc_url")
        return rpc_url
    raise ValueError(f"Unsupported connection strategy for Ethereum: {connection.value}")


class EthereumNetwork(NetworkAdapter):
    """
    Ethereum adapter over a JSON-RPC node (Infura or any HTTP endpoint).

    Amounts are in wei. Keys are 32-byte hex strings.
    """

    family = ChainFamily.ETHEREUM

    def __init__(
        self,
        network_type: NetworkType = NetworkType.TESTNET,
        connection: ConnectionStrategy = ConnectionStrategy.INFURA,
        access_token: str = "",
        rpc_url: str = "",
        explorer: str | None = None,
        client: AccountLedgerClient | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        poller: ConfirmationPoller | None = None,
        on_account_change: ChangeHandler | None = None,
        on_network_change: ChangeHandler | None = None,
    ):
        super().__init__(
            network_type=network_type,
            explorer=explorer,
            poller=poller,
            on_account_change=on_account_change,
            on_network_change=on_network_change,
        )
        self.connection = connection
        if client is None:
            endpoint = resolve_endpoint(connection, network_type, access_token, rpc_url)
            client = Web3Client(rpc_url=endpoint, timeout=timeout)
        self.client: AccountLedgerClient = client
        self._account: LocalAccount | None = None
        # Read from the node on HTTP_RPC connect
        self.chain_id: int | None = None

    def generate_keypair(self) -> Keypair:
        account = Account.create()
        return Keypair(address=account.address, private_key=AsyncWeb3.to_hex(account.key))

    async def connect(self, private_key: str) -> list[str]:
        """
        Load a hex private key.

        On a custom RPC endpoint the network type is read from the node's
        chain id.
        """
        key = sanitize_private_key(private_key)
        self._account = Account.from_key(key)
        if self.connection == ConnectionStrategy.HTTP_RPC:
            await self.sync_network_type()
        self.address = self._account.address
        logger.info(f"Connected Ethereum account {self.address}")
        return [self.address]

    async def sync_network_type(self) -> NetworkType:
        self.chain_id = int(await self.client.get_chain_id())
        self.network_type = network_type_from_chain_id(self.chain_id)
        return self.network_type

    def transaction_chain_id(self) -> int:
        if self.chain_id is not None:
            return self.chain_id
        return chain_id_for(self.network_type)

    async def get_balance(self, address: str | None = None) -> int:
        return await self.client.get_balance(address or self._require_key(self.address))

    async def get_gas_price(self) -> int:
        return await self.client.get_gas_price()

    async def get_nonce(self, address: str | None = None) -> int:
        """Transaction count including pending transactions."""
        return await self.client.get_nonce(address or self._require_key(self.address))

    async def create_transaction(
        self, sender: str, receiver: str, amount: int | str
    ) -> dict[str, Any]:
        """
        Build an unsigned legacy transaction dict.

        Raises:
            InsufficientFunds: amount exceeds the sender's balance
        """
        sender = AsyncWeb3.to_checksum_address(sender)
        receiver = AsyncWeb3.to_checksum_address(receiver)
        value = int(amount)

        balance = await self.client.get_balance(sender)
        if value > balance:
            raise InsufficientFunds(
                f"Insufficient funds: need {value} wei, have {balance} wei",
                required=value,
                available=balance,
            )

        gas, gas_price, nonce = await asyncio.gather(
            self.client.estimate_gas(
                {"from": sender, "to": receiver, "value": value, "gas": ESTIMATE_GAS_CAP}
            ),
            self.client.get_gas_price(),
            self.client.get_nonce(sender),
        )
        logger.debug(
            f"Transaction {sender} -> {receiver}: gas={gas} price={gas_price} nonce={nonce}"
        )

        return {
            "from": sender,
            "to": receiver,
            "value": value,
            "gas": gas,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self.transaction_chain_id(),
        }

    async def sign_transaction(self, transaction: dict[str, Any]) -> SignedTransaction:
        account: LocalAccount = self._require_key(self._account)
        tx = dict(transaction)
        sender = tx.pop("from", None)
        if sender is not None and sender.lower() != account.address.lower():
            raise SigningError(f"Transaction sender {sender} is not the connected account")

        try:
            signed = account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise SigningError(f"Unable to sign the transaction: {e}", original_error=e) from e

        return SignedTransaction(
            raw_hex=AsyncWeb3.to_hex(signed.raw_transaction),
            tx_hash=AsyncWeb3.to_hex(signed.hash),
        )

    async def broadcast_transaction(self, transaction: SignedTransaction | str) -> str:
        raw_hex = transaction.raw_hex if isinstance(transaction, SignedTransaction) else transaction
        try:
            return await self.client.push_transaction(raw_hex)
        except RpcError as e:
            if known_transaction_message(str(e)) is not None:
                raise TransactionError.from_exception(e) from e
            raise

    async def sign_message(self, message: str) -> str:
        """EIP-191 personal message signature as 0x-prefixed hex."""
        account: LocalAccount = self._require_key(self._account)
        signed = account.sign_message(encode_defunct(text=message))
        return AsyncWeb3.to_hex(signed.signature)

    async def recover_message(self, message: str, signature: str) -> str:
        return Account.recover_message(encode_defunct(text=message), signature=signature)

    async def recover_transaction(self, raw_hex: str) -> list[str]:
        try:
            return [Account.recover_transaction(raw_hex)]
        except ValueError as e:
            raise TransactionError(f"Cannot decode transaction: {e}", original_error=e) from e
