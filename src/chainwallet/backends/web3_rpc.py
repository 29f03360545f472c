"""
Ethereum JSON-RPC ledger client using web3.py (AsyncWeb3).
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, TypeVar

from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import TransactionNotFound

from chainwallet.backends.base import AccountLedgerClient, TransactionStatus
from chainwallet.constants import DEFAULT_REQUEST_TIMEOUT
from chainwallet.errors import RpcError, WalletError

T = TypeVar("T")


class Web3Client(AccountLedgerClient):
    """
    Account-chain ledger client over an Ethereum JSON-RPC endpoint.

    Pass either ``rpc_url`` or a preconfigured ``w3`` instance.
    """

    def __init__(
        self,
        rpc_url: str | None = None,
        w3: AsyncWeb3 | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        if w3 is None:
            if not rpc_url:
                raise ValueError("Either rpc_url or w3 is required")
            w3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
            )
        self.rpc_url = rpc_url
        self.w3 = w3

    async def _call(self, method: str, awaitable: Awaitable[T]) -> T:
        """
        Await a web3 call, converting library failures into RpcError.

        TransactionNotFound is passed through; callers treat it as "pending".
        """
        try:
            return await awaitable
        except (TransactionNotFound, WalletError):
            raise
        except Exception as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise RpcError(str(e) or None, endpoint=self.rpc_url, original_error=e) from e

    @staticmethod
    def _checksum(address: str) -> str:
        return AsyncWeb3.to_checksum_address(address)

    async def get_balance(self, address: str) -> int:
        balance = await self._call(
            "eth_getBalance", self.w3.eth.get_balance(self._checksum(address))
        )
        return int(balance)

    async def estimate_gas(self, transaction: dict) -> int:
        transaction = dict(transaction)
        for key in ("from", "to"):
            if transaction.get(key):
                transaction[key] = self._checksum(transaction[key])
        gas = await self._call("eth_estimateGas", self.w3.eth.estimate_gas(transaction))
        return int(gas)

    async def get_gas_price(self) -> int:
        return int(await self._call("eth_gasPrice", self.w3.eth.gas_price))

    async def get_nonce(self, address: str) -> int:
        nonce = await self._call(
            "eth_getTransactionCount",
            self.w3.eth.get_transaction_count(self._checksum(address), "pending"),
        )
        return int(nonce)

    async def get_chain_id(self) -> int:
        return int(await self._call("eth_chainId", self.w3.eth.chain_id))

    async def push_transaction(self, raw_hex: str) -> str:
        tx_hash = await self._call(
            "eth_sendRawTransaction", self.w3.eth.send_raw_transaction(raw_hex)
        )
        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info(f"Broadcast transaction: {tx_hash_hex}")
        return tx_hash_hex

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        try:
            receipt: Any = await self._call(
                "eth_getTransactionReceipt", self.w3.eth.get_transaction_receipt(tx_hash)
            )
        except TransactionNotFound:
            return TransactionStatus(found=False)

        if receipt is None:
            return TransactionStatus(found=False)

        if receipt.get("status") != 1:
            return TransactionStatus(found=True, rejected=True, reason="Transaction reverted")

        current_block = await self._call("eth_blockNumber", self.w3.eth.block_number)
        confirmations = max(1, int(current_block) - int(receipt["blockNumber"]) + 1)
        return TransactionStatus(found=True, confirmations=confirmations)

    async def close(self) -> None:
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
