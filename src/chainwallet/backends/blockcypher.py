"""
BlockCypher REST API ledger client for Bitcoin mainnet and testnet3.

https://www.blockcypher.com/dev/bitcoin/
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from chainwallet.backends.base import TransactionStatus, UnspentOutput, UTXOLedgerClient
from chainwallet.backends.throttle import RequestThrottle
from chainwallet.constants import (
    BLOCKCYPHER_ENDPOINTS,
    BLOCKCYPHER_MIN_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
)
from chainwallet.errors import RpcError
from chainwallet.models import NetworkType


def _error_message(response: httpx.Response) -> str:
    """Prefer the API's own error text over the HTTP reason phrase."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return response.reason_phrase or f"HTTP {response.status_code}"


class BlockCypherClient(UTXOLedgerClient):
    """
    Ledger client backed by the BlockCypher API.

    All requests go through a throttle (one in flight, 333 ms apart) to stay
    under the free-tier limit of 3 requests per second.
    """

    def __init__(
        self,
        network_type: NetworkType = NetworkType.TESTNET,
        access_token: str = "",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        min_interval: float = BLOCKCYPHER_MIN_INTERVAL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        key = "mainnet" if network_type == NetworkType.MAINNET else "testnet"
        self.endpoint = BLOCKCYPHER_ENDPOINTS[key]
        self.access_token = access_token
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self.throttle = RequestThrottle(min_interval=min_interval)

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make a throttled request to the BlockCypher API.

        Raises:
            RpcError: On HTTP errors, timeouts and malformed responses
        """
        url = f"{self.endpoint}/{path}" if path else self.endpoint
        query = dict(params or {})
        if self.access_token:
            query["token"] = self.access_token

        try:
            response = await self.throttle.schedule(
                lambda: self.client.request(method, url, params=query, json=payload)
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            status = e.response.status_code
            if status == 404:
                logger.debug(f"BlockCypher {method} {path}: not found")
            else:
                logger.error(f"BlockCypher {method} {path} failed ({status}): {message}")
            raise RpcError(message, status_code=status, endpoint=url, original_error=e) from e
        except httpx.HTTPError as e:
            logger.error(f"BlockCypher {method} {path} failed: {e}")
            raise RpcError(str(e) or None, endpoint=url, original_error=e) from e
        except ValueError as e:
            logger.error(f"BlockCypher {method} {path} returned malformed JSON: {e}")
            raise RpcError(
                "Malformed response from BlockCypher", endpoint=url, original_error=e
            ) from e

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        return await self._request("POST", path, payload=payload)

    async def get_fee_rate(self) -> Decimal:
        """Current low-priority fee rate in satoshi per byte."""
        data = await self._get("")
        try:
            per_kb = int(data["low_fee_per_kb"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError("Fee rate missing from BlockCypher response", original_error=e) from e
        rate = Decimal(per_kb // 1024)
        logger.debug(f"BlockCypher fee rate: {rate} sat/byte")
        return rate

    async def get_address_info(self, address: str, params: dict[str, Any] | None = None) -> dict:
        return await self._get(f"addrs/{address}", params)

    async def get_spendable_outputs(self, address: str) -> list[UnspentOutput]:
        data = await self.get_address_info(
            address, {"unspentOnly": True, "includeScript": True}
        )
        outputs = []
        for ref in data.get("txrefs") or []:
            try:
                outputs.append(
                    UnspentOutput(
                        txid=ref["tx_hash"],
                        output_index=int(ref["tx_output_n"]),
                        value=int(ref["value"]),
                        script=ref.get("script", ""),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise RpcError("Malformed UTXO in BlockCypher response", original_error=e) from e
        logger.debug(f"Found {len(outputs)} spendable outputs for {address}")
        return outputs

    async def get_balance(self, address: str) -> int:
        data = await self._get(f"addrs/{address}/balance")
        try:
            return int(data["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError("Balance missing from BlockCypher response", original_error=e) from e

    async def get_transaction(self, tx_hash: str, params: dict[str, Any] | None = None) -> dict:
        return await self._get(f"txs/{tx_hash}", params)

    async def get_raw_transaction(self, txid: str) -> bytes:
        data = await self.get_transaction(txid, {"includeHex": True})
        try:
            return bytes.fromhex(data["hex"])
        except (KeyError, TypeError, ValueError) as e:
            raise RpcError(f"Raw hex missing for transaction {txid}", original_error=e) from e

    async def push_transaction(self, raw_hex: str) -> str:
        data = await self._post("txs/push", {"tx": raw_hex})
        try:
            tx_hash = data["tx"]["hash"]
        except (KeyError, TypeError) as e:
            raise RpcError("Transaction hash missing from push response", original_error=e) from e
        logger.info(f"Broadcast transaction: {tx_hash}")
        return tx_hash

    async def decode_transaction(self, raw_hex: str) -> dict:
        return await self._post("txs/decode", {"tx": raw_hex})

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        try:
            data = await self.get_transaction(tx_hash)
        except RpcError as e:
            if e.is_not_found:
                return TransactionStatus(found=False)
            raise

        if data.get("double_spend"):
            return TransactionStatus(
                found=True,
                confirmations=int(data.get("confirmations") or 0),
                rejected=True,
                reason="double spend detected",
            )
        return TransactionStatus(found=True, confirmations=int(data.get("confirmations") or 0))

    async def close(self) -> None:
        await self.client.aclose()
