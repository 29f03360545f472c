"""
Tests for the Ethereum network adapter with a mocked ledger client.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from chainwallet.backends.base import TransactionStatus
from chainwallet.errors import (
    InsufficientFunds,
    InvalidKey,
    RpcError,
    SigningError,
    TransactionError,
)
from chainwallet.models import ChainFamily, ConfirmationState, ConnectionStrategy, NetworkType
from chainwallet.networks import EthereumNetwork, SignedTransaction
from chainwallet.networks.ethereum import resolve_endpoint, sanitize_private_key
from chainwallet.poller import ConfirmationPoller

KEY_ONE = "00" * 31 + "01"
KEY_ONE_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
DOCS_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
DOCS_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


@pytest.fixture
def client() -> AsyncMock:
    mock = AsyncMock()
    mock.get_balance.return_value = 10**18
    mock.estimate_gas.return_value = 21_000
    mock.get_gas_price.return_value = 2_000_000_000
    mock.get_nonce.return_value = 7
    return mock


@pytest.fixture
def network(client, recording_sleep) -> EthereumNetwork:
    return EthereumNetwork(
        client=client, poller=ConfirmationPoller(time_unit=1, sleep=recording_sleep)
    )


class TestPrivateKeySanitation:
    def test_bare_hex_gets_prefix(self):
        assert sanitize_private_key(KEY_ONE) == f"0x{KEY_ONE}"

    def test_prefixed_accepted(self):
        assert sanitize_private_key(DOCS_KEY) == DOCS_KEY

    @pytest.mark.parametrize(
        "key",
        [None, "", "0x1234", "zz" * 32, "0x" + "00" * 32, "ab" + "00" * 32],
    )
    def test_invalid(self, key):
        with pytest.raises(InvalidKey, match="Invalid privateKey"):
            sanitize_private_key(key)


class TestEndpoints:
    def test_infura_testnet(self):
        url = resolve_endpoint(ConnectionStrategy.INFURA, NetworkType.TESTNET, "abc")
        assert url == "https://sepolia.infura.io/v3/abc"

    def test_infura_mainnet(self):
        url = resolve_endpoint(ConnectionStrategy.INFURA, NetworkType.MAINNET, "abc")
        assert url == "https://mainnet.infura.io/v3/abc"

    def test_http_rpc(self):
        url = resolve_endpoint(
            ConnectionStrategy.HTTP_RPC, NetworkType.TESTNET, rpc_url="http://node:8545"
        )
        assert url == "http://node:8545"

    def test_http_rpc_requires_url(self):
        with pytest.raises(ValueError, match="rpc_url"):
            resolve_endpoint(ConnectionStrategy.HTTP_RPC, NetworkType.TESTNET)

    def test_blockcypher_not_supported(self):
        with pytest.raises(ValueError, match="Unsupported connection strategy"):
            resolve_endpoint(ConnectionStrategy.BLOCKCYPHER, NetworkType.TESTNET, "abc")


class TestAccounts:
    @pytest.mark.asyncio
    async def test_connect_known_keys(self, network):
        assert await network.connect(KEY_ONE) == [KEY_ONE_ADDRESS]
        assert network.address == KEY_ONE_ADDRESS

        await network.connect(DOCS_KEY)
        assert network.address == DOCS_ADDRESS

    @pytest.mark.asyncio
    async def test_generated_keypair_connects(self, network):
        keypair = network.generate_keypair()
        assert keypair.private_key.startswith("0x")
        assert len(keypair.private_key) == 66
        assert await network.connect(keypair.private_key) == [keypair.address]

    @pytest.mark.asyncio
    async def test_invalid_key(self, network):
        with pytest.raises(InvalidKey):
            await network.connect("0x1234")
        assert network.address is None

    @pytest.mark.asyncio
    async def test_account_change_notified(self, network):
        handler = MagicMock()
        network.on_account_change = handler

        await network.connect(KEY_ONE)
        await network.connect(KEY_ONE)

        handler.assert_called_once_with(None, KEY_ONE_ADDRESS)

    @pytest.mark.asyncio
    async def test_custom_rpc_reads_network_from_chain_id(self, client):
        client.get_chain_id.return_value = 1
        handler = MagicMock()
        network = EthereumNetwork(
            connection=ConnectionStrategy.HTTP_RPC, client=client, on_network_change=handler
        )

        await network.connect(KEY_ONE)

        assert network.network_type == NetworkType.MAINNET
        handler.assert_called_once_with(NetworkType.TESTNET, NetworkType.MAINNET)

    @pytest.mark.asyncio
    async def test_explorer_follows_node_network(self, client):
        client.get_chain_id.return_value = 1
        network = EthereumNetwork(connection=ConnectionStrategy.HTTP_RPC, client=client)

        await network.connect(KEY_ONE)

        assert network.config.network_type == NetworkType.MAINNET
        assert network.transaction_link("0xabc") == "https://etherscan.io/tx/0xabc"

    @pytest.mark.asyncio
    async def test_configured_explorer_survives_network_change(self, client):
        client.get_chain_id.return_value = 1
        network = EthereumNetwork(
            connection=ConnectionStrategy.HTTP_RPC,
            client=client,
            explorer="https://explorer.example/",
        )

        await network.connect(KEY_ONE)

        assert network.transaction_link("0xabc") == "https://explorer.example/tx/0xabc"

    @pytest.mark.asyncio
    async def test_infura_keeps_configured_network(self, network, client):
        await network.connect(KEY_ONE)
        client.get_chain_id.assert_not_awaited()
        assert network.network_type == NetworkType.TESTNET


class TestCreateTransaction:
    @pytest.mark.asyncio
    async def test_builds_transaction_dict(self, network, client):
        tx = await network.create_transaction(KEY_ONE_ADDRESS.lower(), DOCS_ADDRESS, "1000")

        assert tx == {
            "from": KEY_ONE_ADDRESS,
            "to": DOCS_ADDRESS,
            "value": 1000,
            "gas": 21_000,
            "gasPrice": 2_000_000_000,
            "nonce": 7,
            "chainId": 11155111,
        }
        client.estimate_gas.assert_awaited_once_with(
            {"from": KEY_ONE_ADDRESS, "to": DOCS_ADDRESS, "value": 1000, "gas": 30000}
        )
        client.get_nonce.assert_awaited_once_with(KEY_ONE_ADDRESS)

    @pytest.mark.asyncio
    async def test_mainnet_chain_id(self, client):
        network = EthereumNetwork(network_type=NetworkType.MAINNET, client=client)
        tx = await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1)
        assert tx["chainId"] == 1

    @pytest.mark.asyncio
    async def test_custom_node_chain_id_used_for_signing(self, client):
        client.get_chain_id.return_value = 137
        network = EthereumNetwork(connection=ConnectionStrategy.HTTP_RPC, client=client)
        await network.connect(KEY_ONE)

        tx = await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)

        assert network.network_type == NetworkType.UNKNOWN
        assert tx["chainId"] == 137
        signed = await network.sign_transaction(tx)
        assert await network.recover_transaction(signed.raw_hex) == [KEY_ONE_ADDRESS]

    @pytest.mark.asyncio
    async def test_unknown_network_without_chain_id(self, network):
        network.network_type = NetworkType.UNKNOWN
        with pytest.raises(ValueError, match="unknown network"):
            await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)

    @pytest.mark.asyncio
    async def test_amount_above_balance(self, network, client):
        client.get_balance.return_value = 999

        with pytest.raises(InsufficientFunds) as exc_info:
            await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)

        assert exc_info.value.required == 1000
        assert exc_info.value.available == 999
        client.estimate_gas.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_query_failure(self, network, client):
        client.get_gas_price.side_effect = RpcError("timeout")
        with pytest.raises(RpcError):
            await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)


class TestSigning:
    @pytest.mark.asyncio
    async def test_sign_and_recover(self, network):
        await network.connect(KEY_ONE)
        tx = await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)

        signed = await network.sign_transaction(tx)

        assert signed.raw_hex.startswith("0x")
        assert signed.tx_hash.startswith("0x")
        assert len(signed.tx_hash) == 66
        assert await network.recover_transaction(signed.raw_hex) == [KEY_ONE_ADDRESS]

    @pytest.mark.asyncio
    async def test_sign_requires_connect(self, network):
        tx = await network.create_transaction(KEY_ONE_ADDRESS, DOCS_ADDRESS, 1000)
        with pytest.raises(SigningError, match="No private key connected"):
            await network.sign_transaction(tx)

    @pytest.mark.asyncio
    async def test_foreign_sender_rejected(self, network):
        await network.connect(KEY_ONE)
        tx = await network.create_transaction(DOCS_ADDRESS, KEY_ONE_ADDRESS, 1000)
        with pytest.raises(SigningError, match="not the connected account"):
            await network.sign_transaction(tx)

    @pytest.mark.asyncio
    async def test_sign_and_recover_message(self, network):
        await network.connect(DOCS_KEY)

        signature = await network.sign_message("hello chainwallet")

        assert signature.startswith("0x")
        assert await network.recover_message("hello chainwallet", signature) == DOCS_ADDRESS
        assert await network.recover_message("tampered", signature) != DOCS_ADDRESS


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_returns_hash(self, network, client):
        client.push_transaction.return_value = "0x" + "ab" * 32
        signed = SignedTransaction(raw_hex="0xf86c", tx_hash="0x" + "ab" * 32)

        assert await network.broadcast_transaction(signed) == "0x" + "ab" * 32
        client.push_transaction.assert_awaited_once_with("0xf86c")

    @pytest.mark.asyncio
    async def test_known_node_errors_normalized(self, network, client):
        client.push_transaction.side_effect = RpcError(
            "{'code': -32000, 'message': 'nonce too low'}"
        )

        with pytest.raises(TransactionError) as exc_info:
            await network.broadcast_transaction("0xf86c")

        assert exc_info.value.message == "Nonce too low. Please retry"

    @pytest.mark.asyncio
    async def test_transport_errors_unchanged(self, network, client):
        client.push_transaction.side_effect = RpcError("Connection refused")

        with pytest.raises(RpcError) as exc_info:
            await network.broadcast_transaction("0xf86c")

        assert not isinstance(exc_info.value, TransactionError)


class TestConfirmation:
    @pytest.mark.asyncio
    async def test_wait_for_confirmation(self, network, client, recording_sleep):
        client.get_transaction_status.side_effect = [
            TransactionStatus(found=False),
            TransactionStatus(found=False),
            TransactionStatus(found=True, confirmations=2),
        ]

        result = await network.wait_for_confirmation("0xabc")

        assert result.state == ConfirmationState.CONFIRMED
        assert result.status.confirmations == 2
        assert recording_sleep.calls == [1250, 2500]

    def test_links(self, network):
        assert network.protocol == ChainFamily.ETHEREUM
        assert network.transaction_link("0xabc") == "https://sepolia.etherscan.io/tx/0xabc"
        assert (
            network.address_link(DOCS_ADDRESS)
            == f"https://sepolia.etherscan.io/address/{DOCS_ADDRESS}"
        )
