"""
Tests for unsigned transaction assembly and serialization helpers.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from chainwallet.backends.base import UnspentOutput
from chainwallet.bitcoin.address import (
    hash160,
    p2pkh_script,
    p2wpkh_script,
    pubkey_to_p2wpkh_address,
)
from chainwallet.bitcoin.coin_selection import SelectionResult
from chainwallet.bitcoin.transaction import (
    InputDescriptor,
    ParsedInput,
    ParsedOutput,
    ParsedTransaction,
    TxOutput,
    UnsignedBitcoinTransaction,
    WitnessUtxo,
    assemble_transaction,
    encode_varint,
    hash256,
    is_segwit,
    read_varint,
    txid_of,
)
from chainwallet.errors import RpcError
from chainwallet.models import NetworkType

SEGWIT_PREVIOUS = bytes.fromhex("02000000" + "0001") + b"\x00" * 16


def legacy_previous(script: bytes, value: int) -> bytes:
    return ParsedTransaction(
        version=1,
        inputs=[ParsedInput(b"\x11" * 32, 0, b"", 0xFFFFFFFF)],
        outputs=[ParsedOutput(value, script)],
        locktime=0,
    ).serialize_legacy()


class TestHelpers:
    def test_hash256_empty(self):
        expected = bytes.fromhex("5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456")
        assert hash256(b"") == expected

    def test_varint_roundtrip_boundaries(self):
        for value, size in [(0xFC, 1), (0xFD, 3), (0xFFFF, 3), (0x10000, 5), (2**32, 9)]:
            encoded = encode_varint(value)
            assert len(encoded) == size
            assert read_varint(encoded, 0) == (value, size)


class TestIsSegwit:
    def test_hex_string(self):
        assert is_segwit("020000000001" + "00" * 10)
        assert not is_segwit("0200000001" + "00" * 10)

    def test_bytes(self):
        assert is_segwit(SEGWIT_PREVIOUS)
        assert not is_segwit(legacy_previous(b"\x51", 1_000))


class TestUnsignedTransaction:
    def test_output_order_and_fee(self, key_one):
        pubkey = key_one.public_key.format()
        receiver = pubkey_to_p2wpkh_address(pubkey, NetworkType.TESTNET)
        tx = UnsignedBitcoinTransaction(
            inputs=[InputDescriptor(txid="ab" * 32, vout=1, value=10_000)],
            outputs=[
                TxOutput(address=receiver, value=6_000),
                TxOutput(address=receiver, value=3_000),
            ],
        )

        assert tx.payment_output.value == 6_000
        assert tx.change_output.value == 3_000
        assert tx.fee == 1_000
        assert tx.payment_output.script == p2wpkh_script(pubkey)

    def test_serialize_without_witness_has_no_marker(self):
        tx = UnsignedBitcoinTransaction(
            inputs=[InputDescriptor(txid="ab" * 32, vout=0, value=1_000)],
            outputs=[TxOutput(address="", value=500, script=b"\x51")],
        )
        raw = tx.serialize()
        assert not is_segwit(raw)
        assert raw[-4:] == b"\x00\x00\x00\x00"

    def test_txid_ignores_witness(self):
        tx = UnsignedBitcoinTransaction(
            inputs=[InputDescriptor(txid="cd" * 32, vout=0, value=1_000)],
            outputs=[TxOutput(address="", value=500, script=b"\x51")],
        )
        with_witness = tx.serialize(witnesses=[[b"\x01\x02"]])

        assert is_segwit(with_witness)
        assert txid_of(with_witness) == txid_of(tx.serialize())

    def test_outpoint_is_little_endian(self):
        inp = InputDescriptor(txid="00" * 31 + "ff", vout=2, value=1)
        assert inp.outpoint() == b"\xff" + b"\x00" * 31 + b"\x02\x00\x00\x00"


class TestAssembleTransaction:
    @pytest.fixture
    def addresses(self, key_one, other_key):
        sender = pubkey_to_p2wpkh_address(key_one.public_key.format(), NetworkType.TESTNET)
        receiver = pubkey_to_p2wpkh_address(other_key.public_key.format(), NetworkType.TESTNET)
        return sender, receiver

    @pytest.mark.asyncio
    async def test_segwit_inputs_use_witness_utxo(self, key_one, addresses):
        sender, receiver = addresses
        script_hex = p2wpkh_script(key_one.public_key.format()).hex()
        utxo = UnspentOutput(txid="aa" * 32, output_index=1, value=50_000, script=script_hex)
        selection = SelectionResult((utxo,), amount=20_000, fee=225, change_value=29_775)

        client = AsyncMock()
        client.get_raw_transaction.return_value = SEGWIT_PREVIOUS

        tx = await assemble_transaction(client, selection, sender, receiver)

        assert len(tx.inputs) == 1
        assert tx.inputs[0].witness_utxo == WitnessUtxo(bytes.fromhex(script_hex), 50_000)
        assert tx.inputs[0].non_witness_utxo is None
        assert [o.address for o in tx.outputs] == [receiver, sender]
        assert [o.value for o in tx.outputs] == [20_000, 29_775]
        assert tx.fee == 225

    @pytest.mark.asyncio
    async def test_legacy_inputs_carry_previous_transaction(self, key_one, addresses):
        sender, receiver = addresses
        script = p2pkh_script(hash160(key_one.public_key.format()))
        previous = legacy_previous(script, 40_000)
        utxo = UnspentOutput(
            txid=txid_of(previous), output_index=0, value=40_000, script=script.hex()
        )
        selection = SelectionResult((utxo,), amount=30_000, fee=225, change_value=0)

        client = AsyncMock()
        client.get_raw_transaction.return_value = previous

        tx = await assemble_transaction(client, selection, sender, receiver)

        assert tx.inputs[0].non_witness_utxo == previous
        assert tx.inputs[0].prevout_script() == script
        assert len(tx.outputs) == 1
        assert tx.change_output is None

    @pytest.mark.asyncio
    async def test_previous_transaction_mismatch(self, addresses):
        sender, receiver = addresses
        utxo = UnspentOutput(txid="ee" * 32, output_index=0, value=40_000, script="")
        selection = SelectionResult((utxo,), amount=30_000, fee=225, change_value=0)

        client = AsyncMock()
        client.get_raw_transaction.return_value = legacy_previous(b"\x51", 40_000)

        with pytest.raises(RpcError, match="does not match"):
            await assemble_transaction(client, selection, sender, receiver)

    @pytest.mark.asyncio
    async def test_fetches_each_previous_transaction_once(self, key_one, addresses):
        sender, receiver = addresses
        script_hex = p2wpkh_script(key_one.public_key.format()).hex()
        utxos = tuple(
            UnspentOutput(txid="bb" * 32, output_index=i, value=10_000, script=script_hex)
            for i in range(3)
        )
        selection = SelectionResult(utxos, amount=25_000, fee=583, change_value=4_417)

        client = AsyncMock()
        client.get_raw_transaction.return_value = SEGWIT_PREVIOUS

        tx = await assemble_transaction(client, selection, sender, receiver)

        client.get_raw_transaction.assert_awaited_once_with("bb" * 32)
        assert [inp.vout for inp in tx.inputs] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_fetch_failure_fails_assembly(self, addresses):
        sender, receiver = addresses
        utxo = UnspentOutput(txid="aa" * 32, output_index=0, value=40_000, script="")
        selection = SelectionResult((utxo,), amount=30_000, fee=225, change_value=0)

        client = AsyncMock()
        client.get_raw_transaction.side_effect = RpcError("timeout")

        with pytest.raises(RpcError):
            await assemble_transaction(client, selection, sender, receiver)
