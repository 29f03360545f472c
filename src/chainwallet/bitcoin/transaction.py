"""
Unsigned Bitcoin transaction assembly.

Builds the signable structure from a coin selection:
- Inputs: one descriptor per selected output, carrying what the signer needs
  (the full previous transaction for legacy inputs, or the spent script and
  value for inputs created by a segwit transaction)
- Outputs: payment first, then change back to the sender if any

Output order is fixed: index 0 is always the payment, index 1 (when present)
is always the change.
"""

from __future__ import annotations

import asyncio
import hashlib
import struct
from dataclasses import dataclass, field

from loguru import logger

from chainwallet.backends.base import UTXOLedgerClient
from chainwallet.bitcoin.address import address_to_scriptpubkey
from chainwallet.bitcoin.coin_selection import SelectionResult
from chainwallet.errors import RpcError

SEGWIT_MARKER = b"\x00\x01"


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a varint and return (value, new_offset)."""
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return int.from_bytes(data[offset : offset + 2], "little"), offset + 2
    if first == 0xFE:
        return int.from_bytes(data[offset : offset + 4], "little"), offset + 4
    return int.from_bytes(data[offset : offset + 8], "little"), offset + 8


def is_segwit(raw_transaction: bytes | str) -> bool:
    """Check the marker/flag bytes that follow the 4-byte version."""
    if isinstance(raw_transaction, str):
        return raw_transaction[8:12] == "0001"
    return raw_transaction[4:6] == SEGWIT_MARKER


def txid_of(raw_transaction: bytes) -> str:
    """Transaction id (double SHA256 of the non-witness serialization)."""
    if not is_segwit(raw_transaction):
        return hash256(raw_transaction)[::-1].hex()
    parsed = ParsedTransaction.parse(raw_transaction)
    return hash256(parsed.serialize_legacy())[::-1].hex()


@dataclass
class ParsedInput:
    txid_le: bytes
    vout: int
    script_sig: bytes
    sequence: int


@dataclass
class ParsedOutput:
    value: int
    script: bytes


@dataclass
class ParsedTransaction:
    version: int
    inputs: list[ParsedInput]
    outputs: list[ParsedOutput]
    locktime: int

    @classmethod
    def parse(cls, tx_bytes: bytes) -> ParsedTransaction:
        try:
            offset = 0
            version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4

            has_witness = tx_bytes[offset : offset + 2] == SEGWIT_MARKER
            if has_witness:
                offset += 2

            input_count, offset = read_varint(tx_bytes, offset)
            inputs: list[ParsedInput] = []
            for _ in range(input_count):
                txid_le = tx_bytes[offset : offset + 32]
                offset += 32
                vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                script_len, offset = read_varint(tx_bytes, offset)
                script_sig = tx_bytes[offset : offset + script_len]
                offset += script_len
                sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
                offset += 4
                inputs.append(ParsedInput(txid_le, vout, script_sig, sequence))

            output_count, offset = read_varint(tx_bytes, offset)
            outputs: list[ParsedOutput] = []
            for _ in range(output_count):
                value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
                offset += 8
                script_len, offset = read_varint(tx_bytes, offset)
                outputs.append(ParsedOutput(value, tx_bytes[offset : offset + script_len]))
                offset += script_len

            if has_witness:
                for _ in range(input_count):
                    stack_count, offset = read_varint(tx_bytes, offset)
                    for _ in range(stack_count):
                        item_len, offset = read_varint(tx_bytes, offset)
                        offset += item_len

            locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            return cls(version, inputs, outputs, locktime)

        except (IndexError, struct.error) as e:
            raise ValueError(f"Failed to parse transaction: {e}") from e

    def serialize_legacy(self) -> bytes:
        result = struct.pack("<I", self.version)
        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.txid_le + struct.pack("<I", inp.vout)
            result += encode_varint(len(inp.script_sig)) + inp.script_sig
            result += struct.pack("<I", inp.sequence)
        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += struct.pack("<Q", out.value)
            result += encode_varint(len(out.script)) + out.script
        result += struct.pack("<I", self.locktime)
        return result


@dataclass
class WitnessUtxo:
    script: bytes
    value: int


@dataclass
class InputDescriptor:
    """
    A signable input.

    Exactly one of ``witness_utxo`` and ``non_witness_utxo`` is set.
    """

    txid: str
    vout: int
    value: int
    witness_utxo: WitnessUtxo | None = None
    non_witness_utxo: bytes | None = None
    sequence: int = 0xFFFFFFFF

    @property
    def is_segwit(self) -> bool:
        return self.witness_utxo is not None

    def prevout_script(self) -> bytes:
        """scriptPubKey of the output being spent."""
        if self.witness_utxo is not None:
            return self.witness_utxo.script
        if self.non_witness_utxo is None:
            raise ValueError(f"Input {self.txid}:{self.vout} has no previous output data")
        previous = ParsedTransaction.parse(self.non_witness_utxo)
        return previous.outputs[self.vout].script

    def outpoint(self) -> bytes:
        # txid is in RPC format (big-endian), need to reverse for raw tx
        return bytes.fromhex(self.txid)[::-1] + struct.pack("<I", self.vout)


@dataclass
class TxOutput:
    address: str
    value: int
    script: bytes = field(default=b"")

    def __post_init__(self) -> None:
        if not self.script:
            self.script = address_to_scriptpubkey(self.address)

    def serialize(self) -> bytes:
        return struct.pack("<Q", self.value) + encode_varint(len(self.script)) + self.script


@dataclass
class UnsignedBitcoinTransaction:
    inputs: list[InputDescriptor]
    outputs: list[TxOutput]
    version: int = 2
    locktime: int = 0

    @property
    def payment_output(self) -> TxOutput:
        return self.outputs[0]

    @property
    def change_output(self) -> TxOutput | None:
        return self.outputs[1] if len(self.outputs) > 1 else None

    @property
    def fee(self) -> int:
        return sum(inp.value for inp in self.inputs) - sum(out.value for out in self.outputs)

    def serialize(
        self,
        script_sigs: list[bytes] | None = None,
        witnesses: list[list[bytes]] | None = None,
    ) -> bytes:
        """Serialize, optionally with signature scripts and witness stacks per input."""
        script_sigs = script_sigs or [b""] * len(self.inputs)
        witnesses = witnesses or [[] for _ in self.inputs]
        has_witness = any(witnesses)

        result = struct.pack("<I", self.version)
        if has_witness:
            result += SEGWIT_MARKER

        result += encode_varint(len(self.inputs))
        for inp, script_sig in zip(self.inputs, script_sigs, strict=True):
            result += inp.outpoint()
            result += encode_varint(len(script_sig)) + script_sig
            result += struct.pack("<I", inp.sequence)

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if has_witness:
            for stack in witnesses:
                result += encode_varint(len(stack))
                for item in stack:
                    result += encode_varint(len(item)) + item

        result += struct.pack("<I", self.locktime)
        return result


async def assemble_transaction(
    client: UTXOLedgerClient,
    selection: SelectionResult,
    sender: str,
    receiver: str,
) -> UnsignedBitcoinTransaction:
    """
    Build the unsigned transaction for a coin selection.

    Previous transactions are fetched concurrently; any failed fetch fails
    the whole assembly.
    """
    txids = list(dict.fromkeys(utxo.txid for utxo in selection.selected_inputs))
    raw_txs = await asyncio.gather(*(client.get_raw_transaction(txid) for txid in txids))
    previous = dict(zip(txids, raw_txs, strict=True))

    inputs: list[InputDescriptor] = []
    for utxo in selection.selected_inputs:
        raw = previous[utxo.txid]
        if is_segwit(raw):
            inputs.append(
                InputDescriptor(
                    txid=utxo.txid,
                    vout=utxo.output_index,
                    value=utxo.value,
                    witness_utxo=WitnessUtxo(script=bytes.fromhex(utxo.script), value=utxo.value),
                )
            )
        else:
            if txid_of(raw) != utxo.txid:
                raise RpcError(f"Previous transaction does not match txid {utxo.txid}")
            inputs.append(
                InputDescriptor(
                    txid=utxo.txid,
                    vout=utxo.output_index,
                    value=utxo.value,
                    non_witness_utxo=raw,
                )
            )

    outputs = [TxOutput(address=receiver, value=selection.amount)]
    if selection.has_change:
        outputs.append(TxOutput(address=sender, value=selection.change_value))

    logger.debug(
        f"Assembled transaction: {len(inputs)} input(s) "
        f"({sum(1 for i in inputs if i.is_segwit)} segwit), {len(outputs)} output(s)"
    )
    return UnsignedBitcoinTransaction(inputs=inputs, outputs=outputs)
