"""
Bitcoin transaction signing for P2WPKH and P2PKH inputs.
"""

from __future__ import annotations

import struct

from coincurve import PrivateKey

from chainwallet.bitcoin.address import (
    hash160,
    is_p2pkh_script,
    is_p2wpkh_script,
    p2pkh_script,
    p2wpkh_script,
)
from chainwallet.bitcoin.transaction import (
    InputDescriptor,
    ParsedTransaction,
    UnsignedBitcoinTransaction,
    encode_varint,
    hash256,
)
from chainwallet.errors import SigningError

SIGHASH_ALL = 1


def compute_sighash_legacy(
    tx: UnsignedBitcoinTransaction,
    input_index: int,
    script_code: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """Pre-segwit signature hash: the tx with only this input's script filled in."""
    script_sigs = [b""] * len(tx.inputs)
    script_sigs[input_index] = script_code
    preimage = tx.serialize(script_sigs=script_sigs) + struct.pack("<I", sighash_type)
    return hash256(preimage)


def compute_sighash_segwit(
    tx: UnsignedBitcoinTransaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash."""
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")

    hash_prevouts = hash256(b"".join(inp.outpoint() for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + target_input.outpoint()
        + encode_varint(len(script_code))
        + script_code
        + value.to_bytes(8, "little")
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + sighash_type.to_bytes(4, "little")
    )
    return hash256(preimage)


def _push(data: bytes) -> bytes:
    return bytes([len(data)]) + data


def _spent_value(inp: InputDescriptor) -> int:
    if inp.witness_utxo is not None:
        return inp.witness_utxo.value
    previous = ParsedTransaction.parse(inp.non_witness_utxo or b"")
    value = previous.outputs[inp.vout].value
    if value != inp.value:
        raise SigningError(f"Value mismatch for input {inp.txid}:{inp.vout}")
    return value


def sign_transaction(tx: UnsignedBitcoinTransaction, private_key: PrivateKey) -> bytes:
    """Sign every input with one key and return the serialized transaction.

    Raises:
        SigningError: If an input is not spendable by this key or uses an
            unsupported script type
    """
    pubkey = private_key.public_key.format(compressed=True)
    pubkey_hash = hash160(pubkey)

    script_sigs: list[bytes] = []
    witnesses: list[list[bytes]] = []

    for index, inp in enumerate(tx.inputs):
        try:
            script = inp.prevout_script()
            value = _spent_value(inp)
        except (ValueError, IndexError) as e:
            raise SigningError(f"Cannot read previous output of input {index}: {e}") from e

        if is_p2wpkh_script(script):
            if script != p2wpkh_script(pubkey):
                raise SigningError(f"Input {index} is not owned by the connected key")
            sighash = compute_sighash_segwit(tx, index, p2pkh_script(pubkey_hash), value)
            signature = private_key.sign(sighash, hasher=None) + bytes([SIGHASH_ALL])
            script_sigs.append(b"")
            witnesses.append([signature, pubkey])
        elif is_p2pkh_script(script):
            if script != p2pkh_script(pubkey_hash):
                raise SigningError(f"Input {index} is not owned by the connected key")
            sighash = compute_sighash_legacy(tx, index, script)
            signature = private_key.sign(sighash, hasher=None) + bytes([SIGHASH_ALL])
            script_sigs.append(_push(signature) + _push(pubkey))
            witnesses.append([])
        else:
            raise SigningError(f"Unsupported script type for input {index}: {script.hex()}")

    return tx.serialize(script_sigs=script_sigs, witnesses=witnesses)
