"""
Bitcoin key and address utilities.

Supports:
- WIF private key import/export (compressed keys)
- P2WPKH (bc1q..., tb1q...) and P2PKH (1..., m..., n...) addresses
- address -> scriptPubKey for P2WPKH, P2WSH, P2TR, P2PKH and P2SH
"""

from __future__ import annotations

import hashlib

import base58
import bech32
from coincurve import PrivateKey

from chainwallet.errors import InvalidKey
from chainwallet.models import NetworkType

WIF_PREFIXES = {NetworkType.MAINNET: 0x80, NetworkType.TESTNET: 0xEF}
P2PKH_VERSIONS = {NetworkType.MAINNET: 0x00, NetworkType.TESTNET: 0x6F}
BECH32_HRPS = {NetworkType.MAINNET: "bc", NetworkType.TESTNET: "tb"}


def _network(network: NetworkType) -> NetworkType:
    return NetworkType.MAINNET if network == NetworkType.MAINNET else NetworkType.TESTNET


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def private_key_to_wif(private_key: PrivateKey, network: NetworkType) -> str:
    payload = bytes([WIF_PREFIXES[_network(network)]]) + private_key.secret + b"\x01"
    return base58.b58encode_check(payload).decode("ascii")


def wif_to_private_key(wif: str, network: NetworkType) -> PrivateKey:
    """Decode a compressed-key WIF string, checking it belongs to ``network``."""
    try:
        decoded = base58.b58decode_check(wif)
    except ValueError as e:
        raise InvalidKey("Invalid WIF checksum", original_error=e) from e

    if len(decoded) != 34 or decoded[-1] != 0x01:
        raise InvalidKey("Only compressed WIF keys are supported")
    if decoded[0] != WIF_PREFIXES[_network(network)]:
        raise InvalidKey(f"WIF key does not belong to {_network(network).value}")

    try:
        return PrivateKey(decoded[1:33])
    except ValueError as e:
        raise InvalidKey(original_error=e) from e


def p2wpkh_script(pubkey: bytes) -> bytes:
    """OP_0 <20-byte-pubkeyhash>"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG"""
    return bytes([0x76, 0xA9, 0x14]) + pubkey_hash + bytes([0x88, 0xAC])


def is_p2wpkh_script(script: bytes) -> bool:
    return len(script) == 22 and script[0] == 0x00 and script[1] == 0x14


def is_p2pkh_script(script: bytes) -> bool:
    return (
        len(script) == 25
        and script[:3] == bytes([0x76, 0xA9, 0x14])
        and script[23:] == bytes([0x88, 0xAC])
    )


def pubkey_to_p2wpkh_address(pubkey: bytes, network: NetworkType) -> str:
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")
    address = bech32.encode(BECH32_HRPS[_network(network)], 0, hash160(pubkey))
    if address is None:
        raise ValueError(f"Failed to encode P2WPKH address: {pubkey.hex()}")
    return address


def pubkey_to_p2pkh_address(pubkey: bytes, network: NetworkType) -> str:
    payload = bytes([P2PKH_VERSIONS[_network(network)]]) + hash160(pubkey)
    return base58.b58encode_check(payload).decode("ascii")


def address_to_scriptpubkey(address: str) -> bytes:
    """Convert a Bitcoin address to its scriptPubKey."""
    # Bech32 (SegWit) addresses
    if address.lower().startswith(("bc1", "tb1")):
        hrp = address[:2].lower()
        witver, witprog = bech32.decode(hrp, address)
        if witver is None or witprog is None:
            raise ValueError(f"Invalid bech32 address: {address}")

        program = bytes(witprog)
        if witver == 0 and len(program) in (20, 32):
            # P2WPKH / P2WSH: OP_0 <program>
            return bytes([0x00, len(program)]) + program
        if witver == 1 and len(program) == 32:
            # P2TR: OP_1 <32-byte-pubkey>
            return bytes([0x51, 0x20]) + program
        raise ValueError(f"Unsupported witness version: {witver}")

    # Base58 addresses (legacy)
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise ValueError(f"Invalid base58 address: {address}") from e
    version, payload = decoded[0], decoded[1:]

    if version in (0x00, 0x6F):
        return p2pkh_script(payload)
    if version in (0x05, 0xC4):
        # P2SH: OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise ValueError(f"Unknown address version: {version}")
