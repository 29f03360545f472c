"""
Test configuration for chainwallet tests.
"""

from __future__ import annotations

import pytest
from coincurve import PrivateKey

from chainwallet.backends.base import UnspentOutput


@pytest.fixture
def key_one() -> PrivateKey:
    """Private key with secret 1 (not for production use!)."""
    return PrivateKey((1).to_bytes(32, "big"))


@pytest.fixture
def other_key() -> PrivateKey:
    return PrivateKey((2).to_bytes(32, "big"))


@pytest.fixture
def make_utxo():
    """Factory for UnspentOutput with distinct txids."""

    def _make(value: int, index: int = 0, script: str = "") -> UnspentOutput:
        txid = f"{value:064x}"
        return UnspentOutput(txid=txid, output_index=index, value=value, script=script)

    return _make


class RecordingSleep:
    """Async sleep replacement that records requested delays and returns at once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
