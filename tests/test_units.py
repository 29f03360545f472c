"""
Tests for amount normalization.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from chainwallet.units import normalize


class TestNormalize:
    def test_ether_to_wei(self):
        assert normalize(0.1, 18) == "100000000000000000"

    def test_wei_to_ether(self):
        assert normalize("100000000000000000", -18) == "0.1"

    def test_truncates_to_decimal_places(self):
        assert normalize(0.12345678, 0, 4) == "0.1234"

    def test_bitcoin_to_satoshi(self):
        assert normalize(1.5, 8) == "150000000"

    def test_negative_rounds_toward_negative_infinity(self):
        assert normalize("-0.00005", 0, 4) == "-0.0001"

    def test_zero(self):
        assert normalize(0) == "0"
        assert normalize("0.00001", 0, 2) == "0"

    def test_no_exponent_notation(self):
        result = normalize("1", 30)
        assert result == "1" + "0" * 30
        assert "E" not in result

    def test_accepts_decimal(self):
        assert normalize(Decimal("2.5"), 1) == "25"

    def test_large_wei_amount(self):
        wei = str(2**256 - 1)
        assert normalize(wei, -18, 0) == str((2**256 - 1) // 10**18)

    def test_invalid_amount(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            normalize("not-a-number")
