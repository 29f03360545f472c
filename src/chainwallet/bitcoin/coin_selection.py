"""
Fee-aware coin selection for UTXO spends.

Strategy: smallest-fit-first, else consume-largest.

Each round looks for the smallest remaining output that alone covers what is
still missing (amount + fee so far). If none does, the largest remaining
output is consumed and the fee grows by one extra input. Consuming the largest
output grows the pool fastest, and every round removes a candidate, so the
loop always terminates.

Fee model (fee_rate in satoshi per byte):
- base fee: 225 bytes, one input with one or two outputs
- extra input: 179 bytes each
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from chainwallet.backends.base import UnspentOutput
from chainwallet.constants import BASE_TX_SIZE, DEFAULT_DUST_THRESHOLD, EXTRA_INPUT_SIZE
from chainwallet.errors import AmountTooLow, InsufficientFunds


@dataclass(frozen=True)
class SelectionResult:
    """Result of coin selection"""

    selected_inputs: tuple[UnspentOutput, ...]
    amount: int
    fee: int
    change_value: int

    @property
    def total_value(self) -> int:
        return sum(utxo.value for utxo in self.selected_inputs)

    @property
    def has_change(self) -> bool:
        return self.change_value > 0

    @property
    def absorbed_fee(self) -> int:
        """Sub-dust remainder left to the miner because no change output is created."""
        return self.total_value - self.amount - self.fee - self.change_value


def size_fee(size: int, fee_rate: Decimal | int | str) -> int:
    return math.floor(Decimal(size) * Decimal(fee_rate))


def select_coins(
    amount: int,
    candidates: Iterable[UnspentOutput],
    fee_rate: Decimal | int | str,
    dust_threshold: int = DEFAULT_DUST_THRESHOLD,
) -> SelectionResult:
    """
    Select inputs covering ``amount`` plus the transaction fee.

    Args:
        amount: Amount to send in satoshis
        candidates: Spendable outputs of the sender
        fee_rate: Fee rate in satoshi per byte
        dust_threshold: Minimum value of a payment or change output

    Returns:
        SelectionResult with inputs in the order they were consumed

    Raises:
        AmountTooLow: If amount is below the dust threshold
        InsufficientFunds: If the candidates can never cover amount + fee
    """
    remaining = sorted(candidates, key=lambda u: u.value)
    if not remaining:
        raise InsufficientFunds("No spendable outputs", required=amount, available=0)

    base_fee = size_fee(BASE_TX_SIZE, fee_rate)
    input_fee = size_fee(EXTRA_INPUT_SIZE, fee_rate)
    available = sum(utxo.value for utxo in remaining)

    if amount <= 0 or amount < dust_threshold:
        raise AmountTooLow(
            f"Amount {amount} is below the dust threshold of {dust_threshold}",
            amount=amount,
            threshold=dust_threshold,
        )
    if available < amount + base_fee:
        raise InsufficientFunds(
            f"Insufficient funds: need {amount + base_fee}, have {available}",
            required=amount + base_fee,
            available=available,
        )

    selected: list[UnspentOutput] = []
    total = 0
    fee = base_fee

    while True:
        target = amount + fee
        fit = next((utxo for utxo in remaining if total + utxo.value >= target), None)
        if fit is not None:
            remaining.remove(fit)
            selected.append(fit)
            total += fit.value
            break

        if not remaining:
            raise InsufficientFunds(
                f"Insufficient funds: need {target}, have {total}",
                required=target,
                available=total,
            )

        largest = remaining.pop()
        selected.append(largest)
        total += largest.value
        fee += input_fee
        logger.debug(
            f"No single output covers {target - total + largest.value} sats, "
            f"consumed largest ({largest.value} sats); fee now {fee}"
        )

    change = total - amount - fee
    if change < dust_threshold:
        logger.debug(f"Change of {change} sats is below dust, leaving it to the miner")
        change = 0

    logger.debug(
        f"Selected {len(selected)} input(s) totalling {total} sats for {amount} sats, "
        f"fee {fee}, change {change}"
    )
    return SelectionResult(
        selected_inputs=tuple(selected), amount=amount, fee=fee, change_value=change
    )
