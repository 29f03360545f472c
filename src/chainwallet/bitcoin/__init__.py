"""
Bitcoin coin selection, transaction assembly and signing.
"""

from chainwallet.bitcoin.coin_selection import SelectionResult, select_coins
from chainwallet.bitcoin.transaction import (
    InputDescriptor,
    TxOutput,
    UnsignedBitcoinTransaction,
    WitnessUtxo,
    assemble_transaction,
    is_segwit,
)

__all__ = [
    "InputDescriptor",
    "SelectionResult",
    "TxOutput",
    "UnsignedBitcoinTransaction",
    "WitnessUtxo",
    "assemble_transaction",
    "is_segwit",
    "select_coins",
]
