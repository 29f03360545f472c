"""
Exception hierarchy for wallet operations.

Every error carries a stable, human-readable message independent of the
underlying library exception, so both chain adapters present the same
vocabulary to callers. The original exception is kept on ``original_error``.
"""

from __future__ import annotations

from chainwallet.models import ConfirmationState


class WalletError(Exception):
    """Base class for all chainwallet errors."""

    default_message = "Wallet operation failed"

    def __init__(self, message: str | None = None, original_error: Exception | None = None):
        self.message = message or self.default_message
        self.original_error = original_error
        super().__init__(self.message)


class InsufficientFunds(WalletError):
    default_message = "Insufficient funds"

    def __init__(
        self,
        message: str | None = None,
        required: int | None = None,
        available: int | None = None,
    ):
        super().__init__(message)
        self.required = required
        self.available = available


class AmountTooLow(WalletError):
    default_message = "Amount is below the dust threshold"

    def __init__(self, message: str | None = None, amount: int = 0, threshold: int = 0):
        super().__init__(message)
        self.amount = amount
        self.threshold = threshold


class RpcError(WalletError):
    """A ledger API call failed (HTTP error, timeout or malformed response)."""

    default_message = "Ledger API request failed"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        endpoint: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code
        self.endpoint = endpoint

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ConfirmationError(WalletError):
    """Terminal, non-successful outcome of confirmation polling."""

    default_message = "Transaction was not confirmed"
    state = ConfirmationState.PENDING

    def __init__(self, tx_hash: str, message: str | None = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class TransactionRejected(ConfirmationError):
    default_message = "Transaction was rejected by the network"
    state = ConfirmationState.REJECTED

    def __init__(self, tx_hash: str, reason: str | None = None):
        message = f"{self.default_message}: {reason}" if reason else None
        super().__init__(tx_hash, message)
        self.reason = reason


class ConfirmationTimeout(ConfirmationError):
    default_message = (
        "This transaction was not mined yet, please make sure your transaction was properly "
        "sent. Be aware that it might still be mined!"
    )
    state = ConfirmationState.EXHAUSTED


class ConfirmationCancelled(ConfirmationError):
    default_message = "Confirmation polling was cancelled"


class SigningError(WalletError):
    default_message = "Unable to sign the transaction"


class InvalidKey(SigningError):
    default_message = "Invalid private key"


# (substrings, normalized message); first match wins
_TRANSACTION_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (("User denied account authorization",), "User denied account authorization"),
    (("User denied transaction signature",), "User denied transaction signature"),
    (("Out of Gas", "intrinsic gas too low", "gas limit is too low"), "Gas limit too low"),
    (("insufficient funds",), "Insufficient funds"),
    (("always failing transaction",), "This transaction will fail"),
    (("transaction receipt",), "Failed to check transaction receipt. Please retry"),
    (("Transaction was not mined",), ConfirmationTimeout.default_message),
    (("known transaction", "already known"), "This transaction is already sent"),
    (("replacement transaction underpriced",), "Replacement transaction is underpriced"),
    (("nonce too low",), "Nonce too low. Please retry"),
    (("exceeds block gas limit",), "Block gas limit exceeded. Please retry"),
]


def known_transaction_message(raw: str) -> str | None:
    """Map a raw node/API error text to its normalized message, if it is a known one."""
    for needles, message in _TRANSACTION_MESSAGES:
        if any(needle in raw for needle in needles):
            return message
    if "coderType" in raw and "arg" in raw:
        return "Wrong arguments provided"
    return None


class TransactionError(WalletError):
    """A ledger refused or failed to process a transaction request."""

    default_message = "Transaction failed"

    @classmethod
    def from_exception(cls, error: Exception) -> TransactionError:
        raw = str(error)
        return cls(known_transaction_message(raw) or raw or None, original_error=error)
