"""
Confirmation polling with a bounded backoff schedule.

States: PENDING -> CONFIRMED | REJECTED | EXHAUSTED.

Each poll asks the ledger for the transaction status:
- confirmed: done
- rejected by the ledger: fail immediately, no retry
- not found yet, or the lookup itself failed: wait for the next delay of the
  schedule and poll again
- schedule used up: fail with ConfirmationTimeout

The same poller serves both chain families; only the status query differs.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from loguru import logger

from chainwallet.backends.base import TransactionStatus
from chainwallet.constants import BACKOFF_SCHEDULE_MS
from chainwallet.errors import (
    ConfirmationCancelled,
    ConfirmationTimeout,
    RpcError,
    TransactionRejected,
)
from chainwallet.models import ConfirmationState

StatusFetcher = Callable[[str], Awaitable[TransactionStatus]]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class ConfirmationResult:
    tx_hash: str
    state: ConfirmationState
    attempts: int
    status: TransactionStatus


class ConfirmationPoller:
    """
    Bounded-retry confirmation poller.

    Args:
        schedule: Delays between polls, consumed in order
        time_unit: Seconds per schedule unit (schedule is in milliseconds)
        sleep: Awaitable sleep function, replaceable in tests
    """

    def __init__(
        self,
        schedule: Sequence[int] = BACKOFF_SCHEDULE_MS,
        time_unit: float = 0.001,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.schedule = tuple(schedule)
        self.time_unit = time_unit
        self._sleep = sleep

    async def _pause(self, seconds: float, cancel: asyncio.Event | None) -> None:
        if cancel is None:
            await self._sleep(seconds)
            return

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        canceller = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, canceller):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, canceller, return_exceptions=True)

    async def wait(
        self,
        tx_hash: str,
        fetch_status: StatusFetcher,
        cancel: asyncio.Event | None = None,
    ) -> ConfirmationResult:
        """
        Poll until the transaction is confirmed.

        Returns:
            ConfirmationResult in state CONFIRMED

        Raises:
            TransactionRejected: The ledger refused the transaction
            ConfirmationTimeout: Not confirmed after the whole schedule
            ConfirmationCancelled: ``cancel`` was set while waiting
        """
        state = ConfirmationState.PENDING
        delays = iter(self.schedule)
        attempts = 0

        while state == ConfirmationState.PENDING:
            if cancel is not None and cancel.is_set():
                logger.info(f"Stopped waiting for {tx_hash}: cancelled")
                raise ConfirmationCancelled(tx_hash)

            attempts += 1
            try:
                status = await fetch_status(tx_hash)
            except RpcError as e:
                logger.warning(f"Status lookup for {tx_hash} failed (attempt {attempts}): {e}")
                status = TransactionStatus(found=False)

            if status.rejected:
                state = ConfirmationState.REJECTED
                logger.warning(f"Transaction {tx_hash} rejected: {status.reason}")
                raise TransactionRejected(tx_hash, status.reason)

            if status.confirmed:
                state = ConfirmationState.CONFIRMED
                break

            delay = next(delays, None)
            if delay is None:
                state = ConfirmationState.EXHAUSTED
                logger.warning(f"Transaction {tx_hash} not confirmed after {attempts} polls")
                raise ConfirmationTimeout(tx_hash)

            logger.debug(
                f"Transaction {tx_hash} not confirmed yet (attempt {attempts}), "
                f"retrying in {delay}"
            )
            await self._pause(delay * self.time_unit, cancel)

        logger.info(f"Transaction {tx_hash} confirmed ({status.confirmations} confirmations)")
        return ConfirmationResult(
            tx_hash=tx_hash, state=state, attempts=attempts, status=status
        )
