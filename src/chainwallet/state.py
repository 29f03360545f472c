"""
Observable account and network state shared by every chain adapter.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from chainwallet.models import ChainFamily, NetworkType

ChangeHandler = Callable[[object, object], None]


class AccountState:
    """
    Holds the active address and network type of an adapter.

    Assigning a value that differs from the current one stores it and then
    calls the matching handler with ``(previous, current)`` before the setter
    returns. Assigning the current value again does nothing.

    ``protocol`` can be written once; later assignments are ignored.

    Single writer: callers sharing one instance must serialize updates.
    """

    def __init__(
        self,
        address: str | None = None,
        network_type: NetworkType = NetworkType.UNKNOWN,
        on_account_change: ChangeHandler | None = None,
        on_network_change: ChangeHandler | None = None,
    ):
        self._address = address
        self._network_type = network_type
        self._protocol: ChainFamily | None = None
        self.on_account_change = on_account_change
        self.on_network_change = on_network_change

    @property
    def address(self) -> str | None:
        return self._address

    @address.setter
    def address(self, current: str | None) -> None:
        if current == self._address:
            return
        previous = self._address
        self._address = current
        logger.debug(f"Account changed: {previous} -> {current}")
        if self.on_account_change is not None:
            self.on_account_change(previous, current)

    @property
    def network_type(self) -> NetworkType:
        return self._network_type

    @network_type.setter
    def network_type(self, current: NetworkType) -> None:
        if current == self._network_type:
            return
        previous = self._network_type
        self._network_type = current
        logger.debug(f"Network changed: {previous} -> {current}")
        if self.on_network_change is not None:
            self.on_network_change(previous, current)

    @property
    def protocol(self) -> ChainFamily | None:
        return self._protocol

    @protocol.setter
    def protocol(self, value: ChainFamily) -> None:
        if self._protocol is None:
            self._protocol = value
