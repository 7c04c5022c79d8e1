"""Transaction forwarder capability.

A forwarder takes signed transactions and gets them onto the network,
either directly over RPC or through a relayer service.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from solders.transaction import VersionedTransaction  # type: ignore

from ..constants import ERR_INVALID_DELAY_ARRAY
from ..errors import ForwarderError

T = TypeVar("T")


def validate_delays(transactions: list[VersionedTransaction], delays: list[float]) -> None:
    """Delays must have one entry between each pair of transactions, or none."""
    if delays and len(delays) != len(transactions) - 1:
        raise ForwarderError(
            f"Invalid delay array length: expected {len(transactions) - 1} or 0, got {len(delays)}",
            ERR_INVALID_DELAY_ARRAY,
        )


class TransactionForwarder(ABC, Generic[T]):
    """Submits signed transactions and returns a forwarder-specific receipt ``T``."""

    @abstractmethod
    async def forward_transaction(self, transaction: VersionedTransaction) -> T:
        """Forward a single signed transaction."""

    async def forward_transactions(self, transactions: list[VersionedTransaction]) -> list[T]:
        """Forward transactions one after another, without delay."""
        return [await self.forward_transaction(tx) for tx in transactions]

    async def forward_transactions_with_delay(
        self,
        transactions: list[VersionedTransaction],
        delay_seconds: float,
    ) -> list[T]:
        results: list[T] = []
        for i, tx in enumerate(transactions):
            if i > 0 and delay_seconds > 0:
                await asyncio.sleep(delay_seconds)
            results.append(await self.forward_transaction(tx))
        return results

    async def forward_transactions_with_delays(
        self,
        transactions: list[VersionedTransaction],
        delays_seconds: list[float],
    ) -> list[T]:
        """Forward transactions, waiting ``delays_seconds[i - 1]`` before the i-th."""
        validate_delays(transactions, delays_seconds)
        results: list[T] = []
        for i, tx in enumerate(transactions):
            if i > 0 and delays_seconds and delays_seconds[i - 1] > 0:
                await asyncio.sleep(delays_seconds[i - 1])
            results.append(await self.forward_transaction(tx))
        return results

    async def forward_transactions_from_offset(
        self,
        transactions: list[VersionedTransaction],
        offset: int,
        delay_seconds: float,
    ) -> list[T]:
        """Resume a batch from ``offset``."""
        return await self.forward_transactions_with_delay(transactions[offset:], delay_seconds)
