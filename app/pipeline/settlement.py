"""Exactly-once completion for operations with racing outcomes.

An upload can end through several independent events: a parse error, a
storage error, success, or the safety timer. Each of them settles the same
gate; the first one is delivered to the caller and the rest are recorded and
dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SettlementGate(Generic[T]):
    """Single-assignment outcome holder for one operation.

    Must be created and settled on the event loop thread. Settling is a plain
    check-and-set on that thread, so callbacks cannot interleave within it.
    """

    def __init__(self, label: str = "operation") -> None:
        self.label = label
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self.discarded: list[T | BaseException] = []

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, value: T) -> bool:
        if self._future.done():
            self._discard(value)
            return False
        self._future.set_result(value)
        return True

    def reject(self, exc: BaseException) -> bool:
        if self._future.done():
            self._discard(exc)
            return False
        self._future.set_exception(exc)
        return True

    async def wait(self) -> T:
        return await self._future

    def _discard(self, outcome: T | BaseException) -> None:
        self.discarded.append(outcome)
        logger.warning("Discarding late outcome for %s: %r", self.label, outcome)
