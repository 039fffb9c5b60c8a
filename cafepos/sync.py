"""Serialize backend mutations per order and drop responses that went stale in flight."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

import structlog

from cafepos.api import OrderApi
from cafepos.errors import NetworkError, NotFoundError
from cafepos.models import Order

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Submitted(Generic[T]):
    """API result plus whether it is still the newest mutation of its order."""

    value: T
    latest: bool


class OrderSync:
    """Runs blocking API calls in worker threads, one order at a time, in issue order."""

    def __init__(self, api: OrderApi) -> None:
        self.api = api
        self._locks: dict[int, asyncio.Lock] = {}
        self._generation: dict[int, int] = {}
        self._pending: dict[int, int] = {}

    def _lock(self, order_id: int) -> asyncio.Lock:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[order_id] = lock
        return lock

    def generation(self, order_id: int) -> int:
        return self._generation.get(order_id, 0)

    def pending(self, order_id: int) -> int:
        """Number of mutations issued for ``order_id`` that have not completed."""
        return self._pending.get(order_id, 0)

    async def run(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a call that is not tied to an existing order (catalog loads, order creation)."""
        return await asyncio.to_thread(fn, *args)

    async def submit(self, order_id: int, fn: Callable[..., T], *args: Any) -> Submitted[T]:
        generation = self.generation(order_id) + 1
        self._generation[order_id] = generation
        self._pending[order_id] = self.pending(order_id) + 1
        try:
            async with self._lock(order_id):
                value = await asyncio.to_thread(fn, *args)
        finally:
            self._pending[order_id] -= 1

        latest = self.generation(order_id) == generation
        if not latest:
            logger.info("stale_mutation_response", order_id=order_id, generation=generation)
        return Submitted(value=value, latest=latest)

    async def fetch(self, order_id: int) -> Order | None:
        """Background refetch; ``None`` when it failed or a mutation overtook it."""
        started_at = self.generation(order_id)
        if self.pending(order_id):
            return None
        try:
            order = await asyncio.to_thread(self.api.get_order, order_id)
        except (NetworkError, NotFoundError) as exc:
            logger.info("background_fetch_failed", order_id=order_id, kind=exc.kind.value, error=exc.message)
            return None

        if self.generation(order_id) != started_at or self.pending(order_id):
            logger.info("stale_fetch_discarded", order_id=order_id)
            return None
        return order

    def forget(self, order_id: int) -> None:
        """Drop bookkeeping for a closed order unless calls are still in flight or queued on it."""
        if self.pending(order_id):
            logger.info("forget_deferred", order_id=order_id, pending=self.pending(order_id))
            return
        self._locks.pop(order_id, None)
        self._generation.pop(order_id, None)
        self._pending.pop(order_id, None)
