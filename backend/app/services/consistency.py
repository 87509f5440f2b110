"""
Consistency Synchronizer.

Read-after-write protocol for cached customer aggregate views (Redis).

Each cache key moves through FRESH -> STALE (a mutation touched it) ->
REFRESHING (fetch in flight) -> FRESH, or back to STALE when the fetch
fails. After a committed mutation the customer-detail view is evicted and
re-read before the mutation's caller gets its answer. List views are
marked STALE and deleted from Redis, so every worker sharing the cache
reloads them on its next read.

Every mark-stale bumps the key's generation. A fetch only writes its value
back if the generation is unchanged, and deletes it again if a mark-stale
lands while the write is in flight. A read that started before a write can
never leave pre-write data in the cache.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]
DetailLoader = Callable[[int], Awaitable[Any]]


class KeyState(str, enum.Enum):
    FRESH = "FRESH"
    STALE = "STALE"
    REFRESHING = "REFRESHING"


class CacheKeyNamespace:
    """
    Builds the cache keys for one application session.

    Created alongside the synchronizer and passed into it; nothing here is
    module-global.
    """

    def __init__(self, prefix: str):
        self.prefix = prefix

    def customer_detail(self, customer_id: int) -> str:
        return f"{self.prefix}:customer:{customer_id}:detail"

    def customer_bills(self, customer_id: int) -> str:
        return f"{self.prefix}:customer:{customer_id}:bills"

    def customer_pt_packages(self, customer_id: int) -> str:
        return f"{self.prefix}:customer:{customer_id}:pt-packages"

    def bill_payments(self, bill_id: int) -> str:
        return f"{self.prefix}:bill:{bill_id}:payments"

    def customer_list(self) -> str:
        return f"{self.prefix}:customers:list"

    def list_keys(self, customer_id: int, bill_id: Optional[int] = None) -> List[str]:
        """List-tier keys a mutation on this customer (and bill) makes stale."""
        keys = [
            self.customer_bills(customer_id),
            self.customer_pt_packages(customer_id),
            self.customer_list(),
        ]
        if bill_id is not None:
            keys.append(self.bill_payments(bill_id))
        return keys


@dataclass
class SyncOutcome:
    """Result of the post-mutation refresh. `fresh=False` is a soft warning, never an error."""
    fresh: bool
    detail: Optional[Dict[str, Any]] = None
    warning: Optional[str] = None


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_jsonable(item) for item in value]
    return value


class ConsistencySynchronizer:

    def __init__(
        self,
        redis,
        keys: CacheKeyNamespace,
        detail_loader: DetailLoader,
        ttl_seconds: int = 3600,
        settle_delay_ms: int = 0,
        refetch_timeout_seconds: float = 2.0,
        refetch_attempts: int = 2
    ):
        self.redis = redis
        self.keys = keys
        self.detail_loader = detail_loader
        self.ttl_seconds = ttl_seconds
        self.settle_delay_ms = settle_delay_ms
        self.refetch_timeout_seconds = refetch_timeout_seconds
        self.refetch_attempts = max(1, refetch_attempts)

        self._states: Dict[str, KeyState] = {}
        self._generations: Dict[str, int] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    # State

    def state(self, key: str) -> KeyState:
        # Keys never fetched count as STALE
        return self._states.get(key, KeyState.STALE)

    def _set_state(self, key: str, state: KeyState) -> None:
        previous = self._states.get(key)
        self._states[key] = state
        if previous != state:
            logger.debug("Cache key state change", extra={"key": key, "from": previous, "to": state.value})

    def mark_stale(self, key: str) -> None:
        self._generations[key] = self._generations.get(key, 0) + 1
        # An older in-flight fetch may finish, but it will not write back
        self._inflight.pop(key, None)
        self._set_state(key, KeyState.STALE)

    async def evict(self, key: str) -> None:
        """Mark STALE, then drop the cached value. A Redis failure is logged; the key stays STALE."""
        self.mark_stale(key)
        await self._discard(key)

    # Reads

    async def read(self, key: str, loader: Loader) -> Any:
        """
        Return the cached value when FRESH, otherwise load it.

        Concurrent readers of a REFRESHING key share the in-flight fetch.
        Load failures mark the key STALE and propagate.
        """
        if self.state(key) == KeyState.FRESH:
            try:
                cached = await self.redis.get(key)
            except RedisError as exc:
                logger.warning("Cache read failed", extra={"key": key, "error": repr(exc)})
                cached = None
            if cached is not None:
                return json.loads(cached)
            self.mark_stale(key)

        return await asyncio.shield(self._refresh(key, loader))

    async def read_customer_detail(self, customer_id: int) -> Dict[str, Any]:
        return await self.read(
            self.keys.customer_detail(customer_id),
            lambda: self.detail_loader(customer_id)
        )

    def _refresh(self, key: str, loader: Loader) -> asyncio.Task:
        task = self._inflight.get(key)
        if task is not None and not task.done():
            return task

        generation = self._generations.get(key, 0)
        self._set_state(key, KeyState.REFRESHING)
        task = asyncio.ensure_future(self._fetch(key, loader, generation))
        task.add_done_callback(self._retrieve_result)
        self._inflight[key] = task
        return task

    async def _fetch(self, key: str, loader: Loader, generation: int) -> Any:
        try:
            try:
                payload = _to_jsonable(await loader())
            except Exception:
                if self._is_current(key, generation):
                    self._set_state(key, KeyState.STALE)
                raise

            if self._is_current(key, generation):
                try:
                    await self.redis.set(key, json.dumps(payload), ex=self.ttl_seconds)
                except RedisError as exc:
                    # The value is still returned; the key stays STALE so the next read reloads
                    logger.warning("Cache write failed", extra={"key": key, "error": repr(exc)})
                    self._set_state(key, KeyState.STALE)
                    return payload

                if self._is_current(key, generation):
                    self._set_state(key, KeyState.FRESH)
                else:
                    # A write landed while the SET was in flight; drop the pre-write value
                    await self._discard(key)
            return payload
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]

    def _is_current(self, key: str, generation: int) -> bool:
        return self._generations.get(key, 0) == generation

    async def _discard(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as exc:
            logger.warning("Cache eviction failed", extra={"key": key, "error": repr(exc)})

    @staticmethod
    def _retrieve_result(task: asyncio.Task) -> None:
        # Marks the exception retrieved when every awaiting caller timed out
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Background cache fetch failed", extra={"error": repr(task.exception())})

    # Writes

    async def after_mutation(self, customer_id: int, bill_id: Optional[int] = None) -> SyncOutcome:
        """
        Run once the mutation's transaction has committed.

        1. Mark the customer's list-tier keys and detail key STALE
        2. Evict their cached values so no worker can serve an old object
        3. Optionally wait `settle_delay_ms` (0 by default: the commit is the ack)
        4. Force a bounded refetch of the detail view and return it

        Never raises: the write already stands, so refetch trouble is
        reported through `SyncOutcome.warning` only.
        """
        detail_key = self.keys.customer_detail(customer_id)

        for key in self.keys.list_keys(customer_id, bill_id) + [detail_key]:
            await self.evict(key)

        if self.settle_delay_ms > 0:
            await asyncio.sleep(self.settle_delay_ms / 1000)

        warning = None
        for attempt in range(1, self.refetch_attempts + 1):
            task = self._refresh(detail_key, lambda: self.detail_loader(customer_id))
            try:
                detail = await asyncio.wait_for(asyncio.shield(task), timeout=self.refetch_timeout_seconds)
                return SyncOutcome(fresh=True, detail=detail)
            except asyncio.TimeoutError:
                warning = (
                    f"Customer {customer_id} view refresh did not finish within "
                    f"{self.refetch_timeout_seconds}s; it may still be stale"
                )
                break
            except Exception as exc:
                warning = f"Customer {customer_id} view refresh failed: {exc}"
                logger.warning(
                    "Customer view refetch failed",
                    extra={"customer_id": customer_id, "attempt": attempt, "error": repr(exc)}
                )

        logger.warning("Customer view may be stale", extra={"customer_id": customer_id, "reason": warning})
        return SyncOutcome(fresh=False, warning=warning)
