"""
Named query cache for the Workspaces Service.

One entry per query name holds the latest result of that query together
with its loading state. The cache is a plain object constructed once and
handed to every consumer; all bookkeeping happens synchronously on the
event loop, so no locking is needed.
"""

import asyncio
import itertools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from shared.errors import FetchError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[["QueryResult"], None]


class QueryStatus(str, Enum):
    """Lifecycle of a named query."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class FreshnessPolicy(str, Enum):
    """When a new subscription may reuse a cached result."""
    TRUST_CACHE = "trust_cache"
    ALWAYS_REFETCH = "always_refetch"


@dataclass(frozen=True)
class QueryResult:
    """Immutable view of a query entry handed to subscribers."""
    name: str
    status: QueryStatus
    data: Any = None
    error: Optional[FetchError] = None
    updated_at: Optional[float] = None
    is_stale: bool = False

    @property
    def is_loading(self) -> bool:
        return self.status == QueryStatus.LOADING

    @property
    def has_data(self) -> bool:
        return self.data is not None


@dataclass
class QueryEntry:
    """Cached state of one named query."""
    name: str
    freshness_policy: FreshnessPolicy
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    error: Optional[FetchError] = None
    updated_at: Optional[float] = None
    stale: bool = False
    fetcher: Optional[Fetcher] = None
    in_flight: Optional["asyncio.Task[None]"] = None
    refetch_requested: bool = False
    fetch_count: int = 0
    subscriptions: Dict[int, "QuerySubscription"] = field(default_factory=dict)

    def snapshot(self) -> QueryResult:
        return QueryResult(
            name=self.name,
            status=self.status,
            data=self.data,
            error=self.error,
            updated_at=self.updated_at,
            is_stale=self.stale,
        )


class QuerySubscription:
    """A consumer's handle on a named query.

    ``status``, ``data`` and ``error`` always reflect the shared entry.
    Once ``unsubscribe`` has been called the listener is no longer
    invoked, but the entry keeps being updated for other consumers.
    """

    def __init__(self, cache: "NamedQueryCache", entry: QueryEntry, subscription_id: int,
                 listener: Optional[Listener] = None):
        self._cache = cache
        self._entry = entry
        self.subscription_id = subscription_id
        self.listener = listener
        self._active = True

    @property
    def name(self) -> str:
        return self._entry.name

    @property
    def active(self) -> bool:
        return self._active

    @property
    def status(self) -> QueryStatus:
        return self._entry.status

    @property
    def data(self) -> Any:
        return self._entry.data

    @property
    def error(self) -> Optional[FetchError]:
        return self._entry.error

    def result(self) -> QueryResult:
        return self._entry.snapshot()

    def notify(self, result: QueryResult) -> None:
        if self._active and self.listener is not None:
            self.listener(result)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._entry.subscriptions.pop(self.subscription_id, None)

    async def settled(self) -> QueryResult:
        """Wait for any in-flight fetch of this query to finish."""
        await self._cache.settled(self.name)
        return self.result()


class NamedQueryCache:
    """Process-wide cache of named query results with fetch coalescing."""

    def __init__(self, *, metrics: Optional["MetricsCollector"] = None):
        self.logger = get_logger("workspaces.query_cache")
        self.metrics = metrics
        self._entries: Dict[str, QueryEntry] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        name: str,
        fetcher: Fetcher,
        policy: FreshnessPolicy = FreshnessPolicy.ALWAYS_REFETCH,
        listener: Optional[Listener] = None,
    ) -> QuerySubscription:
        """Register interest in a named query.

        Must be called from inside the running event loop. Fetch failures
        never escape from here; they are stored on the entry.
        """
        entry = self._entries.get(name)
        if entry is None:
            entry = QueryEntry(name=name, freshness_policy=policy)
            self._entries[name] = entry
            self.logger.debug("Query entry created", query=name, policy=policy.value)

        entry.fetcher = fetcher
        entry.freshness_policy = policy

        subscription = QuerySubscription(self, entry, next(self._ids), listener)
        entry.subscriptions[subscription.subscription_id] = subscription

        if entry.in_flight is not None:
            self.logger.debug(
                "Subscription attached to in-flight fetch",
                query=name,
                subscribers=len(entry.subscriptions),
            )
            self._increment("query_coalesced_total", query=name)
        elif self._should_fetch(entry, policy):
            self._start_fetch(entry)
        else:
            self.logger.debug("Serving query from cache", query=name)

        return subscription

    def invalidate(self, name: str) -> bool:
        """Mark a query stale.

        With subscribers mounted the refetch starts immediately (or right
        after the fetch already in flight). Without subscribers the cached
        result is dropped and refetched on the next subscription.
        Returns False when the query has never been subscribed to.
        """
        entry = self._entries.get(name)
        if entry is None:
            self.logger.debug("Invalidate ignored for unknown query", query=name)
            return False

        self._increment("query_invalidations_total", query=name)

        if entry.in_flight is not None:
            entry.refetch_requested = True
            self.logger.info("Query invalidated during fetch; refetch queued", query=name)
        elif entry.subscriptions:
            self.logger.info("Query invalidated; refetching", query=name, subscribers=len(entry.subscriptions))
            self._start_fetch(entry)
        else:
            entry.status = QueryStatus.IDLE
            entry.data = None
            entry.error = None
            entry.updated_at = None
            entry.stale = True
            self.logger.info("Query invalidated; cached result discarded", query=name)

        return True

    def get(self, name: str) -> Optional[QueryResult]:
        """Current snapshot of a query, if it exists."""
        entry = self._entries.get(name)
        return entry.snapshot() if entry else None

    def subscriber_count(self, name: str) -> int:
        entry = self._entries.get(name)
        return len(entry.subscriptions) if entry else 0

    def fetch_count(self, name: str) -> int:
        entry = self._entries.get(name)
        return entry.fetch_count if entry else 0

    async def settled(self, name: str) -> Optional[QueryResult]:
        """Wait until no fetch for ``name`` is in flight, follow-ups included.

        Never raises for fetch failures or for fetches cancelled by
        ``reset``; only cancellation of the waiting caller propagates.
        """
        entry = self._entries.get(name)
        if entry is None:
            return None
        while entry.in_flight is not None:
            task = entry.in_flight
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                self.logger.debug("Settled on a cancelled fetch", query=name)
                break
        return entry.snapshot()

    def reset(self) -> None:
        """Cancel in-flight fetches and forget every entry."""
        for entry in self._entries.values():
            if entry.in_flight is not None:
                if not entry.in_flight.done():
                    entry.in_flight.cancel()
                entry.in_flight = None
            for subscription in list(entry.subscriptions.values()):
                subscription.unsubscribe()
        self._entries.clear()
        self.logger.info("Query cache reset")

    def _should_fetch(self, entry: QueryEntry, policy: FreshnessPolicy) -> bool:
        if entry.stale or entry.status in (QueryStatus.IDLE, QueryStatus.ERROR):
            return True
        if policy == FreshnessPolicy.ALWAYS_REFETCH:
            return True
        return False

    def _start_fetch(self, entry: QueryEntry) -> None:
        entry.status = QueryStatus.LOADING
        entry.stale = False
        entry.refetch_requested = False
        entry.fetch_count += 1
        loop = asyncio.get_running_loop()
        entry.in_flight = loop.create_task(self._run_fetch(entry, entry.fetcher))
        self.logger.debug("Query fetch started", query=entry.name, fetch=entry.fetch_count)
        self._notify(entry)

    async def _run_fetch(self, entry: QueryEntry, fetcher: Fetcher) -> None:
        start = time.perf_counter()
        try:
            data = await fetcher()
        except Exception as exc:
            if isinstance(exc, FetchError):
                error = exc
            else:
                error = FetchError(
                    entry.name,
                    str(exc) or exc.__class__.__name__,
                    details={"error_type": exc.__class__.__name__},
                )
                error.__cause__ = exc
            entry.status = QueryStatus.ERROR
            entry.error = error
            outcome = "error"
            self.logger.warning(
                "Query fetch failed",
                query=entry.name,
                error=str(exc),
                has_stale_data=entry.data is not None,
            )
        else:
            entry.status = QueryStatus.SUCCESS
            entry.data = data
            entry.error = None
            entry.updated_at = time.time()
            outcome = "success"
            self.logger.debug("Query fetch succeeded", query=entry.name)

        entry.in_flight = None
        self._increment("query_fetches_total", query=entry.name, result=outcome)
        if self.metrics:
            self.metrics.observe_histogram(
                "query_fetch_duration_seconds", time.perf_counter() - start, query=entry.name
            )

        self._notify(entry)

        if entry.refetch_requested:
            if entry.subscriptions:
                self._start_fetch(entry)
            else:
                entry.refetch_requested = False
                entry.stale = True

    def _notify(self, entry: QueryEntry) -> None:
        result = entry.snapshot()
        subscriptions: List[QuerySubscription] = list(entry.subscriptions.values())
        for subscription in subscriptions:
            try:
                subscription.notify(result)
            except Exception as exc:
                self.logger.error(
                    "Query listener failed",
                    query=entry.name,
                    subscription_id=subscription.subscription_id,
                    error=str(exc),
                    exc_info=True,
                )

    def _increment(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
