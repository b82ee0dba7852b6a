"""
Mutation controller for the Workspaces Service.

Runs one externally supplied write operation and tracks its lifecycle:
idle -> pending -> success | error, with pending re-entered on every new
invocation. What happens after a successful write is configured through
``on_success``.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, TYPE_CHECKING

from shared.errors import ConcurrentMutationError, MutationError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


InputT = TypeVar("InputT")
ResultT = TypeVar("ResultT")


class MutationStatus(str, Enum):
    """Mutation lifecycle states."""
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class MutationState:
    """Observable state of a mutation controller."""
    status: MutationStatus = MutationStatus.IDLE
    last_error: Optional[MutationError] = None
    last_result: Any = None
    invocations: int = 0
    finished_at: Optional[float] = None

    @property
    def is_pending(self) -> bool:
        return self.status == MutationStatus.PENDING


class MutationController(Generic[InputT, ResultT]):
    """Serialises invocations of one write operation."""

    def __init__(
        self,
        mutation_fn: Callable[[InputT], Awaitable[ResultT]],
        *,
        on_success: Optional[Callable[[ResultT], Any]] = None,
        name: str = "mutation",
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.name = name
        self.metrics = metrics
        self.logger = get_logger(f"workspaces.mutations.{name}")
        self.state = MutationState()
        self._mutation_fn = mutation_fn
        self._on_success = on_success

    @property
    def status(self) -> MutationStatus:
        return self.state.status

    @property
    def last_error(self) -> Optional[MutationError]:
        return self.state.last_error

    @property
    def is_pending(self) -> bool:
        return self.state.is_pending

    async def run(self, payload: InputT) -> ResultT:
        """Execute the write operation with ``payload``.

        Raises ConcurrentMutationError without touching the backend while
        a previous invocation is pending, and MutationError when the
        write operation or the success side effect fails. Cancellation
        moves the controller to error before propagating.
        """
        if self.state.is_pending:
            self.logger.warning("Mutation rejected while pending", mutation=self.name)
            self._increment("mutation_rejections_total", mutation=self.name)
            raise ConcurrentMutationError(self.name)

        self.state.status = MutationStatus.PENDING
        self.state.invocations += 1
        self.logger.info("Mutation started", mutation=self.name, invocation=self.state.invocations)
        start = time.perf_counter()

        try:
            result = await self._mutation_fn(payload)
        except asyncio.CancelledError:
            # Never stay pending once the caller is gone
            self._fail(MutationError(self.name, "cancelled", code="MUTATION_CANCELLED"), start, "cancelled")
            self.logger.warning("Mutation cancelled", mutation=self.name)
            raise
        except Exception as exc:
            error = self._as_mutation_error(exc)
            self._fail(error, start, "error")
            self.logger.error("Mutation failed", mutation=self.name, error=str(exc))
            if error is exc:
                raise
            raise error from exc

        self.state.status = MutationStatus.SUCCESS
        self.state.last_error = None
        self.state.last_result = result
        self.state.finished_at = time.time()
        self._record(start, "success")
        self.logger.info("Mutation succeeded", mutation=self.name)

        if self._on_success is not None:
            await self._run_on_success(result)

        return result

    async def _run_on_success(self, result: ResultT) -> None:
        """Run the success side effect.

        The write has already happened, so ``last_result`` is kept; a
        failing side effect moves the controller to error and surfaces as
        MutationError.
        """
        try:
            outcome = self._on_success(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            error = MutationError(
                self.name,
                f"success handler failed: {exc}",
                details={"error_type": exc.__class__.__name__, "stage": "on_success"},
            )
            self.state.status = MutationStatus.ERROR
            self.state.last_error = error
            self.logger.error("Mutation success handler failed", mutation=self.name, error=str(exc))
            raise error from exc

    def _fail(self, error: MutationError, start: float, outcome: str) -> None:
        self.state.status = MutationStatus.ERROR
        self.state.last_error = error
        self.state.finished_at = time.time()
        self._record(start, outcome)

    def _as_mutation_error(self, exc: Exception) -> MutationError:
        if isinstance(exc, MutationError):
            return exc
        details = {"error_type": exc.__class__.__name__}
        details.update(getattr(exc, "details", None) or {})
        return MutationError(self.name, str(exc) or exc.__class__.__name__, details=details)

    def _record(self, start: float, outcome: str) -> None:
        if not self.metrics:
            return
        self.metrics.increment_counter("mutations_total", mutation=self.name, result=outcome)
        self.metrics.observe_histogram(
            "mutation_duration_seconds", time.perf_counter() - start, mutation=self.name
        )

    def _increment(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
