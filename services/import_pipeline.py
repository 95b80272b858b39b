"""
Sequential row pipeline.

Rows are queued in file order and run by a single consumer, one at a
time. A row handler never overlaps another one, so category creation and
SKU lookups for row N see everything committed by rows 1..N-1.
"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Generic, Optional, TypeVar
import structlog

from exceptions import AppError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PipelineReentryError(AppError):
    """drain() was called from inside a row handler."""

    def __init__(self):
        super().__init__(
            code="PIPELINE_REENTRY",
            message="Row pipeline is already draining",
            status_code=500
        )


class PipelineFullError(AppError):
    """More rows queued than the pipeline accepts."""

    def __init__(self, capacity: int):
        super().__init__(
            code="PIPELINE_FULL",
            message=f"Row pipeline is full ({capacity} rows)",
            status_code=500,
            details={"capacity": capacity}
        )


@dataclass
class QueuedRow(Generic[T]):
    line: int
    payload: T


class RowPipeline(Generic[T]):
    """
    Bounded FIFO of rows with exactly one row in flight.

    The handler is responsible for its own error handling; an exception
    escaping it stops the drain and leaves the remaining rows queued.
    """

    def __init__(self, handler: Callable[[int, T], None], capacity: Optional[int] = None):
        self.handler = handler
        self.capacity = capacity
        self._queue: Deque[QueuedRow[T]] = deque()
        self._draining = False
        self.in_flight: Optional[int] = None

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._draining

    def enqueue(self, line: int, payload: T) -> None:
        if self.capacity is not None and len(self._queue) >= self.capacity:
            raise PipelineFullError(self.capacity)
        self._queue.append(QueuedRow(line=line, payload=payload))

    def drain(self) -> int:
        """
        Run every queued row in order.

        Returns:
            Number of rows handled

        Raises:
            PipelineReentryError: Called while already draining
        """
        if self._draining:
            raise PipelineReentryError()

        self._draining = True
        handled = 0
        try:
            while self._queue:
                row = self._queue.popleft()
                self.in_flight = row.line
                self.handler(row.line, row.payload)
                handled += 1
        finally:
            self.in_flight = None
            self._draining = False

        logger.debug("pipeline_drained", rows=handled)
        return handled
