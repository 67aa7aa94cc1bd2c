"""Order-preserving result store for the writer pool.

One slot per chunk, addressed by chunk index. Workers finish in any
order; the document is always read back in slot order, so completion
timing never reaches the output.

States per slot:
  PENDING   -- chunk not yet picked up
  IN_FLIGHT -- a worker is waiting on the model for this chunk
  DONE      -- generation succeeded (terminal)
  FAILED    -- generation raised (terminal)

A terminal slot is never written again. Violations mean the pool handed
one chunk to two workers and raise ``AggregationInvariantViolation``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("aiguide.slot_aggregator")


class ChunkState(Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


_TERMINAL = frozenset({ChunkState.DONE, ChunkState.FAILED})


class AggregationInvariantViolation(RuntimeError):
    """Internal defect: double write, bad slot index, or premature read."""


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of one chunk: generated text on success, a reason on failure."""

    index: int
    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def state(self) -> ChunkState:
        return ChunkState.DONE if self.ok else ChunkState.FAILED

    @classmethod
    def success(cls, index: int, text: str) -> "ChunkResult":
        return cls(index=index, text=text)

    @classmethod
    def failure(cls, index: int, reason: str) -> "ChunkResult":
        return cls(index=index, error=reason)


class SlotAggregator:
    """Fixed-size, write-once, index-addressed result slots.

    Thread-safe: a single Lock guards structural access. Writers target
    disjoint indices, so the lock is never contended per slot.

    Args:
        num_slots: Number of chunks in the run.
    """

    def __init__(self, num_slots: int) -> None:
        if num_slots <= 0:
            raise AggregationInvariantViolation(
                f"Aggregator needs at least one slot, got {num_slots}"
            )
        self._results: list[ChunkResult | None] = [None] * num_slots
        self._states: list[ChunkState] = [ChunkState.PENDING] * num_slots
        self._closed = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._results)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._results):
            raise AggregationInvariantViolation(
                f"Slot index {index} out of range (0..{len(self._results) - 1})"
            )

    def state(self, index: int) -> ChunkState:
        with self._lock:
            self._check_index(index)
            return self._states[index]

    def mark_in_flight(self, index: int) -> None:
        """PENDING -> IN_FLIGHT. Raises if the chunk was already picked up."""
        with self._lock:
            self._check_index(index)
            if self._states[index] is not ChunkState.PENDING:
                raise AggregationInvariantViolation(
                    f"Chunk {index} dispatched twice (state={self._states[index].value})"
                )
            self._states[index] = ChunkState.IN_FLIGHT

    def write(self, index: int, result: ChunkResult) -> None:
        """Fill slot *index* with *result*. Exactly once per slot."""
        with self._lock:
            if self._closed:
                raise AggregationInvariantViolation(
                    f"Write to slot {index} after the pool finished"
                )
            self._check_index(index)
            if self._states[index] in _TERMINAL:
                raise AggregationInvariantViolation(
                    f"Slot {index} written twice (state={self._states[index].value})"
                )
            if result.index != index:
                raise AggregationInvariantViolation(
                    f"Result for chunk {result.index} written to slot {index}"
                )
            self._results[index] = result
            self._states[index] = result.state

    def close(self) -> None:
        """Mark the join barrier as passed. Further writes raise."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def read_all(self) -> list[ChunkResult]:
        """Return every slot in index order. Only valid after ``close()``.

        A slot that was never written is logged and returned as a failure
        placeholder so the document still shows the gap.
        """
        with self._lock:
            if not self._closed:
                raise AggregationInvariantViolation(
                    "read_all() called before the writer pool finished"
                )
            results: list[ChunkResult] = []
            for index, result in enumerate(self._results):
                if result is None:
                    logger.error(
                        "Slot %d empty after join (state=%s)",
                        index, self._states[index].value,
                    )
                    result = ChunkResult.failure(
                        index, "internal error: no result was recorded for this section"
                    )
                results.append(result)
            return results
