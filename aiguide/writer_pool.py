"""
Parallel writer pool for guide sections.

Runs one completion per chunk on a fixed ThreadPoolExecutor and records
each outcome into a SlotAggregator at the chunk's index. Chunks finish in
any order; the aggregator keeps them in document order.

A failing chunk never stops the pool: the worker records a failure
result and takes the next chunk. There is no retry. ``run()`` returns
only after the executor has shut down (the join barrier), so callers can
read the aggregator without racing a worker.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence

from guide_config import ConfigurationError
from partitioner import Chunk
from prompts import CHUNK_PROMPT
from slot_aggregator import AggregationInvariantViolation, ChunkResult, SlotAggregator

logger = logging.getLogger("aiguide.writer_pool")

# (system_prompt, user_prompt) -> text; raises on failure.
GenerateFn = Callable[[str, str], str]


class WriterPool:
    """Dispatches chunks to at most ``max_workers`` concurrent writers.

    Responsibilities:
      - Feed every chunk through one shared executor queue
      - Turn generation errors into failure results, per chunk
      - Record results by chunk index, then close the aggregator

    Args:
        generate_fn: Callable(system_prompt, user_prompt) -> text. Called
            concurrently from worker threads; must be thread-safe.
        max_workers: Number of worker threads (1 = strictly sequential).
        verbose: Print per-chunk progress lines. Disable when the guide
            itself is written to stdout.
    """

    def __init__(
        self,
        generate_fn: GenerateFn,
        max_workers: int = 1,
        verbose: bool = True,
    ) -> None:
        if max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {max_workers}")
        self._generate_fn = generate_fn
        self._max_workers = max_workers
        self._verbose = verbose

        self._in_flight = 0
        self._peak_in_flight = 0
        self._counter_lock = threading.Lock()

    @property
    def max_workers(self) -> int:
        return self._max_workers

    @property
    def peak_in_flight(self) -> int:
        """Highest number of generation calls observed running at once."""
        with self._counter_lock:
            return self._peak_in_flight

    def _enter_flight(self) -> None:
        with self._counter_lock:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)

    def _leave_flight(self) -> None:
        with self._counter_lock:
            self._in_flight -= 1

    def _run_one(
        self,
        chunk: Chunk,
        system_prompt: str,
        aggregator: SlotAggregator,
        total: int,
    ) -> ChunkResult:
        """Generate one chunk in a worker thread and record its result."""
        aggregator.mark_in_flight(chunk.index)
        if self._verbose:
            print(
                f"   [{threading.current_thread().name}] Processing chunk "
                f"{chunk.index + 1}/{total} (Items {chunk.first_ordinal}-{chunk.last_ordinal})..."
            )

        user_prompt = CHUNK_PROMPT.format(chunk_text=chunk.text)
        self._enter_flight()
        try:
            text = self._generate_fn(system_prompt, user_prompt)
            result = ChunkResult.success(chunk.index, text)
        except Exception as e:
            logger.error(
                "Error processing chunk %d: %s", chunk.index, e,
                extra={
                    "chunk": chunk.index,
                    "first_ordinal": chunk.first_ordinal,
                    "last_ordinal": chunk.last_ordinal,
                },
            )
            result = ChunkResult.failure(chunk.index, str(e) or type(e).__name__)
        finally:
            self._leave_flight()

        aggregator.write(chunk.index, result)
        return result

    def run(self, chunks: Sequence[Chunk], system_prompt: str) -> SlotAggregator:
        """Generate every chunk and return the closed aggregator.

        Args:
            chunks: Output of ``partition_items``; ``chunk.index`` must be
                ``0..len(chunks)-1``.
            system_prompt: Writer instructions sent with every chunk.

        Returns:
            A closed SlotAggregator with exactly one result per chunk.

        Raises:
            AggregationInvariantViolation: if the pool itself misbehaves
                (a chunk recorded twice or an index out of range).
        """
        total = len(chunks)
        aggregator = SlotAggregator(total)
        failed = 0
        defects: list[AggregationInvariantViolation] = []

        logger.info(
            "Writing %d chunks (max %d parallel)...", total, self._max_workers,
        )

        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="Worker",
        ) as executor:
            futures = {
                executor.submit(self._run_one, chunk, system_prompt, aggregator, total): chunk
                for chunk in chunks
            }
            for future in as_completed(futures):
                chunk = futures[future]
                try:
                    result = future.result()
                except AggregationInvariantViolation as e:
                    logger.critical("Writer pool defect on chunk %d: %s", chunk.index, e)
                    defects.append(e)
                    continue
                if not result.ok:
                    failed += 1
                logger.debug(
                    "Chunk %d %s", chunk.index, "done" if result.ok else "failed",
                )
        # Executor shutdown above is the join barrier: all workers have exited.
        aggregator.close()

        if defects:
            raise defects[0]

        logger.info("Writer pool finished: %d/%d chunks succeeded", total - failed, total)
        return aggregator
