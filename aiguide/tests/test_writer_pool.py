"""Tests for the parallel writer pool.

Generation is faked with plain callables; chunk completion order is forced
with threading.Event so out-of-order arrival is deterministic. No network.
"""

import itertools
import re
import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from generation_client import ChatCompletionClient, GenerationError
from guide_config import ConfigurationError, GuideConfig
from partitioner import Chunk, build_items, partition_items
from slot_aggregator import AggregationInvariantViolation, ChunkState
from writer_pool import WriterPool

_FIRST_ORDINAL = re.compile(r"^(\d+)\. ", re.MULTILINE)


def _first_ordinal(user_prompt: str) -> int:
    return int(_FIRST_ORDINAL.search(user_prompt).group(1))


def _chunks(n: int, c: int) -> list[Chunk]:
    return partition_items(build_items(f"Concept {i}" for i in range(1, n + 1)), c)


def _echo(system_prompt: str, user_prompt: str) -> str:
    return f"answer for {_first_ordinal(user_prompt)}"


# ---------------------------------------------------------------------------
# Basic dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_every_chunk_gets_one_result(self):
        chunks = _chunks(7, 2)
        agg = WriterPool(_echo, max_workers=3, verbose=False).run(chunks, "SYS")
        results = agg.read_all()
        assert [r.text for r in results] == [
            "answer for 1", "answer for 3", "answer for 5", "answer for 7",
        ]

    def test_prompts_passed_through(self):
        calls = []

        def gen(system_prompt, user_prompt):
            calls.append((system_prompt, user_prompt))
            return "ok"

        WriterPool(gen, max_workers=1, verbose=False).run(_chunks(2, 2), "SYS")
        assert len(calls) == 1
        system_prompt, user_prompt = calls[0]
        assert system_prompt == "SYS"
        assert "1. Concept 1\n2. Concept 2" in user_prompt
        assert "Maintain the original numbering exactly." in user_prompt

    def test_aggregator_closed_and_terminal_after_run(self):
        chunks = _chunks(4, 1)
        agg = WriterPool(_echo, max_workers=2, verbose=False).run(chunks, "SYS")
        assert agg.closed
        assert all(agg.state(i) is ChunkState.DONE for i in range(len(chunks)))

    def test_single_worker_runs_in_order(self):
        seen = []

        def gen(system_prompt, user_prompt):
            seen.append(_first_ordinal(user_prompt))
            return "ok"

        WriterPool(gen, max_workers=1, verbose=False).run(_chunks(5, 1), "SYS")
        assert seen == [1, 2, 3, 4, 5]

    def test_invalid_worker_count(self):
        with pytest.raises(ConfigurationError, match="max_workers must be positive"):
            WriterPool(_echo, max_workers=0)

    def test_progress_lines(self, capsys):
        WriterPool(_echo, max_workers=1, verbose=True).run(_chunks(3, 2), "SYS")
        out = capsys.readouterr().out
        assert "Processing chunk 1/2 (Items 1-2)" in out
        assert "Processing chunk 2/2 (Items 3-3)" in out

    def test_quiet_mode_prints_nothing(self, capsys):
        WriterPool(_echo, max_workers=2, verbose=False).run(_chunks(3, 1), "SYS")
        assert capsys.readouterr().out == ""


# ---------------------------------------------------------------------------
# Completion order never leaks into slot order
# ---------------------------------------------------------------------------


class TestOrdering:
    @pytest.mark.parametrize("finish_order", list(itertools.permutations([0, 1, 2])))
    def test_any_completion_order_keeps_slot_order(self, finish_order):
        chunks = _chunks(3, 1)
        # Chunk k may only finish after the chunk listed before it in finish_order.
        released = {k: threading.Event() for k in range(3)}
        released[finish_order[0]].set()
        completed = []
        lock = threading.Lock()

        def gen(system_prompt, user_prompt):
            k = _first_ordinal(user_prompt) - 1
            assert released[k].wait(timeout=5)
            with lock:
                completed.append(k)
                pos = finish_order.index(k)
                if pos + 1 < len(finish_order):
                    released[finish_order[pos + 1]].set()
            return f"body {k}"

        agg = WriterPool(gen, max_workers=3, verbose=False).run(chunks, "SYS")
        assert completed == list(finish_order)
        assert [r.text for r in agg.read_all()] == ["body 0", "body 1", "body 2"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_failed_chunk_does_not_stop_siblings(self):
        def gen(system_prompt, user_prompt):
            if _first_ordinal(user_prompt) == 3:
                raise GenerationError("API error: 500 Internal Server Error")
            return "fine"

        results = WriterPool(gen, max_workers=2, verbose=False).run(_chunks(5, 2), "SYS").read_all()
        assert [r.ok for r in results] == [True, False, True]
        assert results[1].error == "API error: 500 Internal Server Error"

    def test_unexpected_exception_is_recorded(self):
        def gen(system_prompt, user_prompt):
            raise RuntimeError()

        results = WriterPool(gen, max_workers=1, verbose=False).run(_chunks(2, 1), "SYS").read_all()
        assert [r.error for r in results] == ["RuntimeError", "RuntimeError"]

    def test_failed_chunk_is_not_retried(self):
        calls = []

        def gen(system_prompt, user_prompt):
            calls.append(_first_ordinal(user_prompt))
            raise GenerationError("timeout")

        WriterPool(gen, max_workers=2, verbose=False).run(_chunks(3, 1), "SYS")
        assert sorted(calls) == [1, 2, 3]

    def test_failure_streak_does_not_skip_later_chunks(self):
        ok = MagicMock()
        ok.status_code = 200
        ok.json.return_value = {"choices": [{"message": {"content": "fine"}}]}
        timeouts = [requests.exceptions.Timeout()] * 3
        client = ChatCompletionClient.from_config(GuideConfig(subject="x", api_key="k"))

        with patch("generation_client.requests.post", side_effect=timeouts + [ok] * 17) as post:
            results = WriterPool(client, max_workers=1, verbose=False).run(
                _chunks(20, 1), "SYS",
            ).read_all()

        assert post.call_count == 20
        assert [r.ok for r in results] == [False] * 3 + [True] * 17

    def test_duplicate_chunk_index_is_a_defect(self):
        items = build_items(["a", "b"])
        chunks = [Chunk(index=0, items=(items[0],)), Chunk(index=0, items=(items[1],))]
        with pytest.raises(AggregationInvariantViolation):
            WriterPool(_echo, max_workers=1, verbose=False).run(chunks, "SYS")


# ---------------------------------------------------------------------------
# Concurrency bound
# ---------------------------------------------------------------------------


class TestConcurrencyBound:
    @pytest.mark.parametrize("threads", [1, 2, 4])
    def test_never_more_than_t_in_flight(self, threads):
        active = 0
        peak = 0
        lock = threading.Lock()

        def gen(system_prompt, user_prompt):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return "ok"

        pool = WriterPool(gen, max_workers=threads, verbose=False)
        pool.run(_chunks(12, 1), "SYS")
        assert 1 <= peak <= threads
        assert 1 <= pool.peak_in_flight <= threads
