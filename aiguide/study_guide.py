#!/usr/bin/env python3
"""
Study guide generator.

Pipeline:
  Planner:  one completion call lists N concepts for the subject.
  Writers:  concepts are split into chunks of C; a pool of T threads
             sends one completion per chunk. Chunks finish in any order.
  Renderer: after every writer has finished, the guide is written in
             concept order: title, linked table of contents, then one
             section per chunk. Failed chunks appear as error sections.

Usage:
    python study_guide.py "Distributed systems" -n 40 -c 2 -t 4
    python study_guide.py "Rust ownership" --stdout > rust.md
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Optional, Sequence, TextIO

from generation_client import ChatCompletionClient, GenerationError
from guide_config import ConfigurationError, GuideConfig, build_system_prompt, load_config
from logging_config import setup_logging
from output import open_sink
from partitioner import Chunk, Item, NoItemsError, partition_items
from planner import ConceptPlanner
from renderer import GuideRenderer
from slot_aggregator import ChunkResult
from writer_pool import GenerateFn, WriterPool

logger = logging.getLogger("aiguide")


@dataclass(frozen=True)
class GuideReport:
    """What a run produced, for exit-code decisions and summaries."""

    items: tuple[Item, ...]
    chunks: tuple[Chunk, ...]
    results: tuple[ChunkResult, ...]

    @property
    def failed(self) -> list[tuple[Chunk, ChunkResult]]:
        return [(c, r) for c, r in zip(self.chunks, self.results) if not r.ok]

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and len(self.failed) == len(self.results)


# ===================================================================
# Main Generator Class
# ===================================================================

class StudyGuideGenerator:
    """
    Plans, writes, and renders one study guide.

    Args:
        config: Validated run configuration.
        generate_fn: Callable(system_prompt, user_prompt) -> text. Defaults
            to a ChatCompletionClient built from *config*.
    """

    def __init__(self, config: GuideConfig, generate_fn: Optional[GenerateFn] = None):
        self.config = config
        self.generate_fn = generate_fn or ChatCompletionClient.from_config(config)
        self.planner = ConceptPlanner(self.generate_fn)
        self.pool = WriterPool(
            self.generate_fn,
            max_workers=config.threads,
            verbose=not config.stdout,
        )

    def _say(self, message: str) -> None:
        if not self.config.stdout:
            print(message)

    def plan(self) -> list[Item]:
        """Tier 1: fetch the concept list. Raises GenerationError on failure."""
        self._say(
            f"-> Generating list of {self.config.total_count} concepts "
            f"for subject: {self.config.subject}..."
        )
        return self.planner.plan(self.config.subject, self.config.total_count)

    def write(self, items: Sequence[Item], sink: TextIO) -> GuideReport:
        """Partition *items*, run the writer pool, and render to *sink*.

        Raises:
            NoItemsError: if *items* is empty.
        """
        chunks = partition_items(items, self.config.chunk_size)
        self._say(
            f"-> Writing {len(items)} concepts in {len(chunks)} chunks "
            f"({self.config.threads} thread(s))..."
        )
        aggregator = self.pool.run(chunks, self.config.system_prompt)
        results = aggregator.read_all()

        GuideRenderer(sink).render(self.config.subject, items, chunks, results)
        return GuideReport(items=tuple(items), chunks=tuple(chunks), results=tuple(results))

    def generate(self, sink: Optional[TextIO] = None) -> GuideReport:
        """Run the full pipeline. Opens the configured sink unless one is given."""
        items = self.plan()
        if not items:
            raise NoItemsError("No concepts were generated.")
        if sink is not None:
            return self.write(items, sink)
        with open_sink(self.config) as opened:
            return self.write(items, opened)


# ===================================================================
# CLI Entry Point
# ===================================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aiguide",
        description="Generate an AI-powered study guide",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  OPENAI_API_KEY   API key (required)
  OPENAI_BASE_URL  API base URL (default: https://api.openai.com/v1)
  OPENAI_MODEL     Model name (default: gpt-4o)

Examples:
  %(prog)s "Operating systems" -n 50 -c 2 -t 4
  %(prog)s "Linear algebra" -i "Use NumPy for all examples" --stdout
        """,
    )
    parser.add_argument("subject", help="Subject of the guide")
    parser.add_argument(
        "-n", "--number", type=int, default=None, dest="total_count",
        help="Total number of questions/concepts to generate (default: 100)",
    )
    parser.add_argument(
        "-c", "--chunk", type=int, default=None, dest="chunk_size",
        help="Number of questions to process per API call (default: 2)",
    )
    parser.add_argument(
        "-t", "--threads", type=int, default=None,
        help="Number of concurrent threads for generating answers (default: 1)",
    )
    parser.add_argument(
        "-o", "--stdout", action="store_true",
        help="Output to stdout instead of file",
    )
    parser.add_argument(
        "-i", "--info", default="",
        help="Additional instructions or context to append to system prompt",
    )
    parser.add_argument(
        "-s", "--system-prompt", default="", dest="system_prompt_path",
        help="Path to custom system prompt file",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = _build_parser().parse_args(argv)

    try:
        config = load_config(
            args.subject,
            total_count=args.total_count,
            chunk_size=args.chunk_size,
            threads=args.threads,
            stdout=args.stdout or None,
            system_prompt=build_system_prompt(args.system_prompt_path, args.info),
        )
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)

    generator = StudyGuideGenerator(config)
    try:
        report = generator.generate()
    except NoItemsError:
        print("No concepts were generated. Nothing to do.", file=sys.stderr)
        return 0
    except GenerationError as e:
        print(f"Error generating concepts: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error creating file: {e}", file=sys.stderr)
        return 1

    # Exit code mirrors the outcome:
    #   0 → every chunk written, or partial failure (the guide is still useful)
    #   1 → every chunk failed
    failed = report.failed
    if failed:
        level = "Error" if report.all_failed else "Warning"
        print(
            f"\n[{level}] {len(failed)}/{len(report.results)} section(s) failed:",
            file=sys.stderr,
        )
        for chunk, result in failed:
            print(
                f"  - items {chunk.first_ordinal}-{chunk.last_ordinal}: {result.error}",
                file=sys.stderr,
            )
        if report.all_failed:
            return 1

    if not config.stdout:
        print("\n-> Done! Guide generated successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
