#!/usr/bin/env python3
"""
Brain Vectorize - Command Line

Subcommands:
1. backfill  Replay events from a JSONL file through the pipeline
2. qa        Run the end-to-end QA suite against stubbed backends
3. coverage  Print vector coverage metrics as JSON
4. search    Similarity search over the content view
5. health    Check storage, embedding service and policy

`backfill` streams one JSON progress line per batch followed by a JSON
summary, and exits 0 only when no event failed.
"""

import argparse
import asyncio
import json
import sys
from collections import Counter

from brain_vectorize.config import get_settings, load_policy_config
from brain_vectorize.core.events import RawEvent
from brain_vectorize.layers.orchestration import (
    BackfillConfig,
    BackfillJob,
    create_vectorization_pipeline
)
from brain_vectorize.layers.representation import VectorSearchFilters
from brain_vectorize.observability import setup_logging
from brain_vectorize.qa import QAHarness, create_stub_pipeline


def load_events(path: str) -> list[RawEvent]:
    """Read RawEvents (wire shape, one JSON object per line)."""
    events = []
    with open(path, encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(RawEvent.from_dict(json.loads(line)))
            except (ValueError, KeyError) as e:
                raise SystemExit(f"{path}:{line_number}: invalid event: {e}")
    return events


def emit(record: dict) -> None:
    print(json.dumps(record), flush=True)


def build_pipeline(args):
    settings = get_settings()
    if getattr(args, "stub", False):
        return create_stub_pipeline(load_policy_config(settings.policy_path))
    return create_vectorization_pipeline(settings)


async def run_backfill_command(args) -> int:
    events = load_events(args.events_file)
    pipeline = build_pipeline(args)

    config = BackfillConfig(
        batch_size=args.batch_size or get_settings().backfill_batch_size,
        max_events=args.max_events,
        start_cursor=args.cursor,
        event_types=args.event_type or [],
        domains=args.domain or [],
        start_timestamp_ms=args.start_ms,
        end_timestamp_ms=args.end_ms,
        skip_vectorized=not args.no_skip_vectorized,
        dry_run=args.dry_run,
        on_progress=lambda progress: emit({"type": "progress", **progress.to_dict()})
    )

    try:
        result = await BackfillJob(pipeline, config).run(events)
    finally:
        await pipeline.close()

    emit({"type": "summary", **result.to_dict()})
    return 0 if result.progress.failed == 0 else 1


async def run_qa_command(args) -> int:
    print("=" * 60)
    print("VECTORIZATION QA")
    print("=" * 60)
    print()

    harness = QAHarness(create_stub_pipeline(load_policy_config(get_settings().policy_path)))
    suite = await harness.run_all_tests()
    print(harness.generate_report(suite))
    print()

    if args.json:
        emit(suite.to_dict())
    return 0 if suite.failed == 0 else 1


async def run_coverage_command(args) -> int:
    pipeline = build_pipeline(args)
    event_totals = None
    if args.events_file:
        event_totals = dict(Counter(e.event_type for e in load_events(args.events_file)))

    try:
        metrics = await pipeline.get_coverage_metrics(event_totals)
    finally:
        await pipeline.close()

    emit(metrics.to_dict())
    return 0


async def run_search_command(args) -> int:
    pipeline = build_pipeline(args)
    filters = VectorSearchFilters(
        user_id=args.user_id,
        event_types=args.event_type,
        domains=args.domain,
        privacy_scope=args.privacy_scope
    )

    try:
        results = await pipeline.search_similar(args.query, filters, args.limit)
    finally:
        await pipeline.close()

    emit({"query": args.query, "results": results})
    return 0


async def run_health_command(args) -> int:
    pipeline = build_pipeline(args)
    try:
        health = await pipeline.check_health()
    finally:
        await pipeline.close()

    emit(health)
    return 0 if health["healthy"] else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="brain-vectorize", description="Event vectorization pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    backfill = subparsers.add_parser("backfill", help="Replay historical events")
    backfill.add_argument("--events-file", required=True, help="JSONL file of raw events")
    backfill.add_argument("--batch-size", type=int, default=0)
    backfill.add_argument("--max-events", type=int, default=0, help="0 = unlimited")
    backfill.add_argument("--event-type", action="append", help="Repeatable event type filter")
    backfill.add_argument("--domain", action="append", help="Repeatable domain filter")
    backfill.add_argument("--start-ms", type=int, default=None)
    backfill.add_argument("--end-ms", type=int, default=None)
    backfill.add_argument("--dry-run", action="store_true")
    backfill.add_argument("--no-skip-vectorized", action="store_true")
    backfill.add_argument("--cursor", default=None, help="Resume after this event id")
    backfill.add_argument("--stub", action="store_true", help="Use in-memory backends and mock embeddings")
    backfill.set_defaults(handler=run_backfill_command)

    qa = subparsers.add_parser("qa", help="Run the QA suite against stubs")
    qa.add_argument("--json", action="store_true", help="Also print the suite result as JSON")
    qa.set_defaults(handler=run_qa_command)

    coverage = subparsers.add_parser("coverage", help="Print coverage metrics")
    coverage.add_argument("--events-file", default=None, help="JSONL events used as totals")
    coverage.add_argument("--stub", action="store_true")
    coverage.set_defaults(handler=run_coverage_command)

    search = subparsers.add_parser("search", help="Similarity search")
    search.add_argument("query")
    search.add_argument("--user-id", default=None)
    search.add_argument("--event-type", action="append")
    search.add_argument("--domain", action="append")
    search.add_argument("--privacy-scope", choices=["private", "social", "public"], default=None)
    search.add_argument("--limit", type=int, default=20)
    search.add_argument("--stub", action="store_true")
    search.set_defaults(handler=run_search_command)

    health = subparsers.add_parser("health", help="Check backends")
    health.add_argument("--stub", action="store_true")
    health.set_defaults(handler=run_health_command)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    observability = get_settings().observability
    setup_logging(observability.log_level, observability.json_logs)

    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
