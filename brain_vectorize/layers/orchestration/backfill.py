"""
Vectorization Backfill Job

Replays historical events through the pipeline to close coverage gaps:
- filters by event type, domain and an inclusive timestamp window
- resumes after a cursor left by an earlier run
- caps the run at `max_events`
- processes fixed-size batches strictly sequentially
- reports a progress snapshot after every batch
- stops cooperatively after the current batch when aborted
"""

import time
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from ...core.errors import StorageError
from ...core.events import RawEvent, domain_of
from ...observability import bind_run_id, clear_run_id, get_logger
from .pipeline import BatchVectorizeResult, VectorizationPipeline, VectorizeResult, SkipReason, VectorizeStage


logger = get_logger(__name__)


@dataclass
class BackfillProgress:
    """Snapshot taken after each batch."""
    total_processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    current_batch: int = 0
    current_cursor: str = ""
    completion_percent: int = 0
    events_per_second: int = 0
    elapsed_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "totalProcessed": self.total_processed,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "currentBatch": self.current_batch,
            "currentCursor": self.current_cursor,
            "completionPercent": self.completion_percent,
            "eventsPerSecond": self.events_per_second,
            "elapsedTimeMs": self.elapsed_time_ms
        }


@dataclass
class BackfillConfig:
    batch_size: int = 50
    max_events: int = 0  # 0 = unlimited
    start_cursor: Optional[str] = None
    event_types: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)
    start_timestamp_ms: Optional[int] = None
    end_timestamp_ms: Optional[int] = None
    skip_vectorized: bool = True
    dry_run: bool = False
    on_progress: Optional[Callable[[BackfillProgress], None]] = None


@dataclass
class BackfillError:
    event_id: str
    error: str

    def to_dict(self) -> dict:
        return {"eventId": self.event_id, "error": self.error}


@dataclass
class BackfillResult:
    success: bool
    progress: BackfillProgress
    errors: list[BackfillError] = field(default_factory=list)
    final_cursor: str = ""
    has_more: bool = False
    duration_ms: int = 0
    aborted: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "progress": self.progress.to_dict(),
            "errors": [e.to_dict() for e in self.errors],
            "finalCursor": self.final_cursor,
            "hasMore": self.has_more,
            "durationMs": self.duration_ms,
            "aborted": self.aborted
        }


class BackfillJob:
    """
    Batch reprocessing of historical events.

    With `skip_vectorized` each batch is pre-checked against the vector
    store and events that already have a vector are counted as skipped
    without entering the pipeline. With `dry_run` nothing is processed
    and every selected event counts as succeeded.
    """

    def __init__(self, pipeline: VectorizationPipeline, config: BackfillConfig = None):
        self.pipeline = pipeline
        self.config = config or BackfillConfig()
        self._aborted = False

    def abort(self) -> None:
        """Stop after the batch currently being processed."""
        self._aborted = True
        logger.info("backfill_abort_requested")

    @property
    def aborted(self) -> bool:
        return self._aborted

    def filter_events(self, events: list[RawEvent]) -> list[RawEvent]:
        config = self.config
        selected = []
        for event in events:
            if config.event_types and event.event_type not in config.event_types:
                continue
            if config.domains and domain_of(event.event_type) not in config.domains:
                continue
            if config.start_timestamp_ms is not None and event.timestamp_ms < config.start_timestamp_ms:
                continue
            if config.end_timestamp_ms is not None and event.timestamp_ms > config.end_timestamp_ms:
                continue
            selected.append(event)
        return selected

    def _resume(self, events: list[RawEvent]) -> list[RawEvent]:
        cursor = self.config.start_cursor
        if not cursor:
            return events
        for index, event in enumerate(events):
            if event.event_id == cursor:
                return events[index + 1:]
        logger.warning("backfill_cursor_not_found", cursor=cursor)
        return events

    async def _process_batch(self, batch: list[RawEvent]) -> BatchVectorizeResult:
        if self.config.dry_run:
            result = BatchVectorizeResult()
            for event in batch:
                result.add(VectorizeResult(event_id=event.event_id, success=True))
            return result

        if not self.config.skip_vectorized:
            return await self.pipeline.vectorize_batch(batch)

        result = BatchVectorizeResult()
        started = time.monotonic()
        for event in batch:
            try:
                already = await self.pipeline.vector_store.has_vector(event.event_id)
            except StorageError as e:
                # Let the pipeline report the storage failure for this event
                logger.warning("backfill_precheck_failed", event_id=event.event_id, error=str(e))
                already = False

            if already:
                skipped = VectorizeResult(
                    event_id=event.event_id,
                    success=True,
                    skipped=True,
                    skip_reason=SkipReason.ALREADY_VECTORIZED
                )
                skipped.advance(VectorizeStage.SKIPPED_ALREADY_VECTORIZED)
                result.add(skipped)
            else:
                result.add(await self.pipeline.vectorize_event(event))
        result.total_processing_time_ms = int((time.monotonic() - started) * 1000)
        return result

    async def run(self, events: list[RawEvent]) -> BackfillResult:
        """Process `events`. A job can be run again after an abort."""
        self._aborted = False
        run_id = bind_run_id()
        try:
            return await self._run(events, run_id)
        finally:
            clear_run_id()

    async def _run(self, events: list[RawEvent], run_id: str) -> BackfillResult:
        started = time.monotonic()
        config = self.config
        batch_size = max(1, config.batch_size)

        progress = BackfillProgress(current_cursor=config.start_cursor or "")
        errors: list[BackfillError] = []

        available = self._resume(self.filter_events(events))
        selected = available[:config.max_events] if config.max_events > 0 else available
        total = len(selected)

        logger.info(
            "backfill_started",
            run_id=run_id,
            input_events=len(events),
            selected_events=total,
            available_events=len(available),
            batch_size=batch_size,
            dry_run=config.dry_run
        )

        for offset in range(0, total, batch_size):
            if self._aborted:
                break

            batch = selected[offset:offset + batch_size]
            progress.current_batch += 1

            batch_result = await self._process_batch(batch)

            progress.total_processed += batch_result.total_processed
            progress.succeeded += batch_result.succeeded
            progress.skipped += batch_result.skipped
            progress.failed += batch_result.failed

            for result in batch_result.results:
                if not result.success:
                    errors.append(BackfillError(event_id=result.event_id, error=result.error or "Unknown error"))

            progress.current_cursor = batch[-1].event_id

            elapsed_ms = int((time.monotonic() - started) * 1000)
            progress.elapsed_time_ms = elapsed_ms
            progress.completion_percent = round(progress.total_processed / total * 100) if total else 100
            progress.events_per_second = round(progress.total_processed / elapsed_ms * 1000) if elapsed_ms > 0 else 0

            if config.on_progress is not None:
                config.on_progress(replace(progress))

            logger.info(
                "backfill_batch_completed",
                batch=progress.current_batch,
                processed=progress.total_processed,
                total=total,
                completion_percent=progress.completion_percent,
                events_per_second=progress.events_per_second
            )

        has_more = self._aborted or progress.total_processed < len(available)
        result = BackfillResult(
            success=progress.failed == 0,
            progress=progress,
            errors=errors,
            final_cursor=progress.current_cursor,
            has_more=has_more,
            duration_ms=int((time.monotonic() - started) * 1000),
            aborted=self._aborted
        )

        logger.info(
            "backfill_finished",
            succeeded=progress.succeeded,
            skipped=progress.skipped,
            failed=progress.failed,
            has_more=has_more,
            final_cursor=result.final_cursor
        )
        return result


async def run_backfill(
    pipeline: VectorizationPipeline,
    events: list[RawEvent],
    config: BackfillConfig = None
) -> BackfillResult:
    """Run a one-off backfill over a list of events."""
    return await BackfillJob(pipeline, config).run(events)
