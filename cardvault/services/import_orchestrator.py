"""
Import orchestration.

Drives an ImportJob from upload to completion: parses the payload, resolves
rows in concurrent sub-batches, applies them to the owner's collection in
add or update mode, and checkpoints progress so the job can be paused,
cancelled and resumed.

INVARIANTS:
1. One active (pending/running/paused) job per owner
2. Persisted current_index only ever points at rows whose writes are flushed
3. A cancelled job keeps the progress of its last checkpoint; nothing
   resolved after it is written
4. Row failures are reported, never raised; only PersistenceError and
   cancellation end a run early
5. Every status change goes through ImportJob.transition
"""

import asyncio
import hashlib
import logging
import uuid
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeVar

from cardvault.db.store import ImportStore
from cardvault.models.card import CanonicalCard, IdentityKey, ParsedRow
from cardvault.models.collection import CollectionEntry, NewEntry, entries_differ
from cardvault.models.failure import (
    ActiveJobExistsError,
    InvalidPayloadError,
    InvalidTransitionError,
    JobNotFoundError,
    KnownError,
    PersistenceError,
)
from cardvault.models.import_job import (
    ImportJob,
    ImportMode,
    ImportReport,
    ImportStatus,
)
from cardvault.parsers.csv_import import parse_rows
from cardvault.services.request_queue import Priority

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DIFF_FIELDS = ("quantity", "condition", "language", "rarity", "provider_id")


class RowResolver(Protocol):
    async def resolve(
        self,
        row: ParsedRow,
        prefer_language: str | None = None,
        *,
        priority: Priority = ...,
    ) -> CanonicalCard | None: ...


@dataclass(frozen=True, slots=True)
class ImportProgress:
    """Point-in-time view of a job, live counts included while it runs."""

    job_id: str
    owner_id: str
    mode: ImportMode
    status: ImportStatus
    total_rows: int
    current_index: int
    processed_rows: int
    report: ImportReport
    language: str | None
    error: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def percent(self) -> float:
        if self.total_rows == 0:
            return 100.0
        return round(100.0 * self.processed_rows / self.total_rows, 1)


@dataclass
class _PendingWrites:
    """Collection changes resolved but not yet flushed."""

    adds: list[NewEntry] = field(default_factory=list)
    updates: list[CollectionEntry] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.adds) + len(self.updates) + len(self.deletes)

    def clear(self) -> None:
        self.adds.clear()
        self.updates.clear()
        self.deletes.clear()


@dataclass
class _JobControl:
    """In-process state of a running job."""

    job: ImportJob
    report: ImportReport
    processed: int
    # Set while the job may run; cleared by pause()
    running: asyncio.Event = field(default_factory=asyncio.Event)
    cancel_requested: bool = False
    # Serializes read-modify-save of `job` between the loop and control calls
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    task: "asyncio.Task[None] | None" = None


@dataclass(frozen=True, slots=True)
class _RowOutcome:
    card: CanonicalCard | None = None
    error: str | None = None


def _chunks(items: Sequence[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def payload_hash(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ImportOrchestrator:
    """
    Runs import jobs as background tasks on the current event loop.

    Args:
        store: Job and collection persistence
        resolver: Card resolver
        sub_batch_size: Rows resolved concurrently per step
        checkpoint_every: Rows between checkpoints
        diff_fields: Fields compared in update mode
        max_payload_bytes: Largest accepted upload
        max_report_details: Cap on per-row report details
    """

    def __init__(
        self,
        store: ImportStore,
        resolver: RowResolver,
        sub_batch_size: int = 8,
        checkpoint_every: int = 5,
        diff_fields: Sequence[str] = DEFAULT_DIFF_FIELDS,
        max_payload_bytes: int = 900_000,
        max_report_details: int = 1000,
    ) -> None:
        if sub_batch_size < 1 or checkpoint_every < 1:
            raise ValueError("sub_batch_size and checkpoint_every must be at least 1")
        self._store = store
        self._resolver = resolver
        self.sub_batch_size = sub_batch_size
        self.checkpoint_every = checkpoint_every
        self.diff_fields = tuple(diff_fields)
        self.max_payload_bytes = max_payload_bytes
        self.max_report_details = max_report_details
        self._live: dict[str, _JobControl] = {}
        self._start_lock = asyncio.Lock()

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def start(
        self,
        owner_id: str,
        payload: str,
        mode: ImportMode = ImportMode.ADD,
        language: str | None = None,
    ) -> str:
        """
        Create a job for `payload` and start processing it.

        Returns:
            The new job id

        Raises:
            InvalidPayloadError: Payload too large or without any card
            ActiveJobExistsError: The owner already has an active job
            PersistenceError: The job could not be stored
        """
        size = len(payload.encode("utf-8"))
        if size > self.max_payload_bytes:
            raise InvalidPayloadError(
                "Card list is too large to import in one job.",
                detail=f"{size} bytes, limit {self.max_payload_bytes}",
            )
        rows = parse_rows(payload)
        if not rows:
            raise InvalidPayloadError("No cards found in the uploaded list.")

        async with self._start_lock:
            active = await self._store.get_active_job(owner_id)
            if active is not None:
                raise ActiveJobExistsError(owner_id, active.id)

            job = ImportJob(
                id=uuid.uuid4().hex,
                owner_id=owner_id,
                mode=mode,
                status=ImportStatus.PENDING,
                total_rows=len(rows),
                source_payload=payload,
                payload_hash=payload_hash(payload),
                report=ImportReport(max_details=self.max_report_details),
                language=language,
            )
            await self._store.create_job(job)
            job = job.transition(ImportStatus.RUNNING)
            await self._store.save_job(job)

        logger.info(
            "Started import %s for %s: %d rows, mode=%s", job.id, owner_id, len(rows), mode.value
        )
        self._launch(job, rows)
        return job.id

    async def resume(self, job_id: str) -> ImportJob:
        """
        Continue a paused or interrupted job from its last checkpoint.

        A completed job is returned unchanged.

        Raises:
            JobNotFoundError: Unknown job id
            InvalidTransitionError: Job was cancelled or failed
        """
        control = self._live.get(job_id)
        if control is None:
            # Serialized with start() so one stored job never gets two tasks
            async with self._start_lock:
                control = self._live.get(job_id)
                if control is None:
                    return await self._resume_stored(job_id)
        return await self._resume_live(control)

    async def _resume_live(self, control: _JobControl) -> ImportJob:
        async with control.lock:
            status = control.job.status
            if status in (ImportStatus.CANCELLED, ImportStatus.FAILED):
                raise InvalidTransitionError(
                    control.job.id, status.value, ImportStatus.RUNNING.value
                )
            if status == ImportStatus.PAUSED:
                control.job = control.job.transition(ImportStatus.RUNNING)
                await self._store.save_job(control.job)
                logger.info("Resumed import %s", control.job.id)
        control.running.set()
        return control.job

    async def _resume_stored(self, job_id: str) -> ImportJob:
        job = await self._require_job(job_id)
        if job.status == ImportStatus.COMPLETED:
            return job
        if job.status != ImportStatus.RUNNING:
            # Raises for cancelled and failed jobs
            job = job.transition(ImportStatus.RUNNING)
            await self._store.save_job(job)

        rows = parse_rows(job.source_payload)
        logger.info("Resuming import %s at row %d of %d", job_id, job.current_index, len(rows))
        self._launch(job, rows)
        return job

    async def pause(self, job_id: str) -> ImportJob:
        """
        Pause a running job at the next sub-batch boundary.

        Raises:
            JobNotFoundError: Unknown job id
            InvalidTransitionError: Job is not running
        """
        control = self._live.get(job_id)
        if control is None:
            async with self._start_lock:
                control = self._live.get(job_id)
                if control is None:
                    job = (await self._require_job(job_id)).transition(ImportStatus.PAUSED)
                    await self._store.save_job(job)
                    return job

        async with control.lock:
            control.job = control.job.transition(ImportStatus.PAUSED)
            await self._store.save_job(control.job)
        control.running.clear()
        logger.info("Paused import %s", job_id)
        return control.job

    async def cancel(self, job_id: str) -> ImportJob:
        """
        Cancel a job. Results not yet checkpointed are discarded.

        Raises:
            JobNotFoundError: Unknown job id
            InvalidTransitionError: Job already finished
        """
        control = self._live.get(job_id)
        if control is None:
            async with self._start_lock:
                control = self._live.get(job_id)
                if control is None:
                    job = (await self._require_job(job_id)).transition(ImportStatus.CANCELLED)
                    await self._store.save_job(job)
                    return job

        async with control.lock:
            control.job = control.job.transition(ImportStatus.CANCELLED)
            control.cancel_requested = True
            await self._store.save_job(control.job)
        # Wake a paused loop so it can exit
        control.running.set()
        logger.info("Cancelled import %s at row %d", job_id, control.job.current_index)
        return control.job

    async def get_job(self, job_id: str) -> ImportJob:
        control = self._live.get(job_id)
        if control is not None:
            return control.job
        return await self._require_job(job_id)

    async def get_progress(self, job_id: str) -> ImportProgress:
        """Progress of a job, with live counts while it is being processed."""
        control = self._live.get(job_id)
        if control is not None:
            job, report, processed = control.job, control.report.copy(), control.processed
        else:
            job = await self._require_job(job_id)
            report, processed = job.report, job.current_index
        return ImportProgress(
            job_id=job.id,
            owner_id=job.owner_id,
            mode=job.mode,
            status=job.status,
            total_rows=job.total_rows,
            current_index=job.current_index,
            processed_rows=processed,
            report=report,
            language=job.language,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )

    async def list_jobs(self, owner_id: str, limit: int = 50) -> list[ImportJob]:
        jobs = await self._store.list_jobs(owner_id, limit)
        return [self._live[j.id].job if j.id in self._live else j for j in jobs]

    async def wait(self, job_id: str) -> ImportJob:
        """Wait for the job's processing task (if any) and return its final state."""
        control = self._live.get(job_id)
        if control is None or control.task is None:
            return await self._require_job(job_id)
        await asyncio.shield(control.task)
        return control.job

    def is_live(self, job_id: str) -> bool:
        return job_id in self._live

    async def shutdown(self) -> None:
        """
        Stop every processing task.

        Jobs keep their stored status and checkpoint, so resume() picks them
        up after a restart.
        """
        tasks = [c.task for c in self._live.values() if c.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Stopped %d import tasks", len(tasks))

    # =========================================================================
    # PROCESSING
    # =========================================================================

    async def _require_job(self, job_id: str) -> ImportJob:
        job = await self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _launch(self, job: ImportJob, rows: list[ParsedRow]) -> None:
        control = _JobControl(job=job, report=job.report.copy(), processed=job.current_index)
        control.running.set()
        self._live[job.id] = control
        control.task = asyncio.create_task(self._run(control, rows), name=f"import-{job.id}")

    async def _run(self, control: _JobControl, rows: list[ParsedRow]) -> None:
        job_id = control.job.id
        try:
            await self._process(control, rows)
        except PersistenceError as e:
            logger.error("Import %s failed: %s (%s)", job_id, e.message, e.detail)
            await self._mark_failed(control, e.message)
        except Exception as e:
            logger.exception("Import %s crashed", job_id)
            await self._mark_failed(control, f"Unexpected error: {e}")
        finally:
            self._live.pop(job_id, None)

    async def _mark_failed(self, control: _JobControl, message: str) -> None:
        async with control.lock:
            if control.job.status.is_terminal:
                return
            control.job = control.job.transition(ImportStatus.FAILED, error=message)
            try:
                await self._store.save_job(control.job)
            except PersistenceError as e:
                logger.error("Could not record failure of import %s: %s", control.job.id, e.detail)

    async def _process(self, control: _JobControl, rows: list[ParsedRow]) -> None:
        job = control.job
        report = control.report
        index = job.current_index

        snapshot = {e.identity_key: e for e in await self._store.list_entries(job.owner_id)}
        seen: set[IdentityKey] = {row.identity_key for row in rows[:index]}
        writes = _PendingWrites()
        since_checkpoint = 0

        while index < len(rows):
            if not await self._wait_until_runnable(control, writes, index):
                return

            batch = rows[index : index + self.sub_batch_size]
            outcomes = await asyncio.gather(*(self._resolve_row(row, job.language) for row in batch))
            if control.cancel_requested:
                logger.info("Import %s: discarding %d resolved rows", job.id, len(batch))
                return

            for row, outcome in zip(batch, outcomes, strict=True):
                self._apply_row(job, row, outcome, snapshot, seen, writes, report)
            index += len(batch)
            since_checkpoint += len(batch)
            control.processed = index

            if since_checkpoint >= self.checkpoint_every:
                if not await self._checkpoint(control, writes, index):
                    return
                since_checkpoint = 0

        if job.mode == ImportMode.UPDATE:
            payload_keys = {row.identity_key for row in rows}
            for entry in snapshot.values():
                if entry.identity_key not in payload_keys:
                    writes.deletes.append(entry.id)
                    report.record_removed(entry.name, "Not in the imported list")

        await self._complete(control, writes, index)

    async def _wait_until_runnable(
        self, control: _JobControl, writes: _PendingWrites, index: int
    ) -> bool:
        """Block while paused. False when the job was cancelled."""
        if control.cancel_requested:
            return False
        if not control.running.is_set():
            if not await self._checkpoint(control, writes, index):
                return False
            logger.debug("Import %s waiting at row %d", control.job.id, index)
            await control.running.wait()
        return not control.cancel_requested

    async def _resolve_row(self, row: ParsedRow, language: str | None) -> _RowOutcome:
        try:
            card = await self._resolver.resolve(row, language or row.language)
        except KnownError as e:
            logger.warning("Could not resolve %r: %s", row.name, e.message)
            return _RowOutcome(error=e.message)
        except Exception as e:
            logger.warning("Could not resolve %r: %r", row.name, e)
            return _RowOutcome(error=str(e) or type(e).__name__)
        return _RowOutcome(card=card)

    def _apply_row(
        self,
        job: ImportJob,
        row: ParsedRow,
        outcome: _RowOutcome,
        snapshot: dict[IdentityKey, CollectionEntry],
        seen: set[IdentityKey],
        writes: _PendingWrites,
        report: ImportReport,
    ) -> None:
        if outcome.error is not None:
            report.record_error(row.name, outcome.error)
            return

        key = row.identity_key
        if key in seen:
            report.record_skipped(row.name, "Duplicate line in the imported list")
            return
        seen.add(key)

        existing = snapshot.get(key)
        card = outcome.card

        if job.mode == ImportMode.ADD:
            if existing is not None:
                report.record_skipped(row.name, "Already in the collection")
                return
            writes.adds.append(NewEntry(owner_id=job.owner_id, row=row, resolved=card))
            report.record_added(row.name, resolved=card is not None)
            return

        if existing is None:
            writes.adds.append(NewEntry(owner_id=job.owner_id, row=row, resolved=card))
            report.record_added(row.name, resolved=card is not None)
            return

        resolved = card or existing.resolved
        candidate = NewEntry(owner_id=job.owner_id, row=row, resolved=resolved)
        if not entries_differ(existing, candidate, self.diff_fields):
            report.record_skipped(row.name, "Unchanged")
            return
        writes.updates.append(existing.with_row(row, resolved))
        report.record_updated(row.name, resolved=resolved is not None)

    async def _flush(self, owner_id: str, writes: _PendingWrites) -> None:
        if not writes:
            return
        size = self._store.max_batch_operations
        created = 0
        for adds in _chunks(writes.adds, size):
            created += len(await self._store.create_entries(adds))
        for updates in _chunks(writes.updates, size):
            await self._store.update_entries(updates)
        for deletes in _chunks(writes.deletes, size):
            await self._store.delete_entries(deletes)
        logger.debug(
            "Flushed for %s: %d added, %d updated, %d removed",
            owner_id,
            created,
            len(writes.updates),
            len(writes.deletes),
        )
        writes.clear()

    async def _checkpoint(self, control: _JobControl, writes: _PendingWrites, index: int) -> bool:
        """Flush writes and persist progress. False when the job was cancelled."""
        async with control.lock:
            if control.cancel_requested:
                return False
            await self._flush(control.job.owner_id, writes)
            control.job = control.job.checkpoint(index, control.report.copy())
            await self._store.save_job(control.job)
        logger.debug("Import %s checkpoint at row %d", control.job.id, index)
        return True

    async def _complete(self, control: _JobControl, writes: _PendingWrites, index: int) -> None:
        while True:
            if not await self._wait_until_runnable(control, writes, index):
                return
            async with control.lock:
                if control.cancel_requested:
                    return
                if control.job.status == ImportStatus.PAUSED:
                    # Paused between the wait and the lock
                    continue
                await self._flush(control.job.owner_id, writes)
                control.report.seal()
                control.job = control.job.checkpoint(index, control.report).transition(
                    ImportStatus.COMPLETED
                )
                await self._store.save_job(control.job)
                break

        counts: dict[str, Any] = control.report.counts()
        logger.info("Completed import %s: %s", control.job.id, counts)
