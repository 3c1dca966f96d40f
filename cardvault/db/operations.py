"""
Database CRUD operations.

Provides async functions for reading and writing collection entries and
import jobs. Callers own the session and the transaction.
"""

from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardvault.models.card import CanonicalCard, ParsedRow
from cardvault.models.collection import CollectionEntry, NewEntry
from cardvault.models.db import CollectionEntryDB, ImportJobDB
from cardvault.models.import_job import (
    ACTIVE_STATUSES,
    ImportJob,
    ImportMode,
    ImportReport,
    ImportStatus,
)

# --- Collection Entry Operations ---


def _row_columns(row: ParsedRow) -> dict[str, Any]:
    return {
        "name": row.name,
        "quantity": row.quantity,
        "set_code": row.set_code,
        "set_name": row.set_name,
        "collector_number": row.collector_number,
        "rarity": row.rarity,
        "condition": row.condition,
        "language": row.language,
        "multiverse_id": row.multiverse_id,
        "provider_id": row.provider_id,
    }


def entry_to_model(db_entry: CollectionEntryDB) -> CollectionEntry:
    """Convert a database entry to a domain model."""
    row = ParsedRow(
        name=db_entry.name,
        quantity=db_entry.quantity,
        set_code=db_entry.set_code,
        set_name=db_entry.set_name,
        collector_number=db_entry.collector_number,
        rarity=db_entry.rarity,
        condition=db_entry.condition,
        language=db_entry.language,
        multiverse_id=db_entry.multiverse_id,
        provider_id=db_entry.provider_id,
    )
    resolved = CanonicalCard.from_dict(db_entry.resolved) if db_entry.resolved else None
    return CollectionEntry(
        id=db_entry.id,
        owner_id=db_entry.owner_id,
        row=row,
        resolved=resolved,
        created_at=db_entry.created_at,
    )


async def get_entries_for_owner(session: AsyncSession, owner_id: str) -> list[CollectionEntryDB]:
    """All entries of one owner, oldest first."""
    result = await session.execute(
        select(CollectionEntryDB)
        .where(CollectionEntryDB.owner_id == owner_id)
        .order_by(CollectionEntryDB.created_at, CollectionEntryDB.id)
    )
    return list(result.scalars().all())


async def create_entries(session: AsyncSession, entries: list[NewEntry]) -> list[CollectionEntryDB]:
    """
    Insert new entries.

    Returns the ORM rows in input order, with ids assigned.
    """
    db_entries = [
        CollectionEntryDB(
            owner_id=entry.owner_id,
            resolved=entry.resolved.to_dict() if entry.resolved else None,
            **_row_columns(entry.row),
        )
        for entry in entries
    ]
    session.add_all(db_entries)
    await session.flush()
    return db_entries


async def update_entries(session: AsyncSession, entries: list[CollectionEntry]) -> int:
    """
    Overwrite row fields and resolution of existing entries, keyed by id.

    Returns the number of entries written.
    """
    if not entries:
        return 0
    await session.execute(
        update(CollectionEntryDB),
        [
            {
                "id": entry.id,
                "resolved": entry.resolved.to_dict() if entry.resolved else None,
                **_row_columns(entry.row),
            }
            for entry in entries
        ],
    )
    return len(entries)


async def delete_entries(session: AsyncSession, entry_ids: list[str]) -> int:
    """
    Delete entries by id.

    Returns the number of deleted records.
    """
    if not entry_ids:
        return 0
    result = await session.execute(
        delete(CollectionEntryDB).where(CollectionEntryDB.id.in_(entry_ids))
    )
    # rowcount is available on DELETE results; type stubs incomplete for async
    return int(result.rowcount)  # type: ignore[attr-defined]


# --- Import Job Operations ---


def job_to_model(db_job: ImportJobDB, max_details: int = 1000) -> ImportJob:
    """Convert a database job to a domain model."""
    return ImportJob(
        id=db_job.id,
        owner_id=db_job.owner_id,
        mode=ImportMode(db_job.mode),
        status=ImportStatus(db_job.status),
        total_rows=db_job.total_rows,
        current_index=db_job.current_index,
        source_payload=db_job.source_payload,
        payload_hash=db_job.payload_hash,
        report=ImportReport.from_dict(db_job.report, max_details=max_details),
        language=db_job.language,
        error=db_job.error,
        created_at=db_job.created_at,
        updated_at=db_job.updated_at,
        paused_at=db_job.paused_at,
        completed_at=db_job.completed_at,
    )


def _job_columns(job: ImportJob) -> dict[str, Any]:
    return {
        "owner_id": job.owner_id,
        "mode": job.mode.value,
        "status": job.status.value,
        "total_rows": job.total_rows,
        "current_index": job.current_index,
        "language": job.language,
        "source_payload": job.source_payload,
        "payload_hash": job.payload_hash,
        "report": job.report.to_dict(),
        "error": job.error,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
        "paused_at": job.paused_at,
        "completed_at": job.completed_at,
    }


async def get_job(session: AsyncSession, job_id: str) -> ImportJobDB | None:
    """
    Get an import job by id.

    Returns None if no such job exists.
    """
    return await session.get(ImportJobDB, job_id)


async def get_active_job(session: AsyncSession, owner_id: str) -> ImportJobDB | None:
    """Most recent non-terminal job for an owner, if any."""
    result = await session.execute(
        select(ImportJobDB)
        .where(
            ImportJobDB.owner_id == owner_id,
            ImportJobDB.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        .order_by(ImportJobDB.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_jobs(session: AsyncSession, owner_id: str, limit: int = 50) -> list[ImportJobDB]:
    """An owner's jobs, newest first."""
    result = await session.execute(
        select(ImportJobDB)
        .where(ImportJobDB.owner_id == owner_id)
        .order_by(ImportJobDB.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def create_job(session: AsyncSession, job: ImportJob) -> ImportJobDB:
    """Insert a job using the id already assigned by the caller."""
    db_job = ImportJobDB(id=job.id, **_job_columns(job))
    session.add(db_job)
    await session.flush()
    return db_job


async def save_job(session: AsyncSession, job: ImportJob) -> ImportJobDB:
    """
    Overwrite a stored job with the given state.

    Raises LookupError if the job does not exist.
    """
    db_job = await get_job(session, job.id)
    if db_job is None:
        raise LookupError(f"Import job {job.id} not found")

    for column, value in _job_columns(job).items():
        setattr(db_job, column, value)
    await session.flush()
    return db_job
