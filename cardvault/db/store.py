"""
Persistence collaborator for the import orchestrator.

ImportStore is the interface the orchestrator depends on. SqlImportStore
implements it over the async SQLAlchemy operations, one transaction per call,
and reports every database failure as PersistenceError.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardvault.db import operations
from cardvault.models.collection import CollectionEntry, NewEntry
from cardvault.models.failure import PersistenceError
from cardvault.models.import_job import ImportJob

logger = logging.getLogger(__name__)

# Largest number of operations accepted in one batched write
DEFAULT_MAX_BATCH_OPERATIONS = 500


class ImportStore(Protocol):
    """Keyed storage for jobs and collection entries."""

    max_batch_operations: int

    async def create_job(self, job: ImportJob) -> None: ...

    async def get_job(self, job_id: str) -> ImportJob | None: ...

    async def get_active_job(self, owner_id: str) -> ImportJob | None: ...

    async def list_jobs(self, owner_id: str, limit: int = 50) -> list[ImportJob]: ...

    async def save_job(self, job: ImportJob) -> None: ...

    async def list_entries(self, owner_id: str) -> list[CollectionEntry]: ...

    async def create_entries(self, entries: list[NewEntry]) -> list[str]: ...

    async def update_entries(self, entries: list[CollectionEntry]) -> None: ...

    async def delete_entries(self, entry_ids: list[str]) -> None: ...


class SqlImportStore:
    """ImportStore backed by a SQLAlchemy async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_batch_operations: int = DEFAULT_MAX_BATCH_OPERATIONS,
        max_report_details: int = 1000,
    ) -> None:
        if max_batch_operations < 1:
            raise ValueError("max_batch_operations must be at least 1")
        self._session_factory = session_factory
        self.max_batch_operations = max_batch_operations
        self._max_report_details = max_report_details

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """Session committed on success; any database error becomes PersistenceError."""
        try:
            async with self._session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except SQLAlchemyError:
                    await session.rollback()
                    raise
        except SQLAlchemyError as e:
            logger.error("Database error during %s: %s", operation, e)
            raise PersistenceError(operation, str(e)) from e

    def _check_batch(self, size: int, operation: str) -> None:
        if size > self.max_batch_operations:
            raise PersistenceError(
                operation,
                f"batch of {size} exceeds limit of {self.max_batch_operations} operations",
            )

    # --- Jobs ---

    async def create_job(self, job: ImportJob) -> None:
        async with self._transaction("create import job") as session:
            await operations.create_job(session, job)

    async def get_job(self, job_id: str) -> ImportJob | None:
        async with self._transaction("read import job") as session:
            db_job = await operations.get_job(session, job_id)
            return operations.job_to_model(db_job, self._max_report_details) if db_job else None

    async def get_active_job(self, owner_id: str) -> ImportJob | None:
        async with self._transaction("read active import job") as session:
            db_job = await operations.get_active_job(session, owner_id)
            return operations.job_to_model(db_job, self._max_report_details) if db_job else None

    async def list_jobs(self, owner_id: str, limit: int = 50) -> list[ImportJob]:
        async with self._transaction("list import jobs") as session:
            db_jobs = await operations.list_jobs(session, owner_id, limit)
            return [operations.job_to_model(j, self._max_report_details) for j in db_jobs]

    async def save_job(self, job: ImportJob) -> None:
        try:
            async with self._transaction("save import job") as session:
                await operations.save_job(session, job)
        except LookupError as e:
            raise PersistenceError("save import job", str(e)) from e

    # --- Entries ---

    async def list_entries(self, owner_id: str) -> list[CollectionEntry]:
        async with self._transaction("read collection") as session:
            db_entries = await operations.get_entries_for_owner(session, owner_id)
            return [operations.entry_to_model(e) for e in db_entries]

    async def create_entries(self, entries: list[NewEntry]) -> list[str]:
        self._check_batch(len(entries), "add cards")
        if not entries:
            return []
        async with self._transaction("add cards") as session:
            db_entries = await operations.create_entries(session, entries)
            return [e.id for e in db_entries]

    async def update_entries(self, entries: list[CollectionEntry]) -> None:
        self._check_batch(len(entries), "update cards")
        async with self._transaction("update cards") as session:
            await operations.update_entries(session, entries)

    async def delete_entries(self, entry_ids: list[str]) -> None:
        self._check_batch(len(entry_ids), "remove cards")
        async with self._transaction("remove cards") as session:
            await operations.delete_entries(session, entry_ids)
