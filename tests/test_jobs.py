"""Tests for the command line import job."""

import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardvault.db.store import SqlImportStore
from cardvault.jobs.run_import import main, run_import
from cardvault.models.import_job import ImportMode, ImportStatus

MTGIO = "https://api.magicthegathering.io/v1"


@pytest.fixture
def patched_db(session_factory: async_sessionmaker[AsyncSession]) -> Iterator[None]:
    with (
        patch("cardvault.jobs.run_import.init_db", new_callable=AsyncMock),
        patch("cardvault.jobs.run_import.get_session_factory", return_value=session_factory),
    ):
        yield


class TestRunImport:
    @respx.mock
    async def test_imports_file(
        self, tmp_path: Path, patched_db: None, store: SqlImportStore
    ) -> None:
        respx.get(f"{MTGIO}/cards").mock(
            return_value=httpx.Response(200, json={"cards": [{"name": "Shock", "set": "M21"}]})
        )
        path = tmp_path / "cards.txt"
        path.write_text("2 Shock\n", encoding="utf-8")

        job = await run_import(path, "alice", ImportMode.ADD)

        assert job.status == ImportStatus.COMPLETED
        assert job.report.added == 1
        entries = await store.list_entries("alice")
        assert [(e.name, e.quantity) for e in entries] == [("Shock", 2)]

    async def test_requires_file_and_owner(self, patched_db: None) -> None:
        with pytest.raises(ValueError):
            await run_import(None, None)

    async def test_resume_completed_job(
        self, tmp_path: Path, patched_db: None, store: SqlImportStore
    ) -> None:
        with respx.mock:
            respx.get(f"{MTGIO}/cards").mock(return_value=httpx.Response(200, json={"cards": []}))
            path = tmp_path / "cards.txt"
            path.write_text("Mystery Card\n", encoding="utf-8")
            first = await run_import(path, "alice")

        again = await run_import(None, None, resume_job_id=first.id)

        assert again.status == ImportStatus.COMPLETED
        assert again.report.counts() == first.report.counts()
        assert len(await store.list_entries("alice")) == 1


class TestMain:
    def test_owner_required_without_resume(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "argv", ["cardvault-import", "cards.csv"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 2
