"""
Run a card list import from the command line.

    python -m cardvault.jobs.run_import cards.csv --owner alice --mode update
    python -m cardvault.jobs.run_import --resume 3f2c...

The job is stored like any API-started import, so an interrupted run can be
resumed here or through the API.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from cardvault.bootstrap import build_services
from cardvault.config import settings
from cardvault.db.database import get_session_factory, init_db
from cardvault.models.import_job import ImportJob, ImportMode, ImportStatus

logger = logging.getLogger(__name__)


async def run_import(
    path: Path | None,
    owner_id: str | None,
    mode: ImportMode = ImportMode.ADD,
    language: str | None = None,
    resume_job_id: str | None = None,
) -> ImportJob:
    """
    Start (or resume) an import and wait for it to finish.

    Returns:
        The job in its final state
    """
    await init_db()
    services = build_services(settings, get_session_factory())
    try:
        if resume_job_id:
            await services.orchestrator.resume(resume_job_id)
            job_id = resume_job_id
        else:
            if path is None or owner_id is None:
                raise ValueError("A file and an owner are required to start an import")
            payload = path.read_text(encoding="utf-8")
            job_id = await services.orchestrator.start(owner_id, payload, mode, language)
        job = await services.orchestrator.wait(job_id)
    finally:
        await services.aclose()

    logger.info("Import %s finished as %s: %s", job.id, job.status.value, job.report.counts())
    if job.error:
        logger.error("Import %s error: %s", job.id, job.error)
    return job


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Import a card list into a collection")
    parser.add_argument("file", nargs="?", type=Path, help="CSV or text card list")
    parser.add_argument("--owner", help="Collection owner id")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in ImportMode],
        default=ImportMode.ADD.value,
        help="add: skip owned cards; update: sync the collection to the list",
    )
    parser.add_argument("--language", help="Preferred card language, e.g. fr")
    parser.add_argument("--resume", metavar="JOB_ID", help="Resume an interrupted import")
    args = parser.parse_args()

    if not args.resume and (args.file is None or not args.owner):
        parser.error("FILE and --owner are required unless --resume is given")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    job = asyncio.run(
        run_import(args.file, args.owner, ImportMode(args.mode), args.language, args.resume)
    )
    if job.status != ImportStatus.COMPLETED:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
