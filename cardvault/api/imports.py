"""
Import API endpoints.

Start, inspect and control bulk card imports. Processing runs in the
background; clients poll GET /imports/{job_id} for progress.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from cardvault.api.dependencies import get_services
from cardvault.bootstrap import Services
from cardvault.config import MAX_PROGRESS_DETAILS
from cardvault.models.import_job import ImportJob, ImportMode, ImportStatus
from cardvault.services.import_orchestrator import ImportProgress

router = APIRouter(prefix="/imports", tags=["imports"])


class ImportStartRequest(BaseModel):
    """Request model for starting an import."""

    owner_id: str = Field(..., min_length=1, description="Collection owner")
    payload: str = Field(
        ...,
        description="Card list as CSV (with or without header) or '4 Card Name' lines",
        examples=["Name,Quantity,Set code\nLightning Bolt,4,M21"],
    )
    mode: ImportMode = Field(
        default=ImportMode.ADD,
        description="'add' skips cards already owned; 'update' syncs the collection to the list",
    )
    language: str | None = Field(
        default=None,
        description="Preferred language for card names (e.g. 'fr')",
    )


class ImportStartResponse(BaseModel):
    job_id: str
    status: ImportStatus


class ImportJobSummary(BaseModel):
    """Job status without row details."""

    job_id: str
    owner_id: str
    mode: ImportMode
    status: ImportStatus
    total_rows: int
    current_index: int
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: ImportJob) -> "ImportJobSummary":
        return cls(
            job_id=job.id,
            owner_id=job.owner_id,
            mode=job.mode,
            status=job.status,
            total_rows=job.total_rows,
            current_index=job.current_index,
            error=job.error,
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
        )


class ReportDetailResponse(BaseModel):
    name: str
    status: str
    message: str | None = None


class ImportProgressResponse(BaseModel):
    """Progress with report counts and the most recent row details."""

    job_id: str
    owner_id: str
    mode: ImportMode
    status: ImportStatus
    total_rows: int
    current_index: int
    processed_rows: int
    percent: float
    counts: dict[str, int]
    details: list[ReportDetailResponse] = Field(default_factory=list)
    language: str | None = None
    error: str | None = None

    @classmethod
    def from_progress(cls, progress: ImportProgress) -> "ImportProgressResponse":
        recent = progress.report.details[-MAX_PROGRESS_DETAILS:]
        return cls(
            job_id=progress.job_id,
            owner_id=progress.owner_id,
            mode=progress.mode,
            status=progress.status,
            total_rows=progress.total_rows,
            current_index=progress.current_index,
            processed_rows=progress.processed_rows,
            percent=progress.percent,
            counts=progress.report.counts(),
            details=[
                ReportDetailResponse(name=d.name, status=d.status.value, message=d.message)
                for d in recent
            ],
            language=progress.language,
            error=progress.error,
        )


@router.post("", response_model=ImportStartResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_import(
    request: ImportStartRequest,
    services: Annotated[Services, Depends(get_services)],
) -> ImportStartResponse:
    """
    Start a background import.

    Returns 409 if the owner already has an import in progress and 400 if
    the payload holds no importable rows.
    """
    job_id = await services.orchestrator.start(
        request.owner_id, request.payload, request.mode, request.language
    )
    job = await services.orchestrator.get_job(job_id)
    return ImportStartResponse(job_id=job_id, status=job.status)


@router.get("", response_model=list[ImportJobSummary])
async def list_imports(
    owner_id: Annotated[str, Query(min_length=1)],
    services: Annotated[Services, Depends(get_services)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[ImportJobSummary]:
    """Most recent imports of an owner, newest first."""
    jobs = await services.orchestrator.list_jobs(owner_id, limit)
    return [ImportJobSummary.from_job(job) for job in jobs]


@router.get("/{job_id}", response_model=ImportProgressResponse)
async def get_import(
    job_id: str,
    services: Annotated[Services, Depends(get_services)],
) -> ImportProgressResponse:
    progress = await services.orchestrator.get_progress(job_id)
    return ImportProgressResponse.from_progress(progress)


@router.post("/{job_id}/pause", response_model=ImportJobSummary)
async def pause_import(
    job_id: str,
    services: Annotated[Services, Depends(get_services)],
) -> ImportJobSummary:
    return ImportJobSummary.from_job(await services.orchestrator.pause(job_id))


@router.post("/{job_id}/resume", response_model=ImportJobSummary)
async def resume_import(
    job_id: str,
    services: Annotated[Services, Depends(get_services)],
) -> ImportJobSummary:
    """Resume a paused or interrupted import. A completed import is returned as is."""
    return ImportJobSummary.from_job(await services.orchestrator.resume(job_id))


@router.post("/{job_id}/cancel", response_model=ImportJobSummary)
async def cancel_import(
    job_id: str,
    services: Annotated[Services, Depends(get_services)],
) -> ImportJobSummary:
    return ImportJobSummary.from_job(await services.orchestrator.cancel(job_id))
