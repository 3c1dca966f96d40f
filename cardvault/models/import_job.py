"""
Import job models.

ImportJob is the unit of work owned by the orchestrator; ImportReport is the
per-run accumulator it checkpoints.

INVARIANTS:
- 0 <= current_index <= total_rows
- Status transitions are monotonic except paused <-> running
- A sealed report rejects further updates
"""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from cardvault.models.failure import InvalidTransitionError


class ImportMode(str, Enum):
    """How rows are applied to the existing collection."""

    ADD = "add"
    UPDATE = "update"


class ImportStatus(str, Enum):
    """Lifecycle of an import job."""

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ImportStatus.COMPLETED, ImportStatus.CANCELLED, ImportStatus.FAILED})

ACTIVE_STATUSES = frozenset({ImportStatus.PENDING, ImportStatus.RUNNING, ImportStatus.PAUSED})

ALLOWED_TRANSITIONS: dict[ImportStatus, frozenset[ImportStatus]] = {
    ImportStatus.PENDING: frozenset(
        {ImportStatus.RUNNING, ImportStatus.CANCELLED, ImportStatus.FAILED}
    ),
    ImportStatus.RUNNING: frozenset(
        {
            ImportStatus.PAUSED,
            ImportStatus.COMPLETED,
            ImportStatus.CANCELLED,
            ImportStatus.FAILED,
        }
    ),
    ImportStatus.PAUSED: frozenset(
        {ImportStatus.RUNNING, ImportStatus.CANCELLED, ImportStatus.FAILED}
    ),
    ImportStatus.COMPLETED: frozenset(),
    ImportStatus.CANCELLED: frozenset(),
    ImportStatus.FAILED: frozenset(),
}


class RowStatus(str, Enum):
    """Outcome of one row, as shown in the report details."""

    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class ReportDetail:
    name: str
    status: RowStatus
    message: str | None = None


@dataclass
class ImportReport:
    """
    Running totals for an import.

    `success` counts rows that were added or updated; skipped rows are only
    counted in `skipped`. `unresolved` counts applied rows that no provider
    matched.
    Details are capped at `max_details`; counts are never capped.
    """

    success: int = 0
    errors: int = 0
    skipped: int = 0
    added: int = 0
    updated: int = 0
    removed: int = 0
    unresolved: int = 0
    details: list[ReportDetail] = field(default_factory=list)
    max_details: int = 1000
    _sealed: bool = field(default=False, repr=False, compare=False)

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True

    def _check_open(self) -> None:
        if self._sealed:
            raise RuntimeError("Import report is sealed")

    def _detail(self, name: str, status: RowStatus, message: str | None) -> None:
        if len(self.details) < self.max_details:
            self.details.append(ReportDetail(name=name, status=status, message=message))

    def record_added(self, name: str, message: str | None = None, resolved: bool = True) -> None:
        self._check_open()
        self.added += 1
        self.success += 1
        if not resolved:
            self.unresolved += 1
        self._detail(name, RowStatus.ADDED, message)

    def record_updated(self, name: str, message: str | None = None, resolved: bool = True) -> None:
        self._check_open()
        self.updated += 1
        self.success += 1
        if not resolved:
            self.unresolved += 1
        self._detail(name, RowStatus.UPDATED, message)

    def record_skipped(self, name: str, message: str | None = None) -> None:
        self._check_open()
        self.skipped += 1
        self._detail(name, RowStatus.SKIPPED, message)

    def record_error(self, name: str, message: str) -> None:
        self._check_open()
        self.errors += 1
        self._detail(name, RowStatus.ERROR, message)

    def record_removed(self, name: str, message: str | None = None) -> None:
        self._check_open()
        self.removed += 1
        self._detail(name, RowStatus.REMOVED, message)

    def copy(self) -> "ImportReport":
        """Unsealed snapshot that shares no mutable state with this report."""
        return ImportReport(
            success=self.success,
            errors=self.errors,
            skipped=self.skipped,
            added=self.added,
            updated=self.updated,
            removed=self.removed,
            unresolved=self.unresolved,
            details=list(self.details),
            max_details=self.max_details,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "errors": self.errors,
            "skipped": self.skipped,
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "unresolved": self.unresolved,
            "details": [
                {"name": d.name, "status": d.status.value, "message": d.message}
                for d in self.details
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, max_details: int = 1000) -> "ImportReport":
        if not data:
            return cls(max_details=max_details)
        return cls(
            success=int(data.get("success", 0)),
            errors=int(data.get("errors", 0)),
            skipped=int(data.get("skipped", 0)),
            added=int(data.get("added", 0)),
            updated=int(data.get("updated", 0)),
            removed=int(data.get("removed", 0)),
            unresolved=int(data.get("unresolved", 0)),
            details=[
                ReportDetail(name=d["name"], status=RowStatus(d["status"]), message=d.get("message"))
                for d in data.get("details", [])
            ],
            max_details=max_details,
        )

    def counts(self) -> dict[str, int]:
        data = self.to_dict()
        del data["details"]
        return data


@dataclass(frozen=True, slots=True)
class ImportJob:
    """
    A persisted import run.

    `source_payload` is the original upload, kept so the job can be resumed
    without re-uploading.
    """

    id: str
    owner_id: str
    mode: ImportMode
    status: ImportStatus
    total_rows: int
    source_payload: str
    payload_hash: str
    current_index: int = 0
    report: ImportReport = field(default_factory=ImportReport)
    language: str | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    paused_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.current_index <= self.total_rows:
            raise ValueError(
                f"current_index {self.current_index} outside 0..{self.total_rows} for job {self.id}"
            )

    def transition(self, status: ImportStatus, error: str | None = None) -> "ImportJob":
        """
        Return a copy of this job in `status`.

        Raises:
            InvalidTransitionError: If the status machine forbids the move
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, status.value)

        now = datetime.now(UTC)
        changes: dict[str, Any] = {"status": status, "updated_at": now}
        if status == ImportStatus.PAUSED:
            changes["paused_at"] = now
        if status == ImportStatus.COMPLETED:
            changes["completed_at"] = now
        if error is not None:
            changes["error"] = error
        return replace(self, **changes)

    def checkpoint(self, current_index: int, report: ImportReport) -> "ImportJob":
        """Return a copy carrying new progress."""
        return replace(
            self,
            current_index=current_index,
            report=report,
            updated_at=datetime.now(UTC),
        )
