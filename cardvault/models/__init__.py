from cardvault.models.card import (
    DOUBLE_FACED_LAYOUTS,
    FACE_SEPARATOR,
    CanonicalCard,
    ForeignName,
    ParsedRow,
    identity_key,
    normalize_language,
)
from cardvault.models.collection import CollectionEntry, NewEntry, entries_differ
from cardvault.models.failure import (
    ActiveJobExistsError,
    FailureDetail,
    FailureKind,
    InvalidPayloadError,
    InvalidTransitionError,
    JobNotFoundError,
    KnownError,
    PersistenceError,
    QueueClearedError,
    TransportError,
    UpstreamError,
)
from cardvault.models.import_job import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ImportJob,
    ImportMode,
    ImportReport,
    ImportStatus,
    ReportDetail,
    RowStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "ActiveJobExistsError",
    "CanonicalCard",
    "CollectionEntry",
    "DOUBLE_FACED_LAYOUTS",
    "FACE_SEPARATOR",
    "FailureDetail",
    "FailureKind",
    "ForeignName",
    "ImportJob",
    "ImportMode",
    "ImportReport",
    "ImportStatus",
    "InvalidPayloadError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "KnownError",
    "NewEntry",
    "ParsedRow",
    "PersistenceError",
    "QueueClearedError",
    "ReportDetail",
    "RowStatus",
    "TERMINAL_STATUSES",
    "TransportError",
    "UpstreamError",
    "entries_differ",
    "identity_key",
    "normalize_language",
]
