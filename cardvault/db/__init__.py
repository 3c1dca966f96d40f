from cardvault.db.database import (
    create_session_factory,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from cardvault.db.operations import (
    create_entries,
    create_job,
    delete_entries,
    entry_to_model,
    get_active_job,
    get_entries_for_owner,
    get_job,
    job_to_model,
    list_jobs,
    save_job,
    update_entries,
)
from cardvault.db.store import ImportStore, SqlImportStore

__all__ = [
    "ImportStore",
    "SqlImportStore",
    "create_entries",
    "create_job",
    "create_session_factory",
    "delete_entries",
    "entry_to_model",
    "get_active_job",
    "get_engine",
    "get_entries_for_owner",
    "get_job",
    "get_session",
    "get_session_factory",
    "init_db",
    "job_to_model",
    "list_jobs",
    "save_job",
    "update_entries",
]
