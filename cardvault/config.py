from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CardVault"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/cardvault"

    # Upstream card data providers
    scryfall_api_url: str = "https://api.scryfall.com"
    mtgio_api_url: str = "https://api.magicthegathering.io/v1"
    user_agent: str = "CardVault/1.0"
    http_timeout: float = 30.0

    # Retry/backoff for upstream calls
    retry_max_retries: int = 3
    retry_initial_delay: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay: float = 16.0

    # Shared request queue and lookup cache
    queue_concurrency: int = 3
    cache_max_entries: int = 500
    cache_ttl_seconds: float | None = 3600.0

    # Import pipeline
    import_sub_batch_size: int = 8
    import_checkpoint_every: int = 5
    import_write_batch_size: int = 500
    import_max_report_details: int = 1000
    import_max_payload_bytes: int = 900_000
    import_diff_fields: list[str] = [
        "quantity",
        "condition",
        "language",
        "rarity",
        "provider_id",
    ]

    # Localized name table (name_en -> name_localized), optional
    translations_path: Path | None = None


settings = Settings()


# =============================================================================
# IMPORT PIPELINE LIMITS
# =============================================================================

# Largest number of details echoed back by the progress endpoint
MAX_PROGRESS_DETAILS = 50
