"""Runtime settings and storage backend selection."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .entity_store import EntityStore

_default_data_dir = Path(__file__).parent.parent.parent / "data"


class Settings(BaseSettings):
    """
    Application settings loaded from AQUAFLOW_* environment variables.
    """
    model_config = SettingsConfigDict(
        env_prefix="AQUAFLOW_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Storage
    backend: Literal["json", "sql"] = "json"
    data_dir: Path = _default_data_dir
    database_url: str | None = None  # defaults to sqlite in data_dir

    log_level: str = "INFO"

    # Business rules
    low_stock_threshold: int = 50
    invoice_due_days: int = 30
    seed_default_catalog: bool = True

    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_dir / 'aquaflow.db'}"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings."""
    return Settings()


def create_store(settings: Settings | None = None) -> EntityStore:
    """Build the storage backend the settings select."""
    settings = settings or get_settings()
    if settings.backend == "sql":
        from .sql_store import SqlEntityStore

        url = settings.resolved_database_url()
        if url.startswith("sqlite:///"):
            settings.data_dir.mkdir(parents=True, exist_ok=True)
        return SqlEntityStore(url)

    from .json_store import JsonEntityStore

    return JsonEntityStore(settings.data_dir)
