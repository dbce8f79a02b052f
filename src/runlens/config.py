"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with RUNLENS_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: pydantic-settings auto-loads from environment, validates types,
provides defaults. Pricing lives here too so a price change is an env var,
not a code change.
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

LOG_LEVELS = ("debug", "info", "warning", "error")


class Settings(BaseSettings):
    """All app configuration. Set via RUNLENS_* env vars."""

    # Event store (embedded SQLite by default)
    database_url: str = "sqlite+aiosqlite:///~/.runlens/runlens.db"

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    # Logging — always stderr
    log_level: str = "info"
    json_logs: bool = True

    # Pricing tiers (USD per 1M tokens)
    price_input_per_1m: float = Field(0.075, ge=0)
    price_output_per_1m: float = Field(0.30, ge=0)
    price_flash_input_per_1m: float = Field(0.0375, ge=0)
    price_flash_output_per_1m: float = Field(0.15, ge=0)

    # Budget evaluation runs after these event kinds are recorded
    budget_check_kinds: list[str] = ["LLM_REQUEST", "LLM_RESPONSE", "TOOL_END"]

    model_config = {"env_prefix": "RUNLENS_"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @property
    def sqlite_path(self) -> Path | None:
        """Filesystem path of the SQLite database, or None for other backends."""
        prefix, sep, path = self.database_url.partition(":///")
        if not sep or not prefix.startswith("sqlite") or path in ("", ":memory:"):
            return None
        return Path(path).expanduser()

    @property
    def resolved_database_url(self) -> str:
        """database_url with a leading ~ expanded for SQLite paths."""
        path = self.sqlite_path
        if path is None:
            return self.database_url
        prefix = self.database_url.partition(":///")[0]
        return f"{prefix}:///{path}"


# Singleton — import this everywhere
settings = Settings()
