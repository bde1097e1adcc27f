"""
Application settings loaded from environment variables.

Uses pydantic-settings to validate and type-cast env vars at startup.
The field mapping and index definitions live in a JSON file referenced
by ``MAPPING_FILE``; everything else is a plain scalar setting.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from docloader.core.exceptions import ConfigurationException
from docloader.schemas.mapping_schema import MappingFile, PipelineConfig


class Settings(BaseSettings):
    """Centralised application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ───────────────────────────────────────────────────
    app_name: str = "docloader"
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = False
    app_version: str = "1.0.0"

    # ── Server ────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8000

    # ── Document store ────────────────────────────────────────────────
    mongo_host: str = "localhost"
    mongo_port: int = 27017
    mongo_username: str = ""
    mongo_password: str = ""
    mongo_auth_database: str = "admin"
    mongo_database: str = ""
    mongo_collection: str = ""
    mongo_connect_timeout_ms: int = 10000

    # ── Write behaviour ───────────────────────────────────────────────
    batch_insert_size: int = Field(default=100, ge=1)
    write_retries: int = Field(default=5, ge=0)
    write_retry_delay: float = Field(default=10, ge=0)
    truncate: bool = False
    upsert: bool = False
    modifier_update: bool = False
    multi: bool = False

    # ── Field mapping ─────────────────────────────────────────────────
    mapping_file: Path | None = None

    # ── Logging ───────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ── CORS ──────────────────────────────────────────────────────────
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def mongo_hosts(self) -> list[str]:
        return [h.strip() for h in self.mongo_host.split(",") if h.strip()]

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def load_mapping(self) -> MappingFile:
        """
        Read the JSON mapping file (fields + indexes).

        Raises:
            ConfigurationException: If no file is configured or it is unreadable.
        """
        if self.mapping_file is None:
            raise ConfigurationException(
                message="No mapping file configured (MAPPING_FILE).",
            )
        try:
            raw = self.mapping_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationException(
                message=f"Cannot read mapping file '{self.mapping_file}'.",
                details={"reason": str(exc)},
            ) from exc
        try:
            return MappingFile.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigurationException(
                message=f"Invalid mapping file '{self.mapping_file}'.",
                details={"reason": str(exc)},
            ) from exc

    def pipeline_config(self, mapping: MappingFile | None = None) -> PipelineConfig:
        """
        Build the immutable per-instance pipeline configuration.

        Args:
            mapping: Field/index definitions; read from ``mapping_file`` when omitted.
        """
        mapping = mapping or self.load_mapping()
        return PipelineConfig.build(
            database=self.mongo_database,
            collection=self.mongo_collection,
            batch_insert_size=self.batch_insert_size,
            write_retries=self.write_retries,
            write_retry_delay=self.write_retry_delay,
            truncate=self.truncate,
            upsert=self.upsert,
            modifier_update=self.modifier_update,
            multi=self.multi,
            fields=mapping.fields,
            indexes=mapping.indexes,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Cached singleton — settings are read once and reused.
    """
    return Settings()
