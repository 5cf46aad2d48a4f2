"""Pydantic models for db.toml configuration."""

from pydantic import BaseModel, Field, field_validator


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class MigrationSettings(BaseModel):
    """Tuning for the migration engine, from the ``[migration]`` table.

    ``commit_interval`` of ``None`` (or ``atomic = true``) defers every
    commit to the end of the run.
    """

    batch_size: int = 1000
    commit_interval: int | None = 5000
    atomic: bool = False

    @field_validator("batch_size")
    @classmethod
    def _positive_batch(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_size must be at least 1")
        return value

    @field_validator("commit_interval")
    @classmethod
    def _positive_interval(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("commit_interval must be at least 1")
        return value

    @property
    def effective_commit_interval(self) -> int | None:
        return None if self.atomic else self.commit_interval


class DatabaseConfig(BaseModel):
    """Complete database configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
