"""Configuration management using Pydantic.

Provides:
- Typed checkpoint options with validation
- YAML file loading with defaults
- Environment variable overrides (PGRESPAWN_*)
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgrespawn.core.exceptions import ConfigurationError
from pgrespawn.core.validation import (
    validate_extension_name,
    validate_identifier,
    validate_timeout,
)


DEFAULT_CONFIG_PATH = Path("pgrespawn.yaml")
DEFAULT_CACHE_SUFFIX = "__respawn_cache"
DEFAULT_SYSTEM_DATABASE = "postgres"
DEFAULT_EXTENSIONS = ("dblink",)


class TableRef(BaseModel):
    """A table the reset engine should leave alone."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    schema_name: Optional[str] = Field(None, alias="schema")

    @classmethod
    def parse(cls, value: str) -> "TableRef":
        """Parse ``"schema.table"`` or ``"table"``."""
        schema, _, name = value.rpartition(".")
        return cls(name=name, schema=schema or None)

    def __str__(self) -> str:
        if self.schema_name:
            return f"{self.schema_name}.{self.name}"
        return self.name


class CheckpointOptions(BaseModel):
    """Options for a PostgresCheckpoint.

    ``tables_to_ignore`` and the schema filters are handed to the reset
    engine untouched; the checkpoint itself never looks at them.
    """

    tables_to_ignore: list[TableRef] = Field(default_factory=list)
    schemas_to_include: list[str] = Field(default_factory=list)
    schemas_to_exclude: list[str] = Field(default_factory=list)

    command_timeout: Optional[int] = None  # seconds
    auto_create_extensions: bool = False
    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))

    cache_suffix: str = DEFAULT_CACHE_SUFFIX
    system_database: str = DEFAULT_SYSTEM_DATABASE
    pool_max_size: int = 4

    @field_validator("tables_to_ignore", mode="before")
    @classmethod
    def parse_tables(cls, v: Any) -> Any:
        if v is None:
            return []
        return [TableRef.parse(t) if isinstance(t, str) else t for t in v]

    @field_validator("command_timeout")
    @classmethod
    def check_timeout(cls, v: Optional[int]) -> Optional[int]:
        return validate_timeout(v)

    @field_validator("extensions")
    @classmethod
    def check_extensions(cls, v: list[str]) -> list[str]:
        return [validate_extension_name(e) for e in v]

    @field_validator("cache_suffix")
    @classmethod
    def check_suffix(cls, v: str) -> str:
        return str(validate_identifier(v, "cache suffix"))

    @field_validator("system_database")
    @classmethod
    def check_system_database(cls, v: str) -> str:
        return str(validate_identifier(v, "database"))

    @field_validator("pool_max_size")
    @classmethod
    def check_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("pool_max_size must be at least 1")
        return v

    @classmethod
    def load(cls, path: Path) -> "CheckpointOptions":
        """Load options from a YAML file.

        Args:
            path: Path to options file

        Returns:
            Loaded options

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it, or call load_or_default() to use defaults",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError as e:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions",
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {path}",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "CheckpointOptions":
        """Load options, falling back to defaults if the file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert options to YAML string."""
        data = self.model_dump(exclude_none=True, by_alias=True)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class RespawnSettings(BaseSettings):
    """Overrides read from PGRESPAWN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PGRESPAWN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    command_timeout: Optional[int] = None
    auto_create_extensions: Optional[bool] = None
    cache_suffix: Optional[str] = None
    system_database: Optional[str] = None
    verbosity: int = 1


def load_options(
    path: Optional[Path] = None,
    settings: Optional[RespawnSettings] = None,
    **overrides: Any,
) -> CheckpointOptions:
    """Build options from file defaults, environment, then explicit overrides.

    Args:
        path: Options file (default: ./pgrespawn.yaml if present)
        settings: Pre-loaded settings (read from environment if None)
        **overrides: Highest-priority option values

    Raises:
        ConfigurationError: If the merged options are invalid
    """
    base = CheckpointOptions.load_or_default(path)
    settings = settings or RespawnSettings()
    env = settings.model_dump(exclude_none=True, exclude={"verbosity"})

    merged = {**base.model_dump(by_alias=True), **env, **overrides}
    try:
        return CheckpointOptions.model_validate(merged)
    except Exception as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            hint="Check PGRESPAWN_* environment variables",
            details=[str(e)],
        ) from e
