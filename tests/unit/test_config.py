"""Unit tests for checkpoint configuration."""

from pathlib import Path

import pytest

from pgrespawn.core.config import (
    CheckpointOptions,
    RespawnSettings,
    TableRef,
    load_options,
)
from pgrespawn.core.exceptions import ConfigurationError


class TestTableRef:
    """Tests for TableRef parsing."""

    def test_schema_qualified(self):
        """'schema.table' splits on the last dot."""
        ref = TableRef.parse("audit.events")
        assert ref.schema_name == "audit"
        assert ref.name == "events"
        assert str(ref) == "audit.events"

    def test_unqualified(self):
        """Bare table names have no schema."""
        ref = TableRef.parse("schema_migrations")
        assert ref.schema_name is None
        assert str(ref) == "schema_migrations"


class TestCheckpointOptions:
    """Tests for option defaults and validation."""

    def test_defaults(self):
        """Defaults match the documented behaviour."""
        options = CheckpointOptions()
        assert options.cache_suffix == "__respawn_cache"
        assert options.system_database == "postgres"
        assert options.extensions == ["dblink"]
        assert options.auto_create_extensions is False
        assert options.command_timeout is None
        assert options.tables_to_ignore == []

    def test_tables_from_strings(self):
        """Table names given as strings are parsed."""
        options = CheckpointOptions(tables_to_ignore=["schema_migrations", "audit.events"])
        assert options.tables_to_ignore == [
            TableRef(name="schema_migrations"),
            TableRef(name="events", schema="audit"),
        ]


class TestLoadFromFile:
    """Tests for YAML loading."""

    def test_missing_file(self, tmp_path: Path):
        """A missing file is a configuration error."""
        with pytest.raises(ConfigurationError) as exc:
            CheckpointOptions.load(tmp_path / "missing.yaml")
        assert "not found" in str(exc.value)

    def test_load_or_default_missing(self, tmp_path: Path):
        """Missing files fall back to defaults."""
        options = CheckpointOptions.load_or_default(tmp_path / "missing.yaml")
        assert options == CheckpointOptions()

    def test_valid_file(self, tmp_path: Path):
        """Values in the file are applied."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text(
            "command_timeout: 60\n"
            "auto_create_extensions: true\n"
            "schemas_to_include: [public]\n"
            "tables_to_ignore:\n"
            "  - schema_migrations\n"
            "  - {name: events, schema: audit}\n"
        )
        options = CheckpointOptions.load(path)
        assert options.command_timeout == 60
        assert options.auto_create_extensions is True
        assert options.schemas_to_include == ["public"]
        assert [str(t) for t in options.tables_to_ignore] == ["schema_migrations", "audit.events"]

    def test_empty_file(self, tmp_path: Path):
        """An empty file means defaults."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text("")
        assert CheckpointOptions.load(path) == CheckpointOptions()

    def test_invalid_yaml(self, tmp_path: Path):
        """Broken YAML is a configuration error."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text("command_timeout: [unclosed\n")
        with pytest.raises(ConfigurationError) as exc:
            CheckpointOptions.load(path)
        assert "Invalid YAML" in str(exc.value)

    def test_not_a_mapping(self, tmp_path: Path):
        """Top-level lists are rejected."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError) as exc:
            CheckpointOptions.load(path)
        assert "mapping" in str(exc.value)

    @pytest.mark.parametrize(
        "content",
        [
            "command_timeout: 0\n",
            "cache_suffix: '; DROP'\n",
            "system_database: 'my db'\n",
            "extensions: ['dblink; DROP SCHEMA public']\n",
            "pool_max_size: 0\n",
        ],
    )
    def test_invalid_values(self, tmp_path: Path, content):
        """Invalid option values are configuration errors."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text(content)
        with pytest.raises(ConfigurationError):
            CheckpointOptions.load(path)

    def test_to_yaml_round_trip(self, tmp_path: Path):
        """to_yaml output loads back to the same options."""
        options = CheckpointOptions(
            tables_to_ignore=["audit.events"],
            command_timeout=15,
        )
        path = tmp_path / "pgrespawn.yaml"
        path.write_text(options.to_yaml())
        assert CheckpointOptions.load(path) == options


class TestLoadOptions:
    """Tests for layered option loading."""

    def test_environment_overrides_file(self, tmp_path: Path, monkeypatch):
        """PGRESPAWN_* variables win over the file."""
        path = tmp_path / "pgrespawn.yaml"
        path.write_text("command_timeout: 60\ncache_suffix: _cache\n")
        monkeypatch.setenv("PGRESPAWN_COMMAND_TIMEOUT", "5")

        options = load_options(path, settings=RespawnSettings(_env_file=None))
        assert options.command_timeout == 5
        assert options.cache_suffix == "_cache"

    def test_explicit_overrides_win(self, tmp_path: Path):
        """Keyword overrides win over file and environment."""
        settings = RespawnSettings(_env_file=None, command_timeout=5)
        options = load_options(
            tmp_path / "missing.yaml",
            settings=settings,
            command_timeout=90,
        )
        assert options.command_timeout == 90

    def test_invalid_environment(self, tmp_path: Path):
        """Bad environment values surface as configuration errors."""
        settings = RespawnSettings(_env_file=None, cache_suffix="bad suffix")
        with pytest.raises(ConfigurationError) as exc:
            load_options(tmp_path / "missing.yaml", settings=settings)
        assert exc.value.hint is not None
