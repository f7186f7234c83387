from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import click
import pytest
from click.testing import CliRunner

from grid_cli.shared.cli import CLIContext, common_cli_options, handle_cli_errors
from grid_cli.shared.exceptions import ConfigurationError, GridEditError, ReadOnlyTableError


class DummyAppConfig:
    def __init__(self, db_path: Path, session_path: Path) -> None:
        self.database = SimpleNamespace(path=db_path)
        self.session = SimpleNamespace(path=session_path)

    def with_database_path(self, new_path: str | Path) -> DummyAppConfig:
        return DummyAppConfig(Path(new_path), self.session.path)

    def with_session_path(self, new_path: str | Path) -> DummyAppConfig:
        return DummyAppConfig(self.database.path, Path(new_path))


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _stub_config(tmp_path: Path) -> DummyAppConfig:
    return DummyAppConfig(tmp_path / "db.sqlite", tmp_path / "session.json")


def test_common_cli_options_builds_context(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    monkeypatch.setattr("grid_cli.shared.cli.load_config", lambda config_path: _stub_config(tmp_path))

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(f"dry={cli_ctx.dry_run} db={cli_ctx.db_path.name} session={cli_ctx.session_path.name}")

    result = runner.invoke(sample, [])

    assert result.exit_code == 0, result.output
    assert "dry=False db=db.sqlite session=session.json" in result.output


def test_common_cli_options_respects_dry_run(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    monkeypatch.setattr("grid_cli.shared.cli.load_config", lambda config_path: _stub_config(tmp_path))

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(f"dry={cli_ctx.dry_run}")

    result = runner.invoke(sample, ["--dry-run"])

    assert result.exit_code == 0, result.output
    assert "dry=True" in result.output


def test_common_cli_options_applies_path_overrides(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner, tmp_path: Path
) -> None:
    monkeypatch.setattr("grid_cli.shared.cli.load_config", lambda config_path: _stub_config(tmp_path))

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:
        click.echo(str(cli_ctx.db_path))
        click.echo(str(cli_ctx.session_path))

    override_db = tmp_path / "override.sqlite"
    override_session = tmp_path / "other-session.json"
    result = runner.invoke(sample, ["--db", str(override_db), "--session", str(override_session)])

    assert result.exit_code == 0, result.output
    assert override_db.as_posix() in result.output
    assert override_session.as_posix() in result.output


def test_common_cli_options_reports_configuration_errors(
    monkeypatch: pytest.MonkeyPatch, runner: CliRunner
) -> None:
    def broken_config(config_path: str | None) -> DummyAppConfig:
        raise ConfigurationError("bad yaml")

    monkeypatch.setattr("grid_cli.shared.cli.load_config", broken_config)

    @click.command()
    @common_cli_options
    def sample(cli_ctx: CLIContext) -> None:  # pragma: no cover - never reached
        click.echo("ran")

    result = runner.invoke(sample, [])

    assert result.exit_code != 0
    assert "bad yaml" in result.output


def test_handle_cli_errors_wraps_known_exceptions() -> None:
    @handle_cli_errors
    def boom() -> None:
        raise GridEditError("boom")

    with pytest.raises(click.ClickException) as excinfo:
        boom()
    assert str(excinfo.value) == "boom"


def test_handle_cli_errors_keeps_subclass_messages() -> None:
    @handle_cli_errors
    def read_only() -> None:
        raise ReadOnlyTableError("no primary key")

    with pytest.raises(click.ClickException) as excinfo:
        read_only()
    assert str(excinfo.value) == "no primary key"


def test_handle_cli_errors_formats_configuration_errors() -> None:
    @handle_cli_errors
    def misconfigured() -> None:
        raise ConfigurationError("missing value")

    with pytest.raises(click.ClickException) as excinfo:
        misconfigured()
    assert "Configuration error" in str(excinfo.value)


def test_handle_cli_errors_wraps_unexpected_exceptions() -> None:
    @handle_cli_errors
    def explode() -> None:
        raise RuntimeError("kapow")

    with pytest.raises(click.ClickException) as excinfo:
        explode()
    assert "Unexpected error: kapow" == str(excinfo.value)
