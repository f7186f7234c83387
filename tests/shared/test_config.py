from __future__ import annotations

from pathlib import Path

import pytest

from grid_cli.shared import paths
from grid_cli.shared.config import AppConfig, load_config
from grid_cli.shared.exceptions import ConfigurationError


def _env(tmp_path: Path, **extra: str) -> dict[str, str]:
    env = {paths.CONFIG_DIR_ENV: str(tmp_path / "config")}
    env.update(extra)
    return env


def test_load_config_defaults(tmp_path: Path) -> None:
    env = _env(tmp_path)
    cfg = load_config(env=env)
    assert isinstance(cfg, AppConfig)
    assert cfg.database.path == paths.default_database_path(env=env)
    assert cfg.grid.page_size == 100
    assert cfg.grid.null_label == "NULL"
    assert cfg.session.path == tmp_path / "config" / paths.DEFAULT_SESSION_FILE


def test_load_config_from_yaml(tmp_path: Path) -> None:
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    cfg_file = cfg_dir / "config.yaml"
    cfg_file.write_text(
        """
        database:
          path: ~/alt.db
        grid:
          page_size: 25
          null_label: "(null)"
        """,
        encoding="utf-8",
    )
    cfg = load_config(config_path=cfg_file, env=_env(tmp_path))
    assert cfg.database.path == paths.resolve_path("~/alt.db")
    assert cfg.grid.page_size == 25
    assert cfg.grid.null_label == "(null)"
    assert cfg.source_path == cfg_file


def test_load_config_env_overrides(tmp_path: Path) -> None:
    custom_db = tmp_path / "custom.db"
    session_file = tmp_path / "state" / "session.json"
    env = _env(
        tmp_path,
        GRIDEDIT_DATABASE_PATH=str(custom_db),
        GRIDEDIT_PAGE_SIZE=" 0 ",
        GRIDEDIT_NULL_LABEL="∅",
        GRIDEDIT_SESSION_PATH=str(session_file),
    )
    cfg = load_config(env=env)
    assert cfg.database.path == paths.resolve_path(custom_db)
    assert cfg.grid.page_size == 0
    assert cfg.grid.null_label == "∅"
    assert cfg.session.path == session_file


def test_load_config_rejects_bad_env_value(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="GRIDEDIT_PAGE_SIZE"):
        load_config(env=_env(tmp_path, GRIDEDIT_PAGE_SIZE="many"))


def test_load_config_rejects_negative_page_size(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("grid:\n  page_size: -5\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="page_size"):
        load_config(config_path=cfg_file, env=_env(tmp_path))


def test_load_config_rejects_non_mapping_root(tmp_path: Path) -> None:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping root"):
        load_config(config_path=cfg_file, env=_env(tmp_path))


def test_with_overrides_return_copies(tmp_path: Path) -> None:
    cfg = load_config(env=_env(tmp_path))
    updated = cfg.with_database_path(tmp_path / "other.db").with_session_path(tmp_path / "s.json")
    assert updated.database.path == tmp_path / "other.db"
    assert updated.session.path == tmp_path / "s.json"
    assert cfg.database.path != updated.database.path
