from __future__ import annotations

from pathlib import Path

import pytest

from idlegame.config import DEFAULT_DB_NAME, LATEST_DB_VERSION, GameConfig, env

_VARIABLES = (
    "IDLEGAME_DB_NAME",
    "IDLEGAME_DB_VERSION",
    "IDLEGAME_DATA_ROOT",
    "IDLEGAME_STORAGE_ROOT",
    "IDLEGAME_HISTORY_LIMIT",
    "IDLEGAME_NOTIFICATION_LIMIT",
    "IDLEGAME_DAILY_TASK_COUNT",
    "IDLEGAME_LOG_LEVEL",
    "IDLEGAME_SEED",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARIABLES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    config = GameConfig.from_env()

    assert config.db_name == DEFAULT_DB_NAME
    assert config.db_version == LATEST_DB_VERSION
    assert config.data_root is None
    assert config.history_limit == 50
    assert config.daily_task_count == 3
    assert config.log_level == "INFO"
    assert config.seed is None


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("IDLEGAME_DB_NAME", "test-db")
    monkeypatch.setenv("IDLEGAME_DB_VERSION", "3")
    monkeypatch.setenv("IDLEGAME_STORAGE_ROOT", str(tmp_path))
    monkeypatch.setenv("IDLEGAME_HISTORY_LIMIT", "0")
    monkeypatch.setenv("IDLEGAME_DAILY_TASK_COUNT", "5")
    monkeypatch.setenv("IDLEGAME_LOG_LEVEL", " debug ")
    monkeypatch.setenv("IDLEGAME_SEED", "42")

    config = GameConfig.from_env()

    assert config.db_name == "test-db"
    assert config.db_version == 3
    assert config.data_root == tmp_path.resolve()
    assert config.history_limit == 1
    assert config.daily_task_count == 5
    assert config.log_level == "DEBUG"
    assert config.seed == 42


def test_db_version_is_clamped_to_known_migrations(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IDLEGAME_DB_VERSION", "99")

    assert GameConfig.from_env().db_version == LATEST_DB_VERSION


def test_env_requires_a_value_without_default() -> None:
    with pytest.raises(RuntimeError):
        env("IDLEGAME_DB_NAME")
