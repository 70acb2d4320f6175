"""Engine configuration utilities."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_NAME = "idle-game-db"
LATEST_DB_VERSION = 5


def env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


@dataclass(slots=True)
class GameConfig:
    db_name: str = DEFAULT_DB_NAME
    db_version: int = LATEST_DB_VERSION
    data_root: Path | None = None
    history_limit: int = 50
    notification_limit: int = 50
    daily_task_count: int = 3
    log_level: str = "INFO"
    seed: int | None = None

    @classmethod
    def from_env(cls) -> "GameConfig":
        db_name = env("IDLEGAME_DB_NAME", DEFAULT_DB_NAME).strip() or DEFAULT_DB_NAME
        db_version = int(os.getenv("IDLEGAME_DB_VERSION", str(LATEST_DB_VERSION)))
        db_version = min(max(1, db_version), LATEST_DB_VERSION)
        raw_root = os.getenv("IDLEGAME_DATA_ROOT") or os.getenv("IDLEGAME_STORAGE_ROOT")
        data_root = Path(raw_root).expanduser().resolve() if raw_root else None
        history_limit = max(1, int(os.getenv("IDLEGAME_HISTORY_LIMIT", "50")))
        notification_limit = max(1, int(os.getenv("IDLEGAME_NOTIFICATION_LIMIT", "50")))
        daily_task_count = max(1, int(os.getenv("IDLEGAME_DAILY_TASK_COUNT", "3")))
        log_level = os.getenv("IDLEGAME_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        raw_seed = os.getenv("IDLEGAME_SEED")
        seed = int(raw_seed) if raw_seed not in (None, "") else None

        return cls(
            db_name=db_name,
            db_version=db_version,
            data_root=data_root,
            history_limit=history_limit,
            notification_limit=notification_limit,
            daily_task_count=daily_task_count,
            log_level=log_level,
            seed=seed,
        )


__all__ = ["GameConfig", "DEFAULT_DB_NAME", "LATEST_DB_VERSION", "env"]
