"""Tests for schema upgrades and keyed record access."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from idlegame.config import LATEST_DB_VERSION
from idlegame.storage import (
    DataStore,
    MissingMigrationError,
    UnknownCollectionError,
    load_migrations,
    plan_migrations,
)

ALL_COLLECTIONS = {
    "gameState",
    "settings",
    "skills",
    "shop",
    "events",
    "achievements",
    "dailyTasks",
    "notifications",
    "pets",
    "equipment",
    "exploration",
}


def test_fresh_database_is_created_at_latest_version(tmp_path: Path) -> None:
    store = asyncio.run(DataStore.open("save", LATEST_DB_VERSION, root=tmp_path))

    assert store is not None
    assert store.version == LATEST_DB_VERSION
    assert store.collections == ALL_COLLECTIONS
    assert (tmp_path / "save" / "schema_version.toml").exists()


def test_upgrade_skips_forward_without_dropping_records(tmp_path: Path) -> None:
    async def scenario() -> DataStore | None:
        early = await DataStore.open("save", 2, root=tmp_path)
        assert early is not None
        assert early.collections == {"gameState", "settings"}
        assert await early.put("gameState", {"id": "current", "level": 4})
        return await DataStore.open("save", LATEST_DB_VERSION, root=tmp_path)

    store = asyncio.run(scenario())

    assert store is not None
    assert store.version == LATEST_DB_VERSION
    assert store.collections == ALL_COLLECTIONS
    record = asyncio.run(store.get("gameState", "current"))
    assert record == {"id": "current", "level": 4}


def test_reopening_at_same_version_runs_no_migration(tmp_path: Path) -> None:
    calls: list[tuple[int, int]] = []

    def migrate(context, old: int, new: int) -> None:
        calls.append((old, new))
        context.create_collection("gameState")

    async def scenario() -> None:
        await DataStore.open("save", 1, migrate, root=tmp_path)
        await DataStore.open("save", 1, migrate, root=tmp_path)

    asyncio.run(scenario())

    assert calls == [(0, 1)]


def test_open_returns_none_when_migration_chain_is_incomplete(tmp_path: Path) -> None:
    store = asyncio.run(DataStore.open("save", 99, root=tmp_path))

    assert store is None


def test_plan_migrations_orders_steps() -> None:
    steps = load_migrations()

    plan = plan_migrations(steps, 1, LATEST_DB_VERSION)

    assert [(step.from_version, step.to_version) for step in plan] == [
        (1, 2),
        (2, 3),
        (3, 4),
        (4, 5),
    ]
    with pytest.raises(MissingMigrationError):
        plan_migrations(steps, 0, 42)


def test_records_round_trip_and_delete(tmp_path: Path) -> None:
    async def scenario() -> tuple:
        store = await DataStore.open("save", LATEST_DB_VERSION, root=tmp_path)
        assert store is not None
        await store.put_many(
            "pets",
            [
                {"id": "pet_1", "name": "Biscuit", "stats": {"gold": 3}, "skills": []},
                {"id": "pet/2", "name": "Pebble", "active": True},
            ],
        )
        everything = await store.get_all("pets")
        slashed = await store.get("pets", "pet/2")
        await store.delete("pets", "pet_1")
        remaining = await store.get_all("pets")
        missing = await store.get("pets", "pet_1")
        return everything, slashed, remaining, missing

    everything, slashed, remaining, missing = asyncio.run(scenario())

    assert {record["id"] for record in everything} == {"pet_1", "pet/2"}
    assert slashed == {"id": "pet/2", "name": "Pebble", "active": True}
    assert [record["id"] for record in remaining] == ["pet/2"]
    assert missing is None


def test_none_values_are_not_written(tmp_path: Path) -> None:
    async def scenario():
        store = await DataStore.open("save", LATEST_DB_VERSION, root=tmp_path)
        assert store is not None
        await store.put("settings", {"theme": "dark", "sound": None}, key="userSettings")
        return await store.get("settings", "userSettings")

    assert asyncio.run(scenario()) == {"theme": "dark"}


def test_unknown_collection_raises(tmp_path: Path) -> None:
    store = asyncio.run(DataStore.open("save", 2, root=tmp_path))
    assert store is not None

    with pytest.raises(UnknownCollectionError):
        asyncio.run(store.get("pets", "pet_1"))


def test_skipping_versions_matches_stepping_through_them(tmp_path: Path) -> None:
    async def upgrade(root: Path, versions: list[int]) -> DataStore | None:
        store = await DataStore.open("save", 3, root=root)
        assert store is not None
        await store.put("skills", {"id": "skills", "list": [{"id": "mining", "currentLevel": 2}]})
        for version in versions:
            store = await DataStore.open("save", version, root=root)
            assert store is not None
        return store

    skipped = asyncio.run(upgrade(tmp_path / "skipped", [5]))
    stepped = asyncio.run(upgrade(tmp_path / "stepped", [4, 5]))

    assert skipped.version == stepped.version == 5
    assert skipped.collections == stepped.collections == ALL_COLLECTIONS
    assert asyncio.run(skipped.get("skills", "skills")) == asyncio.run(
        stepped.get("skills", "skills")
    )
