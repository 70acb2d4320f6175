"""Record encoding and crash-safe writes through the datastore."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from idlegame.config import LATEST_DB_VERSION
from idlegame.models import Rarity
from idlegame.storage import DataStore


def _store(tmp_path: Path) -> DataStore:
    store = asyncio.run(DataStore.open("save", LATEST_DB_VERSION, root=tmp_path))
    assert store is not None
    return store


def _leftovers(store: DataStore) -> list[str]:
    return sorted(
        path.name
        for path in store.path.rglob("*")
        if path.name.endswith(".tmp") or path.name.startswith(".")
    )


def test_nested_records_round_trip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    record = {
        "id": "current",
        "resources": {"gold": 12, "experience": 0, "energy": 87.25},
        "level": 3,
        "list": [
            {"id": "mining", "currentLevel": 2, "effect": {"type": "gold_multiplier", "value": 0.1}},
            {"id": "combat", "currentLevel": 0},
        ],
        "tags": ["a", "b"],
        "pairs": [[1, 2], [3]],
        "empty": [],
        "nothing": {},
        "active": True,
        "name": "Ünïcode \"quoted\"\nline\t\x7f",
        "two words": "spaced key",
        "rarity": Rarity.EPIC,
        "window": (1.5, 2.5),
    }

    async def scenario():
        assert await store.put("gameState", record)
        return await store.get("gameState", "current")

    loaded = asyncio.run(scenario())

    assert loaded == {**record, "rarity": "epic", "window": [1.5, 2.5]}


def test_none_and_non_finite_values_are_normalised(tmp_path: Path) -> None:
    store = _store(tmp_path)

    async def scenario():
        await store.put(
            "events",
            {"id": "e1", "endTime": None, "value": float("inf"), "stack": [None, 1]},
        )
        return await store.get("events", "e1")

    assert asyncio.run(scenario()) == {"id": "e1", "value": 0.0, "stack": [1]}


def test_unsupported_values_are_refused(tmp_path: Path) -> None:
    store = _store(tmp_path)

    async def scenario():
        written = await store.put("events", {"id": "e1", "owners": {"a", "b"}})
        return written, await store.get("events", "e1")

    written, loaded = asyncio.run(scenario())

    assert written is False
    assert loaded is None
    assert _leftovers(store) == []


def test_failed_write_keeps_the_previous_record(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = _store(tmp_path)
    asyncio.run(store.put("gameState", {"id": "current", "level": 1}))

    def _refuse(src, dst) -> None:
        raise OSError("simulated failure")

    monkeypatch.setattr("idlegame.storage.os.replace", _refuse)
    written = asyncio.run(store.put("gameState", {"id": "current", "level": 2}))
    monkeypatch.undo()

    assert written is False
    assert asyncio.run(store.get("gameState", "current")) == {"id": "current", "level": 1}
    assert _leftovers(store) == []


def test_replace_swaps_the_whole_collection(tmp_path: Path) -> None:
    store = _store(tmp_path)

    async def scenario():
        await store.put_many("pets", [{"id": "pet_1"}, {"id": "pet_2"}])
        swapped = await store.replace("pets", [{"id": "pet_2", "level": 3}, {"id": "pet_3"}])
        return swapped, await store.get_all("pets")

    swapped, pets = asyncio.run(scenario())

    assert swapped is True
    assert pets == [{"id": "pet_2", "level": 3}, {"id": "pet_3"}]
    assert _leftovers(store) == []


def test_failed_replace_keeps_the_old_collection(tmp_path: Path) -> None:
    store = _store(tmp_path)

    async def scenario():
        await store.put_many("pets", [{"id": "pet_1"}, {"id": "pet_2"}])
        swapped = await store.replace("pets", [{"id": "pet_3"}, {"name": "no key"}])
        return swapped, await store.get_all("pets")

    swapped, pets = asyncio.run(scenario())

    assert swapped is False
    assert [record["id"] for record in pets] == ["pet_1", "pet_2"]
    assert _leftovers(store) == []
