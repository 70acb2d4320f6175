from __future__ import annotations

import asyncio
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import pytest

from idlegame.config import LATEST_DB_VERSION
from idlegame.energy import clamp_energy, energy_cap_for_level, regeneration_rate
from idlegame.ledger import ResourceLedger
from idlegame.models import ResourceState
from idlegame.storage import DataStore


def _ledger(tmp_path: Path) -> ResourceLedger:
    store = asyncio.run(DataStore.open("save", LATEST_DB_VERSION, root=tmp_path))
    assert store is not None
    return ResourceLedger(store)


def _ledger_on(ledger: ResourceLedger) -> ResourceLedger:
    return ResourceLedger(ledger._store)


def test_energy_cap_grows_with_level() -> None:
    assert energy_cap_for_level(0) == 100
    assert energy_cap_for_level(7) == 107
    assert clamp_energy(250.0, 7) == 107.0
    assert clamp_energy(-3.0, 7) == 0.0


def test_regeneration_rate_applies_boost_after_skill_bonus() -> None:
    assert regeneration_rate() == 1.0
    assert regeneration_rate(2, 0.5) == 4.5


def test_apply_clamps_every_resource(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        await ledger.save(ResourceState(gold=30, experience=5, energy=50.0, level=1), now=10.0)
        return await ledger.apply(gold=-500, experience=-1, energy=1000.0, now=20.0)

    update = asyncio.run(scenario())

    assert update is not None
    assert update.persisted
    assert update.state.gold == 0
    assert update.state.experience == 0
    assert update.state.energy == 101.0
    assert update.state.last_updated == 20.0


def test_spend_rejects_shortfall_without_writing(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        await ledger.save(ResourceState(gold=10, energy=5.0), now=1.0)
        short_gold = await ledger.spend(gold=11, now=2.0)
        short_energy = await ledger.spend(energy=6.0, now=2.0)
        fresh = ResourceLedger(ledger._store)
        return short_gold, short_energy, await fresh.load()

    short_gold, short_energy, stored = asyncio.run(scenario())

    assert not short_gold
    assert short_gold.message == "Not enough gold"
    assert not short_energy
    assert short_energy.message == "Not enough energy"
    assert stored is not None
    assert stored.gold == 10
    assert stored.energy == 5.0
    assert stored.last_updated == 1.0


def test_ensure_creates_fresh_state_once(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        first = await ledger.ensure(now=5.0)
        await ledger.apply(gold=40, now=6.0)
        second = await ResourceLedger(ledger._store).ensure(now=7.0)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.gold == 0
    assert first.energy == 100.0
    assert first.level == 1
    assert second.gold == 40


def test_unknown_fields_survive_a_save(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        await ledger._store.put(
            "gameState",
            {
                "id": "current",
                "resources": {"gold": 1, "experience": 2, "energy": 3},
                "level": 2,
                "theme": "dark",
            },
        )
        await ledger.load()
        await ledger.apply(gold=1, now=9.0)
        return await ledger._store.get("gameState", "current")

    record = asyncio.run(scenario())

    assert record is not None
    assert record["theme"] == "dark"
    assert record["resources"]["gold"] == 2
    assert record["level"] == 2


def test_regenerate_respects_the_cap(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        await ledger.save(ResourceState(energy=90.0, level=1), now=0.0)
        partial = await ledger.regenerate(1.0, now=300.0)
        full = await ledger.regenerate(1.0, now=6300.0)
        return partial, full

    partial, full = asyncio.run(scenario())

    assert partial is not None and partial.state.energy == 95.0
    assert full is not None and full.state.energy == 101.0
    assert partial.gained == 5.0
    assert full.gained == 6.0


def test_regeneration_clock_ignores_other_saves(tmp_path: Path) -> None:
    ledger = _ledger(tmp_path)

    async def scenario():
        await ledger.save(ResourceState(energy=50.0, gold=200, last_regenerated=0.0), now=0.0)
        await ledger.apply(gold=-100, now=600.0)
        update = await ledger.regenerate(1.0, now=601.0)
        reloaded = await _ledger_on(ledger).load()
        return update, reloaded

    update, reloaded = asyncio.run(scenario())

    assert update.gained == pytest.approx(601 / 60)
    assert reloaded.energy == pytest.approx(50 + 601 / 60)
    assert reloaded.last_regenerated == 601.0
    assert reloaded.gold == 100
