"""End-to-end tests driving the engine facade."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

import discord
import pytest

from idlegame.config import GameConfig
from idlegame.engine import GameEngine
from idlegame.models import ActiveEvent

START = 10_000.0


class _Channel:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send(self, *args, **kwargs):
        self.sent.append(kwargs)


async def _create(root: Path, **overrides) -> GameEngine | None:
    return await GameEngine.create(GameConfig(seed=3, **overrides), root=root, now=START)


def test_create_builds_a_fresh_save(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        assert engine is not None
        status = engine.status(START)
        engine.close()
        return engine, status

    engine, status = asyncio.run(scenario())

    assert engine.state.gold == 0
    assert engine.state.energy == 100.0
    assert engine.state.level == 1
    assert status["version"] == 5
    assert status["dailyTasks"] == 3
    assert status["unreadNotifications"] == 1
    assert status["state"]["resources"]["gold"] == 0


def test_create_returns_none_when_the_save_cannot_open(tmp_path: Path) -> None:
    engine = asyncio.run(_create(tmp_path, db_version=99))

    assert engine is None


def test_task_cycle_with_energy_regeneration(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        started = await engine.start_task(1, now=START)
        ticked = await engine.tick(START + 600)
        claimed = await engine.claim_task(now=START + 600)
        engine.close()
        return engine, started, ticked, claimed

    engine, started, ticked, claimed = asyncio.run(scenario())

    assert started.success
    assert ticked.data["energy_gained"] == 10.0
    assert ticked.data["task_ready"] is True
    assert ticked.data["exploration_completed"] is False
    assert claimed.success
    assert engine.state.gold == 20
    assert engine.state.energy == 100.0


def test_exploration_cycle_through_tick(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        explored = await engine.explore(1, now=START)
        energy_after = engine.state.energy
        ticked = await engine.tick(START + 8)
        claimed = await engine.claim_exploration(now=START + 9)
        engine.close()
        return engine, explored, energy_after, ticked, claimed

    engine, explored, energy_after, ticked, claimed = asyncio.run(scenario())

    assert explored.data["energy_spent"] == 15
    assert energy_after == 85.0
    assert ticked.data["exploration_completed"] is True
    assert claimed.success
    assert 10 <= engine.state.gold <= 30
    assert engine.context.triggers.stats.energy_spent == 15
    assert engine.context.triggers.stats.explorations_completed == 1


def test_explore_refuses_without_energy(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        await engine.context.ledger.apply(energy=-95, now=START)
        refused = await engine.explore(1, now=START)
        engine.close()
        return engine, refused

    engine, refused = asyncio.run(scenario())

    assert not refused
    assert refused.message == "Requires 15 energy"
    assert engine.exploration.state is None


def test_set_level_unlocks_level_achievement(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        levelled = await engine.set_level(5, now=START)
        claimed = await engine.claim_achievement("level_up", now=START)
        engine.close()
        return engine, levelled, claimed

    engine, levelled, claimed = asyncio.run(scenario())

    assert [entry.id for entry in levelled.data["achievements"]] == ["level_up"]
    assert claimed.success
    assert engine.state.level == 5
    assert engine.state.gold == 200
    assert engine.state.experience == 100


def test_events_and_daily_actions(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        event = await engine.trigger_event(now=START)
        applied = await engine.apply_event(event.instance_id, now=START)
        before = [task.id for task in engine.context.daily.tasks]
        refreshed = await engine.refresh_daily_tasks(force=True, now=START + 1)
        engine.close()
        return event, applied, before, refreshed

    event, applied, before, refreshed = asyncio.run(scenario())

    assert isinstance(event, ActiveEvent)
    assert applied.success
    assert len(refreshed.data["tasks"]) == 3
    assert {task.id for task in refreshed.data["tasks"]}.isdisjoint(before)


def test_state_survives_reopening(tmp_path: Path) -> None:
    async def first_session():
        engine = await _create(tmp_path)
        await engine.context.ledger.apply(gold=300, now=START)
        await engine.upgrade_skill("mining", now=START)
        await engine.purchase("exp_scroll", now=START)
        engine.close()

    async def second_session():
        engine = await _create(tmp_path)
        assert engine is not None
        engine.close()
        return engine

    asyncio.run(first_session())
    engine = asyncio.run(second_session())

    assert engine.state.gold == 150
    assert engine.state.experience == 50
    assert engine.context.skills.get("mining").current_level == 1
    assert engine.context.shop.get("exp_scroll").purchased == 1


def test_regeneration_survives_unrelated_saves(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        await engine.context.ledger.apply(gold=100, energy=-50, now=START)
        bought = await engine.purchase("exp_scroll", now=START + 600)
        ticked = await engine.tick(START + 601)
        engine.close()
        return engine, bought, ticked

    engine, bought, ticked = asyncio.run(scenario())

    assert bought.success
    assert ticked.data["energy_gained"] == pytest.approx(601 / 60)
    assert engine.state.energy == pytest.approx(50 + 601 / 60)


def test_settings_round_trip_across_sessions(tmp_path: Path) -> None:
    async def first_session():
        engine = await _create(tmp_path)
        saved = await engine.save_settings(
            {"theme": "dark", "sound": False, "id": "ignored", "lastUpdated": 1.0},
            now=START + 5,
        )
        engine.close()
        return saved

    async def second_session():
        engine = await _create(tmp_path)
        loaded = await engine.load_settings()
        record = await engine.store.get("settings", "userSettings")
        engine.close()
        return engine, loaded, record

    saved = asyncio.run(first_session())
    engine, loaded, record = asyncio.run(second_session())

    assert saved.success
    assert saved.data["settings"] == {"theme": "dark", "sound": False}
    assert loaded == {"theme": "dark", "sound": False}
    assert engine.settings.get("theme") == "dark"
    assert engine.settings.last_updated == START + 5
    assert record["id"] == "userSettings"
    assert record["lastUpdated"] == START + 5


def test_load_settings_without_a_record(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        loaded = await engine.load_settings()
        engine.close()
        return engine, loaded

    engine, loaded = asyncio.run(scenario())

    assert loaded is None
    assert engine.settings.values == {}
    assert engine.settings.get("theme", "light") == "light"


def test_reset_starts_a_fresh_save(tmp_path: Path) -> None:
    async def scenario():
        engine = await _create(tmp_path)
        await engine.context.ledger.apply(gold=300, now=START)
        await engine.upgrade_skill("mining", now=START)
        await engine.context.pets.capture("Biscuit", "gold", now=START)
        await engine.save_settings({"theme": "dark"}, now=START)
        reset = await engine.reset(now=START + 10)
        pets_on_disk = await engine.store.get_all("pets")
        settings = await engine.load_settings()
        engine.close()
        reopened = await _create(tmp_path)
        assert reopened is not None
        reopened.close()
        return engine, reset, pets_on_disk, settings, reopened

    engine, reset, pets_on_disk, settings, reopened = asyncio.run(scenario())

    assert reset.success
    assert reset.message == "Game reset"
    assert engine.state.gold == 0
    assert engine.state.energy == 100.0
    assert engine.context.skills.get("mining").current_level == 0
    assert engine.context.pets.pets == []
    assert pets_on_disk == []
    assert settings is None
    assert len(engine.exploration.areas) == 6
    assert len(engine.context.daily.tasks) == 3
    assert engine.notifications.unread_count == 1
    assert reopened.state.gold == 0
    assert reopened.context.skills.get("mining").current_level == 0


def test_channel_receives_notification_embeds(tmp_path: Path) -> None:
    channel = _Channel()

    async def scenario():
        engine = await GameEngine.create(
            GameConfig(seed=3), channel=channel, root=tmp_path, now=START
        )
        assert engine is not None
        engine.close()
        return engine

    engine = asyncio.run(scenario())

    assert len(channel.sent) == 1
    assert isinstance(channel.sent[0]["embed"], discord.Embed)
    assert engine.notifications.unread_count == 1
    assert channel.sent[0]["embed"].title == engine.notifications.notifications[0].title
