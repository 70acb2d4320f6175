"""Tests for weighted random events and their effects."""

from __future__ import annotations

import asyncio
import random
import sys
from collections import Counter
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from idlegame.config import GameConfig, LATEST_DB_VERSION
from idlegame.context import GameContext
from idlegame.events import EventManager, default_events
from idlegame.ledger import ResourceLedger
from idlegame.models import EventEffectType, ResourceState
from idlegame.notifications import NotificationCenter, NotificationType
from idlegame.storage import DataStore


class _FixedRandom(random.Random):
    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


async def _make_context(
    root: Path, *, roll: float = 0.0, history_limit: int = 50
) -> GameContext:
    store = await DataStore.open("save", LATEST_DB_VERSION, root=root)
    assert store is not None
    ledger = ResourceLedger(store)
    await ledger.save(ResourceState(gold=10, energy=50.0, level=1), now=0.0)
    context = GameContext(
        store=store,
        ledger=ledger,
        config=GameConfig(history_limit=history_limit),
        notifier=NotificationCenter(store),
        rng=_FixedRandom(roll),
    )
    context.bind(events=EventManager(context))
    return context


def test_draw_walks_the_cumulative_weights(tmp_path: Path) -> None:
    context = asyncio.run(_make_context(tmp_path))
    events = context.events

    picks = []
    for roll in (0.0, 0.5, 0.99):
        context.rng = _FixedRandom(roll)
        picks.append(events.draw(1).id)

    assert picks == ["gold_rush", "energy_boost", "exp_bonus"]


def test_draw_frequencies_follow_the_weights(tmp_path: Path) -> None:
    context = asyncio.run(_make_context(tmp_path))
    context.rng = random.Random(2024)
    events = context.events
    total = sum(event.weight for event in events.available(3))
    draws = 20_000

    counts = Counter(events.draw(3).id for _ in range(draws))

    assert set(counts) == {event.id for event in events.available(3)}
    for event in events.available(3):
        assert abs(counts[event.id] / draws - event.weight / total) < 0.01


def test_level_gates_the_event_pool(tmp_path: Path) -> None:
    context = asyncio.run(_make_context(tmp_path))

    assert {event.id for event in context.events.available(1)} == {
        "gold_rush",
        "energy_boost",
        "exp_bonus",
    }
    assert len(context.events.available(3)) == len(default_events())
    assert context.events.draw(0) is None


def test_resource_event_is_applied_once(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path, roll=0.0)
        event = await context.events.trigger_random_event(1, now=50.0)
        applied = await context.events.apply_event_effect(event.instance_id, now=51.0)
        again = await context.events.apply_event_effect(event.instance_id, now=52.0)
        return context, event, applied, again

    context, event, applied, again = asyncio.run(scenario())

    assert event.event_id == "gold_rush"
    assert applied.success
    assert applied.message == "Event applied: Gained 50 gold"
    assert context.ledger.state.gold == 60
    assert context.events.active == []
    assert [entry.instance_id for entry in context.events.history] == [event.instance_id]
    assert not again
    notifications = context.notifier.notifications
    assert notifications[0].type is NotificationType.EVENT
    assert notifications[0].data["instanceId"] == event.instance_id


def test_negative_event_cannot_push_gold_below_zero(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        context.bind(
            events=EventManager(
                context, [entry for entry in default_events() if entry.id == "gold_loss"]
            )
        )
        event = await context.events.trigger_random_event(5, now=1.0)
        await context.events.apply_event_effect(event.event_id, now=2.0)
        return context

    context = asyncio.run(scenario())

    assert context.ledger.state.gold == 0


def test_task_effects_stay_active_until_consumed(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        catalog = [entry for entry in default_events() if entry.id == "double_reward"]
        manager = EventManager(context, catalog)
        context.bind(events=manager)
        first = await manager.trigger_random_event(3, now=1.0)
        second = await manager.trigger_random_event(3, now=2.0)
        applied = await manager.apply_event_effect(first.instance_id)
        consumed = await manager.consume(EventEffectType.REWARD_MULTIPLIER)
        reloaded = EventManager(context, catalog)
        await reloaded.load()
        return manager, first, second, applied, consumed, reloaded

    manager, first, second, applied, consumed, reloaded = asyncio.run(scenario())

    assert applied.success
    assert applied.data["event"] == first
    assert consumed.instance_id == first.instance_id
    assert [event.instance_id for event in manager.active] == [second.instance_id]
    assert manager.pending_multipliers() == [2.0]
    assert [event.instance_id for event in reloaded.active] == [second.instance_id]
    assert len(reloaded.history) == 2


def test_history_is_bounded(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path, history_limit=2)
        triggered = [await context.events.trigger_random_event(1, now=float(i)) for i in range(3)]
        return context, triggered

    context, triggered = asyncio.run(scenario())

    assert [event.instance_id for event in context.events.history] == [
        event.instance_id for event in triggered[1:]
    ]
    assert len(context.events.active) == 3
