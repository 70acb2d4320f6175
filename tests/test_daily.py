"""Tests for the hourly daily task board."""

from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from idlegame.achievements import TriggerEngine
from idlegame.config import LATEST_DB_VERSION
from idlegame.context import GameContext
from idlegame.daily import TEMPLATES, DailyTaskBoard, refresh_bucket
from idlegame.ledger import ResourceLedger
from idlegame.models import DailyTaskType, ResourceState
from idlegame.storage import DataStore

# 1970-01-12 13:00:00 UTC, on an hour boundary.
HOUR_START = 3600.0 * 277


async def _make_context(root: Path, level: int = 1) -> GameContext:
    store = await DataStore.open("save", LATEST_DB_VERSION, root=root)
    assert store is not None
    ledger = ResourceLedger(store)
    await ledger.save(ResourceState(level=level), now=0.0)
    context = GameContext(store=store, ledger=ledger, rng=random.Random(7))
    context.bind(triggers=TriggerEngine(context), daily=DailyTaskBoard(context))
    return context


def _task(board: DailyTaskBoard, template_id: str):
    return next(task for task in board.tasks if task.template_id == template_id)


def test_refresh_is_idempotent_within_the_hour(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        board = context.daily
        first = await board.refresh(1, now=HOUR_START + 5)
        same_hour = await board.refresh(1, now=HOUR_START + 3599)
        next_hour_due = board.should_refresh(HOUR_START + 3600)
        forced = await board.refresh(1, now=HOUR_START + 60, force=True)
        return first, same_hour, next_hour_due, forced

    first, same_hour, next_hour_due, forced = asyncio.run(scenario())

    assert [task.id for task in same_hour] == [task.id for task in first]
    assert next_hour_due is True
    assert {task.id for task in forced}.isdisjoint(task.id for task in first)


def test_refresh_picks_only_templates_for_the_level(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        return await context.daily.refresh(1, now=HOUR_START)

    tasks = asyncio.run(scenario())

    eligible = {template.id for template in TEMPLATES if template.min_level <= 1}
    assert len(tasks) == 3
    assert {task.template_id for task in tasks} == eligible
    gold = next(task for task in tasks if task.template_id == "daily_gold")
    assert gold.target == 50
    assert gold.description == "Collect 50 gold today."


def test_targets_and_rewards_scale_with_level() -> None:
    template = next(entry for entry in TEMPLATES if entry.id == "daily_gold")

    task = template.instantiate(11, HOUR_START)

    assert task.target == 150
    assert task.reward.gold == 60
    assert task.reward.experience == 30
    assert task.description == "Collect 150 gold today."


def test_statistics_drive_daily_progress(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        await context.daily.refresh(1, now=HOUR_START)
        await context.triggers.record("tasks_completed", 1, 1, now=HOUR_START + 1)
        await context.triggers.record("tasks_completed", 1, 3, now=HOUR_START + 2)
        await context.triggers.record("gold", 50, now=HOUR_START + 3)
        return context.daily

    board = asyncio.run(scenario())

    assert _task(board, "daily_tasks").progress == 2
    assert _task(board, "daily_mining").progress == 1
    gold = _task(board, "daily_gold")
    assert gold.completed
    assert gold.type is DailyTaskType.GOLD_COLLECT


def test_claim_pays_out_once(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        board = context.daily
        await board.refresh(1, now=HOUR_START)
        await context.triggers.record("gold", 50, now=HOUR_START + 1)
        gold_id = _task(board, "daily_gold").id
        missing = await board.claim("nope")
        unfinished = await board.claim(_task(board, "daily_tasks").id)
        claimed = await board.claim(gold_id, now=HOUR_START + 2)
        again = await board.claim(gold_id, now=HOUR_START + 3)
        reloaded = DailyTaskBoard(context)
        await reloaded.load()
        return context, missing, unfinished, claimed, again, reloaded

    context, missing, unfinished, claimed, again, reloaded = asyncio.run(scenario())

    assert missing.message == "Daily task does not exist"
    assert unfinished.message == "Daily task is not completed yet"
    assert claimed.success
    assert again.message == "Reward has already been claimed"
    assert context.ledger.state.gold == 30
    assert context.ledger.state.experience == 15
    assert context.triggers.stats.gold_earned == 80
    assert _task(reloaded, "daily_gold").claimed
    assert reloaded.last_refresh_time == HOUR_START


def test_refresh_bucket_is_utc_hour() -> None:
    assert refresh_bucket(HOUR_START) == (1970, 1, 12, 13)
    assert refresh_bucket(HOUR_START + 3599) == refresh_bucket(HOUR_START)
    assert refresh_bucket(HOUR_START + 3600) != refresh_bucket(HOUR_START)
