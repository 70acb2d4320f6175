"""Daily task board, refreshed once per UTC hour."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Mapping, Optional

from .models import ActionResult, DailyTask, DailyTaskType, DailyTemplate, Reward
from .models._coerce import coerce_float
from .notifications import notify_daily_completed, notify_daily_refresh

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

DAILY_COLLECTION = "dailyTasks"
DAILY_KEY = "dailyTasks"

# Statistic kind -> daily task types it advances.
_PROGRESS_TYPES = {
    "gold": (DailyTaskType.GOLD_COLLECT,),
    "tasks_completed": (DailyTaskType.COMPLETE_TASKS, DailyTaskType.SPECIFIC_TASK),
    "energy_spent": (DailyTaskType.SPEND_ENERGY,),
}

TEMPLATES: tuple[DailyTemplate, ...] = (
    DailyTemplate(
        "daily_gold",
        "Collect Gold",
        "Collect {target} gold today.",
        DailyTaskType.GOLD_COLLECT,
        min_level=1,
        base_target=50,
        reward=Reward(gold=30, experience=15),
    ),
    DailyTemplate(
        "daily_tasks",
        "Complete Tasks",
        "Complete {target} tasks today.",
        DailyTaskType.COMPLETE_TASKS,
        min_level=1,
        base_target=3,
        reward=Reward(gold=25, experience=20),
    ),
    DailyTemplate(
        "daily_energy",
        "Spend Energy",
        "Spend {target} energy today.",
        DailyTaskType.SPEND_ENERGY,
        min_level=2,
        base_target=30,
        reward=Reward(gold=20, experience=25),
    ),
    DailyTemplate(
        "daily_mining",
        "Gather Resources",
        "Gather resources {target} times today.",
        DailyTaskType.SPECIFIC_TASK,
        min_level=1,
        base_target=2,
        reward=Reward(gold=15, experience=10),
        specific_task_id=1,
    ),
    DailyTemplate(
        "daily_explore",
        "Explore the Map",
        "Explore the map {target} times today.",
        DailyTaskType.SPECIFIC_TASK,
        min_level=5,
        base_target=2,
        reward=Reward(gold=30, experience=20),
        specific_task_id=2,
    ),
    DailyTemplate(
        "daily_combat",
        "Defeat Monsters",
        "Defeat monsters {target} times today.",
        DailyTaskType.SPECIFIC_TASK,
        min_level=10,
        base_target=1,
        reward=Reward(gold=50, experience=30),
        specific_task_id=3,
    ),
)


def refresh_bucket(timestamp: float) -> tuple[int, int, int, int]:
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return (moment.year, moment.month, moment.day, moment.hour)


class DailyTaskBoard:
    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._tasks: list[DailyTask] = []
        self._last_refresh: float = 0.0

    @property
    def tasks(self) -> list[DailyTask]:
        return list(self._tasks)

    @property
    def last_refresh_time(self) -> float:
        return self._last_refresh

    def get(self, task_id: str) -> Optional[DailyTask]:
        return next((task for task in self._tasks if task.id == task_id), None)

    def pending(self) -> list[DailyTask]:
        return [task for task in self._tasks if not task.completed]

    def completed(self) -> list[DailyTask]:
        return [task for task in self._tasks if task.completed]

    def should_refresh(self, now: float | None = None) -> bool:
        if not self._tasks:
            return True
        return refresh_bucket(self._context.now(now)) != refresh_bucket(self._last_refresh)

    async def load(self) -> bool:
        record = await self._context.store.get(DAILY_COLLECTION, DAILY_KEY)
        if record is None:
            return False
        tasks: list[DailyTask] = []
        for entry in record.get("tasks") or ():
            if not isinstance(entry, Mapping):
                continue
            try:
                tasks.append(DailyTask.from_mapping(entry))
            except ValueError:
                log.warning("Skipping malformed daily task: %r", entry)
        self._tasks = tasks
        self._last_refresh = coerce_float(record.get("lastRefreshTime"))
        return True

    async def refresh(
        self, level: int, *, now: float | None = None, force: bool = False
    ) -> list[DailyTask]:
        moment = self._context.now(now)
        if not force and not self.should_refresh(moment):
            return self.tasks
        templates = [template for template in TEMPLATES if template.min_level <= level]
        self._context.rng.shuffle(templates)
        selected = templates[: self._context.config.daily_task_count]
        self._tasks = [template.instantiate(level, moment) for template in selected]
        self._last_refresh = moment
        log.info("Refreshed %d daily task(s) for level %d", len(self._tasks), level)
        await self._save()
        await notify_daily_refresh(self._context.notifier, len(self._tasks))
        return self.tasks

    async def update_progress(
        self,
        kind: str,
        amount: int,
        task_id: int | None = None,
        *,
        now: float | None = None,
    ) -> list[DailyTask]:
        types = _PROGRESS_TYPES.get(kind)
        if not types:
            return []
        # Finishing any task counts once, regardless of the amount passed.
        increment = 1 if kind == "tasks_completed" else int(amount)
        updated = False
        finished: list[DailyTask] = []
        for task in self._tasks:
            if task.completed or not any(task.accepts(kind_type, task_id) for kind_type in types):
                continue
            task.progress += increment
            updated = True
            if task.progress >= task.target:
                task.completed = True
                task.completed_at = self._context.now(now)
                finished.append(task)
        if updated:
            await self._save()
        for task in finished:
            await notify_daily_completed(self._context.notifier, task)
        return finished

    async def claim(self, task_id: str, *, now: float | None = None) -> ActionResult:
        task = self.get(task_id)
        if task is None:
            return ActionResult.fail("Daily task does not exist")
        if not task.completed:
            return ActionResult.fail("Daily task is not completed yet")
        if task.claimed:
            return ActionResult.fail("Reward has already been claimed")
        reward = task.reward
        update = await self._context.ledger.apply(
            gold=reward.gold, experience=reward.experience, now=now
        )
        if update is None:
            return ActionResult.fail("Game state could not be loaded")
        triggers = self._context.triggers
        if triggers is not None and reward.gold:
            await triggers.record("gold", reward.gold, now=now)
        task.claimed = True
        saved = await self._save()
        return ActionResult.ok(
            f"Claimed {reward.gold} gold and {reward.experience} experience",
            persisted=update.persisted and saved,
            reward=reward,
        )

    async def reset(self) -> bool:
        self._tasks = []
        self._last_refresh = 0.0
        return await self._save()

    def to_record(self) -> dict:
        return {
            "id": DAILY_KEY,
            "tasks": [task.to_mapping() for task in self._tasks],
            "lastRefreshTime": self._last_refresh,
            "lastUpdated": self._context.now(),
        }

    async def _save(self) -> bool:
        saved = await self._context.store.put(DAILY_COLLECTION, self.to_record())
        if not saved:
            log.warning("Daily tasks were not persisted")
        return saved


__all__ = ["DAILY_COLLECTION", "DailyTaskBoard", "TEMPLATES", "refresh_bucket"]
