"""Timed tasks: spend energy, wait, claim a boosted reward."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .ledger import GAME_STATE_COLLECTION
from .models import ActionResult, ActiveTask, EventEffectType, Reward, TaskDefinition
from .modifiers import (
    compute_reward,
    effective_duration,
    effective_energy_cost,
    energy_save_fraction,
    task_speed_modifier,
)

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

ACTIVE_TASK_KEY = "activeTask"

TASKS: tuple[TaskDefinition, ...] = (
    TaskDefinition(
        1,
        "Gather Resources",
        "Collect wood and ore around the camp.",
        energy_cost=10,
        duration=5,
        reward=Reward(gold=20, experience=10),
    ),
    TaskDefinition(
        2,
        "Explore the Map",
        "Scout the surrounding lands.",
        energy_cost=15,
        duration=8,
        reward=Reward(gold=15, experience=20),
    ),
    TaskDefinition(
        3,
        "Defeat Monsters",
        "Clear out the monsters roaming nearby.",
        energy_cost=25,
        duration=12,
        reward=Reward(gold=40, experience=30),
        min_level=3,
    ),
)


def get_task(task_id: int) -> Optional[TaskDefinition]:
    return next((task for task in TASKS if task.id == task_id), None)


class TaskRunner:
    """Runs at most one timed task, ticking progress on the shared clock."""

    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._active: Optional[ActiveTask] = None

    @property
    def active(self) -> Optional[ActiveTask]:
        return self._active

    async def load(self) -> bool:
        record = await self._context.store.get(GAME_STATE_COLLECTION, ACTIVE_TASK_KEY)
        if record is None:
            return False
        self._active = ActiveTask.from_record(record)
        return True

    def energy_cost(self, definition: TaskDefinition) -> int:
        context = self._context
        skills = context.skills.skills if context.skills is not None else ()
        effects = context.shop.permanent_effects if context.shop is not None else ()
        return effective_energy_cost(definition.energy_cost, energy_save_fraction(skills, effects))

    def speed_modifier(self, now: float | None = None) -> float:
        context = self._context
        boost = context.shop.boost_value("task_speed", now) if context.shop is not None else 0.0
        events = context.events.task_speed_total() if context.events is not None else 0.0
        return task_speed_modifier(boost, events)

    async def start(self, task_id: int, *, now: float | None = None) -> ActionResult:
        definition = get_task(task_id)
        if definition is None:
            return ActionResult.fail("Task does not exist")
        context = self._context
        state = await context.ledger.snapshot()
        if state is None:
            return ActionResult.fail("Game state could not be loaded")
        if state.level < definition.min_level:
            return ActionResult.fail(f"Requires level {definition.min_level}")
        current = self._active
        if current is not None and not current.claimed and current.is_complete(context.now(now)):
            return ActionResult.fail("Claim the finished task first")

        cost = self.energy_cost(definition)
        spent = await context.ledger.spend(energy=cost, now=now)
        if not spent:
            return ActionResult.fail(spent.message, energy_cost=cost)
        if context.triggers is not None:
            await context.triggers.record("energy_spent", cost, now=now)

        duration = effective_duration(definition.duration, self.speed_modifier(now))
        speed_events = (
            tuple(
                event.instance_id
                for event in context.events.active
                if event.effect.type is EventEffectType.TASK_SPEED
            )
            if context.events is not None
            else ()
        )
        self._active = ActiveTask(
            task_id=definition.id,
            start_time=context.now(now),
            duration=duration,
            energy_cost=cost,
            speed_events=speed_events,
        )
        saved = await self._save()
        context.clock.start(definition.id, duration)
        log.info("Started task %s for %.2fs", definition.name, duration)
        return ActionResult.ok(
            f"Started {definition.name}",
            persisted=spent.persisted and saved,
            task=self._active,
            energy_cost=cost,
            duration=duration,
        )

    def check_complete(self, now: float | None = None) -> bool:
        task = self._active
        if task is None or task.claimed:
            return False
        return task.is_complete(self._context.now(now))

    def progress(self, now: float | None = None) -> int:
        task = self._active
        if task is None or task.claimed:
            return 0
        return task.progress(self._context.now(now))

    async def claim(self, *, now: float | None = None) -> ActionResult:
        task = self._active
        if task is None or task.claimed:
            return ActionResult.fail("No task to claim")
        if not task.is_complete(self._context.now(now)):
            return ActionResult.fail("Task is not complete yet")
        definition = get_task(task.task_id)
        if definition is None:
            return ActionResult.fail("Task does not exist")

        context = self._context
        events = context.events
        multiplier_event = (
            events.peek(EventEffectType.REWARD_MULTIPLIER) if events is not None else None
        )
        multiplier = multiplier_event.effect.value if multiplier_event is not None else 1.0
        computed = compute_reward(
            definition.reward,
            task_id=definition.id,
            multiplier=multiplier,
            **context.reward_modifiers(now),
        )
        reward = computed.reward
        update = await context.ledger.apply(
            gold=reward.gold, experience=reward.experience, now=now
        )
        if update is None:
            return ActionResult.fail("Game state could not be loaded")

        if events is not None:
            if multiplier_event is not None:
                await events.consume(EventEffectType.REWARD_MULTIPLIER)
            await events.discard(task.speed_events)
        if context.triggers is not None:
            if reward.gold:
                await context.triggers.record("gold", reward.gold, now=now)
            await context.triggers.record("tasks_completed", 1, definition.id, now=now)

        task.claimed = True
        saved = await self._save()
        return ActionResult.ok(
            f"Completed {definition.name}",
            persisted=update.persisted and saved,
            reward=reward,
            breakdown=computed,
        )

    async def cancel(self) -> bool:
        if self._active is None:
            return False
        self._context.clock.cancel()
        self._active = None
        await self._context.store.delete(GAME_STATE_COLLECTION, ACTIVE_TASK_KEY)
        log.info("Cancelled the active task")
        return True

    async def _save(self) -> bool:
        if self._active is None:
            return True
        saved = await self._context.store.put(GAME_STATE_COLLECTION, self._active.to_record())
        if not saved:
            log.warning("Active task was not persisted")
        return saved


__all__ = ["TASKS", "TaskRunner", "get_task"]
