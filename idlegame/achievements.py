"""Statistics tracking and one-shot achievements."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .models import (
    Achievement,
    ActionResult,
    Requirement,
    RequirementKind,
    Reward,
    Statistics,
)
from .models._coerce import coerce_optional_float
from .notifications import notify_achievement

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

ACHIEVEMENTS_COLLECTION = "achievements"
STATS_KEY = "stats"

GOLD = "gold"
ENERGY_SPENT = "energy_spent"
TASKS_COMPLETED = "tasks_completed"
EXPLORATION_COMPLETED = "exploration_completed"
STAT_KINDS = frozenset({GOLD, ENERGY_SPENT, TASKS_COMPLETED, EXPLORATION_COMPLETED})


def default_achievements() -> list[Achievement]:
    return [
        Achievement(
            "first_gold",
            "First Harvest",
            "Earn 100 gold in total.",
            Requirement(RequirementKind.GOLD, 100),
            Reward(gold=50, experience=20),
            icon="gold-coin",
        ),
        Achievement(
            "energy_master",
            "Tireless",
            "Spend 500 energy in total.",
            Requirement(RequirementKind.ENERGY_SPENT, 500),
            Reward(gold=100, experience=50),
            icon="fire",
        ),
        Achievement(
            "task_novice",
            "Task Novice",
            "Complete 10 tasks.",
            Requirement(RequirementKind.TASKS_COMPLETED, 10),
            Reward(gold=150, experience=75),
            icon="checked",
        ),
        Achievement(
            "level_up",
            "Growing Up",
            "Reach level 5.",
            Requirement(RequirementKind.LEVEL, 5),
            Reward(gold=200, experience=100),
            icon="upgrade",
        ),
        Achievement(
            "explorer",
            "Explorer",
            "Explore the map 20 times.",
            Requirement(RequirementKind.TASK_SPECIFIC, 20, task_id=2),
            Reward(gold=250, experience=125),
            icon="location",
        ),
    ]


class TriggerEngine:
    """Records statistic deltas and unlocks achievements.

    Every delta is applied to the statistics exactly once, then each pending
    achievement is evaluated; an achievement flips to completed at most once
    and produces one notification when it does.  Deltas are forwarded to the
    daily task board when one is bound to the context.
    """

    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._achievements = default_achievements()
        self._stats = Statistics()

    @property
    def achievements(self) -> list[Achievement]:
        return list(self._achievements)

    @property
    def stats(self) -> Statistics:
        return self._stats

    def get(self, achievement_id: str) -> Optional[Achievement]:
        return next((entry for entry in self._achievements if entry.id == achievement_id), None)

    def pending(self) -> list[Achievement]:
        return [entry for entry in self._achievements if not entry.completed]

    def completed(self) -> list[Achievement]:
        return [entry for entry in self._achievements if entry.completed]

    async def load(self) -> bool:
        store = self._context.store
        stats = await store.get(ACHIEVEMENTS_COLLECTION, STATS_KEY)
        if stats is not None:
            self._stats = Statistics.from_record(stats)
        found = stats is not None
        for achievement in self._achievements:
            record = await store.get(ACHIEVEMENTS_COLLECTION, achievement.id)
            if record is None:
                continue
            found = True
            achievement.completed = bool(record.get("completed", False))
            achievement.reward_claimed = bool(record.get("rewardClaimed", False))
            achievement.completed_at = coerce_optional_float(record.get("completedAt"))
        return found

    async def record(
        self,
        kind: str,
        amount: int = 1,
        task_id: int | None = None,
        *,
        level: int | None = None,
        now: float | None = None,
    ) -> list[Achievement]:
        if kind not in STAT_KINDS:
            raise ValueError(f"Unknown statistic: {kind}")
        amount = int(amount)
        stats = self._stats
        if kind == GOLD:
            stats.gold_earned += amount
        elif kind == ENERGY_SPENT:
            stats.energy_spent += amount
        elif kind == TASKS_COMPLETED:
            stats.tasks_completed += 1
            if task_id is not None:
                key = int(task_id)
                stats.task_specific_counts[key] = stats.task_specific_counts.get(key, 0) + 1
        else:
            stats.explorations_completed += amount

        unlocked = self._evaluate(self._level(level), now)
        await self._save(unlocked)
        for achievement in unlocked:
            await notify_achievement(self._context.notifier, achievement)

        daily = self._context.daily
        if daily is not None:
            await daily.update_progress(kind, amount, task_id)
        return unlocked

    async def check(self, level: int | None = None, *, now: float | None = None) -> list[Achievement]:
        unlocked = self._evaluate(self._level(level), now)
        if unlocked:
            await self._save(unlocked, include_stats=False)
            for achievement in unlocked:
                await notify_achievement(self._context.notifier, achievement)
        return unlocked

    async def claim(self, achievement_id: str, *, now: float | None = None) -> ActionResult:
        achievement = self.get(achievement_id)
        if achievement is None or not achievement.completed or achievement.reward_claimed:
            return ActionResult.fail("Achievement reward cannot be claimed")
        reward = achievement.reward
        update = await self._context.ledger.apply(
            gold=reward.gold, experience=reward.experience, now=now
        )
        if update is None:
            return ActionResult.fail("Game state could not be loaded")
        achievement.reward_claimed = True
        saved = await self._context.store.put(ACHIEVEMENTS_COLLECTION, achievement.to_mapping())
        log.info("Claimed achievement %s", achievement.id)
        return ActionResult.ok(
            "Achievement reward claimed",
            persisted=update.persisted and saved,
            reward=reward,
        )

    def _level(self, level: int | None) -> int:
        if level is not None:
            return int(level)
        state = self._context.ledger.state
        return state.level if state is not None else 0

    def _evaluate(self, level: int, now: float | None) -> list[Achievement]:
        unlocked: list[Achievement] = []
        for achievement in self._achievements:
            if achievement.completed:
                continue
            if achievement.requirement.is_met(self._stats, level):
                achievement.completed = True
                achievement.completed_at = self._context.now(now)
                unlocked.append(achievement)
                log.info("Achievement unlocked: %s", achievement.id)
        return unlocked

    async def _save(self, changed: list[Achievement], *, include_stats: bool = True) -> bool:
        records = [achievement.to_mapping() for achievement in changed]
        if include_stats:
            records.append(self._stats.to_record())
        if not records:
            return True
        saved = await self._context.store.put_many(ACHIEVEMENTS_COLLECTION, records)
        if not saved:
            log.warning("Achievement progress was not persisted")
        return saved

    def to_records(self) -> list[dict]:
        return [entry.to_mapping() for entry in self._achievements] + [self._stats.to_record()]


__all__ = [
    "ACHIEVEMENTS_COLLECTION",
    "ENERGY_SPENT",
    "EXPLORATION_COMPLETED",
    "GOLD",
    "STAT_KINDS",
    "TASKS_COMPLETED",
    "TriggerEngine",
    "default_achievements",
]
