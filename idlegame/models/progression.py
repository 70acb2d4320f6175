"""Skill, achievement and daily task models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ._coerce import coerce_float, coerce_int, coerce_optional_float, coerce_optional_int
from .resources import Reward


class SkillEffectType(str, Enum):
    GOLD_BOOST = "gold_boost"
    EXP_BOOST = "exp_boost"
    ALL_BOOST = "all_boost"
    ENERGY_REGEN = "energy_regen"
    ENERGY_SAVE = "energy_save"

    @classmethod
    def from_value(cls, value: "SkillEffectType | str") -> "SkillEffectType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown skill effect: {value}")


@dataclass(slots=True)
class SkillEffect:
    type: SkillEffectType
    value_per_level: float
    task_id: int | None = None

    def __post_init__(self) -> None:
        self.type = SkillEffectType.from_value(self.type)
        self.value_per_level = coerce_float(self.value_per_level)
        self.task_id = coerce_optional_int(self.task_id)

    def matches(self, effect_type: SkillEffectType | str, task_id: int | None = None) -> bool:
        wanted = SkillEffectType.from_value(effect_type)
        if self.type is wanted:
            type_match = True
        else:
            type_match = self.type is SkillEffectType.ALL_BOOST and wanted in (
                SkillEffectType.GOLD_BOOST,
                SkillEffectType.EXP_BOOST,
            )
        if not type_match:
            return False
        return task_id is None or self.task_id is None or self.task_id == task_id

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type.value,
            "valuePerLevel": self.value_per_level,
        }
        if self.task_id is not None:
            payload["taskId"] = self.task_id
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SkillEffect":
        return cls(
            type=data.get("type", SkillEffectType.GOLD_BOOST.value),
            value_per_level=data.get("valuePerLevel", 0.0),
            task_id=data.get("taskId"),
        )


@dataclass(slots=True)
class Skill:
    id: str
    name: str
    description: str
    max_level: int
    effect: SkillEffect
    base_cost: int
    current_level: int = 0
    icon: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.effect, Mapping):
            self.effect = SkillEffect.from_mapping(self.effect)
        self.max_level = max(1, coerce_int(self.max_level, 1))
        self.current_level = min(max(0, coerce_int(self.current_level)), self.max_level)
        self.base_cost = max(0, coerce_int(self.base_cost))

    @property
    def maxed(self) -> bool:
        return self.current_level >= self.max_level

    def upgrade_cost(self) -> int:
        return self.base_cost * (self.current_level + 1)

    def magnitude(self) -> float:
        return self.effect.value_per_level * self.current_level

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "maxLevel": self.max_level,
            "currentLevel": self.current_level,
            "effect": self.effect.to_mapping(),
            "baseCost": self.base_cost,
        }
        if self.icon:
            payload["icon"] = self.icon
        return payload


class RequirementKind(str, Enum):
    GOLD = "gold"
    ENERGY_SPENT = "energy_spent"
    TASKS_COMPLETED = "tasks_completed"
    LEVEL = "level"
    TASK_SPECIFIC = "task_specific"

    @classmethod
    def from_value(cls, value: "RequirementKind | str") -> "RequirementKind":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown requirement type: {value}")


@dataclass(slots=True)
class Statistics:
    gold_earned: int = 0
    energy_spent: int = 0
    tasks_completed: int = 0
    task_specific_counts: dict[int, int] = field(default_factory=dict)
    explorations_completed: int = 0

    def task_count(self, task_id: int | None) -> int:
        if task_id is None:
            return 0
        return self.task_specific_counts.get(int(task_id), 0)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": "stats",
            "gold_earned": self.gold_earned,
            "energy_spent": self.energy_spent,
            "tasks_completed": self.tasks_completed,
            "task_specific_counts": {
                str(task_id): count for task_id, count in self.task_specific_counts.items()
            },
            "explorations_completed": self.explorations_completed,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any] | None) -> "Statistics":
        if not isinstance(record, Mapping):
            return cls()
        counts: dict[int, int] = {}
        raw_counts = record.get("task_specific_counts")
        if isinstance(raw_counts, Mapping):
            for key, value in raw_counts.items():
                task_id = coerce_optional_int(key)
                if task_id is not None:
                    counts[task_id] = coerce_int(value)
        return cls(
            gold_earned=coerce_int(record.get("gold_earned")),
            energy_spent=coerce_int(record.get("energy_spent")),
            tasks_completed=coerce_int(record.get("tasks_completed")),
            task_specific_counts=counts,
            explorations_completed=coerce_int(record.get("explorations_completed")),
        )


@dataclass(slots=True)
class Requirement:
    kind: RequirementKind
    value: int = 0
    task_id: int | None = None

    def __post_init__(self) -> None:
        self.kind = RequirementKind.from_value(self.kind)
        self.value = coerce_int(self.value)
        self.task_id = coerce_optional_int(self.task_id)

    def is_met(self, stats: Statistics, level: int) -> bool:
        if self.kind is RequirementKind.GOLD:
            return stats.gold_earned >= self.value
        if self.kind is RequirementKind.ENERGY_SPENT:
            return stats.energy_spent >= self.value
        if self.kind is RequirementKind.TASKS_COMPLETED:
            return stats.tasks_completed >= self.value
        if self.kind is RequirementKind.LEVEL:
            return level >= self.value
        return stats.task_count(self.task_id) >= self.value

    def to_mapping(self) -> dict[str, Any]:
        if self.kind is RequirementKind.TASK_SPECIFIC:
            return {"type": self.kind.value, "taskId": self.task_id, "count": self.value}
        return {"type": self.kind.value, "value": self.value}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Requirement":
        return cls(
            kind=data.get("type", RequirementKind.GOLD.value),
            value=data.get("value", data.get("count", 0)),
            task_id=data.get("taskId"),
        )


@dataclass(slots=True)
class Achievement:
    id: str
    name: str
    description: str
    requirement: Requirement
    reward: Reward
    completed: bool = False
    reward_claimed: bool = False
    completed_at: float | None = None
    icon: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.requirement, Mapping):
            self.requirement = Requirement.from_mapping(self.requirement)
        if isinstance(self.reward, Mapping):
            self.reward = Reward.from_mapping(self.reward)

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "requirement": self.requirement.to_mapping(),
            "reward": self.reward.to_mapping(),
            "completed": self.completed,
            "rewardClaimed": self.reward_claimed,
        }
        if self.completed_at is not None:
            payload["completedAt"] = self.completed_at
        if self.icon:
            payload["icon"] = self.icon
        return payload


class DailyTaskType(str, Enum):
    GOLD_COLLECT = "gold_collect"
    COMPLETE_TASKS = "complete_tasks"
    SPEND_ENERGY = "spend_energy"
    SPECIFIC_TASK = "specific_task"

    @classmethod
    def from_value(cls, value: "DailyTaskType | str") -> "DailyTaskType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown daily task type: {value}")


@dataclass(frozen=True, slots=True)
class DailyTemplate:
    id: str
    name: str
    description: str
    type: DailyTaskType
    min_level: int
    base_target: int
    reward: Reward
    specific_task_id: int | None = None

    def instantiate(self, level: int, now: float) -> "DailyTask":
        gap = level - self.min_level
        target_scale = max(1.0, gap / 5 + 1)
        reward_scale = max(1.0, gap / 10 + 1)
        target = math.ceil(self.base_target * target_scale)
        return DailyTask(
            id=f"{self.id}_{int(now * 1000)}",
            template_id=self.id,
            name=self.name,
            description=self.description.replace("{target}", str(target)),
            type=self.type,
            target=target,
            reward=Reward(
                gold=math.ceil(self.reward.gold * reward_scale),
                experience=math.ceil(self.reward.experience * reward_scale),
            ),
            specific_task_id=self.specific_task_id,
            created_at=now,
        )


@dataclass(slots=True)
class DailyTask:
    id: str
    template_id: str
    name: str
    description: str
    type: DailyTaskType
    target: int
    reward: Reward
    progress: int = 0
    completed: bool = False
    claimed: bool = False
    specific_task_id: int | None = None
    created_at: float | None = None
    completed_at: float | None = None

    def __post_init__(self) -> None:
        self.type = DailyTaskType.from_value(self.type)
        if isinstance(self.reward, Mapping):
            self.reward = Reward.from_mapping(self.reward)
        self.target = max(1, coerce_int(self.target, 1))
        self.progress = coerce_int(self.progress)
        self.specific_task_id = coerce_optional_int(self.specific_task_id)

    def accepts(self, task_type: DailyTaskType, task_id: int | None) -> bool:
        if self.type is not task_type:
            return False
        if task_type is DailyTaskType.SPECIFIC_TASK:
            return task_id is not None and self.specific_task_id == task_id
        return True

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "templateId": self.template_id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "target": self.target,
            "reward": self.reward.to_mapping(),
            "progress": self.progress,
            "completed": self.completed,
            "claimed": self.claimed,
        }
        if self.specific_task_id is not None:
            payload["specificTaskId"] = self.specific_task_id
        if self.created_at is not None:
            payload["createdAt"] = self.created_at
        if self.completed_at is not None:
            payload["completedAt"] = self.completed_at
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DailyTask":
        return cls(
            id=str(data.get("id", "")),
            template_id=str(data.get("templateId", "")),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            type=data.get("type", DailyTaskType.GOLD_COLLECT.value),
            target=data.get("target", 1),
            reward=Reward.from_mapping(data.get("reward")),
            progress=data.get("progress", 0),
            completed=bool(data.get("completed", False)),
            claimed=bool(data.get("claimed", False)),
            specific_task_id=data.get("specificTaskId"),
            created_at=coerce_optional_float(data.get("createdAt")),
            completed_at=coerce_optional_float(data.get("completedAt")),
        )


__all__ = [
    "Achievement",
    "DailyTask",
    "DailyTaskType",
    "DailyTemplate",
    "Requirement",
    "RequirementKind",
    "Skill",
    "SkillEffect",
    "SkillEffectType",
    "Statistics",
]
