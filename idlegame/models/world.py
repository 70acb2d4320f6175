"""Exploration areas, timed tasks and their in-flight state."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

from ._coerce import (
    coerce_float,
    coerce_int,
    coerce_optional_float,
    coerce_optional_int,
    coerce_stats,
)
from ._validation import (
    Field,
    RecordSchema,
    is_flag,
    is_integer,
    is_mapping,
    is_number,
    is_text,
    list_of,
)
from .resources import Reward


@dataclass(frozen=True, slots=True)
class RewardRange:
    min: int
    max: int

    def roll(self, rng: random.Random) -> int:
        low, high = sorted((int(self.min), int(self.max)))
        return rng.randint(low, high)

    def to_mapping(self) -> dict[str, int]:
        return {"min": self.min, "max": self.max}

    @classmethod
    def from_mapping(cls, data: Any) -> "RewardRange":
        if not isinstance(data, Mapping):
            return cls(0, 0)
        return cls(coerce_int(data.get("min")), coerce_int(data.get("max")))


class EncounterType(str, Enum):
    BATTLE = "battle"
    TREASURE = "treasure"
    PUZZLE = "puzzle"
    MERCHANT = "merchant"
    TRAP = "trap"
    BLESSING = "blessing"

    @classmethod
    def from_value(cls, value: "EncounterType | str") -> "EncounterType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown encounter type: {value}")


_ENCOUNTER_ATTRIBUTES = ("difficulty", "quality", "damage", "power")


@dataclass(frozen=True, slots=True)
class AreaEncounter:
    """Sub-event that may happen during an exploration."""

    type: EncounterType
    chance: float
    difficulty: int | None = None
    quality: int | None = None
    damage: int | None = None
    power: int | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "chance": self.chance}
        for name in _ENCOUNTER_ATTRIBUTES:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AreaEncounter":
        return cls(
            type=EncounterType.from_value(data.get("type", "treasure")),
            chance=coerce_float(data.get("chance")),
            **{name: coerce_optional_int(data.get(name)) for name in _ENCOUNTER_ATTRIBUTES},
        )


@dataclass(frozen=True, slots=True)
class ItemDrop:
    id: str
    name: str
    type: str
    chance: float
    stats: Mapping[str, int] = field(default_factory=dict)
    value: int | None = None
    special: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "chance": self.chance,
        }
        if self.stats:
            payload["stats"] = dict(self.stats)
        if self.value is not None:
            payload["value"] = self.value
        if self.special:
            payload["special"] = self.special
        return payload

    def loot(self) -> dict[str, Any]:
        """Mapping describing the dropped item, without its drop chance."""

        payload = self.to_mapping()
        payload.pop("chance", None)
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ItemDrop":
        special = data.get("special")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=str(data.get("type", "material")),
            chance=coerce_float(data.get("chance")),
            stats=coerce_stats(data.get("stats")),
            value=coerce_optional_int(data.get("value")),
            special=str(special) if special else None,
        )


@dataclass(slots=True)
class ExplorationArea:
    id: int
    name: str
    type: str
    description: str
    min_level: int
    energy_cost: int
    duration: float
    gold: RewardRange
    experience: RewardRange
    encounters: Sequence[AreaEncounter] = ()
    item_drops: Sequence[ItemDrop] = ()
    unlocked: bool = False

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "minLevel": self.min_level,
            "energyCost": self.energy_cost,
            "duration": self.duration,
            "baseRewards": {
                "gold": self.gold.to_mapping(),
                "experience": self.experience.to_mapping(),
            },
            "events": [encounter.to_mapping() for encounter in self.encounters],
            "itemDrops": [drop.to_mapping() for drop in self.item_drops],
            "unlocked": self.unlocked,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExplorationArea":
        rewards = data.get("baseRewards")
        if not isinstance(rewards, Mapping):
            rewards = {}
        encounters = [
            AreaEncounter.from_mapping(entry)
            for entry in data.get("events") or ()
            if isinstance(entry, Mapping)
        ]
        drops = [
            ItemDrop.from_mapping(entry)
            for entry in data.get("itemDrops") or ()
            if isinstance(entry, Mapping)
        ]
        return cls(
            id=coerce_int(data.get("id")),
            name=str(data.get("name", "")),
            type=str(data.get("type", "")),
            description=str(data.get("description", "")),
            min_level=coerce_int(data.get("minLevel"), 1),
            energy_cost=coerce_int(data.get("energyCost")),
            duration=coerce_float(data.get("duration")),
            gold=RewardRange.from_mapping(rewards.get("gold")),
            experience=RewardRange.from_mapping(rewards.get("experience")),
            encounters=tuple(encounters),
            item_drops=tuple(drops),
            unlocked=bool(data.get("unlocked", False)),
        )


EXPLORATION_AREA_SCHEMA = RecordSchema(
    "ExplorationArea",
    {
        "id": Field(is_integer, "an integer area id"),
        "name": Field(is_text, "a non-empty area name"),
        "minLevel": Field(is_integer, "a minimum level", required=False),
        "energyCost": Field(is_integer, "an energy cost", required=False),
        "duration": Field(is_number, "a duration in seconds", required=False),
        "events": Field(list_of(is_mapping), "a list of encounters", required=False),
        "itemDrops": Field(list_of(is_mapping), "a list of item drops", required=False),
        "unlocked": Field(is_flag, "an unlocked flag", required=False),
    },
)


class ExplorationStatus(str, Enum):
    IDLE = "idle"
    EXPLORING = "exploring"
    COMPLETED = "completed"
    CLAIMED = "claimed"

    @classmethod
    def from_value(cls, value: "ExplorationStatus | str | None") -> "ExplorationStatus":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.IDLE


@dataclass(frozen=True, slots=True)
class EncounterOutcome:
    type: EncounterType
    description: str
    result: str | None = None
    difficulty: int | None = None
    quality: int | None = None
    damage: int | None = None
    power: int | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "description": self.description}
        if self.result is not None:
            payload["result"] = self.result
        for name in _ENCOUNTER_ATTRIBUTES:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload


@dataclass(slots=True)
class ExplorationState:
    area_id: int
    area_name: str
    start_time: float
    duration: float
    energy_cost: int
    status: ExplorationStatus = ExplorationStatus.EXPLORING
    completed_time: float | None = None
    claimed_time: float | None = None
    rewards: Reward | None = None
    events: list[dict[str, Any]] = field(default_factory=list)
    items: list[dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.status = ExplorationStatus.from_value(self.status)

    def is_complete(self, now: float) -> bool:
        if self.status is not ExplorationStatus.EXPLORING:
            return False
        return now - self.start_time >= self.duration

    def progress(self, now: float) -> int:
        if self.status is not ExplorationStatus.EXPLORING:
            return 100 if self.status is not ExplorationStatus.IDLE else 0
        if self.duration <= 0:
            return 100
        elapsed = max(0.0, now - self.start_time)
        return min(100, int(elapsed / self.duration * 100))

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": "state",
            "areaId": self.area_id,
            "areaName": self.area_name,
            "startTime": self.start_time,
            "duration": self.duration,
            "energyCost": self.energy_cost,
            "status": self.status.value,
            "events": list(self.events),
            "items": list(self.items),
        }
        if self.completed_time is not None:
            record["completedTime"] = self.completed_time
        if self.claimed_time is not None:
            record["claimedTime"] = self.claimed_time
        if self.rewards is not None:
            record["rewards"] = self.rewards.to_mapping()
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ExplorationState":
        rewards = record.get("rewards")
        return cls(
            area_id=coerce_int(record.get("areaId")),
            area_name=str(record.get("areaName", "")),
            start_time=coerce_float(record.get("startTime")),
            duration=coerce_float(record.get("duration")),
            energy_cost=coerce_int(record.get("energyCost")),
            status=record.get("status"),
            completed_time=coerce_optional_float(record.get("completedTime")),
            claimed_time=coerce_optional_float(record.get("claimedTime")),
            rewards=Reward.from_mapping(rewards) if isinstance(rewards, Mapping) else None,
            events=[dict(entry) for entry in record.get("events") or () if isinstance(entry, Mapping)],
            items=[dict(entry) for entry in record.get("items") or () if isinstance(entry, Mapping)],
        )


@dataclass(frozen=True, slots=True)
class TaskDefinition:
    id: int
    name: str
    description: str
    energy_cost: int
    duration: float
    reward: Reward
    min_level: int = 1


@dataclass(slots=True)
class ActiveTask:
    task_id: int
    start_time: float
    duration: float
    energy_cost: int
    claimed: bool = False
    # Instance ids of the task_speed events that shortened this task.
    speed_events: tuple[str, ...] = ()

    def is_complete(self, now: float) -> bool:
        return now - self.start_time >= self.duration

    def progress(self, now: float) -> int:
        if self.duration <= 0:
            return 100
        return min(100, int(max(0.0, now - self.start_time) / self.duration * 100))

    def to_record(self) -> dict[str, Any]:
        return {
            "id": "activeTask",
            "taskId": self.task_id,
            "startTime": self.start_time,
            "duration": self.duration,
            "energyCost": self.energy_cost,
            "claimed": self.claimed,
            "speedEvents": list(self.speed_events),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ActiveTask":
        return cls(
            task_id=coerce_int(record.get("taskId")),
            start_time=coerce_float(record.get("startTime")),
            duration=coerce_float(record.get("duration")),
            energy_cost=coerce_int(record.get("energyCost")),
            claimed=bool(record.get("claimed", False)),
            speed_events=tuple(str(entry) for entry in record.get("speedEvents") or ()),
        )


__all__ = [
    "ActiveTask",
    "AreaEncounter",
    "EncounterOutcome",
    "EncounterType",
    "ExplorationArea",
    "EXPLORATION_AREA_SCHEMA",
    "ExplorationState",
    "ExplorationStatus",
    "ItemDrop",
    "RewardRange",
    "TaskDefinition",
]
