"""Snapshot types shared by the game services."""

from ._validation import ModelValidationError, RecordSchema
from .companions import Equipment, EquipmentType, Pet, PetType, Rarity
from .economy import (
    ActiveBoost,
    ActiveEvent,
    EventDefinition,
    EventEffect,
    EventEffectType,
    ItemEffect,
    ItemEffectType,
    PermanentEffect,
    ShopItem,
)
from .progression import (
    Achievement,
    DailyTask,
    DailyTaskType,
    DailyTemplate,
    Requirement,
    RequirementKind,
    Skill,
    SkillEffect,
    SkillEffectType,
    Statistics,
)
from .resources import GAME_STATE_KEY, RESOURCE_STATE_SCHEMA, ResourceState, Reward
from .results import ActionResult
from .world import (
    ActiveTask,
    AreaEncounter,
    EncounterOutcome,
    EncounterType,
    EXPLORATION_AREA_SCHEMA,
    ExplorationArea,
    ExplorationState,
    ExplorationStatus,
    ItemDrop,
    RewardRange,
    TaskDefinition,
)

__all__ = [
    "Achievement",
    "ActionResult",
    "ActiveBoost",
    "ActiveEvent",
    "ActiveTask",
    "AreaEncounter",
    "DailyTask",
    "DailyTaskType",
    "DailyTemplate",
    "EncounterOutcome",
    "EncounterType",
    "Equipment",
    "EquipmentType",
    "EventDefinition",
    "EventEffect",
    "EventEffectType",
    "EXPLORATION_AREA_SCHEMA",
    "ExplorationArea",
    "ExplorationState",
    "ExplorationStatus",
    "GAME_STATE_KEY",
    "ItemDrop",
    "ItemEffect",
    "ItemEffectType",
    "ModelValidationError",
    "PermanentEffect",
    "Pet",
    "PetType",
    "RESOURCE_STATE_SCHEMA",
    "Rarity",
    "RecordSchema",
    "Requirement",
    "RequirementKind",
    "ResourceState",
    "Reward",
    "RewardRange",
    "ShopItem",
    "Skill",
    "SkillEffect",
    "SkillEffectType",
    "Statistics",
    "TaskDefinition",
]
