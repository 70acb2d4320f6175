"""Modifier aggregation for rewards, energy costs and task durations.

Pure functions over snapshots; nothing here touches storage.  Rewards are
combined in a fixed order:

1. additive fractions from skills, permanent effects and active shop boosts,
   applied as ``floor(base * (1 + total))``;
2. the active pet's flat bonus;
3. at most one reward multiplier, applied last.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .models import (
    ActiveBoost,
    ActiveEvent,
    EventEffectType,
    PermanentEffect,
    Pet,
    PetType,
    Reward,
    Skill,
    SkillEffectType,
)

# Slowest a task may run, as a fraction of normal speed.
MIN_TASK_SPEED = 0.1

TASK_BOOST_EFFECT = "task_boost"
ENERGY_SAVE_EFFECT = "energy_save"

# Resource -> (pet type with the full bonus, pet stat read)
PET_BONUS_SOURCES: Mapping[str, tuple[PetType, str]] = {
    "gold": (PetType.GOLD, "gold"),
    "experience": (PetType.UTILITY, "experience"),
}

_RESOURCE_SKILL_EFFECTS = {
    "gold": SkillEffectType.GOLD_BOOST,
    "experience": SkillEffectType.EXP_BOOST,
}


def skill_effect(
    skills: Iterable[Skill],
    effect_type: SkillEffectType | str,
    task_id: int | None = None,
) -> float:
    total = 0.0
    for skill in skills:
        if skill.current_level <= 0:
            continue
        if skill.effect.matches(effect_type, task_id):
            total += skill.magnitude()
    return total


def permanent_task_boost(
    effects: Iterable[PermanentEffect], task_id: int | None, resource_type: str
) -> float:
    return sum(
        effect.value
        for effect in effects
        if effect.effect_type == TASK_BOOST_EFFECT
        and effect.task_id == task_id
        and effect.resource_type == resource_type
    )


def gold_boost(
    task_id: int | None, skills: Iterable[Skill], effects: Iterable[PermanentEffect]
) -> float:
    return skill_effect(skills, SkillEffectType.GOLD_BOOST, task_id) + permanent_task_boost(
        effects, task_id, "gold"
    )


def exp_boost(
    task_id: int | None, skills: Iterable[Skill], effects: Iterable[PermanentEffect]
) -> float:
    return skill_effect(skills, SkillEffectType.EXP_BOOST, task_id) + permanent_task_boost(
        effects, task_id, "experience"
    )


def boost_value(
    boost_type: str,
    boosts: Iterable[ActiveBoost],
    effects: Iterable[PermanentEffect] = (),
) -> float:
    """Sum active boosts of ``boost_type``; callers sweep expired boosts first."""

    total = sum(boost.value for boost in boosts if boost.type == boost_type)
    total += sum(effect.value for effect in effects if effect.effect_type == boost_type)
    return total


def energy_save_fraction(
    skills: Iterable[Skill], effects: Iterable[PermanentEffect]
) -> float:
    total = skill_effect(skills, SkillEffectType.ENERGY_SAVE)
    total += sum(effect.value for effect in effects if effect.effect_type == ENERGY_SAVE_EFFECT)
    return min(1.0, max(0.0, total))


def effective_energy_cost(base_cost: int, fraction: float) -> int:
    """Every task costs at least one energy, whatever the savings."""

    return max(1, math.floor(base_cost * (1 - min(1.0, max(0.0, fraction)))))


def event_total(events: Iterable[ActiveEvent], effect_type: EventEffectType) -> float:
    return sum(event.effect.value for event in events if event.effect.type is effect_type)


def task_speed_modifier(*fractions: float) -> float:
    return max(MIN_TASK_SPEED, 1 + sum(fractions))


def effective_duration(base_duration: float, modifier: float) -> float:
    return float(base_duration) / max(MIN_TASK_SPEED, modifier)


def pet_bonus(pet: Optional[Pet], resource: str) -> int:
    if pet is None or not pet.active:
        return 0
    source = PET_BONUS_SOURCES.get(resource)
    if source is None:
        return 0
    pet_type, stat = source
    return pet.bonus(pet_type, stat)


@dataclass(frozen=True, slots=True)
class RewardBreakdown:
    base: int
    fraction: float
    boosted: int
    pet_bonus: int
    multiplier: float
    final: int


def compute_amount(
    base: int, fraction: float, *, bonus: int = 0, multiplier: float = 1.0
) -> RewardBreakdown:
    boosted = math.floor(base * (1 + fraction))
    final = math.floor((boosted + bonus) * multiplier)
    return RewardBreakdown(
        base=int(base),
        fraction=fraction,
        boosted=boosted,
        pet_bonus=bonus,
        multiplier=multiplier,
        final=max(0, final),
    )


@dataclass(frozen=True, slots=True)
class RewardComputation:
    gold: RewardBreakdown
    experience: RewardBreakdown

    @property
    def reward(self) -> Reward:
        return Reward(gold=self.gold.final, experience=self.experience.final)


def compute_reward(
    base: Reward,
    *,
    task_id: int | None,
    skills: Iterable[Skill] = (),
    effects: Iterable[PermanentEffect] = (),
    boosts: Iterable[ActiveBoost] = (),
    pet: Optional[Pet] = None,
    multiplier: float = 1.0,
) -> RewardComputation:
    skills = list(skills)
    effects = list(effects)
    boosts = list(boosts)
    breakdowns: dict[str, RewardBreakdown] = {}
    for resource, amount in (("gold", base.gold), ("experience", base.experience)):
        fraction = skill_effect(skills, _RESOURCE_SKILL_EFFECTS[resource], task_id)
        fraction += permanent_task_boost(effects, task_id, resource)
        fraction += boost_value(resource, boosts)
        breakdowns[resource] = compute_amount(
            amount,
            fraction,
            bonus=pet_bonus(pet, resource),
            multiplier=multiplier,
        )
    return RewardComputation(gold=breakdowns["gold"], experience=breakdowns["experience"])


__all__ = [
    "MIN_TASK_SPEED",
    "PET_BONUS_SOURCES",
    "RewardBreakdown",
    "RewardComputation",
    "boost_value",
    "compute_amount",
    "compute_reward",
    "effective_duration",
    "effective_energy_cost",
    "energy_save_fraction",
    "event_total",
    "exp_boost",
    "gold_boost",
    "permanent_task_boost",
    "pet_bonus",
    "skill_effect",
    "task_speed_modifier",
]
