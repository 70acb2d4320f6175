"""Skill tree: upgradeable passive bonuses bought with gold."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Mapping, Optional

from .energy import regeneration_rate
from .models import ActionResult, Skill, SkillEffect, SkillEffectType
from .models._coerce import coerce_int
from .modifiers import skill_effect

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

SKILLS_COLLECTION = "skills"
SKILLS_KEY = "skills"


def default_skills() -> list[Skill]:
    return [
        Skill(
            id="mining",
            name="Mining",
            description="More gold from resource gathering.",
            max_level=5,
            effect=SkillEffect(SkillEffectType.GOLD_BOOST, 0.2, task_id=1),
            base_cost=50,
            icon="gem",
        ),
        Skill(
            id="exploration",
            name="Exploration",
            description="More experience from map exploration.",
            max_level=5,
            effect=SkillEffect(SkillEffectType.EXP_BOOST, 0.15, task_id=2),
            base_cost=75,
            icon="compass",
        ),
        Skill(
            id="combat",
            name="Combat",
            description="More gold and experience from defeating monsters.",
            max_level=5,
            effect=SkillEffect(SkillEffectType.ALL_BOOST, 0.1, task_id=3),
            base_cost=100,
            icon="sword",
        ),
        Skill(
            id="energy_recovery",
            name="Energy Recovery",
            description="Regenerate one more energy point per minute per level.",
            max_level=3,
            effect=SkillEffect(SkillEffectType.ENERGY_REGEN, 1),
            base_cost=150,
            icon="fire",
        ),
        Skill(
            id="efficiency",
            name="Efficiency",
            description="Every task costs less energy.",
            max_level=3,
            effect=SkillEffect(SkillEffectType.ENERGY_SAVE, 0.1),
            base_cost=200,
            icon="certificate",
        ),
    ]


class SkillTree:
    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._skills: list[Skill] = default_skills()

    @property
    def skills(self) -> list[Skill]:
        return list(self._skills)

    def get(self, skill_id: str) -> Optional[Skill]:
        return next((skill for skill in self._skills if skill.id == skill_id), None)

    def unlocked(self) -> list[Skill]:
        return [skill for skill in self._skills if skill.current_level > 0]

    def upgradable(self) -> list[Skill]:
        return [skill for skill in self._skills if not skill.maxed]

    def effect(self, effect_type: SkillEffectType | str, task_id: int | None = None) -> float:
        return skill_effect(self._skills, effect_type, task_id)

    def energy_regeneration_rate(self, boost_fraction: float = 0.0) -> float:
        return regeneration_rate(self.effect(SkillEffectType.ENERGY_REGEN), boost_fraction)

    async def load(self) -> bool:
        record = await self._context.store.get(SKILLS_COLLECTION, SKILLS_KEY)
        if record is None:
            return False
        saved: dict[str, Mapping] = {
            str(entry.get("id")): entry
            for entry in record.get("list") or ()
            if isinstance(entry, Mapping)
        }
        for skill in self._skills:
            entry = saved.get(skill.id)
            if entry is not None:
                level = coerce_int(entry.get("currentLevel"))
                skill.current_level = min(skill.max_level, max(0, level))
        return True

    async def upgrade(self, skill_id: str, *, now: float | None = None) -> ActionResult:
        skill = self.get(skill_id)
        if skill is None:
            return ActionResult.fail("Skill does not exist")
        if skill.maxed:
            return ActionResult.fail("Skill is already at its maximum level")
        cost = skill.upgrade_cost()
        spent = await self._context.ledger.spend(gold=cost, now=now)
        if not spent:
            return ActionResult.fail(spent.message, cost=cost)
        skill.current_level += 1
        saved = await self._save()
        log.info("Upgraded skill %s to level %s", skill.id, skill.current_level)
        return ActionResult.ok(
            f"{skill.name} upgraded to level {skill.current_level}",
            persisted=spent.persisted and saved,
            new_level=skill.current_level,
            cost=cost,
        )

    async def _save(self) -> bool:
        return await self._context.store.put(
            SKILLS_COLLECTION,
            {
                "id": SKILLS_KEY,
                "list": [skill.to_mapping() for skill in self._skills],
                "lastUpdated": time.time(),
            },
        )


__all__ = ["SKILLS_COLLECTION", "SkillTree", "default_skills"]
