"""Dependency container handed to every game service."""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from .clock import ProgressClock
from .config import GameConfig

if TYPE_CHECKING:
    from .achievements import TriggerEngine
    from .daily import DailyTaskBoard
    from .equipment import EquipmentInventory
    from .events import EventManager
    from .ledger import ResourceLedger
    from .notifications import Notifier
    from .pets import PetKennel
    from .shop import Shop
    from .skills import SkillTree
    from .storage import DataStore


@dataclass(slots=True)
class GameContext:
    """Shared collaborators.

    Services receive the context instead of reaching for globals; the
    late-bound collaborators are filled in by :class:`idlegame.engine.GameEngine`
    once every service exists.  Unset collaborators are simply skipped.
    """

    store: "DataStore"
    ledger: "ResourceLedger"
    config: GameConfig = field(default_factory=GameConfig)
    notifier: Optional["Notifier"] = None
    rng: random.Random = field(default_factory=random.Random)
    clock: ProgressClock = field(default_factory=ProgressClock)
    triggers: Optional["TriggerEngine"] = None
    daily: Optional["DailyTaskBoard"] = None
    events: Optional["EventManager"] = None
    shop: Optional["Shop"] = None
    skills: Optional["SkillTree"] = None
    pets: Optional["PetKennel"] = None
    equipment: Optional["EquipmentInventory"] = None

    @staticmethod
    def now(value: float | None = None) -> float:
        return time.time() if value is None else value

    def bind(self, **services: Any) -> None:
        for name, service in services.items():
            setattr(self, name, service)

    def reward_modifiers(self, now: float | None = None) -> dict[str, Any]:
        """Keyword arguments for :func:`idlegame.modifiers.compute_reward`."""

        return {
            "skills": self.skills.skills if self.skills is not None else (),
            "effects": self.shop.permanent_effects if self.shop is not None else (),
            "boosts": self.shop.active_boosts(now) if self.shop is not None else (),
            "pet": self.pets.active_pet if self.pets is not None else None,
        }


__all__ = ["GameContext"]
