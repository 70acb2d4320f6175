"""Pet and equipment models."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from ._coerce import coerce_int, coerce_optional_float, coerce_optional_int, coerce_stats

# Stat growth applied on every pet level-up.
PET_STAT_GROWTH = 1.2

# Growth of the experience needed for the next pet level.
PET_EXPERIENCE_GROWTH = 1.5

PET_STARTING_MAX_EXPERIENCE = 100

EQUIPMENT_STAT_NAMES = ("attack", "defense", "health", "speed", "critical")


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @classmethod
    def from_value(cls, value: "Rarity | str | None", *, default: "Rarity | None" = None) -> "Rarity":
        if isinstance(value, cls):
            return value
        if value is None:
            if default is not None:
                return default
            raise ValueError("Rarity cannot be None")
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        if default is not None:
            return default
        raise ValueError(f"Unknown rarity: {value}")

    @property
    def rank(self) -> int:
        return list(Rarity).index(self)

    @property
    def price_multiplier(self) -> int:
        return _RARITY_PRICE_MULTIPLIERS[self]


_RARITY_PRICE_MULTIPLIERS = {
    Rarity.COMMON: 1,
    Rarity.UNCOMMON: 2,
    Rarity.RARE: 5,
    Rarity.EPIC: 10,
    Rarity.LEGENDARY: 20,
}


class PetType(str, Enum):
    ATTACK = "attack"
    DEFENSE = "defense"
    UTILITY = "utility"
    GOLD = "gold"
    ENERGY = "energy"

    @classmethod
    def from_value(cls, value: "PetType | str") -> "PetType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown pet type: {value}")


@dataclass(slots=True)
class Pet:
    id: str
    name: str
    type: PetType
    rarity: Rarity = Rarity.COMMON
    stats: dict[str, int] = field(default_factory=dict)
    skills: list[str] = field(default_factory=list)
    level: int = 1
    experience: int = 0
    max_experience: int = PET_STARTING_MAX_EXPERIENCE
    active: bool = False
    captured_at: float | None = None

    def __post_init__(self) -> None:
        self.type = PetType.from_value(self.type)
        self.rarity = Rarity.from_value(self.rarity, default=Rarity.COMMON)
        self.stats = coerce_stats(self.stats)
        self.level = max(1, coerce_int(self.level, 1))
        self.experience = max(0, coerce_int(self.experience))
        self.max_experience = max(1, coerce_int(self.max_experience, PET_STARTING_MAX_EXPERIENCE))

    def gain_experience(self, amount: int) -> int:
        """Add experience, levelling up as many times as it overflows.

        Returns the number of levels gained.
        """

        self.experience += max(0, int(amount))
        gained = 0
        while self.experience >= self.max_experience:
            self.level += 1
            self.experience -= self.max_experience
            self.max_experience = math.floor(self.max_experience * PET_EXPERIENCE_GROWTH)
            self.stats = {
                name: math.floor(value * PET_STAT_GROWTH) for name, value in self.stats.items()
            }
            gained += 1
        return gained

    def bonus(self, pet_type: PetType | str, stat: str) -> int:
        value = self.stats.get(stat)
        if not value:
            return 0
        if self.type is PetType.from_value(pet_type):
            return math.floor(value * (1 + self.level * 0.05))
        return math.floor(value * (1 + self.level * 0.02))

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "rarity": self.rarity.value,
            "stats": dict(self.stats),
            "skills": list(self.skills),
            "level": self.level,
            "experience": self.experience,
            "maxExperience": self.max_experience,
            "active": self.active,
        }
        if self.captured_at is not None:
            payload["capturedAt"] = self.captured_at
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Pet":
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=data.get("type", PetType.UTILITY.value),
            rarity=data.get("rarity"),
            stats=data.get("stats") or {},
            skills=[str(skill) for skill in data.get("skills") or ()],
            level=data.get("level", 1),
            experience=data.get("experience", 0),
            max_experience=data.get("maxExperience", PET_STARTING_MAX_EXPERIENCE),
            active=bool(data.get("active", False)),
            captured_at=coerce_optional_float(data.get("capturedAt")),
        )


class EquipmentType(str, Enum):
    WEAPON = "weapon"
    HELMET = "helmet"
    ARMOR = "armor"
    SHIELD = "shield"
    ACCESSORY = "accessory"
    MATERIAL = "material"

    @classmethod
    def from_value(cls, value: "EquipmentType | str") -> "EquipmentType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown equipment type: {value}")

    @property
    def is_slot(self) -> bool:
        return self is not EquipmentType.MATERIAL


@dataclass(slots=True)
class Equipment:
    id: str
    name: str
    type: EquipmentType
    rarity: Rarity = Rarity.COMMON
    stats: dict[str, int] = field(default_factory=dict)
    value: int | None = None
    enhancement: int = 0
    special: str | None = None
    acquired_at: float | None = None
    source: str | None = None

    def __post_init__(self) -> None:
        self.type = EquipmentType.from_value(self.type)
        self.rarity = Rarity.from_value(self.rarity, default=Rarity.COMMON)
        self.stats = coerce_stats(self.stats)
        self.value = coerce_optional_int(self.value)
        self.enhancement = max(0, coerce_int(self.enhancement))

    def sale_price(self) -> int:
        if self.value is not None:
            base = self.value
        elif self.stats:
            base = max(10, sum(self.stats.values()) * 5)
        else:
            base = 10
        return base * self.rarity.price_multiplier

    def enhance_value(self) -> int:
        """Enhancement contributed when this item is consumed as a material."""

        return self.value if self.value is not None else 5

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "rarity": self.rarity.value,
            "stats": dict(self.stats),
            "enhancement": self.enhancement,
        }
        if self.value is not None:
            payload["value"] = self.value
        if self.special:
            payload["special"] = self.special
        if self.acquired_at is not None:
            payload["acquiredAt"] = self.acquired_at
        if self.source:
            payload["source"] = self.source
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Equipment":
        special = data.get("special")
        source = data.get("source")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=data.get("type", EquipmentType.MATERIAL.value),
            rarity=data.get("rarity"),
            stats=data.get("stats") or {},
            value=data.get("value"),
            enhancement=data.get("enhancement", 0),
            special=str(special) if special else None,
            acquired_at=coerce_optional_float(data.get("acquiredAt")),
            source=str(source) if source else None,
        )


__all__ = [
    "EQUIPMENT_STAT_NAMES",
    "Equipment",
    "EquipmentType",
    "Pet",
    "PetType",
    "Rarity",
]
