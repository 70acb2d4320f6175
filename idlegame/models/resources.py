"""Player resource snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from ..energy import STARTING_ENERGY, clamp_energy, energy_cap_for_level
from ._coerce import coerce_float, coerce_int, coerce_optional_float
from ._validation import Field, RecordSchema, is_integer, is_number, is_text, mapping_of

GAME_STATE_KEY = "current"

_RECORD_FIELDS = frozenset({"id", "resources", "level", "lastUpdated", "lastRegenerated"})


@dataclass(slots=True)
class Reward:
    gold: int = 0
    experience: int = 0

    def __post_init__(self) -> None:
        self.gold = coerce_int(self.gold)
        self.experience = coerce_int(self.experience)

    def __bool__(self) -> bool:
        return bool(self.gold or self.experience)

    def to_mapping(self) -> dict[str, int]:
        return {"gold": self.gold, "experience": self.experience}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Reward":
        if not isinstance(data, Mapping):
            return cls()
        return cls(gold=data.get("gold", 0), experience=data.get("experience", 0))


@dataclass(slots=True)
class ResourceState:
    """Canonical totals for one save.

    Gold and experience never go negative and energy stays within
    ``[0, 100 + level]`` once :meth:`clamped` has been applied.
    """

    gold: int = 0
    experience: int = 0
    energy: float = STARTING_ENERGY
    level: int = 1
    last_updated: float | None = None
    # Only energy regeneration moves this stamp; other saves leave it alone.
    last_regenerated: float | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.gold = coerce_int(self.gold)
        self.experience = coerce_int(self.experience)
        self.energy = coerce_float(self.energy)
        self.level = max(0, coerce_int(self.level, 1))

    @property
    def energy_cap(self) -> int:
        return energy_cap_for_level(self.level)

    @property
    def regeneration_anchor(self) -> float | None:
        if self.last_regenerated is not None:
            return self.last_regenerated
        return self.last_updated

    def clamped(self) -> "ResourceState":
        return replace(
            self,
            gold=max(0, self.gold),
            experience=max(0, self.experience),
            energy=clamp_energy(self.energy, self.level),
            extra=dict(self.extra),
        )

    def adjusted(
        self, *, gold: int = 0, experience: int = 0, energy: float = 0.0
    ) -> "ResourceState":
        """Return the next state with deltas applied and bounds enforced."""

        return replace(
            self,
            gold=self.gold + int(gold),
            experience=self.experience + int(experience),
            energy=self.energy + float(energy),
            extra=dict(self.extra),
        ).clamped()

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = dict(self.extra)
        record.update(
            {
                "id": GAME_STATE_KEY,
                "resources": {
                    "gold": self.gold,
                    "experience": self.experience,
                    "energy": self.energy,
                },
                "level": self.level,
            }
        )
        if self.last_updated is not None:
            record["lastUpdated"] = self.last_updated
        if self.last_regenerated is not None:
            record["lastRegenerated"] = self.last_regenerated
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ResourceState":
        resources = record.get("resources")
        if not isinstance(resources, Mapping):
            resources = {}
        extra = {key: value for key, value in record.items() if key not in _RECORD_FIELDS}
        return cls(
            gold=resources.get("gold", 0),
            experience=resources.get("experience", 0),
            energy=resources.get("energy", STARTING_ENERGY),
            level=record.get("level", 1),
            last_updated=coerce_optional_float(record.get("lastUpdated")),
            last_regenerated=coerce_optional_float(record.get("lastRegenerated")),
            extra=extra,
        )


RESOURCE_STATE_SCHEMA = RecordSchema(
    "ResourceState",
    {
        "id": Field(is_text, "the game state key"),
        "resources": Field(mapping_of(is_number), "a mapping of resource names to amounts"),
        "level": Field(is_integer, "an integer player level", required=False),
        "lastUpdated": Field(is_number, "a save timestamp", required=False, nullable=True),
        "lastRegenerated": Field(
            is_number, "a regeneration timestamp", required=False, nullable=True
        ),
    },
)


__all__ = ["GAME_STATE_KEY", "RESOURCE_STATE_SCHEMA", "ResourceState", "Reward"]
