"""Shop, boost and random event models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from ._coerce import coerce_float, coerce_optional_float, coerce_optional_int


class ItemEffectType(str, Enum):
    RESOURCE = "resource"
    BOOST = "boost"
    PERMANENT = "permanent"

    @classmethod
    def from_value(cls, value: "ItemEffectType | str") -> "ItemEffectType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown item effect: {value}")


@dataclass(frozen=True, slots=True)
class ItemEffect:
    """What a shop item does once bought.

    ``resource`` effects carry ``resource``; ``boost`` effects carry
    ``boost_type`` and ``duration`` (seconds); ``permanent`` effects carry
    ``effect_type`` plus the optional task scope.
    """

    type: ItemEffectType
    value: float
    resource: str | None = None
    boost_type: str | None = None
    duration: float | None = None
    effect_type: str | None = None
    task_id: int | None = None
    resource_type: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "value": self.value}
        for key, value in (
            ("resource", self.resource),
            ("boostType", self.boost_type),
            ("duration", self.duration),
            ("effectType", self.effect_type),
            ("taskId", self.task_id),
            ("resourceType", self.resource_type),
        ):
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True)
class ShopItem:
    id: str
    name: str
    description: str
    price: int
    effect: ItemEffect
    min_level: int = 1
    stock: int = -1
    purchased: int = 0
    icon: str | None = None

    @property
    def unlimited(self) -> bool:
        return self.stock == -1

    @property
    def sold_out(self) -> bool:
        return not self.unlimited and self.purchased >= self.stock

    def available_for(self, level: int) -> bool:
        return self.min_level <= level and not self.sold_out

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "effect": self.effect.to_mapping(),
            "minLevel": self.min_level,
            "stock": self.stock,
            "purchased": self.purchased,
        }
        if self.icon:
            payload["icon"] = self.icon
        return payload


@dataclass(frozen=True, slots=True)
class ActiveBoost:
    id: str
    type: str
    value: float
    start_time: float
    end_time: float

    def expired(self, now: float) -> bool:
        return self.end_time <= now

    def remaining(self, now: float) -> float:
        return max(0.0, self.end_time - now)

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "value": self.value,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ActiveBoost":
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", "")),
            value=coerce_float(data.get("value")),
            start_time=coerce_float(data.get("startTime")),
            end_time=coerce_float(data.get("endTime")),
        )


@dataclass(frozen=True, slots=True)
class PermanentEffect:
    id: str
    effect_type: str
    value: float
    task_id: int | None = None
    resource_type: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "effectType": self.effect_type,
            "value": self.value,
        }
        if self.task_id is not None:
            payload["taskId"] = self.task_id
        if self.resource_type is not None:
            payload["resourceType"] = self.resource_type
        return payload

    @classmethod
    def from_item(cls, item: ShopItem) -> "PermanentEffect":
        return cls(
            id=item.id,
            effect_type=str(item.effect.effect_type),
            value=float(item.effect.value),
            task_id=item.effect.task_id,
            resource_type=item.effect.resource_type,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PermanentEffect":
        resource_type = data.get("resourceType")
        return cls(
            id=str(data.get("id", "")),
            effect_type=str(data.get("effectType", "")),
            value=coerce_float(data.get("value")),
            task_id=coerce_optional_int(data.get("taskId")),
            resource_type=str(resource_type) if resource_type is not None else None,
        )


class EventEffectType(str, Enum):
    RESOURCE = "resource"
    TASK_SPEED = "task_speed"
    REWARD_MULTIPLIER = "reward_multiplier"

    @classmethod
    def from_value(cls, value: "EventEffectType | str") -> "EventEffectType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown event effect: {value}")


@dataclass(frozen=True, slots=True)
class EventEffect:
    type: EventEffectType
    value: float
    resource: str | None = None

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "value": self.value}
        if self.resource is not None:
            payload["resource"] = self.resource
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EventEffect":
        resource = data.get("resource")
        return cls(
            type=EventEffectType.from_value(data.get("type", "resource")),
            value=coerce_float(data.get("value")),
            resource=str(resource) if resource is not None else None,
        )


@dataclass(frozen=True, slots=True)
class EventDefinition:
    id: str
    name: str
    description: str
    polarity: str
    effect: EventEffect
    weight: int
    min_level: int = 1
    icon: str | None = None


@dataclass(frozen=True, slots=True)
class ActiveEvent:
    instance_id: str
    event_id: str
    name: str
    description: str
    polarity: str
    effect: EventEffect
    timestamp: float
    icon: str | None = None

    @classmethod
    def from_definition(
        cls, definition: EventDefinition, *, instance_id: str, timestamp: float
    ) -> "ActiveEvent":
        return cls(
            instance_id=instance_id,
            event_id=definition.id,
            name=definition.name,
            description=definition.description,
            polarity=definition.polarity,
            effect=definition.effect,
            timestamp=timestamp,
            icon=definition.icon,
        )

    def to_mapping(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "instanceId": self.instance_id,
            "id": self.event_id,
            "name": self.name,
            "description": self.description,
            "type": self.polarity,
            "effect": self.effect.to_mapping(),
            "timestamp": self.timestamp,
        }
        if self.icon:
            payload["icon"] = self.icon
        return payload

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ActiveEvent":
        effect = data.get("effect")
        icon = data.get("icon")
        timestamp = coerce_optional_float(data.get("timestamp")) or 0.0
        event_id = str(data.get("id", ""))
        return cls(
            instance_id=str(data.get("instanceId") or f"{event_id}_{int(timestamp * 1000)}"),
            event_id=event_id,
            name=str(data.get("name", event_id)),
            description=str(data.get("description", "")),
            polarity=str(data.get("type", "positive")),
            effect=EventEffect.from_mapping(effect if isinstance(effect, Mapping) else {}),
            timestamp=timestamp,
            icon=str(icon) if icon else None,
        )


__all__ = [
    "ActiveBoost",
    "ActiveEvent",
    "EventDefinition",
    "EventEffect",
    "EventEffectType",
    "ItemEffect",
    "ItemEffectType",
    "PermanentEffect",
    "ShopItem",
]
