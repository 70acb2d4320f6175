"""Random events: weighted draws, one-shot resource effects and pending task effects."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .models import (
    ActionResult,
    ActiveEvent,
    EventDefinition,
    EventEffect,
    EventEffectType,
)
from .modifiers import event_total
from .notifications import notify_event

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

EVENTS_COLLECTION = "events"
ACTIVE_EVENTS_KEY = "activeEvents"
EVENT_HISTORY_KEY = "eventHistory"


def default_events() -> list[EventDefinition]:
    return [
        EventDefinition(
            "gold_rush",
            "Gold Rush",
            "You found a gold vein! Collect some extra gold.",
            "positive",
            EventEffect(EventEffectType.RESOURCE, 50, resource="gold"),
            weight=10,
            icon="gold-coin",
        ),
        EventDefinition(
            "energy_boost",
            "Second Wind",
            "You feel refreshed and recover some energy.",
            "positive",
            EventEffect(EventEffectType.RESOURCE, 20, resource="energy"),
            weight=10,
            icon="fire",
        ),
        EventDefinition(
            "exp_bonus",
            "Epiphany",
            "A sudden insight grants extra experience.",
            "positive",
            EventEffect(EventEffectType.RESOURCE, 30, resource="experience"),
            weight=10,
            icon="bulb-o",
        ),
        EventDefinition(
            "task_speedup",
            "In the Zone",
            "Your next task finishes 50% faster.",
            "positive",
            EventEffect(EventEffectType.TASK_SPEED, 0.5),
            weight=8,
            min_level=2,
            icon="clock-o",
        ),
        EventDefinition(
            "double_reward",
            "Double Reward",
            "Your next task pays out twice.",
            "positive",
            EventEffect(EventEffectType.REWARD_MULTIPLIER, 2),
            weight=5,
            min_level=3,
            icon="gift-o",
        ),
        EventDefinition(
            "energy_drain",
            "Exhaustion",
            "You feel tired and lose some energy.",
            "negative",
            EventEffect(EventEffectType.RESOURCE, -10, resource="energy"),
            weight=8,
            min_level=2,
            icon="warning-o",
        ),
        EventDefinition(
            "gold_loss",
            "Unexpected Expense",
            "An unexpected bill costs you some gold.",
            "negative",
            EventEffect(EventEffectType.RESOURCE, -20, resource="gold"),
            weight=8,
            min_level=2,
            icon="cross",
        ),
        EventDefinition(
            "task_slowdown",
            "Sluggish",
            "Your next task runs 30% slower.",
            "negative",
            EventEffect(EventEffectType.TASK_SPEED, -0.3),
            weight=6,
            min_level=3,
            icon="clock-o",
        ),
    ]


class EventManager:
    """Owns the active event list and the bounded event history.

    Resource events are applied once and removed.  Task speed and reward
    multiplier events stay active until a task claim consumes them.
    """

    def __init__(self, context: "GameContext", catalog: list[EventDefinition] | None = None) -> None:
        self._context = context
        self._catalog = list(catalog) if catalog is not None else default_events()
        self._active: list[ActiveEvent] = []
        self._history: list[ActiveEvent] = []

    @property
    def catalog(self) -> list[EventDefinition]:
        return list(self._catalog)

    @property
    def active(self) -> list[ActiveEvent]:
        return list(self._active)

    @property
    def history(self) -> list[ActiveEvent]:
        return list(self._history)

    def available(self, level: int) -> list[EventDefinition]:
        return [event for event in self._catalog if event.min_level <= level]

    def find(self, event_id: str) -> Optional[ActiveEvent]:
        for event in self._active:
            if event.instance_id == event_id:
                return event
        return next((event for event in self._active if event.event_id == event_id), None)

    def draw(self, level: int) -> Optional[EventDefinition]:
        candidates = [event for event in self.available(level) if event.weight > 0]
        if not candidates:
            return None
        remaining = self._context.rng.random() * sum(event.weight for event in candidates)
        for event in candidates:
            remaining -= event.weight
            if remaining <= 0:
                return event
        return candidates[-1]

    async def load(self) -> bool:
        store = self._context.store
        active = await store.get(EVENTS_COLLECTION, ACTIVE_EVENTS_KEY)
        history = await store.get(EVENTS_COLLECTION, EVENT_HISTORY_KEY)
        if active is not None:
            self._active = self._parse(active.get("events"))
        if history is not None:
            self._history = self._parse(history.get("events"))[-self._context.config.history_limit :]
        return active is not None or history is not None

    async def trigger_random_event(
        self, level: int, *, now: float | None = None
    ) -> Optional[ActiveEvent]:
        definition = self.draw(level)
        if definition is None:
            return None
        event = ActiveEvent.from_definition(
            definition,
            instance_id=uuid.uuid4().hex[:8],
            timestamp=self._context.now(now),
        )
        self._active.append(event)
        self._history.append(event)
        limit = self._context.config.history_limit
        if len(self._history) > limit:
            self._history = self._history[-limit:]
        log.info("Triggered event %s (%s)", event.event_id, event.instance_id)
        await self._save()
        await notify_event(self._context.notifier, event)
        return event

    async def apply_event_effect(
        self, event_id: str, *, now: float | None = None
    ) -> ActionResult:
        event = self.find(event_id)
        if event is None:
            return ActionResult.fail("Event does not exist or has expired")
        effect = event.effect
        if effect.type is not EventEffectType.RESOURCE:
            return ActionResult.ok(
                "Event effect is active and applies to your next task",
                event=event,
            )

        resource = effect.resource or "gold"
        amount = effect.value
        deltas = {"gold": 0, "experience": 0, "energy": 0.0}
        if resource not in deltas:
            return ActionResult.fail(f"Unknown event resource: {resource}")
        deltas[resource] = amount if resource == "energy" else int(amount)
        update = await self._context.ledger.apply(now=now, **deltas)
        if update is None:
            return ActionResult.fail("Game state could not be loaded")
        self._active = [entry for entry in self._active if entry.instance_id != event.instance_id]
        saved = await self._save()
        verb = "Gained" if amount > 0 else "Lost"
        return ActionResult.ok(
            f"Event applied: {verb} {abs(amount):g} {resource}",
            persisted=update.persisted and saved,
            event=event,
            state=update.state,
        )

    def task_speed_total(self) -> float:
        return event_total(self._active, EventEffectType.TASK_SPEED)

    def pending_multipliers(self) -> list[float]:
        return [
            event.effect.value
            for event in self._active
            if event.effect.type is EventEffectType.REWARD_MULTIPLIER
        ]

    def peek(self, effect_type: EventEffectType) -> Optional[ActiveEvent]:
        return next((event for event in self._active if event.effect.type is effect_type), None)

    async def consume(self, effect_type: EventEffectType) -> Optional[ActiveEvent]:
        """Remove and return the oldest active event with ``effect_type``."""

        event = self.peek(effect_type)
        if event is None:
            return None
        self._active = [entry for entry in self._active if entry.instance_id != event.instance_id]
        await self._save()
        log.debug("Consumed %s event %s", effect_type.value, event.instance_id)
        return event

    async def discard(self, instance_ids: Iterable[str]) -> list[ActiveEvent]:
        """Remove the active events with the given instance ids."""

        wanted = set(instance_ids)
        removed = [event for event in self._active if event.instance_id in wanted]
        if not removed:
            return []
        self._active = [event for event in self._active if event.instance_id not in wanted]
        await self._save()
        log.debug("Discarded events %s", ", ".join(event.instance_id for event in removed))
        return removed

    def to_records(self) -> list[dict]:
        timestamp = self._context.now()
        return [
            {
                "id": ACTIVE_EVENTS_KEY,
                "events": [event.to_mapping() for event in self._active],
                "lastUpdated": timestamp,
            },
            {
                "id": EVENT_HISTORY_KEY,
                "events": [event.to_mapping() for event in self._history],
                "lastUpdated": timestamp,
            },
        ]

    async def _save(self) -> bool:
        saved = await self._context.store.put_many(EVENTS_COLLECTION, self.to_records())
        if not saved:
            log.warning("Event state was not persisted")
        return saved

    @staticmethod
    def _parse(entries) -> list[ActiveEvent]:
        events: list[ActiveEvent] = []
        for entry in entries or ():
            if not isinstance(entry, Mapping):
                continue
            try:
                events.append(ActiveEvent.from_mapping(entry))
            except ValueError:
                log.warning("Skipping malformed event entry: %r", entry)
        return events


__all__ = ["EVENTS_COLLECTION", "EventManager", "default_events"]
