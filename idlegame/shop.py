"""Shop catalog, timed boosts and permanent effects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Mapping, Optional

from .models import (
    ActionResult,
    ActiveBoost,
    ItemEffect,
    ItemEffectType,
    PermanentEffect,
    ShopItem,
)
from .models._coerce import coerce_int
from .modifiers import ENERGY_SAVE_EFFECT, boost_value, permanent_task_boost

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

SHOP_COLLECTION = "shop"
SHOP_STATE_KEY = "shopState"
PERMANENT_EFFECTS_KEY = "permanentEffects"

# Every timed boost sold in the shop lasts ten minutes.
BOOST_DURATION = 10 * 60


def default_items() -> list[ShopItem]:
    def boost(boost_type: str, value: float) -> ItemEffect:
        return ItemEffect(
            ItemEffectType.BOOST, value, boost_type=boost_type, duration=BOOST_DURATION
        )

    return [
        ShopItem(
            "energy_potion",
            "Energy Potion",
            "Restore 30 energy immediately.",
            50,
            ItemEffect(ItemEffectType.RESOURCE, 30, resource="energy"),
            icon="fire",
        ),
        ShopItem(
            "energy_potion_max",
            "Large Energy Potion",
            "Restore 100 energy immediately.",
            200,
            ItemEffect(ItemEffectType.RESOURCE, 100, resource="energy"),
            min_level=50,
            icon="fire",
        ),
        ShopItem(
            "exp_scroll",
            "Experience Scroll",
            "Gain 50 experience immediately.",
            100,
            ItemEffect(ItemEffectType.RESOURCE, 50, resource="experience"),
            icon="bookmark",
        ),
        ShopItem(
            "gold_boost",
            "Gold Boost",
            "Earn 20% more gold for 10 minutes.",
            200,
            boost("gold", 0.2),
            icon="gold-coin",
        ),
        ShopItem(
            "energy_regen",
            "Energy Accelerator",
            "Regenerate energy 50% faster for 10 minutes.",
            300,
            boost("energy_regen", 0.5),
            icon="fire",
        ),
        ShopItem(
            "energy_regen_max",
            "Super Energy Accelerator",
            "Regenerate energy six times as fast for 10 minutes.",
            3000,
            boost("energy_regen", 5),
            min_level=50,
            icon="fire",
        ),
        ShopItem(
            "task_speed",
            "Task Accelerator",
            "Tasks finish 30% faster for 10 minutes.",
            250,
            boost("task_speed", 0.3),
            icon="clock-o",
        ),
        ShopItem(
            "task_speed_max",
            "Super Task Accelerator",
            "Tasks finish three times as fast for 10 minutes.",
            2500,
            boost("task_speed", 2),
            min_level=50,
            icon="clock-o",
        ),
        ShopItem(
            "premium_pickaxe",
            "Premium Pickaxe",
            "Permanently earn 15% more gold from resource gathering.",
            500,
            ItemEffect(
                ItemEffectType.PERMANENT,
                0.15,
                effect_type="task_boost",
                task_id=1,
                resource_type="gold",
            ),
            stock=1,
            icon="gem",
        ),
        ShopItem(
            "explorer_map",
            "Explorer's Map",
            "Permanently earn 15% more experience from map exploration.",
            500,
            ItemEffect(
                ItemEffectType.PERMANENT,
                0.15,
                effect_type="task_boost",
                task_id=2,
                resource_type="experience",
            ),
            min_level=5,
            stock=1,
            icon="location",
        ),
        ShopItem(
            "energy_saver",
            "Energy Saver",
            "Permanently spend 10% less energy on tasks.",
            800,
            ItemEffect(ItemEffectType.PERMANENT, 0.1, effect_type=ENERGY_SAVE_EFFECT),
            min_level=10,
            stock=1,
            icon="flash",
        ),
        ShopItem(
            "energy_saver_max",
            "Perfect Energy Saver",
            "Tasks cost the minimum amount of energy.",
            999999,
            ItemEffect(ItemEffectType.PERMANENT, 1, effect_type=ENERGY_SAVE_EFFECT),
            min_level=50,
            stock=1,
            icon="flash",
        ),
    ]


def _format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    parts = []
    if hours:
        parts.append(f"{hours} hour(s)")
    if minutes:
        parts.append(f"{minutes} minute(s)")
    return " ".join(parts) or f"{int(seconds)} second(s)"


class Shop:
    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._items: list[ShopItem] = default_items()
        self._boosts: list[ActiveBoost] = []
        self._effects: list[PermanentEffect] = []

    @property
    def items(self) -> list[ShopItem]:
        return list(self._items)

    @property
    def permanent_effects(self) -> list[PermanentEffect]:
        return list(self._effects)

    def get(self, item_id: str) -> Optional[ShopItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def available_items(self, level: int) -> list[ShopItem]:
        return [item for item in self._items if item.available_for(level)]

    def active_boosts(self, now: float | None = None) -> list[ActiveBoost]:
        self.sweep(now)
        return list(self._boosts)

    def sweep(self, now: float | None = None) -> bool:
        """Drop expired boosts from memory; returns ``True`` if any expired."""

        moment = self._context.now(now)
        remaining = [boost for boost in self._boosts if not boost.expired(moment)]
        expired = len(remaining) != len(self._boosts)
        self._boosts = remaining
        return expired

    async def update_boosts(self, now: float | None = None) -> bool:
        expired = self.sweep(now)
        if expired:
            await self._save(now)
        return expired

    def boost_value(self, boost_type: str, now: float | None = None) -> float:
        self.sweep(now)
        return boost_value(boost_type, self._boosts, self._effects)

    def task_boost(self, task_id: int | None, resource_type: str) -> float:
        return permanent_task_boost(self._effects, task_id, resource_type)

    def energy_save_value(self) -> float:
        return sum(
            effect.value for effect in self._effects if effect.effect_type == ENERGY_SAVE_EFFECT
        )

    async def load(self, now: float | None = None) -> bool:
        store = self._context.store
        state = await store.get(SHOP_COLLECTION, SHOP_STATE_KEY)
        effects = await store.get(SHOP_COLLECTION, PERMANENT_EFFECTS_KEY)
        moment = self._context.now(now)
        if state is not None:
            saved = {
                str(entry.get("id")): entry
                for entry in state.get("items") or ()
                if isinstance(entry, Mapping)
            }
            for item in self._items:
                entry = saved.get(item.id)
                if entry is not None:
                    item.purchased = max(0, coerce_int(entry.get("purchased")))
            self._boosts = [
                boost
                for boost in (
                    ActiveBoost.from_mapping(entry)
                    for entry in state.get("activeBoosts") or ()
                    if isinstance(entry, Mapping)
                )
                if not boost.expired(moment)
            ]
        if effects is not None:
            self._effects = [
                PermanentEffect.from_mapping(entry)
                for entry in effects.get("effects") or ()
                if isinstance(entry, Mapping)
            ]
        return state is not None or effects is not None

    async def purchase(self, item_id: str, *, now: float | None = None) -> ActionResult:
        item = self.get(item_id)
        if item is None:
            return ActionResult.fail("Item does not exist")
        if item.sold_out:
            return ActionResult.fail("Item is sold out")
        ledger = self._context.ledger
        state = await ledger.snapshot()
        if state is None:
            return ActionResult.fail("Game state could not be loaded")
        if state.level < item.min_level:
            return ActionResult.fail(f"Requires level {item.min_level} to purchase")
        if state.gold < item.price:
            return ActionResult.fail("Not enough gold")

        moment = self._context.now(now)
        effect = item.effect
        deltas = {"gold": -item.price, "experience": 0, "energy": 0.0}
        if effect.type is ItemEffectType.RESOURCE:
            resource = effect.resource or "gold"
            if resource in deltas:
                deltas[resource] += effect.value
            description = f"Gained {effect.value:g} {resource}"
        elif effect.type is ItemEffectType.BOOST:
            duration = float(effect.duration or BOOST_DURATION)
            self.sweep(moment)
            self._boosts.append(
                ActiveBoost(
                    id=f"{item.id}_{int(moment * 1000)}",
                    type=str(effect.boost_type),
                    value=float(effect.value),
                    start_time=moment,
                    end_time=moment + duration,
                )
            )
            description = f"{item.name} active for {_format_duration(duration)}"
        else:
            permanent = PermanentEffect.from_item(item)
            self._effects = [entry for entry in self._effects if entry.id != permanent.id]
            self._effects.append(permanent)
            description = f"{item.name} is now permanently active"

        item.purchased += 1
        next_state = state.adjusted(
            gold=int(deltas["gold"]),
            experience=int(deltas["experience"]),
            energy=deltas["energy"],
        )
        ledger_saved = await ledger.save(next_state, now=moment)
        shop_saved = await self._save(moment)
        log.info("Purchased %s for %s gold", item.id, item.price)
        return ActionResult.ok(
            f"Purchased {item.name}",
            persisted=ledger_saved and shop_saved,
            effect=description,
            state=ledger.state,
        )

    def to_records(self, now: float | None = None) -> list[dict]:
        moment = self._context.now(now)
        return [
            {
                "id": SHOP_STATE_KEY,
                "items": [item.to_mapping() for item in self._items],
                "activeBoosts": [boost.to_mapping() for boost in self._boosts],
                "version": self._context.store.version,
                "lastUpdated": moment,
            },
            {
                "id": PERMANENT_EFFECTS_KEY,
                "effects": [effect.to_mapping() for effect in self._effects],
                "lastUpdated": moment,
            },
        ]

    async def _save(self, now: float | None = None) -> bool:
        saved = await self._context.store.put_many(SHOP_COLLECTION, self.to_records(now))
        if not saved:
            log.warning("Shop state was not persisted")
        return saved


__all__ = ["BOOST_DURATION", "SHOP_COLLECTION", "Shop", "default_items"]
