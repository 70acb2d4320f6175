"""Equipment inventory with one equipped item per slot."""

from __future__ import annotations

import logging
import math
import uuid
from typing import TYPE_CHECKING, Iterable, Optional

from .models import (
    ActionResult,
    Equipment,
    EquipmentType,
    ModelValidationError,
    Rarity,
)
from .models.companions import EQUIPMENT_STAT_NAMES

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

EQUIPMENT_COLLECTION = "equipment"
EQUIPPED_KEY = "equipped"


class EquipmentInventory:
    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._items: list[Equipment] = []
        self._equipped: dict[str, str] = {}

    @property
    def items(self) -> list[Equipment]:
        return list(self._items)

    @property
    def equipped(self) -> dict[str, str]:
        return dict(self._equipped)

    def get(self, equipment_id: str) -> Optional[Equipment]:
        return next((item for item in self._items if item.id == equipment_id), None)

    def by_type(self, equipment_type: EquipmentType | str | None = None) -> list[Equipment]:
        if equipment_type is None:
            return list(self._items)
        kind = EquipmentType.from_value(equipment_type)
        return [item for item in self._items if item.type is kind]

    def equipped_items(self) -> dict[str, Equipment]:
        result: dict[str, Equipment] = {}
        for slot, equipment_id in self._equipped.items():
            item = self.get(equipment_id)
            if item is not None:
                result[slot] = item
        return result

    def equipped_stats(self) -> dict[str, int]:
        totals = {name: 0 for name in EQUIPMENT_STAT_NAMES}
        for item in self.equipped_items().values():
            for stat, value in item.stats.items():
                if stat in totals:
                    totals[stat] += value
        return totals

    async def load(self) -> bool:
        records = await self._context.store.get_all(EQUIPMENT_COLLECTION)
        items: list[Equipment] = []
        for record in records:
            if record.get("id") == EQUIPPED_KEY:
                slots = record.get("items")
                if not isinstance(slots, dict):
                    slots = {}
                self._equipped = {str(slot): str(item_id) for slot, item_id in slots.items()}
                continue
            try:
                items.append(Equipment.from_mapping(record))
            except (ModelValidationError, ValueError) as exc:
                log.warning("Skipping malformed equipment %r: %s", record.get("id"), exc)
        self._items = items
        return bool(records)

    async def add(self, equipment: Equipment, *, now: float | None = None) -> ActionResult:
        moment = self._context.now(now)
        if not equipment.id or self.get(equipment.id) is not None:
            equipment.id = f"{equipment.type.value}_{int(moment * 1000)}_{uuid.uuid4().hex[:4]}"
        equipment.acquired_at = moment
        self._items.append(equipment)
        saved = await self._context.store.put(EQUIPMENT_COLLECTION, equipment.to_mapping())
        log.debug("Added %s to the inventory", equipment.id)
        return ActionResult.ok(f"Obtained {equipment.name}", persisted=saved, equipment=equipment)

    async def equip(self, equipment_id: str) -> ActionResult:
        item = self.get(equipment_id)
        if item is None:
            return ActionResult.fail("Equipment does not exist")
        if not item.type.is_slot:
            return ActionResult.fail("Materials cannot be equipped")
        self._equipped[item.type.value] = item.id
        saved = await self._save_equipped()
        return ActionResult.ok(f"Equipped {item.name}", persisted=saved, equipment=item)

    async def unequip(self, slot: EquipmentType | str) -> ActionResult:
        kind = EquipmentType.from_value(slot)
        equipment_id = self._equipped.pop(kind.value, None)
        if equipment_id is None:
            return ActionResult.fail("Nothing is equipped in that slot")
        item = self.get(equipment_id)
        saved = await self._save_equipped()
        message = f"Unequipped {item.name}" if item is not None else "Unequipped item"
        return ActionResult.ok(message, persisted=saved)

    async def sell(self, equipment_id: str, *, now: float | None = None) -> ActionResult:
        item = self.get(equipment_id)
        if item is None:
            return ActionResult.fail("Equipment does not exist")
        if equipment_id in self._equipped.values():
            return ActionResult.fail("Unequip the item before selling it")
        price = item.sale_price()
        update = await self._context.ledger.apply(gold=price, now=now)
        if update is None:
            return ActionResult.fail("Game state could not be loaded")
        self._items = [entry for entry in self._items if entry.id != equipment_id]
        deleted = await self._context.store.delete(EQUIPMENT_COLLECTION, equipment_id)
        log.info("Sold %s for %s gold", equipment_id, price)
        return ActionResult.ok(
            f"Sold {item.name} for {price} gold",
            persisted=update.persisted and deleted,
            gold=price,
        )

    async def enhance(self, equipment_id: str, material_ids: Iterable[str]) -> ActionResult:
        item = self.get(equipment_id)
        if item is None:
            return ActionResult.fail("Equipment does not exist")
        material_ids = list(material_ids)
        materials: list[Equipment] = []
        for material_id in material_ids:
            material = self.get(material_id)
            if material is None or material.type is not EquipmentType.MATERIAL:
                return ActionResult.fail("Material does not exist or is not a valid material")
            if material_id == equipment_id:
                return ActionResult.fail("An item cannot enhance itself")
            materials.append(material)

        value = sum(material.enhance_value() for material in materials)
        item.enhancement += value
        item.stats = {
            stat: math.floor(amount * (1 + value / 100)) for stat, amount in item.stats.items()
        }
        consumed = set(material_ids)
        self._items = [entry for entry in self._items if entry.id not in consumed]

        store = self._context.store
        saved = await store.put(EQUIPMENT_COLLECTION, item.to_mapping())
        for material_id in consumed:
            saved = await store.delete(EQUIPMENT_COLLECTION, material_id) and saved
        return ActionResult.ok(
            f"{item.name} enhanced by {value}%",
            persisted=saved,
            equipment=item,
        )

    def to_records(self) -> list[dict]:
        records = [item.to_mapping() for item in self._items]
        records.append({"id": EQUIPPED_KEY, "items": dict(self._equipped)})
        return records

    async def _save_equipped(self) -> bool:
        saved = await self._context.store.put(
            EQUIPMENT_COLLECTION, {"id": EQUIPPED_KEY, "items": dict(self._equipped)}
        )
        if not saved:
            log.warning("Equipped items were not persisted")
        return saved


def new_equipment(
    name: str,
    equipment_type: EquipmentType | str,
    *,
    rarity: Rarity | str | None = None,
    stats: dict[str, int] | None = None,
    value: int | None = None,
) -> Equipment:
    """Build an unsaved item; :meth:`EquipmentInventory.add` assigns its id."""

    return Equipment(
        id="",
        name=name,
        type=equipment_type,
        rarity=Rarity.from_value(rarity, default=Rarity.COMMON),
        stats=dict(stats or {}),
        value=value,
    )


__all__ = ["EQUIPMENT_COLLECTION", "EquipmentInventory", "new_equipment"]
