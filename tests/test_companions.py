"""Tests covering pets and the equipment inventory."""

from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path

PROJECT_BASE = Path(__file__).resolve().parents[1]
if str(PROJECT_BASE) not in sys.path:
    sys.path.insert(0, str(PROJECT_BASE))

from idlegame.config import LATEST_DB_VERSION
from idlegame.context import GameContext
from idlegame.equipment import EquipmentInventory, new_equipment
from idlegame.ledger import ResourceLedger
from idlegame.models import Equipment, Pet, PetType, Rarity, ResourceState
from idlegame.notifications import NotificationCenter
from idlegame.pets import PetKennel
from idlegame.storage import DataStore


async def _make_context(root: Path) -> GameContext:
    store = await DataStore.open("save", LATEST_DB_VERSION, root=root)
    assert store is not None
    ledger = ResourceLedger(store)
    await ledger.save(ResourceState(level=1), now=0.0)
    context = GameContext(
        store=store,
        ledger=ledger,
        notifier=NotificationCenter(store),
        rng=random.Random(5),
    )
    context.bind(pets=PetKennel(context), equipment=EquipmentInventory(context))
    return context


def test_pet_experience_overflows_into_several_levels() -> None:
    pet = Pet(id="pet_1", name="Biscuit", type=PetType.GOLD, stats={"gold": 10})

    gained = pet.gain_experience(250)

    assert gained == 2
    assert pet.level == 3
    assert pet.experience == 0
    assert pet.max_experience == 225
    assert pet.stats == {"gold": 14}


def test_matching_pet_type_gets_the_larger_bonus() -> None:
    pet = Pet(id="pet_1", name="Biscuit", type=PetType.GOLD, stats={"gold": 20}, level=2)

    assert pet.bonus(PetType.GOLD, "gold") == 22
    assert pet.bonus(PetType.UTILITY, "gold") == 20
    assert pet.bonus(PetType.GOLD, "experience") == 0


def test_kennel_capture_feed_and_activate(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        kennel = context.pets
        common = await kennel.capture("Pebble", "utility", "common", {"experience": 5}, now=1.0)
        rare = await kennel.capture("Biscuit", PetType.GOLD, Rarity.RARE, {"gold": 10}, now=2.0)
        fed = await kennel.feed(rare.id, 250)
        missing = await kennel.feed("nobody", 5)
        await kennel.activate(rare.id)
        reloaded = PetKennel(context)
        await reloaded.load()
        return context, common, rare, fed, missing, reloaded

    context, common, rare, fed, missing, reloaded = asyncio.run(scenario())

    assert rare.id.startswith("pet_2000_")
    assert fed.data["leveled_up"] is True
    assert fed.message == "Biscuit reached level 3!"
    assert missing.message == "Pet does not exist"
    assert [pet.name for pet in context.pets.sorted_pets()] == ["Biscuit", "Pebble"]
    assert context.pets.active_pet is rare
    assert context.pets.bonus(PetType.GOLD, "gold") == 16
    assert reloaded.active_pet.id == rare.id
    assert {pet.id for pet in reloaded.pets} == {common.id, rare.id}
    titles = [entry.title for entry in context.notifier.notifications]
    assert titles == ["Pet levelled up", "New pet captured", "New pet captured"]


def test_activating_a_pet_deactivates_the_others(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        first = await context.pets.capture("One", "attack", now=1.0)
        second = await context.pets.capture("Two", "defense", now=2.0)
        await context.pets.activate(first.id)
        await context.pets.activate(second.id)
        blank = await context.pets.rename(second.id, "  ")
        renamed = await context.pets.rename(second.id, " Deuce ")
        return context, first, second, blank, renamed

    context, first, second, blank, renamed = asyncio.run(scenario())

    assert [pet.id for pet in context.pets.pets if pet.active] == [second.id]
    assert not blank
    assert renamed.success
    assert second.name == "Deuce"


def test_equipment_enhance_equip_and_sell(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        inventory = context.equipment
        sword = new_equipment("Sword", "weapon", stats={"attack": 10})
        ore = new_equipment("Ore", "material", value=50)
        await inventory.add(sword, now=1.0)
        await inventory.add(ore, now=2.0)
        material_equip = await inventory.equip(ore.id)
        enhanced = await inventory.enhance(sword.id, [ore.id])
        await inventory.equip(sword.id)
        stats = inventory.equipped_stats()
        blocked = await inventory.sell(sword.id, now=3.0)
        await inventory.unequip("weapon")
        sold = await inventory.sell(sword.id, now=4.0)
        reloaded = EquipmentInventory(context)
        await reloaded.load()
        return context, sword, ore, material_equip, enhanced, stats, blocked, sold, reloaded

    context, sword, ore, material_equip, enhanced, stats, blocked, sold, reloaded = asyncio.run(
        scenario()
    )

    assert sword.id.startswith("weapon_1000_")
    assert material_equip.message == "Materials cannot be equipped"
    assert enhanced.message == "Sword enhanced by 50%"
    assert sword.enhancement == 50
    assert stats["attack"] == 15
    assert blocked.message == "Unequip the item before selling it"
    assert sold.data["gold"] == 75
    assert context.ledger.state.gold == 75
    assert context.equipment.items == []
    assert reloaded.items == []
    assert reloaded.equipped == {}


def test_colliding_drop_ids_get_a_fresh_id(tmp_path: Path) -> None:
    async def scenario():
        context = await _make_context(tmp_path)
        drop = {"id": "wood_stick", "name": "Wooden Stick", "type": "weapon", "stats": {"attack": 2}}
        first = await context.equipment.add(Equipment.from_mapping(drop), now=1.0)
        second = await context.equipment.add(Equipment.from_mapping(drop), now=2.0)
        reloaded = EquipmentInventory(context)
        await reloaded.load()
        return first, second, reloaded

    first, second, reloaded = asyncio.run(scenario())

    assert first.data["equipment"].id == "wood_stick"
    assert second.data["equipment"].id != "wood_stick"
    assert len(reloaded.items) == 2


def test_sale_price_scales_with_rarity() -> None:
    plain = Equipment(id="a", name="Stick", type="weapon", stats={"attack": 2})
    rare = Equipment(id="b", name="Gem", type="material", rarity="rare", value=15)

    assert plain.sale_price() == 10
    assert rare.sale_price() == 75


def test_failed_pet_write_keeps_the_stored_pets(tmp_path: Path, monkeypatch) -> None:
    async def capture_one():
        context = await _make_context(tmp_path)
        pet = await context.pets.capture("Biscuit", PetType.GOLD, now=1.0)
        return context, pet

    context, pet = asyncio.run(capture_one())

    def _disk_full(path, record):
        raise OSError("disk full")

    monkeypatch.setattr("idlegame.storage._write_toml", _disk_full)
    fed = asyncio.run(context.pets.feed(pet.id, 250))
    monkeypatch.undo()

    async def reload():
        stored = await context.store.get_all("pets")
        kennel = PetKennel(context)
        await kennel.load()
        return stored, kennel

    stored, kennel = asyncio.run(reload())

    assert fed.success
    assert fed.persisted is False
    assert [record["id"] for record in stored] == [pet.id]
    assert kennel.pets[0].level == 1
    leftovers = [path.name for path in context.store.path.iterdir() if path.name.startswith(".")]
    assert leftovers == []
