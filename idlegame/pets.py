"""Pet kennel: capture, feed and activate companions."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from .models import ActionResult, ModelValidationError, Pet, PetType, Rarity
from .notifications import NotificationType

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

PETS_COLLECTION = "pets"


def _pet_id(now: float, rng: random.Random) -> str:
    return f"pet_{int(now * 1000)}_{rng.randrange(1000):03d}"


class PetKennel:
    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._pets: list[Pet] = []

    @property
    def pets(self) -> list[Pet]:
        return list(self._pets)

    @property
    def active_pet(self) -> Optional[Pet]:
        return next((pet for pet in self._pets if pet.active), None)

    def get(self, pet_id: str) -> Optional[Pet]:
        return next((pet for pet in self._pets if pet.id == pet_id), None)

    def sorted_pets(self) -> list[Pet]:
        """Rarest first, then highest level."""

        return sorted(self._pets, key=lambda pet: (-pet.rarity.rank, -pet.level))

    def bonus(self, pet_type: PetType | str, stat: str) -> int:
        pet = self.active_pet
        if pet is None:
            return 0
        return pet.bonus(pet_type, stat)

    async def load(self) -> bool:
        records = await self._context.store.get_all(PETS_COLLECTION)
        pets: list[Pet] = []
        for record in records:
            try:
                pets.append(Pet.from_mapping(record))
            except (ModelValidationError, ValueError) as exc:
                log.warning("Skipping malformed pet %r: %s", record.get("id"), exc)
        self._pets = pets
        return bool(records)

    async def capture(
        self,
        name: str,
        pet_type: PetType | str,
        rarity: Rarity | str = Rarity.COMMON,
        stats: Mapping[str, int] | None = None,
        skills: Iterable[str] = (),
        *,
        now: float | None = None,
    ) -> Pet:
        moment = self._context.now(now)
        pet = Pet(
            id=_pet_id(moment, self._context.rng),
            name=name,
            type=pet_type,
            rarity=Rarity.from_value(rarity, default=Rarity.COMMON),
            stats=dict(stats or {}),
            skills=list(skills),
            captured_at=moment,
        )
        self._pets.append(pet)
        await self._save()
        log.info("Captured %s pet %s", pet.rarity.value, pet.name)
        await self._notify(
            "New pet captured",
            f"You captured a {pet.rarity.value} pet: {pet.name}!",
            pet,
        )
        return pet

    async def activate(self, pet_id: str) -> bool:
        pet = self.get(pet_id)
        if pet is None:
            return False
        for entry in self._pets:
            entry.active = entry is pet
        await self._save()
        return True

    async def feed(self, pet_id: str, experience: int) -> ActionResult:
        pet = self.get(pet_id)
        if pet is None:
            return ActionResult.fail("Pet does not exist")
        levels = pet.gain_experience(experience)
        saved = await self._save()
        if levels:
            await self._notify(
                "Pet levelled up",
                f"{pet.name} reached level {pet.level}!",
                pet,
            )
            message = f"{pet.name} reached level {pet.level}!"
        else:
            message = f"Fed {pet.name}"
        return ActionResult.ok(message, persisted=saved, leveled_up=levels > 0, pet=pet)

    async def rename(self, pet_id: str, name: str) -> ActionResult:
        pet = self.get(pet_id)
        if pet is None:
            return ActionResult.fail("Pet does not exist")
        if not name or not name.strip():
            return ActionResult.fail("Pet name cannot be empty")
        pet.name = name.strip()
        saved = await self._save()
        return ActionResult.ok("Pet renamed", persisted=saved, pet=pet)

    async def _notify(self, title: str, message: str, pet: Pet) -> None:
        notifier = self._context.notifier
        if notifier is None:
            return
        await notifier.create_notification(
            title, message, NotificationType.SYSTEM, None, {"petId": pet.id}
        )

    async def _save(self) -> bool:
        """Make the stored pets match the in-memory list."""

        saved = await self._context.store.replace(
            PETS_COLLECTION, [pet.to_mapping() for pet in self._pets]
        )
        if not saved:
            log.warning("Pets were not persisted")
        return saved


__all__ = ["PETS_COLLECTION", "PetKennel"]
