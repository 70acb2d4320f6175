"""Exploration areas: timed expeditions with random encounters and loot."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from .clock import ProgressClock
from .models import (
    EXPLORATION_AREA_SCHEMA,
    ActionResult,
    AreaEncounter,
    EncounterOutcome,
    EncounterType,
    Equipment,
    ExplorationArea,
    ExplorationState,
    ExplorationStatus,
    ItemDrop,
    ModelValidationError,
    Reward,
    RewardRange,
)
from .modifiers import compute_reward

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

EXPLORATION_COLLECTION = "exploration"
STATE_KEY = "state"
HISTORY_KEY = "history"

# Exploration rewards scale with the "explore map" task bonuses.
EXPLORATION_TASK_ID = 2

BATTLE_VICTORY_CHANCE = 0.7
PUZZLE_SOLVE_CHANCE = 0.6


def _area(
    area_id: int,
    name: str,
    area_type: str,
    description: str,
    *,
    min_level: int,
    energy_cost: int,
    duration: float,
    gold: tuple[int, int],
    experience: tuple[int, int],
    encounters: list[AreaEncounter],
    drops: list[ItemDrop],
    unlocked: bool = False,
) -> ExplorationArea:
    return ExplorationArea(
        id=area_id,
        name=name,
        type=area_type,
        description=description,
        min_level=min_level,
        energy_cost=energy_cost,
        duration=duration,
        gold=RewardRange(*gold),
        experience=RewardRange(*experience),
        encounters=tuple(encounters),
        item_drops=tuple(drops),
        unlocked=unlocked,
    )


def default_areas() -> list[ExplorationArea]:
    battle, treasure, puzzle = EncounterType.BATTLE, EncounterType.TREASURE, EncounterType.PUZZLE
    trap, blessing, merchant = EncounterType.TRAP, EncounterType.BLESSING, EncounterType.MERCHANT
    return [
        _area(
            1,
            "Mystic Forest",
            "forest",
            "An ancient forest said to hide rare resources and strange creatures.",
            min_level=1,
            energy_cost=15,
            duration=8,
            gold=(10, 30),
            experience=(5, 15),
            encounters=[
                AreaEncounter(battle, 0.3, difficulty=1),
                AreaEncounter(treasure, 0.2, quality=1),
                AreaEncounter(blessing, 0.1, power=1),
            ],
            drops=[
                ItemDrop("wood_stick", "Wooden Stick", "weapon", 0.3, {"attack": 2}),
                ItemDrop("leaf_hat", "Leaf Hat", "helmet", 0.2, {"defense": 1}),
            ],
            unlocked=True,
        ),
        _area(
            2,
            "Barren Mountains",
            "mountain",
            "Steep cliffs full of danger and precious ore.",
            min_level=10,
            energy_cost=25,
            duration=12,
            gold=(25, 60),
            experience=(15, 35),
            encounters=[
                AreaEncounter(battle, 0.35, difficulty=2),
                AreaEncounter(treasure, 0.25, quality=2),
                AreaEncounter(trap, 0.15, damage=10),
            ],
            drops=[
                ItemDrop("stone_axe", "Stone Axe", "weapon", 0.25, {"attack": 5}),
                ItemDrop("iron_ore", "Iron Ore", "material", 0.4, value=15),
            ],
        ),
        _area(
            3,
            "Dark Cave",
            "cave",
            "A maze of tunnels guarding ancient treasure and dangerous beasts.",
            min_level=20,
            energy_cost=35,
            duration=15,
            gold=(50, 100),
            experience=(30, 60),
            encounters=[
                AreaEncounter(battle, 0.4, difficulty=3),
                AreaEncounter(treasure, 0.3, quality=3),
                AreaEncounter(puzzle, 0.2, difficulty=2),
            ],
            drops=[
                ItemDrop("crystal_shard", "Crystal Shard", "material", 0.3, value=30),
                ItemDrop("bat_wing", "Bat Wing", "material", 0.4, value=20),
                ItemDrop("shadow_cloak", "Shadow Cloak", "armor", 0.15, {"defense": 8}),
            ],
        ),
        _area(
            4,
            "Scorching Desert",
            "desert",
            "Endless dunes hiding the remains of a lost civilisation.",
            min_level=30,
            energy_cost=45,
            duration=18,
            gold=(80, 150),
            experience=(50, 90),
            encounters=[
                AreaEncounter(battle, 0.3, difficulty=4),
                AreaEncounter(merchant, 0.2, quality=3),
                AreaEncounter(trap, 0.25, damage=20),
            ],
            drops=[
                ItemDrop("desert_gem", "Desert Gem", "material", 0.2, value=50),
                ItemDrop("scorpion_tail", "Scorpion Tail", "material", 0.3, value=35),
                ItemDrop(
                    "sand_veil",
                    "Sand Veil",
                    "accessory",
                    0.1,
                    {"defense": 6},
                    special="Sandstorm resistance",
                ),
            ],
        ),
        _area(
            5,
            "Sunken Ruins",
            "ocean",
            "A drowned city brimming with mysterious power.",
            min_level=50,
            energy_cost=60,
            duration=25,
            gold=(120, 250),
            experience=(80, 150),
            encounters=[
                AreaEncounter(battle, 0.35, difficulty=5),
                AreaEncounter(treasure, 0.3, quality=5),
                AreaEncounter(puzzle, 0.25, difficulty=4),
            ],
            drops=[
                ItemDrop("trident", "Trident", "weapon", 0.15, {"attack": 25}),
                ItemDrop("pearl", "Deep Sea Pearl", "material", 0.25, value=80),
                ItemDrop("coral_armor", "Coral Armor", "armor", 0.1, {"defense": 20}),
            ],
        ),
        _area(
            6,
            "Ancient Ruins",
            "ruins",
            "Forgotten ruins humming with magic and priceless relics.",
            min_level=80,
            energy_cost=80,
            duration=35,
            gold=(200, 400),
            experience=(150, 300),
            encounters=[
                AreaEncounter(battle, 0.4, difficulty=6),
                AreaEncounter(treasure, 0.35, quality=6),
                AreaEncounter(blessing, 0.15, power=3),
            ],
            drops=[
                ItemDrop("ancient_sword", "Ancient Sword", "weapon", 0.1, {"attack": 40}),
                ItemDrop("magic_crystal", "Magic Crystal", "material", 0.2, value=120),
                ItemDrop("rune_shield", "Rune Shield", "shield", 0.08, {"defense": 35}),
            ],
        ),
    ]


class ExplorationManager:
    def __init__(self, context: "GameContext", clock: ProgressClock | None = None) -> None:
        self._context = context
        self._clock = clock or ProgressClock()
        self._areas: list[ExplorationArea] = []
        self._state: Optional[ExplorationState] = None
        self._history: list[dict[str, Any]] = []

    @property
    def areas(self) -> list[ExplorationArea]:
        return list(self._areas)

    @property
    def state(self) -> Optional[ExplorationState]:
        return self._state

    @property
    def history(self) -> list[dict[str, Any]]:
        return list(self._history)

    @property
    def clock(self) -> ProgressClock:
        return self._clock

    def get(self, area_id: int) -> Optional[ExplorationArea]:
        return next((area for area in self._areas if area.id == area_id), None)

    def available_areas(self, level: int) -> list[ExplorationArea]:
        return [area for area in self._areas if area.min_level <= level]

    async def load(self) -> bool:
        store = self._context.store
        areas: list[ExplorationArea] = []
        for record in await store.get_all(EXPLORATION_COLLECTION):
            if not isinstance(record.get("id"), int):
                continue
            try:
                payload = EXPLORATION_AREA_SCHEMA.validate(record)
            except ModelValidationError as exc:
                log.warning("Skipping malformed exploration area: %s", exc)
                continue
            areas.append(ExplorationArea.from_mapping(payload))
        if areas:
            self._areas = sorted(areas, key=lambda area: area.id)
        else:
            self._areas = default_areas()
            await store.put_many(
                EXPLORATION_COLLECTION, [area.to_mapping() for area in self._areas]
            )
            log.info("Seeded %d exploration areas", len(self._areas))

        state = await store.get(EXPLORATION_COLLECTION, STATE_KEY)
        if state is not None:
            self._state = ExplorationState.from_record(state)
        history = await store.get(EXPLORATION_COLLECTION, HISTORY_KEY)
        if history is not None:
            self._history = [
                dict(entry) for entry in history.get("records") or () if isinstance(entry, dict)
            ]
        return state is not None

    async def unlock_area(self, area_id: int) -> ActionResult:
        area = self.get(area_id)
        if area is None:
            return ActionResult.fail("Area does not exist")
        area.unlocked = True
        saved = await self._context.store.put(EXPLORATION_COLLECTION, area.to_mapping())
        return ActionResult.ok(f"Unlocked {area.name}", persisted=saved, area=area)

    async def start(
        self, area_id: int, level: int, energy: float, *, now: float | None = None
    ) -> ActionResult:
        area = self.get(area_id)
        if area is None:
            return ActionResult.fail("Area does not exist")
        if not area.unlocked:
            return ActionResult.fail("Area is still locked")
        if level < area.min_level:
            return ActionResult.fail(f"Requires level {area.min_level}")
        if energy < area.energy_cost:
            return ActionResult.fail(f"Requires {area.energy_cost} energy")
        current = self._state
        if current is not None and current.status is ExplorationStatus.COMPLETED:
            return ActionResult.fail("Claim the previous exploration rewards first")
        if current is not None and current.status is ExplorationStatus.EXPLORING:
            log.info("Abandoning exploration of %s", current.area_name)
            self._clock.cancel()

        self._state = ExplorationState(
            area_id=area.id,
            area_name=area.name,
            start_time=self._context.now(now),
            duration=area.duration,
            energy_cost=area.energy_cost,
        )
        saved = await self._save_state()
        self._clock.start(f"exploration:{area.id}", area.duration)
        return ActionResult.ok(
            f"Started exploring {area.name}", persisted=saved, state=self._state
        )

    def check_complete(self, now: float | None = None) -> bool:
        if self._state is None:
            return False
        return self._state.is_complete(self._context.now(now))

    def progress(self, now: float | None = None) -> int:
        if self._state is None:
            return 0
        if self._state.status is not ExplorationStatus.EXPLORING:
            return 0
        return self._state.progress(self._context.now(now))

    async def complete(self, *, now: float | None = None) -> ActionResult:
        state = self._state
        if state is None or state.status is not ExplorationStatus.EXPLORING:
            return ActionResult.fail("No exploration in progress")
        area = self.get(state.area_id)
        if area is None:
            return ActionResult.fail("Exploration area does not exist")

        rng = self._context.rng
        rewards = Reward(gold=area.gold.roll(rng), experience=area.experience.roll(rng))
        events = [outcome.to_mapping() for outcome in self._roll_encounters(area)]
        items = [drop.loot() for drop in area.item_drops if rng.random() < drop.chance]

        moment = self._context.now(now)
        state.status = ExplorationStatus.COMPLETED
        state.completed_time = moment
        state.rewards = rewards
        state.events = events
        state.items = items

        self._history.append(
            {
                "id": int(moment * 1000),
                "areaId": area.id,
                "areaName": area.name,
                "completedTime": moment,
                "rewards": rewards.to_mapping(),
                "events": events,
                "items": items,
            }
        )
        limit = self._context.config.history_limit
        if len(self._history) > limit:
            self._history = self._history[-limit:]

        saved = await self._context.store.put_many(
            EXPLORATION_COLLECTION, [state.to_record(), self._history_record()]
        )
        log.info("Exploration of %s completed: %s", area.name, rewards)
        return ActionResult.ok(
            "Exploration completed",
            persisted=saved,
            rewards=rewards,
            events=events,
            items=items,
        )

    async def claim(self, *, now: float | None = None) -> ActionResult:
        state = self._state
        if state is None or state.status is not ExplorationStatus.COMPLETED:
            return ActionResult.fail("No exploration rewards to claim")
        context = self._context
        computed = compute_reward(
            state.rewards or Reward(),
            task_id=EXPLORATION_TASK_ID,
            **context.reward_modifiers(now),
        )
        reward = computed.reward
        update = await context.ledger.apply(
            gold=reward.gold, experience=reward.experience, now=now
        )
        if update is None:
            return ActionResult.fail("Game state could not be loaded")

        persisted = update.persisted
        if context.equipment is not None:
            for item in state.items:
                loot = Equipment.from_mapping({**item, "source": "exploration"})
                added = await context.equipment.add(loot, now=now)
                persisted = persisted and added.persisted

        if context.triggers is not None:
            await context.triggers.record("exploration_completed", 1, state.area_id, now=now)
            if reward.gold:
                await context.triggers.record("gold", reward.gold, now=now)

        state.status = ExplorationStatus.CLAIMED
        state.claimed_time = context.now(now)
        saved = await self._save_state()
        return ActionResult.ok(
            "Exploration rewards claimed",
            persisted=persisted and saved,
            rewards=reward,
            items=list(state.items),
        )

    def _roll_encounters(self, area: ExplorationArea) -> list[EncounterOutcome]:
        rng = self._context.rng
        outcomes: list[EncounterOutcome] = []
        for encounter in area.encounters:
            if rng.random() >= encounter.chance:
                continue
            kind = encounter.type
            if kind is EncounterType.BATTLE:
                won = rng.random() < BATTLE_VICTORY_CHANCE
                outcome = EncounterOutcome(
                    kind,
                    "You defeated the enemy." if won else "You were beaten back.",
                    result="victory" if won else "defeat",
                    difficulty=encounter.difficulty,
                )
            elif kind is EncounterType.PUZZLE:
                solved = rng.random() < PUZZLE_SOLVE_CHANCE
                outcome = EncounterOutcome(
                    kind,
                    "You solved the puzzle." if solved else "The puzzle stumped you.",
                    result="solved" if solved else "failed",
                    difficulty=encounter.difficulty,
                )
            elif kind is EncounterType.TREASURE:
                outcome = EncounterOutcome(
                    kind, "You found a treasure chest.", quality=encounter.quality
                )
            elif kind is EncounterType.MERCHANT:
                outcome = EncounterOutcome(
                    kind, "A travelling merchant offered rare goods.", quality=encounter.quality
                )
            elif kind is EncounterType.TRAP:
                outcome = EncounterOutcome(
                    kind,
                    f"You triggered a trap and took {encounter.damage or 0} damage.",
                    damage=encounter.damage,
                )
            else:
                outcome = EncounterOutcome(
                    kind, "A mysterious power blessed you.", power=encounter.power
                )
            outcomes.append(outcome)
        return outcomes

    def _history_record(self) -> dict[str, Any]:
        return {"id": HISTORY_KEY, "records": list(self._history)}

    def to_records(self) -> list[dict[str, Any]]:
        records = [area.to_mapping() for area in self._areas]
        if self._state is not None:
            records.append(self._state.to_record())
        records.append(self._history_record())
        return records

    async def _save_state(self) -> bool:
        if self._state is None:
            return True
        saved = await self._context.store.put(EXPLORATION_COLLECTION, self._state.to_record())
        if not saved:
            log.warning("Exploration state was not persisted")
        return saved


__all__ = ["EXPLORATION_COLLECTION", "ExplorationManager", "default_areas"]
