"""Engine facade wiring every game service around one data store."""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any, Mapping, Optional

from .achievements import ACHIEVEMENTS_COLLECTION, TriggerEngine
from .config import GameConfig
from .context import GameContext
from .daily import DAILY_COLLECTION, DailyTaskBoard
from .embeds import Channel, DiscordNotifier
from .equipment import EQUIPMENT_COLLECTION, EquipmentInventory
from .events import EVENTS_COLLECTION, EventManager
from .exploration import EXPLORATION_COLLECTION, ExplorationManager
from .ledger import ResourceLedger
from .models import ActionResult, ActiveEvent, ResourceState
from .notifications import NOTIFICATIONS_COLLECTION, NotificationCenter, Notifier
from .pets import PETS_COLLECTION, PetKennel
from .settings import SETTINGS_COLLECTION, UserSettings
from .shop import SHOP_COLLECTION, Shop
from .skills import SKILLS_COLLECTION, SkillTree
from .storage import DataStore
from .tasks import TaskRunner
from .transfer import export_game_data, import_game_data

log = logging.getLogger(__name__)


class GameEngine:
    def __init__(self, context: GameContext, *, notifications: NotificationCenter) -> None:
        self.context = context
        self.notifications = notifications
        self._build_services()

    def _build_services(self) -> None:
        context = self.context
        context.bind(
            skills=SkillTree(context),
            shop=Shop(context),
            events=EventManager(context),
            triggers=TriggerEngine(context),
            daily=DailyTaskBoard(context),
            pets=PetKennel(context),
            equipment=EquipmentInventory(context),
        )
        self.exploration = ExplorationManager(context)
        self.tasks = TaskRunner(context)
        self.settings = UserSettings(context)

    @classmethod
    async def create(
        cls,
        config: GameConfig | None = None,
        *,
        notifier: Notifier | None = None,
        channel: Channel | None = None,
        rng: random.Random | None = None,
        root: Path | None = None,
        now: float | None = None,
    ) -> Optional["GameEngine"]:
        """Open the save, build every service and load its state.

        Notifications always land in the persisted inbox.  With ``channel``
        they are also posted there as Discord embeds; an explicit
        ``notifier`` replaces both.  Returns ``None`` when the data store
        cannot be opened.
        """

        config = config or GameConfig.from_env()
        store = await DataStore.open(
            config.db_name, config.db_version, root=root or config.data_root
        )
        if store is None:
            return None

        notifications = NotificationCenter(
            store if NOTIFICATIONS_COLLECTION in store.collections else None,
            limit=config.notification_limit,
        )
        if notifier is None and channel is not None:
            notifier = DiscordNotifier(channel, notifications)
        context = GameContext(
            store=store,
            ledger=ResourceLedger(store),
            config=config,
            notifier=notifier or notifications,
            rng=rng or random.Random(config.seed),
        )
        engine = cls(context, notifications=notifications)
        await engine.reload(now=now)
        return engine

    @property
    def store(self) -> DataStore:
        return self.context.store

    @property
    def state(self) -> Optional[ResourceState]:
        return self.context.ledger.state

    def _loaders(self) -> list[tuple[str, Any]]:
        context = self.context
        return [
            (SKILLS_COLLECTION, context.skills),
            (SHOP_COLLECTION, context.shop),
            (EVENTS_COLLECTION, context.events),
            (ACHIEVEMENTS_COLLECTION, context.triggers),
            (DAILY_COLLECTION, context.daily),
            (PETS_COLLECTION, context.pets),
            (EQUIPMENT_COLLECTION, context.equipment),
            (EXPLORATION_COLLECTION, self.exploration),
            (NOTIFICATIONS_COLLECTION, self.notifications),
            (SETTINGS_COLLECTION, self.settings),
        ]

    async def reload(self, *, now: float | None = None) -> ResourceState:
        """Reload every service from disk, creating a fresh save if needed."""

        context = self.context
        await context.ledger.load()
        state = await context.ledger.ensure(now=now)
        collections = self.store.collections
        for collection, service in self._loaders():
            if collection in collections:
                await service.load()
            else:
                log.debug("Skipping %s: collection not present at this schema", collection)
        await self.tasks.load()
        if DAILY_COLLECTION in collections and context.daily.should_refresh(now):
            await context.daily.refresh(state.level, now=now)
        return state

    async def _level(self) -> int:
        state = await self.context.ledger.snapshot()
        return state.level if state is not None else 0

    async def set_level(self, level: int, *, now: float | None = None) -> ActionResult:
        update = await self.context.ledger.set_level(level, now=now)
        if update is None:
            return ActionResult.fail("Game state could not be loaded")
        unlocked = await self.context.triggers.check(update.state.level, now=now)
        return ActionResult.ok(
            f"Level set to {update.state.level}",
            persisted=update.persisted,
            achievements=unlocked,
        )

    async def start_task(self, task_id: int, *, now: float | None = None) -> ActionResult:
        return await self.tasks.start(task_id, now=now)

    async def claim_task(self, *, now: float | None = None) -> ActionResult:
        return await self.tasks.claim(now=now)

    async def explore(self, area_id: int, *, now: float | None = None) -> ActionResult:
        ledger = self.context.ledger
        state = await ledger.snapshot()
        if state is None:
            return ActionResult.fail("Game state could not be loaded")
        started = await self.exploration.start(area_id, state.level, state.energy, now=now)
        if not started:
            return started
        cost = started.data["state"].energy_cost
        spent = await ledger.spend(energy=cost, now=now)
        if not spent:
            return spent
        await self.context.triggers.record("energy_spent", cost, now=now)
        return ActionResult.ok(
            started.message,
            persisted=started.persisted and spent.persisted,
            state=started.data["state"],
            energy_spent=cost,
        )

    async def complete_exploration(self, *, now: float | None = None) -> ActionResult:
        return await self.exploration.complete(now=now)

    async def claim_exploration(self, *, now: float | None = None) -> ActionResult:
        return await self.exploration.claim(now=now)

    async def purchase(self, item_id: str, *, now: float | None = None) -> ActionResult:
        return await self.context.shop.purchase(item_id, now=now)

    async def upgrade_skill(self, skill_id: str, *, now: float | None = None) -> ActionResult:
        return await self.context.skills.upgrade(skill_id, now=now)

    async def feed_pet(self, pet_id: str, experience: int) -> ActionResult:
        return await self.context.pets.feed(pet_id, experience)

    async def trigger_event(self, *, now: float | None = None) -> Optional[ActiveEvent]:
        return await self.context.events.trigger_random_event(await self._level(), now=now)

    async def apply_event(self, event_id: str, *, now: float | None = None) -> ActionResult:
        return await self.context.events.apply_event_effect(event_id, now=now)

    async def refresh_daily_tasks(
        self, *, force: bool = False, now: float | None = None
    ) -> ActionResult:
        tasks = await self.context.daily.refresh(await self._level(), now=now, force=force)
        return ActionResult.ok("Daily tasks ready", tasks=tasks)

    async def claim_daily_task(self, task_id: str, *, now: float | None = None) -> ActionResult:
        return await self.context.daily.claim(task_id, now=now)

    async def claim_achievement(
        self, achievement_id: str, *, now: float | None = None
    ) -> ActionResult:
        return await self.context.triggers.claim(achievement_id, now=now)

    async def tick(self, now: float | None = None) -> ActionResult:
        """Advance passive systems: boost expiry, energy regeneration and exploration."""

        context = self.context
        moment = context.now(now)
        expired = await context.shop.update_boosts(moment)

        gained = 0.0
        rate = context.skills.energy_regeneration_rate(
            context.shop.boost_value("energy_regen", moment)
        )
        update = await context.ledger.regenerate(rate, now=moment)
        if update is not None:
            gained = update.gained

        explored: Optional[ActionResult] = None
        if self.exploration.check_complete(moment):
            explored = await self.exploration.complete(now=moment)

        return ActionResult.ok(
            "Tick processed",
            boosts_expired=expired,
            energy_gained=gained,
            exploration_completed=bool(explored),
            task_ready=self.tasks.check_complete(moment),
        )

    async def export_data(self, *, now: float | None = None) -> ActionResult:
        return await export_game_data(self.store, now=now)

    async def import_data(
        self, payload: Mapping[str, Any], *, now: float | None = None
    ) -> ActionResult:
        result = await import_game_data(self.store, payload)
        if result:
            await self.reload(now=now)
        return result

    async def save_settings(
        self, values: Mapping[str, Any], *, now: float | None = None
    ) -> ActionResult:
        if SETTINGS_COLLECTION not in self.store.collections:
            return ActionResult.fail("Settings are not available at this schema version")
        return await self.settings.save(values, now=now)

    async def load_settings(self) -> Optional[dict[str, Any]]:
        if SETTINGS_COLLECTION not in self.store.collections:
            return None
        return await self.settings.load()

    async def reset(self, *, now: float | None = None) -> ActionResult:
        """Wipe every collection and start a fresh save in place."""

        self.close()
        store = self.store
        cleared = True
        for collection in sorted(store.collections):
            cleared = await store.clear(collection) and cleared
        self.context.ledger = ResourceLedger(store)
        self._build_services()
        await self.notifications.clear()
        await self.reload(now=now)
        if not cleared:
            return ActionResult.fail("Game data could not be fully reset")
        log.info("Reset game data in %s", store.path)
        return ActionResult.ok("Game reset")

    def status(self, now: float | None = None) -> dict[str, Any]:
        context = self.context
        state = context.ledger.state
        return {
            "database": str(self.store.path),
            "version": self.store.version,
            "state": state.to_record() if state is not None else None,
            "activeBoosts": len(context.shop.active_boosts(now)),
            "activeEvents": len(context.events.active),
            "dailyTasks": len(context.daily.tasks),
            "achievements": len(context.triggers.completed()),
            "pets": len(context.pets.pets),
            "equipment": len(context.equipment.items),
            "unreadNotifications": self.notifications.unread_count,
        }

    def close(self) -> None:
        self.context.clock.cancel()
        self.exploration.clock.cancel()


__all__ = ["GameEngine"]
