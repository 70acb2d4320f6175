"""Resource ledger: the single owner of gold, experience, energy and level.

Every mutation builds the complete next :class:`ResourceState` in memory and
saves it in one write, so a failed save never leaves half-applied deltas.
The in-memory snapshot stays authoritative for the session when a save fails.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

from .energy import regenerated_energy
from .models import (
    GAME_STATE_KEY,
    ActionResult,
    RESOURCE_STATE_SCHEMA,
    ModelValidationError,
    ResourceState,
)

if TYPE_CHECKING:
    from .storage import DataStore

log = logging.getLogger(__name__)

GAME_STATE_COLLECTION = "gameState"


@dataclass(frozen=True, slots=True)
class LedgerUpdate:
    state: ResourceState
    persisted: bool
    gained: float = 0.0


class ResourceLedger:
    def __init__(self, store: "DataStore") -> None:
        self._store = store
        self._state: Optional[ResourceState] = None

    @property
    def state(self) -> Optional[ResourceState]:
        return self._state

    async def load(self) -> Optional[ResourceState]:
        record = await self._store.get(GAME_STATE_COLLECTION, GAME_STATE_KEY)
        if record is None:
            return None
        try:
            payload = RESOURCE_STATE_SCHEMA.validate(record)
        except ModelValidationError as exc:
            log.warning("Ignoring malformed game state: %s", exc)
            return None
        self._state = ResourceState.from_record(payload)
        return self._state

    async def save(self, state: ResourceState, *, now: float | None = None) -> bool:
        """Clamp and persist ``state``; returns ``False`` if it was not written."""

        timestamp = time.time() if now is None else now
        clamped = replace(state.clamped(), last_updated=timestamp)
        self._state = clamped
        saved = await self._store.put(GAME_STATE_COLLECTION, clamped.to_record())
        if not saved:
            log.warning("Game state was not persisted")
        return saved

    async def snapshot(self) -> Optional[ResourceState]:
        if self._state is not None:
            return self._state
        return await self.load()

    async def ensure(self, *, now: float | None = None) -> ResourceState:
        """Return the current state, creating a fresh save when none exists."""

        state = await self.snapshot()
        if state is not None:
            return state
        timestamp = time.time() if now is None else now
        state = ResourceState(last_regenerated=timestamp)
        await self.save(state, now=timestamp)
        log.info("Created a new game state")
        return self._state or state

    async def apply(
        self,
        *,
        gold: int = 0,
        experience: int = 0,
        energy: float = 0.0,
        now: float | None = None,
    ) -> Optional[LedgerUpdate]:
        state = await self.snapshot()
        if state is None:
            return None
        next_state = state.adjusted(gold=gold, experience=experience, energy=energy)
        persisted = await self.save(next_state, now=now)
        return LedgerUpdate(self._state or next_state, persisted)

    async def spend(
        self, *, gold: int = 0, energy: float = 0.0, now: float | None = None
    ) -> ActionResult:
        state = await self.snapshot()
        if state is None:
            return ActionResult.fail("Game state could not be loaded")
        if gold > state.gold:
            return ActionResult.fail("Not enough gold")
        if energy > state.energy:
            return ActionResult.fail("Not enough energy")
        next_state = state.adjusted(gold=-gold, energy=-energy)
        persisted = await self.save(next_state, now=now)
        return ActionResult.ok("Resources spent", persisted=persisted, state=self._state)

    async def set_level(self, level: int, *, now: float | None = None) -> Optional[LedgerUpdate]:
        state = await self.snapshot()
        if state is None:
            return None
        next_state = replace(state, level=max(0, int(level)), extra=dict(state.extra))
        persisted = await self.save(next_state, now=now)
        return LedgerUpdate(self._state or next_state, persisted)

    async def regenerate(
        self, rate_per_minute: float, *, now: float | None = None
    ) -> Optional[LedgerUpdate]:
        """Credit energy for the time since the last regeneration.

        The regeneration stamp advances on every call, including at the cap,
        so time spent full is never credited later.
        """

        state = await self.snapshot()
        if state is None:
            return None
        timestamp = time.time() if now is None else now
        anchor = state.regeneration_anchor
        elapsed = 0.0 if anchor is None else max(0.0, timestamp - anchor)
        gained = regenerated_energy(elapsed, rate_per_minute)
        if anchor is not None and elapsed <= 0:
            return LedgerUpdate(state, True)
        next_state = replace(
            state.adjusted(energy=gained) if gained > 0 else state,
            last_regenerated=timestamp,
            extra=dict(state.extra),
        )
        persisted = await self.save(next_state, now=now)
        current = self._state or next_state
        return LedgerUpdate(current, persisted, current.energy - state.energy)


__all__ = ["GAME_STATE_COLLECTION", "LedgerUpdate", "ResourceLedger"]
