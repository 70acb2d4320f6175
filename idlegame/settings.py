"""Player preferences stored next to the save."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from .models import ActionResult

if TYPE_CHECKING:
    from .context import GameContext

log = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
SETTINGS_KEY = "userSettings"

_RESERVED = frozenset({"id", "lastUpdated"})


class UserSettings:
    """The single ``userSettings`` record.

    Values are free-form; saving replaces the whole record and stamps
    ``lastUpdated``.
    """

    def __init__(self, context: "GameContext") -> None:
        self._context = context
        self._record: Optional[dict[str, Any]] = None

    @property
    def values(self) -> dict[str, Any]:
        if self._record is None:
            return {}
        return {key: value for key, value in self._record.items() if key not in _RESERVED}

    @property
    def last_updated(self) -> Optional[float]:
        if self._record is None:
            return None
        return self._record.get("lastUpdated")

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)

    async def load(self) -> Optional[dict[str, Any]]:
        record = await self._context.store.get(SETTINGS_COLLECTION, SETTINGS_KEY)
        self._record = record
        return self.values if record is not None else None

    async def save(
        self, values: Mapping[str, Any], *, now: float | None = None
    ) -> ActionResult:
        record = {key: value for key, value in values.items() if key not in _RESERVED}
        record["id"] = SETTINGS_KEY
        record["lastUpdated"] = self._context.now(now)
        saved = await self._context.store.put(SETTINGS_COLLECTION, record)
        if not saved:
            log.warning("Settings were not persisted")
            return ActionResult.fail("Settings could not be saved")
        self._record = record
        return ActionResult.ok("Settings saved", persisted=True, settings=self.values)


__all__ = ["SETTINGS_COLLECTION", "SETTINGS_KEY", "UserSettings"]
