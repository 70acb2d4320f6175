"""Whole-save export and import."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Mapping

from .ledger import GAME_STATE_COLLECTION
from .models import (
    GAME_STATE_KEY,
    RESOURCE_STATE_SCHEMA,
    ActionResult,
    ModelValidationError,
    RecordSchema,
)
from .models._validation import (
    Field,
    is_integer,
    is_mapping,
    is_number,
    is_record_key,
    list_of,
)
from .settings import SETTINGS_COLLECTION, SETTINGS_KEY

if TYPE_CHECKING:
    from .storage import DataStore

log = logging.getLogger(__name__)

# Export sections holding every record of the collection of the same name.
LIST_SECTIONS = (
    "skills",
    "shop",
    "events",
    "achievements",
    "dailyTasks",
    "notifications",
    "pets",
    "equipment",
    "exploration",
)


def _is_schema_version(value: Any) -> bool:
    return is_integer(value) and value > 0


EXPORT_SCHEMA = RecordSchema(
    "GameExport",
    {
        "version": Field(_is_schema_version, "a positive schema version"),
        "gameState": Field(is_mapping, "the game state record"),
        "timestamp": Field(is_number, "an export timestamp", required=False),
        "settings": Field(is_mapping, "the settings record", required=False, nullable=True),
        **{
            name: Field(
                list_of(is_mapping),
                f"a list of {name} records",
                required=False,
                nullable=True,
            )
            for name in LIST_SECTIONS
        },
    },
)


async def export_game_data(
    store: "DataStore", version: int | None = None, *, now: float | None = None
) -> ActionResult:
    collections = store.collections
    data: dict[str, Any] = {
        "version": int(version if version is not None else store.version),
        "timestamp": time.time() if now is None else now,
        "gameState": await store.get(GAME_STATE_COLLECTION, GAME_STATE_KEY),
        "settings": (
            await store.get(SETTINGS_COLLECTION, SETTINGS_KEY)
            if SETTINGS_COLLECTION in collections
            else None
        ),
    }
    for name in LIST_SECTIONS:
        data[name] = await store.get_all(name) if name in collections else []
    if data["gameState"] is None:
        log.warning("Exporting a save without a game state")
    return ActionResult.ok("Game data exported", data=data)


def validate_import(store: "DataStore", payload: Mapping[str, Any]) -> dict[str, Any]:
    """Check an import payload; raises :class:`ModelValidationError` on problems."""

    normalized = EXPORT_SCHEMA.validate(payload)
    errors: list[str] = []
    if normalized["version"] > store.version:
        errors.append(
            f"Export uses schema version {normalized['version']}, newer than {store.version}"
        )
    try:
        RESOURCE_STATE_SCHEMA.validate(normalized["gameState"])
    except ModelValidationError as exc:
        errors.extend(f"gameState: {error}" for error in exc.errors)
    for name in LIST_SECTIONS:
        records = normalized.get(name) or []
        if records and name not in store.collections:
            errors.append(f"Section '{name}' has no matching collection")
        for index, record in enumerate(records):
            if not is_record_key(record.get("id")):
                errors.append(f"{name}[{index}] has no usable 'id'")
    if errors:
        raise ModelValidationError("GameExport", errors)
    return normalized


async def import_game_data(store: "DataStore", payload: Mapping[str, Any]) -> ActionResult:
    """Upsert every record from ``payload``; records it does not mention are kept."""

    try:
        data = validate_import(store, payload)
    except ModelValidationError as exc:
        log.warning("Rejected game data import: %s", exc)
        return ActionResult.fail("Invalid game data file", errors=list(exc.errors))

    persisted = await store.put(GAME_STATE_COLLECTION, data["gameState"], key=GAME_STATE_KEY)
    settings = data.get("settings")
    if settings and SETTINGS_COLLECTION in store.collections:
        persisted = await store.put(
            SETTINGS_COLLECTION, settings, key=settings.get("id") or SETTINGS_KEY
        ) and persisted

    imported = {"gameState": 1}
    for name in LIST_SECTIONS:
        records = data.get(name) or []
        if not records:
            continue
        persisted = await store.put_many(name, records) and persisted
        imported[name] = len(records)

    log.info("Imported game data: %s", imported)
    if not persisted:
        return ActionResult.fail("Game data could not be fully written", imported=imported)
    return ActionResult.ok("Game data imported", imported=imported)


def dumps_export(data: Mapping[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)


def loads_import(text: str) -> dict[str, Any]:
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("Game data must be a JSON object")
    return payload


__all__ = [
    "EXPORT_SCHEMA",
    "LIST_SECTIONS",
    "dumps_export",
    "export_game_data",
    "import_game_data",
    "loads_import",
    "validate_import",
]
