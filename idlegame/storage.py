"""Record persistence for the idle game database.

All disk I/O is centralised behind :class:`DataStore`.  A database is a
directory below the storage root holding one sub-directory per collection and
one TOML document per record, named after the record key.  The schema version
and the set of created collections are tracked in ``schema_version.toml`` next
to the collections and are advanced by the ordered migration steps that live in
``idlegame/migrations``.

Persistence failures never raise out of the datastore: they are logged and
reported as ``None`` (reads, :meth:`DataStore.open`) or ``False`` (writes).
"""

from __future__ import annotations

import asyncio
import contextlib
import importlib.util
import json
import logging
import math
import os
import re
import shutil
import tempfile
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, MutableMapping, Optional
from urllib.parse import quote, unquote

import tomllib

log = logging.getLogger(__name__)

SCHEMA_FILE = "schema_version.toml"
MIGRATIONS_PATH = Path(__file__).resolve().parent / "migrations"

_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


def _is_site_packages(path: Path) -> bool:
    """Return ``True`` if ``path`` is inside a site/dist-packages directory."""

    normalized = {part.lower() for part in path.parts}
    return "site-packages" in normalized or "dist-packages" in normalized


def resolve_storage_root(package_root: Path) -> Path:
    """Determine where save data should be stored.

    Data lives next to the source tree when running from a checkout.  When the
    package is installed into site-packages (read-only and replaced on
    upgrades), or when ``IDLEGAME_DATA_ROOT``/``IDLEGAME_STORAGE_ROOT`` is set,
    the storage root is relocated accordingly.
    """

    override = os.getenv("IDLEGAME_DATA_ROOT") or os.getenv("IDLEGAME_STORAGE_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    if _is_site_packages(package_root) or not os.access(package_root, os.W_OK):
        return Path.cwd().resolve()

    return package_root


# ---------------------------------------------------------------------------
# Record encoding
# ---------------------------------------------------------------------------
#
# Each record is written as one ``key = value`` line per top-level field, with
# nested mappings as inline tables and lists of mappings spread one per line.


def _plain(value: Any) -> Any:
    """Reduce ``value`` to TOML-representable data, dropping ``None`` entries."""

    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value if item is not None]
    if isinstance(value, float) and not math.isfinite(value):
        return 0.0
    if isinstance(value, (str, int, float)):
        return value
    raise TypeError(f"Cannot store {type(value).__name__} in a record")


def _string(text: str) -> str:
    # JSON string escapes are a subset of TOML basic-string escapes; DEL is the
    # one control character JSON leaves bare.
    return json.dumps(text, ensure_ascii=False).replace("\x7f", "\\u007f")


def _key(name: str) -> str:
    return name if _BARE_KEY.match(name) else _string(name)


def _value(value: Any, *, nested: bool = False) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return _string(value)
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        inline = ", ".join(f"{_key(k)} = {_value(v, nested=True)}" for k, v in value.items())
        return "{ " + inline + " }"
    if not nested and value and all(isinstance(item, Mapping) for item in value):
        rows = "".join(f"  {_value(item, nested=True)},\n" for item in value)
        return "[\n" + rows + "]"
    return "[" + ", ".join(_value(item, nested=True) for item in value) + "]"


def _dumps(record: Mapping[str, Any]) -> str:
    plain = _plain(record)
    return "".join(f"{_key(name)} = {_value(plain[name])}\n" for name in sorted(plain))


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _write_toml(path: Path, record: Mapping[str, Any]) -> None:
    """Write ``record`` to ``path`` through a synced temporary file."""

    text = _dumps(record)
    path.parent.mkdir(parents=True, exist_ok=True)
    descriptor, temp_name = tempfile.mkstemp(
        prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(descriptor, "w", encoding="utf8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(temp_name)
        raise


def _encode_key(key: Any) -> str:
    return quote(str(key), safe="")


def _decode_key(filename: str) -> str:
    return unquote(filename)


# ---------------------------------------------------------------------------
# Migration runner
# ---------------------------------------------------------------------------


class MissingMigrationError(RuntimeError):
    pass


class UnknownCollectionError(KeyError):
    pass


@dataclass(slots=True)
class MigrationStep:
    from_version: int
    to_version: int
    apply: Callable[["MigrationContext"], None]
    description: str


@dataclass(slots=True)
class MigrationContext:
    """Handle given to migration steps while the schema is being upgraded."""

    path: Path
    collections: set[str] = field(default_factory=set)
    step: str = "schema"

    def create_collection(self, name: str) -> bool:
        """Create ``name`` if it does not exist yet; never drops existing data."""

        directory = self.path / name
        created = name not in self.collections or not directory.is_dir()
        directory.mkdir(parents=True, exist_ok=True)
        self.collections.add(name)
        if created:
            self.log(f"created collection {name!r}")
        return created

    def has_collection(self, name: str) -> bool:
        return name in self.collections

    def collection_path(self, name: str) -> Path:
        return self.path / name

    def log(self, message: str) -> None:
        logging.getLogger("idlegame.migrations").info(
            "[migration:%s] %s", self.step, message
        )


Migrate = Callable[[MigrationContext, int, int], None]


def load_migrations(directory: Path = MIGRATIONS_PATH) -> list[MigrationStep]:
    """Load the ordered migration table from ``NNNN_*.py`` modules."""

    steps: list[MigrationStep] = []
    if not directory.is_dir():
        return steps
    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("__"):
            continue
        spec = importlib.util.spec_from_file_location(
            f"idlegame.migrations.{path.stem}", path
        )
        if spec is None or spec.loader is None:
            continue
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)  # type: ignore[union-attr]
        except Exception:
            log.exception("Failed to load migration %s", path.name)
            continue
        from_version = getattr(module, "FROM_VERSION", None)
        to_version = getattr(module, "TO_VERSION", None)
        apply = getattr(module, "apply", None)
        if not isinstance(from_version, int) or not isinstance(to_version, int):
            continue
        if not callable(apply):
            continue
        description = getattr(module, "DESCRIPTION", path.stem)
        steps.append(
            MigrationStep(
                from_version=from_version,
                to_version=to_version,
                apply=apply,
                description=str(description),
            )
        )
    steps.sort(key=lambda step: step.from_version)
    return steps


def plan_migrations(
    steps: Iterable[MigrationStep], current: int, target: int
) -> list[MigrationStep]:
    available = list(steps)
    plan: list[MigrationStep] = []
    version = current
    while version < target:
        step = next((s for s in available if s.from_version == version), None)
        if step is None:
            raise MissingMigrationError(f"Missing migration: {version} -> {target}")
        plan.append(step)
        version = step.to_version

    if version != target:
        raise MissingMigrationError(f"Incomplete migration chain: {current} -> {target}")
    return plan


def apply_migrations(context: MigrationContext, old: int, new: int) -> None:
    """Run every step from ``old`` up to ``new`` in order."""

    if old >= new:
        return
    for step in plan_migrations(load_migrations(), old, new):
        context.step = f"{step.from_version}->{step.to_version}"
        context.log(step.description)
        step.apply(context)
    context.step = "schema"


# ---------------------------------------------------------------------------
# DataStore implementation
# ---------------------------------------------------------------------------


class DataStore:
    """Asynchronous keyed-record store opened at a schema version."""

    def __init__(self, path: Path, version: int, collections: Iterable[str]) -> None:
        self._path = path
        self._version = version
        self._collections = set(collections)
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        name: str,
        version: int,
        migrate: Optional[Migrate] = None,
        *,
        root: Path | None = None,
    ) -> "DataStore | None":
        """Open ``name`` and upgrade it to ``version``.

        ``migrate(context, old, new)`` is called once when the stored version
        is lower than ``version``; it defaults to the packaged migration table.
        Returns ``None`` when the database cannot be opened or upgraded.
        """

        migrate = migrate or apply_migrations
        if root is None:
            root = resolve_storage_root(Path(__file__).resolve().parent.parent)
        path = Path(root) / name
        try:
            stored, collections = _read_schema(path)
            if stored < version:
                context = MigrationContext(path=path, collections=set(collections))
                path.mkdir(parents=True, exist_ok=True)
                migrate(context, stored, version)
                collections = sorted(context.collections)
                _write_toml(
                    path / SCHEMA_FILE,
                    {"version": int(version), "collections": collections},
                )
                log.info("Upgraded database %s from version %s to %s", name, stored, version)
                stored = version
            elif stored > version:
                log.warning(
                    "Database %s is at version %s, newer than requested %s",
                    name,
                    stored,
                    version,
                )
        except (OSError, MissingMigrationError, tomllib.TOMLDecodeError, TypeError, ValueError):
            log.exception("Failed to open database %s", name)
            return None
        return cls(path, stored, collections)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def version(self) -> int:
        return self._version

    @property
    def collections(self) -> frozenset[str]:
        return frozenset(self._collections)

    async def get(self, collection: str, key: Any) -> Optional[Dict[str, Any]]:
        async with self._lock:
            path = self._record_path(collection, key)
            if not path.exists():
                return None
            try:
                return dict(_load_toml(path))
            except (OSError, tomllib.TOMLDecodeError):
                log.exception("Failed to read %s/%s", collection, key)
                return None

    async def get_all(self, collection: str) -> list[Dict[str, Any]]:
        async with self._lock:
            directory = self._collection_path(collection)
            records: list[Dict[str, Any]] = []
            try:
                paths = sorted(directory.glob("*.toml"))
            except OSError:
                log.exception("Failed to list collection %s", collection)
                return records
            for path in paths:
                try:
                    payload = _load_toml(path)
                except (OSError, tomllib.TOMLDecodeError):
                    log.exception(
                        "Skipping unreadable record %s/%s", collection, _decode_key(path.stem)
                    )
                    continue
                if isinstance(payload, MutableMapping):
                    records.append(dict(payload))
            return records

    async def put(
        self, collection: str, record: Mapping[str, Any], *, key: Any = None
    ) -> bool:
        """Insert or replace ``record`` keyed by ``key`` or its ``id`` field."""

        async with self._lock:
            return self._write_records(collection, [(key, deepcopy(dict(record)))])

    async def put_many(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> bool:
        async with self._lock:
            items = [(None, deepcopy(dict(record))) for record in records]
            return self._write_records(collection, items)

    async def replace(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> bool:
        """Make ``records`` the whole content of ``collection``.

        The new records are written to a staging directory that is swapped in
        only once every write succeeded, so a failure keeps the old content.
        """

        async with self._lock:
            directory = self._collection_path(collection)
            staging = directory.with_name(f".{collection}.staging")
            retired = directory.with_name(f".{collection}.retired")
            items = [(None, deepcopy(dict(record))) for record in records]
            try:
                shutil.rmtree(staging, ignore_errors=True)
                staging.mkdir(parents=True)
                for path, record in self._prepare(collection, staging, items):
                    _write_toml(path, record)
                shutil.rmtree(retired, ignore_errors=True)
                if directory.exists():
                    os.replace(directory, retired)
                os.replace(staging, directory)
            except (OSError, TypeError, ValueError):
                log.exception("Failed to replace collection %s", collection)
                shutil.rmtree(staging, ignore_errors=True)
                if retired.exists() and not directory.exists():
                    os.replace(retired, directory)
                return False
            shutil.rmtree(retired, ignore_errors=True)
            return True

    async def delete(self, collection: str, key: Any) -> bool:
        async with self._lock:
            path = self._record_path(collection, key)
            try:
                path.unlink()
            except FileNotFoundError:
                return True
            except OSError:
                log.exception("Failed to delete %s/%s", collection, key)
                return False
            return True

    async def clear(self, collection: str) -> bool:
        async with self._lock:
            directory = self._collection_path(collection)
            try:
                if directory.exists():
                    shutil.rmtree(directory)
                directory.mkdir(parents=True, exist_ok=True)
            except OSError:
                log.exception("Failed to clear collection %s", collection)
                return False
            return True

    @staticmethod
    def _prepare(
        collection: str, directory: Path, items: Iterable[tuple[Any, Dict[str, Any]]]
    ) -> list[tuple[Path, Dict[str, Any]]]:
        prepared: list[tuple[Path, Dict[str, Any]]] = []
        for key, record in items:
            record_key = key if key is not None else record.get("id")
            if record_key is None:
                raise ValueError(f"Record for {collection!r} has no key")
            prepared.append((directory / f"{_encode_key(record_key)}.toml", record))
        return prepared

    def _write_records(
        self, collection: str, items: Iterable[tuple[Any, Dict[str, Any]]]
    ) -> bool:
        prepared = self._prepare(collection, self._collection_path(collection), items)
        try:
            for path, record in prepared:
                _write_toml(path, record)
        except (OSError, TypeError, ValueError):
            log.exception("Failed to write to collection %s", collection)
            return False
        return True

    def _collection_path(self, name: str) -> Path:
        if name not in self._collections:
            raise UnknownCollectionError(f"Unknown collection: {name}")
        return self._path / name

    def _record_path(self, collection: str, key: Any) -> Path:
        return self._collection_path(collection) / f"{_encode_key(key)}.toml"


def _read_schema(path: Path) -> tuple[int, list[str]]:
    schema_path = path / SCHEMA_FILE
    if not schema_path.exists():
        return 0, []
    payload = _load_toml(schema_path)
    raw_version = payload.get("version", 0)
    try:
        version = int(raw_version)
    except (TypeError, ValueError):
        version = 0
    raw_collections = payload.get("collections", [])
    collections = [str(name) for name in raw_collections if isinstance(name, str)]
    return version, collections


__all__ = [
    "DataStore",
    "MigrationContext",
    "MigrationStep",
    "MissingMigrationError",
    "UnknownCollectionError",
    "apply_migrations",
    "load_migrations",
    "plan_migrations",
    "resolve_storage_root",
]
