"""Create the core game state collections."""

from __future__ import annotations

FROM_VERSION = 0
TO_VERSION = 1
DESCRIPTION = "Create gameState and settings collections"


def apply(context) -> None:  # type: ignore[override]
    for name in ("gameState", "settings"):
        context.create_collection(name)
