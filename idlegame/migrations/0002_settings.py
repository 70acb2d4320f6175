"""Make sure the settings collection exists for saves created before it."""

from __future__ import annotations

FROM_VERSION = 1
TO_VERSION = 2
DESCRIPTION = "Ensure the settings collection exists"


def apply(context) -> None:  # type: ignore[override]
    if context.has_collection("settings"):
        return
    context.create_collection("settings")
