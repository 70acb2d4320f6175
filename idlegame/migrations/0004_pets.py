"""Add pet storage."""

from __future__ import annotations

FROM_VERSION = 3
TO_VERSION = 4
DESCRIPTION = "Create pets collection"


def apply(context) -> None:  # type: ignore[override]
    context.create_collection("pets")
