"""Add equipment inventory and exploration storage."""

from __future__ import annotations

FROM_VERSION = 4
TO_VERSION = 5
DESCRIPTION = "Create equipment and exploration collections"


def apply(context) -> None:  # type: ignore[override]
    created = [
        name
        for name in ("equipment", "exploration")
        if context.create_collection(name)
    ]
    if created:
        context.log(f"added {len(created)} collection(s)")
