"""Add the progression systems: skills, shop, events, achievements and dailies."""

from __future__ import annotations

FROM_VERSION = 2
TO_VERSION = 3
DESCRIPTION = "Create skills, shop, events, achievements, dailyTasks and notifications"

COLLECTIONS = (
    "skills",
    "shop",
    "events",
    "achievements",
    "dailyTasks",
    "notifications",
)


def apply(context) -> None:  # type: ignore[override]
    for name in COLLECTIONS:
        context.create_collection(name)
