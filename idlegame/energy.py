"""Energy system helpers and configuration."""

from __future__ import annotations

# Energy available to a level 0 player; every level adds one point on top.
BASE_ENERGY_CAP = 100

# Points regenerated per minute before skills and boosts are applied.
BASE_REGEN_PER_MINUTE = 1.0

# Energy a fresh save starts with.
STARTING_ENERGY = 100.0


def energy_cap_for_level(level: int | None) -> int:
    """Return the maximum energy for a player level."""

    return BASE_ENERGY_CAP + max(0, int(level or 0))


def clamp_energy(value: float, level: int | None) -> float:
    cap = energy_cap_for_level(level)
    return float(min(max(0.0, float(value)), cap))


def regeneration_rate(skill_bonus: float = 0.0, boost_fraction: float = 0.0) -> float:
    """Return energy regenerated per minute.

    ``skill_bonus`` is the flat per-minute bonus from ``energy_regen`` skills
    and ``boost_fraction`` the summed ``energy_regen`` shop boosts.
    """

    base = BASE_REGEN_PER_MINUTE + max(0.0, float(skill_bonus))
    return base * (1.0 + max(0.0, float(boost_fraction)))


def regenerated_energy(elapsed_seconds: float, rate_per_minute: float) -> float:
    if elapsed_seconds <= 0 or rate_per_minute <= 0:
        return 0.0
    return float(elapsed_seconds) / 60.0 * float(rate_per_minute)


__all__ = [
    "BASE_ENERGY_CAP",
    "BASE_REGEN_PER_MINUTE",
    "STARTING_ENERGY",
    "clamp_energy",
    "energy_cap_for_level",
    "regenerated_energy",
    "regeneration_rate",
]
