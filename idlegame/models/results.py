"""Structured outcome returned by every mutating game action."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ActionResult:
    """Outcome of a player action.

    ``success`` is ``False`` for validation failures (not enough gold, already
    claimed, ...).  ``persisted`` is ``False`` when the action was applied in
    memory but the save could not be written.
    """

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    persisted: bool = True

    @classmethod
    def ok(cls, message: str, *, persisted: bool = True, **data: Any) -> "ActionResult":
        return cls(True, message, dict(data), persisted)

    @classmethod
    def fail(cls, message: str, **data: Any) -> "ActionResult":
        return cls(False, message, dict(data))

    def __bool__(self) -> bool:
        return self.success


__all__ = ["ActionResult"]
