"""Record schemas checked before a stored or imported record is trusted.

A :class:`RecordSchema` names the fields a record must carry and a predicate
for each one.  Every problem is collected before :class:`ModelValidationError`
is raised, so an import can report all of them at once.  Fields a schema does
not mention are passed through, which keeps records written by newer saves
intact.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Mapping, Sequence

Check = Callable[[Any], bool]


class ModelValidationError(ValueError):
    """Raised when a record does not satisfy its schema."""

    def __init__(self, model: str, errors: Sequence[str]) -> None:
        self.model = model
        self.errors = list(errors)
        message = ", ".join(self.errors) if self.errors else "invalid record"
        super().__init__(f"{model} validation failed: {message}")


def is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def is_text(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_flag(value: Any) -> bool:
    return isinstance(value, bool)


def is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def is_record_key(value: Any) -> bool:
    """Record keys are non-empty strings or integers."""

    return is_integer(value) or is_text(value)


def list_of(check: Check) -> Check:
    def _check(value: Any) -> bool:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            return False
        return all(check(item) for item in value)

    return _check


def mapping_of(check: Check) -> Check:
    def _check(value: Any) -> bool:
        if not isinstance(value, Mapping):
            return False
        return all(isinstance(key, str) and check(item) for key, item in value.items())

    return _check


@dataclass(frozen=True, slots=True)
class Field:
    check: Check
    description: str
    required: bool = True
    nullable: bool = False


@dataclass(frozen=True)
class RecordSchema:
    name: str
    fields: Mapping[str, Field]

    def problems(self, record: Any) -> list[str]:
        if not isinstance(record, Mapping):
            return [f"expected a mapping, received {type(record).__name__}"]
        problems: list[str] = []
        for name, field in self.fields.items():
            if name not in record:
                if field.required:
                    problems.append(f"missing '{name}' ({field.description})")
                continue
            value = record[name]
            if value is None:
                if not field.nullable:
                    problems.append(f"'{name}' cannot be null")
                continue
            if not field.check(value):
                problems.append(
                    f"'{name}' should be {field.description}, received {type(value).__name__}"
                )
        return problems

    def validate(self, record: Any) -> dict[str, Any]:
        """Return a copy of ``record``; raises :class:`ModelValidationError`."""

        problems = self.problems(record)
        if problems:
            raise ModelValidationError(self.name, problems)
        return dict(record)


__all__ = [
    "Field",
    "ModelValidationError",
    "RecordSchema",
    "is_flag",
    "is_integer",
    "is_mapping",
    "is_number",
    "is_record_key",
    "is_text",
    "list_of",
    "mapping_of",
]
