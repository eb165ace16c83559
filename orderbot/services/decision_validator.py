from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .action_registry import ActionRegistry, ArgumentSpec

UNKNOWN_ACTION_MESSAGE = "Sorry, I can't help with that right now. Type \"menu\" to see what we have! 🍽️"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    message: Optional[str] = None
    field: Optional[str] = None

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, message: str, field: str | None = None) -> "ValidationResult":
        return cls(ok=False, message=message, field=field)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def _matches_type(spec: ArgumentSpec, value: Any) -> bool:
    if spec.type == "string":
        return isinstance(value, str)
    if isinstance(value, bool):
        return False
    if spec.type == "number":
        return isinstance(value, (int, float))
    if spec.type == "integer":
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if spec.type == "array":
        return isinstance(value, list)
    return False


def _invalid_message(spec: ArgumentSpec) -> str:
    if spec.missing_message:
        return spec.missing_message
    label = spec.field.replace("_", " ")
    if spec.enum:
        return f"Please choose a valid {label}: {', '.join(spec.enum)}."
    return f"Please provide a valid {label}."


def validate(action_name: str, arguments: Mapping[str, Any] | None, registry: ActionRegistry) -> ValidationResult:
    """Check ``arguments`` against the registry entry of ``action_name``."""

    entry = registry.get(action_name)
    if entry is None:
        return ValidationResult.failed(UNKNOWN_ACTION_MESSAGE)

    arguments = arguments or {}
    for spec in entry.arguments:
        value = arguments.get(spec.field)
        if _is_blank(value):
            if spec.required:
                return ValidationResult.failed(_invalid_message(spec), spec.field)
            continue
        if not _matches_type(spec, value):
            return ValidationResult.failed(_invalid_message(spec), spec.field)
        if spec.enum and value not in spec.enum:
            return ValidationResult.failed(_invalid_message(spec), spec.field)
        if spec.minimum is not None and value < spec.minimum:
            return ValidationResult.failed(_invalid_message(spec), spec.field)
    return ValidationResult.passed()
