from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .cell_range import CellRange

"""Declarative rule models consumed by the three rule engines.

Serialized field names follow the persisted document record (camelCase), so
``to_dict`` / ``from_dict`` are the only place where the mapping lives.
"""

__all__ = [
    "ConditionType",
    "Condition",
    "ConditionalFormatRule",
    "ValidationType",
    "ErrorPolicy",
    "ValidationSpec",
    "DataValidationRule",
    "ValidationResult",
    "FilterType",
    "FilterSpec",
]


class ConditionType(str, Enum):
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    EQUAL = "equal"
    NOT_EQUAL = "notEqual"
    BETWEEN = "between"
    NOT_BETWEEN = "notBetween"
    TEXT_CONTAINS = "textContains"
    TEXT_NOT_CONTAINS = "textNotContains"
    TEXT_STARTS_WITH = "textStartsWith"
    TEXT_ENDS_WITH = "textEndsWith"
    CUSTOM = "custom"
    DUPLICATE = "duplicate"
    UNIQUE = "unique"


@dataclass(frozen=True)
class Condition:
    """Condition variant + operands.

    Which operand is read depends on the type: ``value`` for the comparisons,
    ``min``/``max`` for (not-)between, ``text`` for the text variants and
    ``formula`` for custom expressions.
    """
    type: ConditionType
    value: Any = None
    min: Any = None
    max: Any = None
    text: str | None = None
    formula: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        return cls(
            type=ConditionType(data["type"]),
            value=data.get("value"),
            min=data.get("min"),
            max=data.get("max"),
            text=data.get("text"),
            formula=data.get("formula"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value}
        for name in ("value", "min", "max", "text", "formula"):
            v = getattr(self, name)
            if v is not None:
                out[name] = v
        return out


@dataclass(frozen=True)
class ConditionalFormatRule:
    id: str
    range: CellRange
    condition: Condition
    style: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConditionalFormatRule:
        return cls(
            id=str(data["id"]),
            range=CellRange.from_dict(data["range"]),
            condition=Condition.from_dict(data["condition"]),
            style=dict(data.get("style") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "range": self.range.to_dict(),
            "condition": self.condition.to_dict(),
            "style": dict(self.style),
        }


class ValidationType(str, Enum):
    ANY = "any"
    NUMBER = "number"
    INTEGER = "integer"
    LIST = "list"
    DATE = "date"
    TEXT_LENGTH = "textLength"
    CUSTOM = "custom"


class ErrorPolicy(str, Enum):
    STOP = "stop"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class ValidationSpec:
    type: ValidationType
    min: Any = None
    max: Any = None
    options: tuple[Any, ...] | None = None
    expression: str | None = None
    error_style: ErrorPolicy = ErrorPolicy.STOP
    error_message: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationSpec:
        options = data.get("options")
        return cls(
            type=ValidationType(data.get("type", "any")),
            min=data.get("min"),
            max=data.get("max"),
            options=tuple(options) if options is not None else None,
            expression=data.get("expression"),
            error_style=ErrorPolicy(data.get("errorStyle") or "stop"),
            error_message=data.get("errorMessage"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value, "errorStyle": self.error_style.value}
        if self.min is not None:
            out["min"] = self.min
        if self.max is not None:
            out["max"] = self.max
        if self.options is not None:
            out["options"] = list(self.options)
        if self.expression is not None:
            out["expression"] = self.expression
        if self.error_message is not None:
            out["errorMessage"] = self.error_message
        return out


@dataclass(frozen=True)
class DataValidationRule:
    id: str
    range: CellRange
    rule: ValidationSpec

    @classmethod
    def from_dict(cls, data: dict[str, Any], key: str | None = None) -> DataValidationRule:
        """Build from a record entry.

        Entries written by the older cell-keyed model carry the validation fields
        at top level and no ``range``; the record key supplies the target.
        """
        if "rule" in data:
            spec = ValidationSpec.from_dict(data["rule"])
        else:
            spec = ValidationSpec.from_dict(data)
        if "range" in data:
            target = CellRange.from_dict(data["range"])
        elif key is not None:
            target = CellRange.from_key(key)
        else:
            raise ValueError("validation rule has neither range nor record key")
        return cls(id=str(data.get("id") or target.key), range=target, rule=spec)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "range": self.range.to_dict(), "rule": self.rule.to_dict()}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str = ""
    policy: ErrorPolicy = ErrorPolicy.STOP
    rule_id: str | None = None


class FilterType(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    BETWEEN = "between"
    EMPTY = "empty"
    NOT_EMPTY = "notEmpty"
    VALUES = "values"


@dataclass(frozen=True)
class FilterSpec:
    column: int
    type: FilterType
    value: Any = None
