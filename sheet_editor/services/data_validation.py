from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from ..logging.error_log import ErrorLogBuffer, report_contained_error
from ..models.cell_range import CellRange
from ..models.error_record import RULE_EVALUATION_ERROR
from ..models.rules import (
    DataValidationRule,
    ValidationResult,
    ValidationSpec,
    ValidationType,
)
from .coercion import as_text, is_blank, to_datetime, to_number
from .expression import ExpressionError, evaluate_expression

"""Data validation engine (one instance per sheet).

Rules are range-keyed. Adding a rule first removes every existing rule whose
range overlaps the new one, so each cell is governed by at most one rule.
``validate`` only reports; whether an invalid result blocks an edit is decided
by the document store from the rule's error policy.
"""

logger = logging.getLogger(__name__)

VALIDATION_ERROR_MESSAGE = "error while validating input"


def _fmt(n: Any) -> str:
    return as_text(n)


class DataValidationEngine:
    def __init__(
        self,
        rules: Iterable[DataValidationRule] = (),
        *,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> None:
        self._rules: list[DataValidationRule] = []
        self._error_buffer = error_buffer
        for rule in rules:
            self._insert(rule)

    @property
    def rules(self) -> list[DataValidationRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def _insert(self, rule: DataValidationRule) -> None:
        replaced = [r for r in self._rules if r.range.overlaps(rule.range)]
        if replaced:
            logger.debug(f"validation rules replaced by {rule.id}: {[r.id for r in replaced]}")
            self._rules = [r for r in self._rules if not r.range.overlaps(rule.range)]
        self._rules.append(rule)

    def add_rule(
        self,
        target: CellRange | str,
        spec: ValidationSpec,
        *,
        rule_id: str | None = None,
    ) -> str:
        """Add a rule for a range (or a ``"row,col"`` / range key) and return its id."""
        rng = CellRange.from_key(target) if isinstance(target, str) else target
        rule = DataValidationRule(
            id=rule_id or f"validation-{uuid.uuid4().hex[:12]}",
            range=rng,
            rule=spec,
        )
        self._insert(rule)
        return rule.id

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        return len(self._rules) < before

    def remove_rules_in(self, rng: CellRange) -> int:
        """Drop every rule overlapping ``rng``; returns how many were removed."""
        before = len(self._rules)
        self._rules = [r for r in self._rules if not r.range.overlaps(rng)]
        return before - len(self._rules)

    def clear_all_rules(self) -> bool:
        if not self._rules:
            return False
        self._rules = []
        return True

    def rule_for_cell(self, row: int, col: int) -> DataValidationRule | None:
        for rule in self._rules:
            if rule.range.contains(row, col):
                return rule
        return None

    def list_source(self, row: int, col: int) -> list[Any] | None:
        """Dropdown options for a cell governed by a list rule, else None."""
        rule = self.rule_for_cell(row, col)
        if rule is None or rule.rule.type is not ValidationType.LIST:
            return None
        return list(rule.rule.options or ())

    def validate(self, row: int, col: int, value: Any) -> ValidationResult:
        rule = self.rule_for_cell(row, col)
        if rule is None:
            return ValidationResult(True)
        return self.validate_value(rule.rule, value, rule_id=rule.id)

    def validate_value(
        self,
        spec: ValidationSpec,
        value: Any,
        *,
        rule_id: str | None = None,
    ) -> ValidationResult:
        if is_blank(value):
            return ValidationResult(True, policy=spec.error_style, rule_id=rule_id)

        if spec.type is ValidationType.CUSTOM:
            try:
                ok = evaluate_expression(spec.expression or "", value)
            except ExpressionError as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="data-validation",
                    source=rule_id or "",
                    error_type=RULE_EVALUATION_ERROR,
                    error=e,
                    message="custom validation expression failed",
                )
                return ValidationResult(False, VALIDATION_ERROR_MESSAGE, spec.error_style, rule_id)
            message = "" if ok else (spec.error_message or "invalid input")
            return ValidationResult(ok, message, spec.error_style, rule_id)

        message = self._check(spec, value)
        if message is None:
            return ValidationResult(True, policy=spec.error_style, rule_id=rule_id)
        return ValidationResult(False, spec.error_message or message, spec.error_style, rule_id)

    @staticmethod
    def _check(spec: ValidationSpec, value: Any) -> str | None:
        """Return a default failure message, or None when ``value`` passes."""
        vtype = spec.type

        if vtype in (ValidationType.NUMBER, ValidationType.INTEGER):
            n = to_number(value)
            if n is None:
                return "enter a number"
            if vtype is ValidationType.INTEGER and not n.is_integer():
                return "enter a whole number"
            lo, hi = to_number(spec.min), to_number(spec.max)
            if lo is not None and n < lo:
                return f"enter a value of {_fmt(spec.min)} or more"
            if hi is not None and n > hi:
                return f"enter a value of {_fmt(spec.max)} or less"
            return None

        if vtype is ValidationType.LIST:
            options = {as_text(o) for o in (spec.options or ())}
            if as_text(value) not in options:
                return "choose a value from the list"
            return None

        if vtype is ValidationType.DATE:
            d = to_datetime(value)
            if d is None:
                return "enter a date (YYYY-MM-DD)"
            lo_d, hi_d = to_datetime(spec.min), to_datetime(spec.max)
            if lo_d is not None and d < lo_d:
                return f"enter a date on or after {_fmt(spec.min)}"
            if hi_d is not None and d > hi_d:
                return f"enter a date on or before {_fmt(spec.max)}"
            return None

        if vtype is ValidationType.TEXT_LENGTH:
            length = len(as_text(value))
            lo, hi = to_number(spec.min), to_number(spec.max)
            if lo is not None and length < lo:
                return f"enter at least {_fmt(spec.min)} characters"
            if hi is not None and length > hi:
                return f"enter at most {_fmt(spec.max)} characters"
            return None

        return None  # any

    def to_records(self) -> dict[str, dict[str, Any]]:
        return {r.range.key: r.to_dict() for r in self._rules}

    @classmethod
    def from_records(
        cls,
        records: dict[str, dict[str, Any]],
        *,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> DataValidationEngine:
        return cls(
            (DataValidationRule.from_dict(data, key) for key, data in records.items()),
            error_buffer=error_buffer,
        )
