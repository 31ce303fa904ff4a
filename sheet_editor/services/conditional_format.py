from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Sequence
from typing import Any

from ..logging.error_log import ErrorLogBuffer, report_contained_error
from ..models.cell_range import CellRange
from ..models.error_record import RULE_EVALUATION_ERROR
from ..models.rules import Condition, ConditionalFormatRule, ConditionType
from .coercion import as_text, is_blank, to_number
from .expression import ExpressionError, evaluate_expression

"""Conditional format engine (one instance per sheet).

``evaluate`` walks the rules in insertion order and merges the style of every
matching rule into one dict, so for a property set by two matching rules the
later-added rule wins. Evaluation never raises: a custom expression that fails
counts as "no match" and is logged.
"""

logger = logging.getLogger(__name__)

Grid = Sequence[Sequence[Any]]


def _range_values_excluding(grid: Grid, rng: CellRange, row: int, col: int) -> list[str]:
    values: list[str] = []
    for r, c in rng.cells():
        if r == row and c == col:
            continue
        if r >= len(grid) or c >= len(grid[r]):
            continue
        v = grid[r][c]
        if v is not None:
            values.append(as_text(v))
    return values


class ConditionalFormatEngine:
    def __init__(
        self,
        rules: Iterable[ConditionalFormatRule] = (),
        *,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> None:
        self._rules: list[ConditionalFormatRule] = list(rules)
        self._error_buffer = error_buffer

    @property
    def rules(self) -> list[ConditionalFormatRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def add_rule(
        self,
        rng: CellRange,
        condition: Condition,
        style: dict[str, Any],
        *,
        rule_id: str | None = None,
    ) -> str:
        rule = ConditionalFormatRule(
            id=rule_id or f"rule-{uuid.uuid4().hex[:12]}",
            range=rng,
            condition=condition,
            style=dict(style),
        )
        self._rules.append(rule)
        logger.debug(f"conditional format rule added: {rule.id} {rng.address}")
        return rule.id

    def update_rule(
        self,
        rule_id: str,
        *,
        rng: CellRange | None = None,
        condition: Condition | None = None,
        style: dict[str, Any] | None = None,
    ) -> bool:
        """Replace parts of a rule in place (its position in the order is kept)."""
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                self._rules[i] = ConditionalFormatRule(
                    id=rule.id,
                    range=rng or rule.range,
                    condition=condition or rule.condition,
                    style=dict(style) if style is not None else rule.style,
                )
                return True
        logger.warning(f"conditional format rule not found: {rule_id}")
        return False

    def remove_rule(self, rule_id: str) -> bool:
        before = len(self._rules)
        self._rules = [r for r in self._rules if r.id != rule_id]
        if len(self._rules) == before:
            logger.warning(f"conditional format rule not found: {rule_id}")
            return False
        return True

    def clear_all_rules(self) -> bool:
        if not self._rules:
            return False
        self._rules = []
        return True

    def rules_for_cell(self, row: int, col: int) -> list[ConditionalFormatRule]:
        return [r for r in self._rules if r.range.contains(row, col)]

    def evaluate(self, row: int, col: int, value: Any, grid: Grid | None = None) -> dict[str, Any]:
        """Merged style for the cell; ``{}`` when nothing matches.

        ``grid`` is only consulted by the duplicate / unique conditions.
        """
        merged: dict[str, Any] = {}
        for rule in self._rules:
            if not rule.range.contains(row, col):
                continue
            if self.matches(rule, value, row, col, grid):
                merged.update(rule.style)
        return merged

    def matches(
        self,
        rule: ConditionalFormatRule,
        value: Any,
        row: int,
        col: int,
        grid: Grid | None = None,
    ) -> bool:
        cond = rule.condition
        cell_value = "" if value is None else value
        ctype = cond.type

        if ctype in (ConditionType.GREATER_THAN, ConditionType.LESS_THAN):
            a, b = to_number(cell_value), to_number(cond.value)
            if a is None or b is None:
                return False
            return a > b if ctype is ConditionType.GREATER_THAN else a < b

        if ctype is ConditionType.EQUAL:
            return as_text(cell_value) == as_text(cond.value)
        if ctype is ConditionType.NOT_EQUAL:
            return as_text(cell_value) != as_text(cond.value)

        if ctype in (ConditionType.BETWEEN, ConditionType.NOT_BETWEEN):
            n, lo, hi = to_number(cell_value), to_number(cond.min), to_number(cond.max)
            if n is None or lo is None or hi is None:
                return False
            inside = lo <= n <= hi
            return inside if ctype is ConditionType.BETWEEN else not inside

        if ctype in (
            ConditionType.TEXT_CONTAINS,
            ConditionType.TEXT_NOT_CONTAINS,
            ConditionType.TEXT_STARTS_WITH,
            ConditionType.TEXT_ENDS_WITH,
        ):
            text = as_text(cell_value)
            needle = cond.text or ""
            if ctype is ConditionType.TEXT_CONTAINS:
                return needle in text
            if ctype is ConditionType.TEXT_NOT_CONTAINS:
                return needle not in text
            if ctype is ConditionType.TEXT_STARTS_WITH:
                return text.startswith(needle)
            return text.endswith(needle)

        if ctype is ConditionType.CUSTOM:
            try:
                return evaluate_expression(cond.formula or "", cell_value)
            except ExpressionError as e:
                report_contained_error(
                    logger,
                    self._error_buffer,
                    component="conditional-format",
                    source=rule.id,
                    error_type=RULE_EVALUATION_ERROR,
                    error=e,
                    message=f"custom condition failed for rule {rule.id}",
                )
                return False

        if ctype in (ConditionType.DUPLICATE, ConditionType.UNIQUE):
            if grid is None:
                return ctype is ConditionType.UNIQUE
            if is_blank(value) and ctype is ConditionType.DUPLICATE:
                return False  # 空セル同士は重複扱いしない
            others = _range_values_excluding(grid, rule.range, row, col)
            present = as_text(cell_value) in others
            return present if ctype is ConditionType.DUPLICATE else not present

        return False

    def to_records(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self._rules]

    @classmethod
    def from_records(
        cls,
        records: Iterable[dict[str, Any]],
        *,
        error_buffer: ErrorLogBuffer | None = None,
    ) -> ConditionalFormatEngine:
        return cls((ConditionalFormatRule.from_dict(r) for r in records), error_buffer=error_buffer)
