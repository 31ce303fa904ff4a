from __future__ import annotations
import json
import pytest

from sheet_editor.logging.error_log import ErrorLogBuffer
from sheet_editor.models.cell_range import CellRange
from sheet_editor.models.error_record import RULE_EVALUATION_ERROR
from sheet_editor.models.rules import Condition, ConditionType
from sheet_editor.services.conditional_format import ConditionalFormatEngine

RED = {"backgroundColor": "#ff0000"}
BOLD = {"fontWeight": "bold"}


def _cond(ctype: str, **kw) -> Condition:
    return Condition(type=ConditionType(ctype), **kw)


@pytest.mark.parametrize(
    "condition,value,expected",
    [
        (_cond("greaterThan", value=10), 11, True),
        (_cond("greaterThan", value=10), "11", True),
        (_cond("greaterThan", value=10), 10, False),
        (_cond("greaterThan", value=10), "abc", False),
        (_cond("lessThan", value=0), -1, True),
        (_cond("lessThan", value=0), None, False),
        (_cond("equal", value=5), "5", True),
        (_cond("equal", value=5), 5.0, True),
        (_cond("notEqual", value="a"), "b", True),
        (_cond("between", min=1, max=3), 3, True),
        (_cond("between", min=1, max=3), 4, False),
        (_cond("notBetween", min=1, max=3), 4, True),
        (_cond("notBetween", min=1, max=3), "x", False),
        (_cond("textContains", text="ell"), "hello", True),
        (_cond("textNotContains", text="ell"), "hello", False),
        (_cond("textStartsWith", text="he"), "hello", True),
        (_cond("textEndsWith", text="lo"), "hello", True),
        (_cond("textContains", text="1"), 21, True),
        (_cond("custom", formula="value > 2 and value < 5"), 3, True),
        (_cond("custom", formula="value > 2 and value < 5"), 5, False),
    ],
)
def test_condition_variants(condition: Condition, value, expected: bool):
    engine = ConditionalFormatEngine()
    engine.add_rule(CellRange(0, 0, 9, 9), condition, RED)
    assert (engine.evaluate(1, 1, value) == RED) is expected


def test_cells_outside_range_get_nothing():
    engine = ConditionalFormatEngine()
    engine.add_rule(CellRange(0, 0, 1, 1), _cond("greaterThan", value=0), RED)
    assert engine.evaluate(5, 5, 100) == {}


def test_later_rule_wins_and_styles_merge():
    engine = ConditionalFormatEngine()
    rng = CellRange(0, 0, 4, 4)
    engine.add_rule(rng, _cond("greaterThan", value=0), {"backgroundColor": "#00ff00", **BOLD})
    engine.add_rule(rng, _cond("greaterThan", value=5), RED)
    assert engine.evaluate(0, 0, 10) == {"backgroundColor": "#ff0000", "fontWeight": "bold"}
    assert engine.evaluate(0, 0, 3) == {"backgroundColor": "#00ff00", "fontWeight": "bold"}


def test_evaluation_is_deterministic():
    engine = ConditionalFormatEngine()
    rng = CellRange(0, 0, 4, 4)
    engine.add_rule(rng, _cond("greaterThan", value=0), {"color": "blue"})
    engine.add_rule(rng, _cond("lessThan", value=100), {"color": "green"})
    first = engine.evaluate(2, 2, 50)
    for _ in range(5):
        assert engine.evaluate(2, 2, 50) == first
    assert first == {"color": "green"}


def test_duplicate_and_unique_use_grid():
    grid = [["a"], ["b"], ["a"], [""], [""]]
    rng = CellRange(0, 0, 4, 0)
    engine = ConditionalFormatEngine()
    engine.add_rule(rng, _cond("duplicate"), RED)
    assert engine.evaluate(0, 0, "a", grid) == RED
    assert engine.evaluate(1, 0, "b", grid) == {}
    # 空セルは重複扱いしない
    assert engine.evaluate(3, 0, "", grid) == {}

    uniq = ConditionalFormatEngine()
    uniq.add_rule(rng, _cond("unique"), BOLD)
    assert uniq.evaluate(1, 0, "b", grid) == BOLD
    assert uniq.evaluate(0, 0, "a", grid) == {}


def test_duplicate_without_grid():
    engine = ConditionalFormatEngine()
    rng = CellRange(0, 0, 4, 0)
    dup = engine.add_rule(rng, _cond("duplicate"), RED)
    uniq = engine.add_rule(rng, _cond("unique"), BOLD)
    rules = {r.id: r for r in engine.rules}
    assert engine.matches(rules[dup], "a", 0, 0) is False
    assert engine.matches(rules[uniq], "a", 0, 0) is True


def test_custom_expression_failure_is_contained(error_buffer: ErrorLogBuffer):
    engine = ConditionalFormatEngine(error_buffer=error_buffer)
    rule_id = engine.add_rule(CellRange(0, 0, 1, 1), _cond("custom", formula="value >"), RED)
    assert engine.evaluate(0, 0, 5) == {}
    records = error_buffer.records
    assert len(records) == 1
    assert records[0].error_type == RULE_EVALUATION_ERROR
    assert records[0].source == rule_id


def test_deeply_nested_custom_formula_is_contained(error_buffer: ErrorLogBuffer):
    engine = ConditionalFormatEngine(error_buffer=error_buffer)
    formula = "(" * 400 + "value > 1" + ")" * 400
    engine.add_rule(CellRange(0, 0, 1, 1), _cond("custom", formula=formula), RED)
    engine.add_rule(CellRange(0, 0, 1, 1), _cond("greaterThan", value=1), BOLD)
    assert engine.evaluate(0, 0, 5) == BOLD
    assert [r.error_type for r in error_buffer.records] == [RULE_EVALUATION_ERROR]


def test_huge_numbers_do_not_break_rules():
    engine = ConditionalFormatEngine()
    engine.add_rule(CellRange(0, 0, 1, 1), _cond("custom", formula="value > " + "9" * 400), RED)
    engine.add_rule(CellRange(0, 0, 1, 1), _cond("greaterThan", value=10), BOLD)
    assert engine.evaluate(0, 0, 10**400) == BOLD
    assert engine.evaluate(0, 0, 5) == {}


def test_update_remove_clear():
    engine = ConditionalFormatEngine()
    rng = CellRange(0, 0, 1, 1)
    a = engine.add_rule(rng, _cond("greaterThan", value=0), RED)
    b = engine.add_rule(rng, _cond("greaterThan", value=0), BOLD)
    assert a.startswith("rule-") and a != b

    assert engine.update_rule(a, style={"color": "red"})
    assert [r.id for r in engine.rules] == [a, b]  # 順序は維持
    assert engine.evaluate(0, 0, 1) == {"color": "red", "fontWeight": "bold"}
    assert not engine.update_rule("missing", style={})

    assert engine.remove_rule(a)
    assert not engine.remove_rule(a)
    assert len(engine) == 1
    assert engine.rules_for_cell(0, 0)[0].id == b
    assert engine.clear_all_rules()
    assert not engine.clear_all_rules()


def test_records_round_trip_is_json_safe():
    engine = ConditionalFormatEngine()
    engine.add_rule(CellRange(0, 0, 2, 0), _cond("between", min=1, max=5), RED, rule_id="rule-1")
    records = engine.to_records()
    json.dumps(records)
    assert records[0]["range"] == {"startRow": 0, "startCol": 0, "endRow": 2, "endCol": 0}
    assert records[0]["condition"] == {"type": "between", "min": 1, "max": 5}

    restored = ConditionalFormatEngine.from_records(records)
    assert restored.to_records() == records
    assert restored.evaluate(1, 0, 3) == RED
