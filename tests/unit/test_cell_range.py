from __future__ import annotations
import pytest

from sheet_editor.models.cell_range import (
    CellRange,
    cell_address,
    cell_key,
    column_index,
    column_letter,
    parse_cell_address,
    parse_cell_key,
)


@pytest.mark.parametrize("col,letters", [(0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA")])
def test_column_letter_and_back(col: int, letters: str):
    assert column_letter(col) == letters
    assert column_index(letters) == col


def test_column_letter_rejects_negative():
    with pytest.raises(ValueError):
        column_letter(-1)


def test_cell_key_and_address():
    assert cell_key(3, 2) == "3,2"
    assert parse_cell_key("3,2") == (3, 2)
    assert cell_address(0, 0) == "A1"
    assert parse_cell_address("b3") == (2, 1)
    with pytest.raises(ValueError):
        parse_cell_key("3")
    with pytest.raises(ValueError):
        parse_cell_address("3B")


def test_range_of_orders_corners():
    rng = CellRange.of(4, 3, 1, 0)
    assert (rng.start_row, rng.start_col, rng.end_row, rng.end_col) == (1, 0, 4, 3)
    with pytest.raises(ValueError):
        CellRange(4, 3, 1, 0)
    with pytest.raises(ValueError):
        CellRange(-1, 0, 0, 0)


def test_range_keys():
    assert CellRange.single(2, 5).key == "2,5"
    assert CellRange(0, 0, 2, 1).key == "0,0:2,1"
    assert CellRange.from_key("0,0:2,1") == CellRange(0, 0, 2, 1)
    assert CellRange.from_key("2,5") == CellRange.single(2, 5)
    assert CellRange(0, 0, 2, 1).address == "A1:B3"


def test_range_dict_round_trip_and_coerce():
    rng = CellRange(1, 1, 3, 2)
    data = rng.to_dict()
    assert data == {"startRow": 1, "startCol": 1, "endRow": 3, "endCol": 2}
    assert CellRange.coerce(data) == rng
    assert CellRange.coerce("1,1:3,2") == rng
    assert CellRange.coerce(rng) is rng
    with pytest.raises(TypeError):
        CellRange.coerce(42)  # type: ignore[arg-type]


def test_contains_overlaps_cells():
    rng = CellRange(1, 1, 2, 2)
    assert rng.contains(1, 2)
    assert not rng.contains(0, 1)
    assert rng.overlaps(CellRange(2, 2, 5, 5))
    assert not rng.overlaps(CellRange(3, 0, 4, 4))
    assert list(rng.cells()) == [(1, 1), (1, 2), (2, 1), (2, 2)]
