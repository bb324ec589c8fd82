"""Tests for tagged cells, the grid adapter and batch windows."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from shipment_etl.cells import NULL_CELL, Cell, CellKind
from shipment_etl.grid import CellGrid, batch_windows


def test_from_raw_tags_reader_values():
    assert Cell.from_raw(None) is NULL_CELL
    assert Cell.from_raw("   ") is NULL_CELL
    assert Cell.from_raw("  A100 ") == Cell.string("A100")
    assert Cell.from_raw(12) == Cell.integer(12)
    assert Cell.from_raw(0.1) == Cell.decimal(Decimal("0.1"))
    assert Cell.from_raw(float("nan")) is NULL_CELL
    assert Cell.from_raw(True) == Cell.string("True")
    assert Cell.from_raw(date(2024, 1, 5)) == Cell.timestamp(datetime(2024, 1, 5))


def test_cell_text_is_culture_invariant():
    assert Cell.decimal(Decimal("12.50")).text() == "12.5"
    assert Cell.decimal(Decimal("3.0")).text() == "3"
    assert Cell.timestamp(datetime(2024, 1, 5, 9, 30)).text() == "2024-01-05 09:30:00"
    assert NULL_CELL.text() == ""


def test_blank_string_cell_counts_as_blank():
    assert Cell(CellKind.STRING, "  ").is_blank
    assert NULL_CELL.is_blank
    assert not Cell.integer(0).is_blank


def test_grid_uses_one_origin_addressing():
    grid = CellGrid.from_rows([["機種", "滿箱台數"], ["A100", "10"]])

    assert grid.row_count == 2
    assert grid.column_count == 2
    assert grid.cell(2, 1) == Cell.string("A100")
    with pytest.raises(IndexError):
        grid.cell(0, 1)
    with pytest.raises(IndexError):
        grid.cell(3, 1)


def test_headers_name_blank_columns_and_dedupe():
    grid = CellGrid.from_rows([["機種", "", "G.W.(kgs)", "g.w.(kgs)", "G.W.(kgs)"]])

    assert grid.headers() == ["機種", "C2", "G.W.(kgs)", "g.w.(kgs)_1", "G.W.(kgs)_2"]


def test_ragged_rows_are_padded_with_null():
    grid = CellGrid.from_rows([["機種", "備註", "客戶料號"], ["A100"]])

    assert grid.column_count == 3
    assert grid.cell(2, 3) is NULL_CELL


def test_slice_rows_skips_all_null_rows():
    grid = CellGrid.from_rows(
        [
            ["機種", "滿箱台數"],
            ["A100", "10"],
            ["", "  "],
            ["B200", ""],
        ]
    )

    frame = grid.slice_rows(1, 10)

    assert list(frame.columns) == ["機種", "滿箱台數"]
    assert len(frame) == 2
    assert frame.iloc[1, 0] == Cell.string("B200")
    assert frame.iloc[1, 1] == NULL_CELL


def test_batch_windows_partition_data_rows():
    """5000 data rows with batch size 2000 give three ordered windows."""
    assert batch_windows(5001, 2000) == [(2, 2001), (2002, 4001), (4002, 5001)]


def test_batch_windows_clamp_batch_size():
    assert batch_windows(10, 100000) == [(2, 10)]
    assert batch_windows(4, 0) == [(2, 2), (3, 3), (4, 4)]


def test_batch_windows_empty_without_data_rows():
    assert batch_windows(1, 2000) == []
    assert batch_windows(0, 2000) == []
