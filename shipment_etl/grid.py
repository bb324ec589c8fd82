"""
Cell Grid Adapter

Shapes the dense grid returned by a spreadsheet reader into batch-sized
pandas DataFrames of tagged cells.

The grid uses 1-origin addressing: row 1 is the header row, data starts at
row 2, and row 0 / column 0 are never used.
"""

import logging
from typing import Any, Iterable, List, Sequence, Tuple

import pandas as pd

from shipment_etl.cells import NULL_CELL, Cell

logger = logging.getLogger(__name__)

BatchWindow = Tuple[int, int]

HEADER_ROW = 1
DATA_START_ROW = 2


def placeholder_header(column: int) -> str:
    """Label given to a column whose header cell is blank."""
    return f"C{column}"


class CellGrid:
    """
    Dense, bounded grid of tagged cells with 1-origin addressing.
    """

    def __init__(self, cells: List[List[Cell]], row_count: int, column_count: int):
        """
        Args:
            cells: (row_count + 1) x (column_count + 1) matrix; index 0 unused
            row_count: Declared row extent (header included)
            column_count: Declared column extent
        """
        self._cells = cells
        self.row_count = row_count
        self.column_count = column_count

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[Any]]) -> "CellGrid":
        """
        Build a grid from 0-origin row lists such as a reader's value dump.

        Ragged rows are padded with NULL cells up to the widest row.

        Args:
            rows: Iterable of row sequences, header row first

        Returns:
            CellGrid with row 1 holding the header
        """
        materialized = [list(row) for row in rows]
        column_count = max((len(row) for row in materialized), default=0)

        cells: List[List[Cell]] = [[NULL_CELL] * (column_count + 1)]
        for row in materialized:
            padded = row + [None] * (column_count - len(row))
            cells.append([NULL_CELL] + [Cell.from_raw(value) for value in padded])

        return cls(cells, row_count=len(materialized), column_count=column_count)

    def cell(self, row: int, column: int) -> Cell:
        """Return the cell at a 1-origin (row, column) position."""
        if not (1 <= row <= self.row_count and 1 <= column <= self.column_count):
            raise IndexError(f"Cell ({row}, {column}) outside grid {self.row_count}x{self.column_count}")
        return self._cells[row][column]

    def headers(self) -> List[str]:
        """
        Column labels derived from the header row.

        Blank headers get the placeholder ``C<column>``; repeated labels
        (case-insensitive) get ``_1``, ``_2``... appended.

        Returns:
            Unique column labels in column order
        """
        labels: List[str] = []
        seen = set()

        for column in range(1, self.column_count + 1):
            header = self.cell(HEADER_ROW, column).text().strip() if self.row_count else ""
            if not header:
                header = placeholder_header(column)

            label = header
            dup = 1
            while label.casefold() in seen:
                label = f"{header}_{dup}"
                dup += 1

            seen.add(label.casefold())
            labels.append(label)

        return labels

    def slice_rows(self, start_row: int, end_row: int) -> pd.DataFrame:
        """
        Materialize a row window as a DataFrame of cells.

        Rows whose cells are all NULL are skipped.

        Args:
            start_row: First grid row (inclusive, clamped to the first data row)
            end_row: Last grid row (inclusive, clamped to the grid extent)

        Returns:
            DataFrame with one object column per grid column
        """
        columns = self.headers()
        start = max(start_row, DATA_START_ROW)
        end = min(end_row, self.row_count)

        records = []
        for row in range(start, end + 1):
            values = self._cells[row][1:]
            if all(cell.is_null for cell in values):
                continue
            records.append(values)

        frame = pd.DataFrame(records, columns=columns, dtype=object)
        logger.debug(f"Sliced rows {start}..{end}: {len(frame)} non-empty rows")
        return frame


def batch_windows(
    row_count: int,
    batch_size: int,
    data_start: int = DATA_START_ROW,
) -> List[BatchWindow]:
    """
    Partition the data rows into ordered, non-overlapping windows.

    Args:
        row_count: Last grid row holding data
        batch_size: Requested rows per batch (clamped to 1..available rows)
        data_start: First data row

    Returns:
        List of inclusive (start_row, end_row) windows in ascending order
    """
    available = row_count - data_start + 1
    if available <= 0:
        return []

    size = max(1, min(batch_size, available))

    windows = []
    current = data_start
    while current <= row_count:
        end = min(current + size - 1, row_count)
        windows.append((current, end))
        current = end + 1

    return windows
