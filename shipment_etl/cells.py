"""
Cell Values

Tagged cell values produced by the grid adapter and carried through the
pipeline. Parsing, filtering and loading all work on ``Cell`` rather than on
whatever object the spreadsheet reader handed over.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

CellValue = Union[None, str, int, Decimal, datetime]


class CellKind(Enum):
    NULL = "null"
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATETIME = "datetime"


@dataclass(frozen=True)
class Cell:
    """A single grid value tagged with its kind."""

    kind: CellKind
    value: CellValue = None

    @classmethod
    def null(cls) -> "Cell":
        return NULL_CELL

    @classmethod
    def string(cls, value: str) -> "Cell":
        return cls(CellKind.STRING, value)

    @classmethod
    def integer(cls, value: int) -> "Cell":
        return cls(CellKind.INTEGER, value)

    @classmethod
    def decimal(cls, value: Decimal) -> "Cell":
        return cls(CellKind.DECIMAL, value)

    @classmethod
    def timestamp(cls, value: datetime) -> "Cell":
        return cls(CellKind.DATETIME, value)

    @classmethod
    def from_raw(cls, value: Any) -> "Cell":
        """
        Tag a raw value coming from a spreadsheet reader.

        Strings are trimmed and blank strings become NULL. Floats become
        DECIMAL via their shortest repr so ``0.1`` stays ``0.1``.

        Args:
            value: Raw reader value (None, str, number, date/datetime)

        Returns:
            Tagged Cell
        """
        if value is None or isinstance(value, Cell):
            return value if value is not None else NULL_CELL

        if isinstance(value, str):
            text = value.strip()
            return cls.string(text) if text else NULL_CELL

        if isinstance(value, bool):
            return cls.string(str(value))

        if isinstance(value, int):
            return cls.integer(value)

        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return NULL_CELL
            return cls.decimal(Decimal(repr(value)))

        if isinstance(value, Decimal):
            return cls.decimal(value) if value.is_finite() else NULL_CELL

        if isinstance(value, datetime):
            return cls.timestamp(value)

        if isinstance(value, date):
            return cls.timestamp(datetime(value.year, value.month, value.day))

        text = str(value).strip()
        return cls.string(text) if text else NULL_CELL

    @property
    def is_null(self) -> bool:
        return self.kind is CellKind.NULL

    @property
    def is_blank(self) -> bool:
        """NULL, or a string holding only whitespace."""
        if self.kind is CellKind.NULL:
            return True
        return self.kind is CellKind.STRING and not self.value.strip()

    def text(self) -> str:
        """Culture-invariant text form, as seen by type inference."""
        if self.kind is CellKind.NULL:
            return ""
        if self.kind is CellKind.DECIMAL:
            return _decimal_text(self.value)
        if self.kind is CellKind.DATETIME:
            return self.value.isoformat(sep=" ")
        return str(self.value)

    def to_python(self) -> CellValue:
        """Value handed to the database driver."""
        return self.value


NULL_CELL = Cell(CellKind.NULL)


def _decimal_text(value: Decimal) -> str:
    try:
        if value == value.to_integral_value():
            return format(value.to_integral_value(), "f")
    except InvalidOperation:
        pass
    return format(value.normalize(), "f")
