"""
Column Type Inference

Promotes untyped batch columns to integer, decimal or datetime when every
sampled value parses as that type.
"""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Callable, Dict, MutableMapping, Optional

import pandas as pd

from shipment_etl.cells import NULL_CELL, Cell

logger = logging.getLogger(__name__)

SAMPLE_LIMIT = 200

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

_INTEGER = re.compile(r"^[+-]?[0-9]{1,10}$")
_DECIMAL = re.compile(r"^[+-]?(?:[0-9][0-9,]*)?(?:\.[0-9]*)?$")
_TIME = r"(?:[ T][0-9]{1,2}:[0-9]{2}(?::[0-9]{2}(?:\.[0-9]+)?)?(?:\s?[AaPp][Mm])?)?"
_DATE_SHAPES = (
    re.compile(r"^[0-9]{4}[-/.][0-9]{1,2}[-/.][0-9]{1,2}" + _TIME + "$"),
    re.compile(r"^[0-9]{1,2}[-/.][0-9]{1,2}[-/.][0-9]{4}" + _TIME + "$"),
    re.compile(r"^[A-Za-z]{3,9}\.? [0-9]{1,2},? [0-9]{4}" + _TIME + "$"),
    re.compile(r"^[0-9]{1,2} [A-Za-z]{3,9}\.? [0-9]{4}" + _TIME + "$"),
)


class InferredColumnType(Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    UNCHANGED = "unchanged"


TYPED = (InferredColumnType.INTEGER, InferredColumnType.DECIMAL, InferredColumnType.DATETIME)


def parse_integer(text: str) -> Optional[int]:
    """Base-10 32-bit integer without group separators."""
    text = text.strip()
    if not _INTEGER.match(text):
        return None
    value = int(text)
    if value < INT32_MIN or value > INT32_MAX:
        return None
    return value


def parse_decimal(text: str) -> Optional[Decimal]:
    """Plain decimal number; ``,`` group separators allowed, no currency or exponent."""
    text = text.strip()
    if not _DECIMAL.match(text) or not any(ch.isdigit() for ch in text):
        return None
    try:
        return Decimal(text.replace(",", ""))
    except InvalidOperation:
        return None


def parse_datetime(text: str) -> Optional[datetime]:
    """Invariant date or date-time, month before day when ambiguous."""
    text = text.strip()
    if not any(shape.match(text) for shape in _DATE_SHAPES):
        return None
    try:
        parsed = pd.to_datetime(text, dayfirst=False)
    except (ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


PARSERS: Dict[InferredColumnType, Callable[[str], object]] = {
    InferredColumnType.INTEGER: parse_integer,
    InferredColumnType.DECIMAL: parse_decimal,
    InferredColumnType.DATETIME: parse_datetime,
}

CELL_FACTORIES: Dict[InferredColumnType, Callable[[object], Cell]] = {
    InferredColumnType.INTEGER: Cell.integer,
    InferredColumnType.DECIMAL: Cell.decimal,
    InferredColumnType.DATETIME: Cell.timestamp,
}


class TypeInferenceEngine:
    """
    Samples each untyped column and converts it to the narrowest type that
    fits every sample: Integer, then Decimal, then DateTime.
    """

    def __init__(self, sample_limit: int = SAMPLE_LIMIT):
        self.sample_limit = sample_limit

    def infer(self, column: pd.Series) -> InferredColumnType:
        """
        Decide the target type for one column.

        Args:
            column: Series of Cell objects

        Returns:
            Selected type, or UNCHANGED when no sample was taken or no type fits
        """
        all_int = all_decimal = all_date = True
        samples = 0

        for cell in column:
            if cell.is_blank:
                continue
            text = cell.text().strip()

            samples += 1
            if all_int and parse_integer(text) is None:
                all_int = False
            if all_decimal and parse_decimal(text) is None:
                all_decimal = False
            if all_date and parse_datetime(text) is None:
                all_date = False

            if not (all_int or all_decimal or all_date):
                break
            if samples >= self.sample_limit:
                break

        if samples == 0:
            return InferredColumnType.UNCHANGED
        if all_int:
            return InferredColumnType.INTEGER
        if all_decimal:
            return InferredColumnType.DECIMAL
        if all_date:
            return InferredColumnType.DATETIME
        return InferredColumnType.UNCHANGED

    @staticmethod
    def convert(column: pd.Series, target: InferredColumnType) -> list:
        """Re-parse every cell as ``target``; cells that fail become NULL."""
        parse = PARSERS[target]
        factory = CELL_FACTORIES[target]

        converted = []
        for cell in column:
            if cell.is_blank:
                converted.append(NULL_CELL)
                continue
            value = parse(cell.text())
            converted.append(factory(value) if value is not None else NULL_CELL)
        return converted

    def apply(
        self,
        frame: pd.DataFrame,
        column_types: MutableMapping[str, InferredColumnType],
    ) -> Dict[str, InferredColumnType]:
        """
        Infer and convert every column of a batch that is not typed yet.

        Columns keep their position. ``column_types`` records what each
        column became so it is never inferred twice in the same batch.

        Args:
            frame: Batch DataFrame of Cell objects (modified in place)
            column_types: Per-batch record of typed columns

        Returns:
            Mapping of converted column -> new type
        """
        converted: Dict[str, InferredColumnType] = {}

        for name in list(frame.columns):
            if column_types.get(name) in TYPED:
                continue

            target = self.infer(frame[name])
            if target is InferredColumnType.UNCHANGED:
                continue

            frame[name] = pd.Series(self.convert(frame[name], target), index=frame.index, dtype=object)
            column_types[name] = target
            converted[name] = target

        if converted:
            logger.debug(
                "Converted columns: "
                + ", ".join(f"{name}={kind.value}" for name, kind in converted.items())
            )

        return converted
