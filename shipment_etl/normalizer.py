"""
Column Name Normalization

Derives destination column names from raw shipment sheet headers.

Headers pass through an ordered table of pure string rules; the resulting
names are then adjusted at the column-set level for the gross/net weight
pairs and for the unlabeled remarks column next to the customer part number.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from shipment_etl.grid import placeholder_header
from shipment_etl.mapping import ColumnMapping

logger = logging.getLogger(__name__)

MODEL = "機種"
CUSTOMER_PART_NUMBER = "客戶料號"
REMARKS = "備註"
GROSS_WEIGHT = "G.W.(kgs)"
NET_WEIGHT = "N.W.(kgs)"
FULL_CARTON_SUFFIX = "滿"
TAIL_CARTON_SUFFIX = "尾"
LAST_MODIFIED = "異動時間"


class CanonicalColumnSet:
    """
    Immutable, case-insensitive set of business column names.
    """

    def __init__(self, names: Iterable[str]):
        self._names: Tuple[str, ...] = tuple(names)
        self._folded: FrozenSet[str] = frozenset(name.casefold() for name in self._names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._folded

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)


SHIPMENT_COLUMNS = CanonicalColumnSet(
    [
        MODEL,
        "滿箱台數",
        GROSS_WEIGHT,
        NET_WEIGHT,
        "尾箱台數",
        "長寬高",
        "電池標籤",
        "客戶工單",
        CUSTOMER_PART_NUMBER,
        REMARKS,
    ]
)

_WHITESPACE = re.compile(r"\s+")
_DUPLICATE_SUFFIX = re.compile(r"_\d+$")
_WEIGHT_PREFIX = re.compile(r"^(G\.W\.|N\.W\.)", re.IGNORECASE)
_PARENTHETICAL_SUFFIX = re.compile(r"\s*[\(（].*?[\)）]\s*$")

# Placeholder names some readers give header-less columns (Column12).
AUTO_NAME_PATTERNS = (re.compile(r"^Column\d+$", re.IGNORECASE),)

HeaderRule = Callable[[str, CanonicalColumnSet], str]


def first_line(header: str, canonical: CanonicalColumnSet) -> str:
    return header.replace("\r", "\n").split("\n", 1)[0]


def collapse_whitespace(header: str, canonical: CanonicalColumnSet) -> str:
    return _WHITESPACE.sub(" ", header).strip()


def strip_duplicate_suffix(header: str, canonical: CanonicalColumnSet) -> str:
    return _DUPLICATE_SUFFIX.sub("", header)


def strip_parenthetical(header: str, canonical: CanonicalColumnSet) -> str:
    # G.W.(kgs) / N.W.(kgs) carry their unit in the name itself
    if _WEIGHT_PREFIX.match(header):
        return header
    return _PARENTHETICAL_SUFFIX.sub("", header).strip()


def canonical_first_token(header: str, canonical: CanonicalColumnSet) -> str:
    token = header.split(" ", 1)[0]
    return token if token in canonical else header


HEADER_RULES: Tuple[HeaderRule, ...] = (
    first_line,
    collapse_whitespace,
    strip_duplicate_suffix,
    strip_parenthetical,
    canonical_first_token,
)


def normalize_header(
    header: str,
    canonical: CanonicalColumnSet = SHIPMENT_COLUMNS,
    rules: Sequence[HeaderRule] = HEADER_RULES,
) -> str:
    """
    Apply the header rules left to right.

    Args:
        header: Raw header text
        canonical: Recognized business column names
        rules: Ordered rule table

    Returns:
        Normalized column name (may be empty)
    """
    name = header or ""
    for rule in rules:
        name = rule(name, canonical)
    return name


def looks_auto_generated(name: str) -> bool:
    return any(pattern.match(name) for pattern in AUTO_NAME_PATTERNS)


def is_unnamed(raw_header: str, normalized: str, position: Optional[int] = None) -> bool:
    """
    A column is unnamed when it has no usable header of its own.

    Args:
        raw_header: Header as it appears in the batch
        normalized: Result of normalize_header
        position: 1-origin column position; enables the grid placeholder check

    Returns:
        True for blank headers, reader placeholders and the grid's own
        ``C<position>`` label
    """
    if not raw_header or not raw_header.strip():
        return True
    if not normalized or not normalized.strip():
        return True
    if position is not None and raw_header.strip().casefold() == placeholder_header(position).casefold():
        return True
    return looks_auto_generated(normalized)


@dataclass(frozen=True)
class NormalizedColumn:
    source: str
    normalized: str
    unnamed: bool


class ColumnNormalizer:
    """
    Builds the per-batch source -> destination mapping.

    Counters for the weight duplicates live only for one ``build_mapping``
    call, so the same header list always yields the same mapping.
    """

    def __init__(self, canonical: CanonicalColumnSet = SHIPMENT_COLUMNS):
        self.canonical = canonical

    def normalize(self, headers: Sequence[str]) -> List[NormalizedColumn]:
        columns = []
        for position, header in enumerate(headers, start=1):
            normalized = normalize_header(header, self.canonical)
            columns.append(NormalizedColumn(header, normalized, is_unnamed(header, normalized, position)))
        return columns

    def build_mapping(self, headers: Sequence[str]) -> ColumnMapping:
        """
        Derive the destination name of every column in a batch.

        Args:
            headers: Batch column labels in column order

        Returns:
            ColumnMapping keyed by the batch column labels
        """
        columns = self.normalize(headers)
        mapping = ColumnMapping()
        weight_counts = {GROSS_WEIGHT.casefold(): 0, NET_WEIGHT.casefold(): 0}

        for column in columns:
            folded = column.normalized.casefold()
            if folded in weight_counts:
                weight_counts[folded] += 1
                base = GROSS_WEIGHT if folded == GROSS_WEIGHT.casefold() else NET_WEIGHT
                suffix = FULL_CARTON_SUFFIX if weight_counts[folded] == 1 else TAIL_CARTON_SUFFIX
                mapping[column.source] = base + suffix
                continue

            if column.source not in mapping:
                mapping[column.source] = column.normalized

        for current, following in zip(columns, columns[1:]):
            if current.normalized.casefold() == CUSTOMER_PART_NUMBER.casefold() and following.unnamed:
                mapping[following.source] = REMARKS

        logger.debug(f"Column mapping: {mapping.describe()}")
        return mapping
