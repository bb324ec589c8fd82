"""
Schema Validation

Reconciles a batch's column mapping against the live target table.
Columns whose destination does not exist are dropped from the batch;
only columns that carry a real header produce a warning.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from db.connection import DatabaseConnection, split_table_name
from shipment_etl.mapping import ColumnMapping, resolve_destination
from shipment_etl.normalizer import is_unnamed, normalize_header

logger = logging.getLogger(__name__)


def compact_name(name: str) -> str:
    """Lowercased letters and digits only, used for suggestions."""
    return "".join(ch.lower() for ch in name if ch.isalnum())


class TargetSchema:
    """
    Column names of the destination table, compared case-insensitively.
    """

    COLUMNS_QUERY = """
        SELECT column_name
        FROM information_schema.columns
        WHERE table_schema = %s AND table_name = %s
        ORDER BY ordinal_position;
    """

    def __init__(self, table: str, columns: Iterable[str]):
        self.table = table
        self.columns: List[str] = list(columns)
        self._folded = {column.casefold(): column for column in self.columns}
        self._compact: Dict[str, str] = {}
        for column in self.columns:
            self._compact.setdefault(compact_name(column), column)

    @classmethod
    def fetch(cls, table: str, db=DatabaseConnection) -> "TargetSchema":
        """
        Read the current column set of ``table``.

        Args:
            table: Table name, optionally schema-qualified
            db: Connection provider

        Returns:
            TargetSchema for the table
        """
        schema, name = split_table_name(table)
        rows = db.execute_query(cls.COLUMNS_QUERY, (schema, name))
        columns = [row[0] for row in rows]
        logger.info(f"Target table {table} has {len(columns)} columns")
        return cls(table, columns)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._folded

    def __len__(self) -> int:
        return len(self.columns)

    def actual_name(self, name: str) -> Optional[str]:
        return self._folded.get(name.casefold())

    def suggest(self, name: str) -> Optional[str]:
        """Closest existing column: exact compact match, then containment."""
        wanted = compact_name(name)
        if not wanted:
            return None
        if wanted in self._compact:
            return self._compact[wanted]
        for compact, column in self._compact.items():
            if compact and (wanted in compact or compact in wanted):
                return column
        return None


@dataclass
class UnresolvedColumn:
    source: str
    destination: str
    suggestion: Optional[str]
    message: str


@dataclass
class SchemaValidationResult:
    mapping: ColumnMapping
    dropped_unnamed: List[str] = field(default_factory=list)
    unresolved: List[UnresolvedColumn] = field(default_factory=list)
    superseded: List[str] = field(default_factory=list)

    @property
    def dropped_sources(self) -> List[str]:
        return (
            self.dropped_unnamed
            + [column.source for column in self.unresolved]
            + self.superseded
        )


class SchemaValidator:
    """
    Validates resolved destination columns against a TargetSchema.
    """

    def __init__(self, schema: TargetSchema):
        self.schema = schema

    def validate(self, sources: Sequence[str], mapping: ColumnMapping) -> SchemaValidationResult:
        """
        Split the batch columns into accepted and dropped.

        Args:
            sources: Batch column labels in column order
            mapping: Source -> destination mapping for the batch

        Returns:
            SchemaValidationResult whose mapping holds only loadable columns
        """
        result = SchemaValidationResult(mapping=ColumnMapping())

        for position, source in enumerate(sources, start=1):
            destination = resolve_destination(source, mapping)

            if destination in self.schema:
                result.mapping[source] = self.schema.actual_name(destination)
                continue

            if is_unnamed(source, normalize_header(source), position) or not compact_name(destination):
                result.dropped_unnamed.append(source)
                continue

            unresolved = self._unresolved(source, destination)
            logger.warning(unresolved.message)
            result.unresolved.append(unresolved)

        self._keep_last_per_destination(result)

        if result.dropped_unnamed:
            logger.debug(f"Dropped unnamed columns: {', '.join(result.dropped_unnamed)}")

        return result

    def _unresolved(self, source: str, destination: str) -> UnresolvedColumn:
        suggestion = self.schema.suggest(destination)
        existing = ", ".join(self.schema.columns) if self.schema.columns else "(no columns found)"
        message = (
            f"Removed source column '{source}': destination column '{destination}' "
            f"not found in table {self.schema.table}. Existing columns: {existing}."
        )
        if suggestion:
            message += f" Did you mean: '{suggestion}'?"
        return UnresolvedColumn(source, destination, suggestion, message)

    @staticmethod
    def _keep_last_per_destination(result: SchemaValidationResult) -> None:
        """A destination loads from its right-most source column only."""
        owners: Dict[str, str] = {}
        for source, destination in result.mapping.items():
            owners[destination.casefold()] = source

        for source, destination in list(result.mapping.items()):
            if owners[destination.casefold()] != source:
                del result.mapping[source]
                result.superseded.append(source)
                logger.warning(
                    f"Source column '{source}' superseded by "
                    f"'{owners[destination.casefold()]}' for destination '{destination}'"
                )
