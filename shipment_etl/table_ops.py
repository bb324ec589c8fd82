"""
Target Table Maintenance

Clears the target table, carries its identity sequence across the clear,
and drops / re-creates secondary indexes around a bulk load.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

import psycopg2
from psycopg2 import sql

from db.connection import DatabaseConnection, split_table_name, table_identifier
from shipment_etl.errors import IndexRebuildError

logger = logging.getLogger(__name__)

_CREATE_INDEX = re.compile(r"^\s*CREATE\s+(UNIQUE\s+)?INDEX\s+(?!IF\s+NOT\s+EXISTS)", re.IGNORECASE)


class TableManager:
    """
    Clears a table and preserves / restores its identity sequence.
    """

    IDENTITY_SEQUENCE_QUERY = """
        SELECT pg_get_serial_sequence(quote_ident(table_schema) || '.' || quote_ident(table_name), column_name)
        FROM information_schema.columns
        WHERE table_schema = %s
          AND table_name = %s
          AND (is_identity = 'YES' OR column_default LIKE 'nextval(%%')
        ORDER BY ordinal_position
        LIMIT 1;
    """

    def __init__(self, db=DatabaseConnection):
        self.db = db

    def identity_sequence(self, table: str) -> Optional[str]:
        """
        Name of the sequence behind the table's identity / serial column.

        Returns:
            Qualified sequence name, or None when the table has no identity
        """
        schema, name = split_table_name(table)
        rows = self.db.execute_query(self.IDENTITY_SEQUENCE_QUERY, (schema, name))
        if not rows or not rows[0][0]:
            return None
        return rows[0][0]

    def current_identity(self, table: str) -> Optional[int]:
        """
        Highest identity value handed out so far.

        Returns:
            Last issued value, or None if the sequence was never used
        """
        sequence = self.identity_sequence(table)
        if sequence is None:
            logger.info(f"Table {table} has no identity column")
            return None

        rows = self.db.execute_query("SELECT pg_sequence_last_value(%s::regclass);", (sequence,))
        if not rows or rows[0][0] is None:
            return None
        return int(rows[0][0])

    def truncate_or_delete(self, table: str, preserve_identity: bool = False) -> Optional[int]:
        """
        Remove every row from ``table``.

        TRUNCATE is tried first; if the engine refuses (for example because
        of foreign key references) rows are deleted without a statement
        timeout instead.

        Args:
            table: Table name, optionally schema-qualified
            preserve_identity: Capture the identity high-water mark first

        Returns:
            Identity value captured before the clear, or None
        """
        previous = self.current_identity(table) if preserve_identity else None
        target = table_identifier(table)

        try:
            self.db.execute_update(sql.SQL("TRUNCATE TABLE {} RESTART IDENTITY;").format(target))
            logger.info(f"Truncated {table}")
        except psycopg2.Error as e:
            logger.warning(f"TRUNCATE rejected for {table}, falling back to DELETE: {e}")
            with self.db.get_cursor() as cursor:
                cursor.execute("SET LOCAL statement_timeout = 0;")
                cursor.execute(sql.SQL("DELETE FROM {};").format(target))
                logger.info(f"Deleted {cursor.rowcount} rows from {table}")

        return previous

    def restore_identity(self, table: str, value: Optional[int]) -> None:
        """
        Reseed the identity so the next insert receives ``value + 1``.

        Args:
            table: Table name, optionally schema-qualified
            value: Value captured by truncate_or_delete; None is a no-op
        """
        if value is None:
            return

        sequence = self.identity_sequence(table)
        if sequence is None:
            logger.warning(f"Cannot restore identity on {table}: no identity column")
            return

        self.db.execute_update("SELECT setval(%s::regclass, %s, true);", (sequence, value))
        logger.info(f"Identity of {table} reseeded to {value}")


@dataclass(frozen=True)
class IndexDescriptor:
    """A secondary index and the statement that re-creates it."""

    name: str
    definition: str

    def create_statement(self) -> str:
        return _CREATE_INDEX.sub(
            lambda m: f"CREATE {m.group(1) or ''}INDEX IF NOT EXISTS ",
            self.definition,
            count=1,
        )


class IndexManager:
    """
    Drops secondary indexes before a load and re-creates them afterwards.

    PostgreSQL cannot disable an index in place, so "disable" drops the
    index and "rebuild" replays its captured definition. Indexes backing a
    primary key or another constraint are never touched.
    """

    INDEX_QUERY = """
        SELECT i.relname, pg_get_indexdef(ix.indexrelid)
        FROM pg_index ix
        JOIN pg_class i ON i.oid = ix.indexrelid
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        WHERE n.nspname = %s
          AND t.relname = %s
          AND NOT ix.indisprimary
          AND NOT EXISTS (SELECT 1 FROM pg_constraint c WHERE c.conindid = ix.indexrelid)
        ORDER BY i.relname;
    """

    def __init__(self, db=DatabaseConnection):
        self.db = db

    def list_non_primary(self, table: str) -> List[IndexDescriptor]:
        """
        Secondary indexes of ``table``.

        Returns:
            IndexDescriptor list ordered by name
        """
        schema, name = split_table_name(table)
        rows = self.db.execute_query(self.INDEX_QUERY, (schema, name))
        return [IndexDescriptor(index_name, definition) for index_name, definition in rows]

    def disable(self, table: str, indexes: Sequence[IndexDescriptor]) -> None:
        """Drop every index in one statement batch."""
        if not indexes:
            return

        schema, _ = split_table_name(table)
        statement = sql.SQL(" ").join(
            sql.SQL("DROP INDEX IF EXISTS {};").format(sql.Identifier(schema, index.name))
            for index in indexes
        )
        self.db.execute_update(statement)
        logger.info(f"Disabled {len(indexes)} indexes on {table}")

    def rebuild(self, table: str, indexes: Sequence[IndexDescriptor]) -> None:
        """
        Re-create every index in one statement batch.

        Raises:
            IndexRebuildError: If any index could not be created
        """
        if not indexes:
            return

        statement = "SET LOCAL statement_timeout = 0; " + " ".join(
            index.create_statement().rstrip(";") + ";" for index in indexes
        )

        try:
            self.db.execute_update(statement)
        except psycopg2.Error as e:
            names = [index.name for index in indexes]
            logger.error(f"Index rebuild failed on {table}; indexes left dropped: {', '.join(names)}")
            raise IndexRebuildError(table, names, e) from e

        logger.info(f"Rebuilt {len(indexes)} indexes on {table}")
