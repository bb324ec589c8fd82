"""
Batch Loading into PostgreSQL

Writes prepared batches into the target table, one transaction per batch.
A failing batch is rolled back and reported; batches committed earlier stay.
"""

import logging
from typing import List

from psycopg2 import sql
from psycopg2.extras import execute_values

from db.connection import DatabaseConnection, table_identifier
from shipment_etl.errors import BatchLoadError
from shipment_etl.transform import PreparedBatch

logger = logging.getLogger(__name__)


class BatchLoader:
    """
    Bulk-inserts prepared batches with their resolved column mapping.

    Each batch takes an exclusive table lock inside its own transaction so
    readers never observe a half-written batch.
    """

    def __init__(self, table: str, batch_size: int = 2000, db=DatabaseConnection):
        """
        Args:
            table: Target table, optionally schema-qualified
            batch_size: Configured rows per batch, used as insert page size
            db: Connection provider
        """
        self.table = table
        self.batch_size = batch_size
        self.db = db

    def build_insert(self, destinations: List[str]) -> sql.Composed:
        return sql.SQL("INSERT INTO {} ({}) VALUES %s").format(
            table_identifier(self.table),
            sql.SQL(", ").join(sql.Identifier(column) for column in destinations),
        )

    def load_batch(self, batch: PreparedBatch) -> int:
        """
        Write one batch in a single transaction.

        Args:
            batch: Transformed batch with at least one row

        Returns:
            Number of rows written

        Raises:
            BatchLoadError: If the write fails (the batch is rolled back)
        """
        if batch.row_count == 0:
            logger.debug(f"Rows {batch.window[0]}..{batch.window[1]}: nothing to load")
            return 0

        destinations = batch.destination_columns
        records = [
            tuple(cell.to_python() for cell in row)
            for row in batch.frame.itertuples(index=False, name=None)
        ]
        page_size = max(1, min(self.batch_size, len(records)))

        logger.info(
            f"Bulk inserting rows {batch.window[0]}..{batch.window[1]} "
            f"count={len(records)} into {self.table}"
        )

        try:
            with self.db.get_cursor() as cursor:
                cursor.execute(
                    sql.SQL("LOCK TABLE {} IN EXCLUSIVE MODE;").format(table_identifier(self.table))
                )
                execute_values(cursor, self.build_insert(destinations), records, page_size=page_size)
        except Exception as e:
            logger.error(f"Failed to load rows {batch.window[0]}..{batch.window[1]}: {e}")
            raise BatchLoadError(batch.window, e) from e

        logger.debug(f"Batch committed: {len(records)} rows")
        return len(records)
