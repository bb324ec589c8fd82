"""
Import Run Metrics

Counters collected while a run progresses, plus derived rates for the
end-of-run summary.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ImportMetrics:
    """Metrics for a single import run."""

    table: str
    grid_rows: int = 0
    grid_columns: int = 0
    batches_total: int = 0
    batches_loaded: int = 0
    rows_read: int = 0
    rows_filtered: int = 0
    rows_loaded: int = 0
    dropped_columns: List[str] = field(default_factory=list)
    indexes_disabled: int = 0
    previous_identity: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def record_batch(self, rows_read: int, rows_filtered: int, rows_loaded: int, dropped_columns) -> None:
        self.rows_read += rows_read
        self.rows_filtered += rows_filtered
        self.rows_loaded += rows_loaded
        if rows_loaded:
            self.batches_loaded += 1
        for column in dropped_columns:
            if column not in self.dropped_columns:
                self.dropped_columns.append(column)

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def filter_rate(self) -> float:
        """Share of read rows dropped by the shipment filter, as percentage."""
        if self.rows_read == 0:
            return 0.0
        return (self.rows_filtered / self.rows_read) * 100

    @property
    def throughput(self) -> float:
        """Loaded rows per second."""
        if self.duration_seconds == 0:
            return 0.0
        return self.rows_loaded / self.duration_seconds

    def log_summary(self) -> None:
        """Log the run summary."""
        logger.info(f"Duration: {self.duration_seconds:.2f} seconds")
        logger.info(f"Grid extent: {self.grid_rows} rows x {self.grid_columns} columns")
        logger.info(f"Batches loaded: {self.batches_loaded}/{self.batches_total}")
        logger.info(f"Rows read: {self.rows_read}")
        logger.info(f"Rows filtered (no model): {self.rows_filtered} ({self.filter_rate:.2f}%)")
        logger.info(f"Rows loaded into {self.table}: {self.rows_loaded}")
        logger.info(f"Throughput: {self.throughput:.1f} rows/s")
        if self.dropped_columns:
            logger.info(f"Dropped columns: {', '.join(self.dropped_columns)}")
