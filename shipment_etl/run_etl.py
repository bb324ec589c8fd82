"""
Shipment Import Orchestrator

Coordinates a complete import run:
- Take the cross-process import lock
- Clear the target table (capturing its identity if requested)
- Drop secondary indexes
- Transform and load the grid batch by batch
- Restore the identity and rebuild indexes
- Release the lock and report a result code
"""

import logging
import os
import sys
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from config.settings import Settings
from db.connection import ConnectionInfo, DatabaseConnection
from shipment_etl.errors import (
    ConfigurationError,
    LockUnavailableError,
    ResultCode,
    ShipmentImportError,
)
from shipment_etl.extract import fetch_grid
from shipment_etl.grid import CellGrid, batch_windows
from shipment_etl.load import BatchLoader
from shipment_etl.locks import DistributedExclusiveLock, LockToken, PostgresAdvisoryLock
from shipment_etl.metrics import ImportMetrics
from shipment_etl.options import ImportOptions
from shipment_etl.table_ops import IndexDescriptor, IndexManager, TableManager
from shipment_etl.transform import BatchTransformer
from shipment_etl.validator import TargetSchema

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class ImportState(Enum):
    """Run lifecycle; FAILED may follow any state."""

    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    TABLE_CLEARED = "table_cleared"
    INDEXES_DISABLED = "indexes_disabled"
    LOADING = "loading"
    IDENTITY_RESTORED = "identity_restored"
    INDEXES_REBUILT = "indexes_rebuilt"
    DONE = "done"
    FAILED = "failed"


class ImportOrchestrator:
    """
    Orchestrates one import run against a single target table.

    Workflow:
    1. Validate inputs (nothing is touched when they are incomplete)
    2. Initialize the connection pool
    3. Acquire the import lock
    4. Clear the table and drop its secondary indexes
    5. Slice, transform and load each batch in its own transaction
    6. Restore the identity, rebuild indexes
    7. Release the lock, always
    """

    def __init__(
        self,
        connection_info: Optional[ConnectionInfo],
        target_table: Optional[str],
        grid: Optional[CellGrid],
        options: Optional[ImportOptions] = None,
        db=DatabaseConnection,
        lock: Optional[DistributedExclusiveLock] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the orchestrator.

        Args:
            connection_info: Target database parameters
            target_table: Destination table, optionally schema-qualified
            grid: Source grid, header row first
            options: Run options (defaults apply when omitted)
            db: Connection provider
            lock: Lock backend (advisory lock on a dedicated connection by default)
            clock: Source of the audit timestamp
        """
        self.connection_info = connection_info
        self.target_table = target_table
        self.grid = grid
        self.options = options or ImportOptions()
        self.db = db
        self.lock = lock or PostgresAdvisoryLock(connect=db.connect_dedicated)
        self.tables = TableManager(db)
        self.indexes = IndexManager(db)
        self.loader = BatchLoader(target_table or "", self.options.batch_size, db)
        self.clock = clock

        self.state = ImportState.IDLE
        self.history: List[ImportState] = [ImportState.IDLE]
        self.metrics = ImportMetrics(table=target_table or "")
        self._dropped_indexes: List[IndexDescriptor] = []

    def run(self) -> ResultCode:
        """
        Execute the import.

        Returns:
            ResultCode describing the outcome
        """
        self.metrics.started_at = datetime.now()

        try:
            self._validate_inputs()
        except ConfigurationError as e:
            logger.error(f"Import not started: {e}")
            self._transition(ImportState.FAILED)
            return e.result_code

        logger.info("=" * 60)
        logger.info(f"Starting shipment import into {self.target_table}")
        logger.info("=" * 60)

        token: Optional[LockToken] = None
        pool_open = False
        try:
            self._initialize_database()
            pool_open = True

            token = self.lock.acquire(self.options.lock_resource, self.options.lock_timeout_ms)
            if token is None:
                raise LockUnavailableError(self.options.lock_resource, self.options.lock_timeout_ms)
            self._transition(ImportState.LOCK_ACQUIRED)

            self._execute_pipeline()

            self.metrics.finished_at = datetime.now()
            self._transition(ImportState.DONE)
            logger.info("=" * 60)
            logger.info("Shipment Import Completed Successfully")
            logger.info("=" * 60)
            self.metrics.log_summary()
            return ResultCode.SUCCESS

        except LockUnavailableError as e:
            self._transition(ImportState.FAILED)
            logger.warning(str(e))
            return e.result_code

        except ShipmentImportError as e:
            self._fail(e)
            return e.result_code

        except Exception as e:
            self._fail(e)
            return ResultCode.IMPORT_FAILED

        finally:
            if token is not None and not self.lock.release(token):
                logger.warning(f"Lock '{token.resource}' was not released cleanly")
            if pool_open:
                self.db.close_all()

    def _validate_inputs(self) -> None:
        """
        Raises:
            ConfigurationError: With the result code of the first missing input
        """
        if self.grid is None:
            raise ConfigurationError("No source grid supplied", ResultCode.MISSING_SOURCE)
        if self.connection_info is None or self.connection_info.missing_fields():
            missing = self.connection_info.missing_fields() if self.connection_info else ["all"]
            raise ConfigurationError(
                f"Incomplete connection parameters: {', '.join(missing)}",
                ResultCode.MISSING_CONNECTION,
            )
        if not self.target_table or not self.target_table.strip():
            raise ConfigurationError("No target table supplied", ResultCode.MISSING_TARGET_TABLE)

    def _initialize_database(self) -> None:
        """Initialize database connection pool."""
        logger.info("Initializing database connection...")
        try:
            self.db.initialize(self.connection_info, min_connections=1, max_connections=5)
            logger.info("Database connection established")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    def _execute_pipeline(self) -> None:
        table = self.target_table
        preserve = self.options.preserve_identity

        logger.info(f"Step 1: Clearing {table}...")
        previous_identity = self.tables.truncate_or_delete(table, preserve_identity=preserve)
        self.metrics.previous_identity = previous_identity
        self._transition(ImportState.TABLE_CLEARED)

        logger.info("Step 2: Disabling secondary indexes...")
        indexes = self.indexes.list_non_primary(table)
        self.indexes.disable(table, indexes)
        self._dropped_indexes = indexes
        self.metrics.indexes_disabled = len(indexes)
        self._transition(ImportState.INDEXES_DISABLED)

        logger.info("Step 3: Loading batches...")
        self._transition(ImportState.LOADING)
        self._load_batches()

        if preserve and previous_identity is not None:
            logger.info("Step 4: Restoring identity...")
            self.tables.restore_identity(table, previous_identity)
            self._transition(ImportState.IDENTITY_RESTORED)

        if indexes:
            logger.info(f"Step 5: Rebuilding {len(indexes)} indexes...")
            self.indexes.rebuild(table, indexes)
            self._dropped_indexes = []
        self._transition(ImportState.INDEXES_REBUILT)

    def _load_batches(self) -> None:
        grid = self.grid
        self.metrics.grid_rows = grid.row_count
        self.metrics.grid_columns = grid.column_count

        windows = batch_windows(grid.row_count, self.options.batch_size)
        self.metrics.batches_total = len(windows)
        if not windows:
            logger.warning("Grid has no data rows; table left empty")
            return

        schema = TargetSchema.fetch(self.target_table, db=self.db)
        transformer = BatchTransformer(
            schema,
            column_overrides=self.options.column_overrides,
            clock=self.clock,
        )

        for number, window in enumerate(windows, start=1):
            logger.info(f"Batch {number}/{len(windows)}: rows {window[0]}..{window[1]}")
            frame = grid.slice_rows(*window)
            batch = transformer.transform(frame, window)
            loaded = self.loader.load_batch(batch) if batch.row_count else 0
            self.metrics.record_batch(batch.rows_read, batch.rows_filtered, loaded, batch.dropped_columns)

    def _transition(self, state: ImportState) -> None:
        logger.debug(f"Import state: {self.state.name} -> {state.name}")
        self.state = state
        self.history.append(state)

    def _fail(self, error: Exception) -> None:
        self.metrics.finished_at = datetime.now()
        self._transition(ImportState.FAILED)
        logger.error(f"Import failed: {error}", exc_info=True)
        if self._dropped_indexes:
            names = ", ".join(index.name for index in self._dropped_indexes)
            logger.error(f"Indexes on {self.target_table} remain dropped: {names}")


def run_import(
    connection_info: Optional[ConnectionInfo],
    target_table: Optional[str],
    grid: Optional[CellGrid],
    options: Optional[ImportOptions] = None,
) -> ResultCode:
    """
    Import a grid into a table and report the outcome.

    Args:
        connection_info: Target database parameters
        target_table: Destination table, optionally schema-qualified
        grid: Source grid, header row first
        options: Run options

    Returns:
        ResultCode (usable as the process exit code)
    """
    return ImportOrchestrator(connection_info, target_table, grid, options).run()


def setup_logging(log_file: str = "logs/import.log", level: str = "INFO") -> None:
    """
    Configure logging for the import.

    Args:
        log_file: Path to log file
        level: Console log level name
    """
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # File handler
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)


def main() -> None:
    """Main entry point for the shipment import."""
    setup_logging(os.getenv("LOG_FILE", "logs/import.log"), os.getenv("LOG_LEVEL", "INFO"))

    try:
        settings = Settings()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(int(e.result_code))

    try:
        grid = fetch_grid(settings)
    except Exception as e:
        logger.error(f"Could not read source worksheet: {e}", exc_info=True)
        sys.exit(int(ResultCode.MISSING_SOURCE))

    code = run_import(settings.connection_info(), settings.TARGET_TABLE, grid, settings.import_options())
    sys.exit(int(code))


if __name__ == "__main__":
    main()
