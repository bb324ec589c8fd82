"""
PostgreSQL Connection Helper

Provides connection pooling and context management for database operations.
Pooled connections serve schema queries, table maintenance and batch loads;
the import lock gets a dedicated connection that never returns to the pool,
because closing that session is what frees the lock.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import psycopg2
from psycopg2 import OperationalError, pool, sql

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = "public"


@dataclass(frozen=True)
class ConnectionInfo:
    """Connection parameters for the target database."""

    host: Optional[str]
    port: int
    database: Optional[str]
    user: Optional[str]
    password: Optional[str]
    connect_timeout: int = 10

    def missing_fields(self) -> list:
        return [name for name in ("host", "database", "user", "password") if not getattr(self, name)]

    def as_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }

    def __repr__(self) -> str:
        return f"ConnectionInfo(host={self.host}, port={self.port}, database={self.database}, user={self.user})"


def split_table_name(table: str) -> Tuple[str, str]:
    """
    Split ``schema.table`` into its parts; schema defaults to ``public``.

    Bracket and double-quote delimiters around either part are removed.

    Args:
        table: Table name, optionally schema-qualified

    Returns:
        Tuple of (schema, table)
    """
    cleaned = table.strip()
    for ch in '[]"':
        cleaned = cleaned.replace(ch, "")
    parts = cleaned.split(".")
    if len(parts) == 2:
        return parts[0], parts[1]
    return DEFAULT_SCHEMA, parts[0]


def table_identifier(table: str) -> sql.Identifier:
    """Quoted ``schema.table`` identifier for composed statements."""
    schema, name = split_table_name(table)
    return sql.Identifier(schema, name)


class DatabaseConnection:
    """
    Manages PostgreSQL connections with connection pooling.
    """

    _instance = None
    _pool: Optional[pool.SimpleConnectionPool] = None
    _info: Optional[ConnectionInfo] = None

    def __new__(cls):
        """Ensure singleton pattern for connection pool."""
        if cls._instance is None:
            cls._instance = super(DatabaseConnection, cls).__new__(cls)
        return cls._instance

    @classmethod
    def initialize(
        cls,
        info: ConnectionInfo,
        min_connections: int = 1,
        max_connections: int = 5,
    ) -> None:
        """
        Initialize the connection pool.

        Args:
            info: Target database connection parameters
            min_connections: Minimum pool connections
            max_connections: Maximum pool connections

        Raises:
            OperationalError: If connection fails
        """
        try:
            cls._pool = pool.SimpleConnectionPool(min_connections, max_connections, **info.as_kwargs())
            cls._info = info
            logger.info(f"Database pool initialized with {min_connections}-{max_connections} connections")
        except OperationalError as e:
            logger.error(f"Failed to initialize database pool: {e}")
            raise

    @classmethod
    def close_all(cls) -> None:
        """Close all connections in the pool."""
        if cls._pool:
            cls._pool.closeall()
            cls._pool = None
            logger.info("Database pool closed")

    @classmethod
    def connect_dedicated(cls):
        """
        Open a connection outside the pool.

        The caller owns the connection and must close it.

        Returns:
            psycopg2 connection object in autocommit mode

        Raises:
            OperationalError: If the pool was never initialized or connecting fails
        """
        if cls._info is None:
            raise OperationalError("Database pool not initialized. Call initialize() first.")

        conn = psycopg2.connect(**cls._info.as_kwargs())
        conn.autocommit = True
        return conn

    @classmethod
    @contextmanager
    def get_connection(cls):
        """
        Context manager to get a connection from the pool.

        Commits when the block exits normally, rolls back otherwise.

        Yields:
            psycopg2 connection object

        Raises:
            OperationalError: If pool is not initialized or connection fails
        """
        if cls._pool is None:
            raise OperationalError("Database pool not initialized. Call initialize() first.")

        conn = None
        try:
            conn = cls._pool.getconn()
            yield conn
            conn.commit()
            logger.debug("Transaction committed successfully")
        except Exception as e:
            if conn:
                conn.rollback()
            logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                cls._pool.putconn(conn)

    @classmethod
    @contextmanager
    def get_cursor(cls, commit: bool = True):
        """
        Context manager to get a cursor for direct SQL execution.

        Args:
            commit: Whether to commit on success

        Yields:
            psycopg2 cursor object

        Example:
            with DatabaseConnection.get_cursor() as cursor:
                cursor.execute("SELECT column_name FROM information_schema.columns")
                results = cursor.fetchall()
        """
        with cls.get_connection() as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                if commit:
                    conn.commit()
                else:
                    conn.rollback()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    @classmethod
    def execute_query(cls, query, params: Optional[tuple] = None) -> list:
        """
        Execute a SELECT query and return results.

        Args:
            query: SQL query string or composed statement
            params: Query parameters (optional)

        Returns:
            List of result rows
        """
        with cls.get_cursor(commit=False) as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    @classmethod
    def execute_update(cls, query, params: Optional[tuple] = None) -> int:
        """
        Execute a DDL or DML statement.

        Args:
            query: SQL query string or composed statement
            params: Query parameters (optional)

        Returns:
            Number of rows affected
        """
        with cls.get_cursor(commit=True) as cursor:
            cursor.execute(query, params)
            return cursor.rowcount
