"""
Pytest configuration and fixtures for the shipment import tests.

No live database is needed: ``FakeDatabase`` stands in for
``DatabaseConnection`` and records every statement it receives, rendering
psycopg2 composed statements to plain text so tests can assert on them.
"""

from contextlib import contextmanager
from datetime import datetime

import pytest
from psycopg2 import sql

from db.connection import ConnectionInfo
from shipment_etl.grid import CellGrid
from shipment_etl.locks import DistributedExclusiveLock, LockToken, advisory_key


def render(query) -> str:
    """Render a string or psycopg2.sql object to text without a connection."""
    if query is None:
        return ""
    if isinstance(query, str):
        return query
    if isinstance(query, sql.Composed):
        return "".join(render(part) for part in query.seq)
    if isinstance(query, sql.SQL):
        return query.string
    if isinstance(query, sql.Identifier):
        return ".".join(f'"{part}"' for part in query.strings)
    if isinstance(query, sql.Literal):
        return repr(query.wrapped)
    return str(query)


class FakeCursor:
    def __init__(self, db):
        self.db = db
        self.rowcount = 0
        self._rows = []

    def execute(self, query, params=None):
        text = render(query)
        self.db.statements.append((text, params))
        for fragment, error in self.db.failures.items():
            if fragment in text:
                raise error
        self._rows = self.db.rows_for(text)
        self.rowcount = len(self._rows)

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def close(self):
        pass


class FakeDatabase:
    """Drop-in replacement for the DatabaseConnection class interface."""

    def __init__(self):
        self.statements = []
        self.responses = []
        self.failures = {}
        self.commits = 0
        self.rollbacks = 0
        self.initialized_with = None
        self.closed = False

    def respond(self, fragment, rows):
        """Return ``rows`` for statements containing ``fragment``."""
        self.responses.append((fragment, rows))

    def fail_on(self, fragment, error):
        """Raise ``error`` for statements containing ``fragment``."""
        self.failures[fragment] = error

    def rows_for(self, text):
        for fragment, rows in self.responses:
            if fragment in text:
                return list(rows)
        return []

    def executed(self, fragment):
        return [text for text, _ in self.statements if fragment in text]

    def position(self, fragment):
        """Index of the first statement containing ``fragment``."""
        for index, (text, _) in enumerate(self.statements):
            if fragment in text:
                return index
        raise AssertionError(f"No statement contains {fragment!r}")

    def params_for(self, fragment):
        return [params for text, params in self.statements if fragment in text]

    def initialize(self, info, min_connections=1, max_connections=5):
        self.initialized_with = info

    def close_all(self):
        self.closed = True

    def connect_dedicated(self):
        raise AssertionError("Tests supply their own lock backend")

    @contextmanager
    def get_cursor(self, commit=True):
        cursor = FakeCursor(self)
        try:
            yield cursor
        except Exception:
            self.rollbacks += 1
            raise
        if commit:
            self.commits += 1

    def execute_query(self, query, params=None):
        with self.get_cursor(commit=False) as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def execute_update(self, query, params=None):
        with self.get_cursor(commit=True) as cursor:
            cursor.execute(query, params)
            return cursor.rowcount


class FakeLock(DistributedExclusiveLock):
    """In-memory lock backend that can be told the lock is taken."""

    def __init__(self, available=True):
        self.available = available
        self.acquired = []
        self.released = []

    def acquire(self, resource, timeout_ms=0):
        if not self.available:
            return None
        self.acquired.append(resource)
        return LockToken(resource, advisory_key(resource), connection=None)

    def release(self, token):
        if not token.released:
            token.released = True
            self.released.append(token.resource)
        return True


SHIPMENT_TABLE_COLUMNS = [
    "id",
    "機種",
    "滿箱台數",
    "G.W.(kgs)滿",
    "N.W.(kgs)滿",
    "尾箱台數",
    "G.W.(kgs)尾",
    "N.W.(kgs)尾",
    "長寬高",
    "客戶料號",
    "備註",
    "異動時間",
]


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_lock():
    return FakeLock()


@pytest.fixture
def connection_info():
    return ConnectionInfo(
        host="localhost",
        port=5432,
        database="shipments",
        user="importer",
        password="secret",
    )


@pytest.fixture
def fixed_clock():
    stamp = datetime(2024, 5, 1, 8, 30, 0)
    return lambda: stamp


@pytest.fixture
def shipment_grid():
    """Header row plus three data rows; the third has no model."""
    return CellGrid.from_rows(
        [
            ["機種", "滿箱台數", "G.W.(kgs)", "N.W.(kgs)", "G.W.(kgs)", "N.W.(kgs)", "客戶料號", "", "Unknown Col"],
            ["A100", "10", "12.5", "11.0", "6.25", "5.5", "CP-1", "fragile", "x"],
            ["B200", "20", "25", "22", "", "", "CP-2", "", "y"],
            ["", "5", "1", "1", "", "", "", "", "z"],
        ]
    )
