"""
Storage for sales records and forecasts.

Two backends implement the same protocols:

- in-memory (tests, demos, ephemeral servers)
- SQLite (durable, one file)

The backend is chosen once at startup by :func:`build_repositories` and
the instances are passed explicitly to whoever needs them.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, List, Optional, Protocol, Tuple

from .grouping import date_key
from .models import Forecast, SalesRecord

logger = logging.getLogger(__name__)


class SalesRepository(Protocol):
    """Append-only store of sales records."""

    def add_many(self, records: Iterable[SalesRecord]) -> List[SalesRecord]:
        ...

    def get_recent(self, limit: int = 100) -> List[SalesRecord]:
        ...

    def get_by_item(self, item: str) -> List[SalesRecord]:
        ...

    def get_by_date_range(self, start: datetime, end: datetime) -> List[SalesRecord]:
        ...


class ForecastRepository(Protocol):
    """Store of generated forecasts."""

    def save(self, forecast: Forecast) -> Forecast:
        ...

    def get_recent(self, limit: int = 50) -> List[Forecast]:
        ...

    def get_by_date(self, day: date) -> List[Forecast]:
        ...

    def get_latest(self) -> Optional[Forecast]:
        ...

    def clear(self) -> None:
        ...


def _new_id() -> str:
    return uuid.uuid4().hex


def _wallclock(value: datetime) -> tuple:
    return (value.year, value.month, value.day, value.hour, value.minute, value.second, value.microsecond)


# =============================================================================
# In-memory backend
# =============================================================================


class InMemorySalesRepository:
    """Sales records held in a list, guarded by a lock."""

    def __init__(self):
        self._records: List[SalesRecord] = []
        self._lock = threading.Lock()

    def add_many(self, records: Iterable[SalesRecord]) -> List[SalesRecord]:
        now = datetime.now()
        stored = [replace(r, id=_new_id(), uploaded_at=now) for r in records]
        with self._lock:
            self._records.extend(stored)
        return stored

    def _snapshot(self) -> List[SalesRecord]:
        with self._lock:
            return list(self._records)

    def get_recent(self, limit: int = 100) -> List[SalesRecord]:
        ordered = sorted(self._snapshot(), key=lambda r: _wallclock(r.date), reverse=True)
        return ordered[:limit]

    def get_by_item(self, item: str) -> List[SalesRecord]:
        matches = [r for r in self._snapshot() if r.item == item]
        return sorted(matches, key=lambda r: _wallclock(r.date), reverse=True)

    def get_by_date_range(self, start: datetime, end: datetime) -> List[SalesRecord]:
        lo, hi = _wallclock(start), _wallclock(end)
        matches = [r for r in self._snapshot() if lo <= _wallclock(r.date) <= hi]
        return sorted(matches, key=lambda r: _wallclock(r.date), reverse=True)


class InMemoryForecastRepository:
    """Forecasts held in insertion order."""

    def __init__(self):
        self._forecasts: List[Forecast] = []
        self._lock = threading.Lock()

    def save(self, forecast: Forecast) -> Forecast:
        stored = replace(forecast, id=_new_id(), created_at=datetime.now())
        with self._lock:
            self._forecasts.append(stored)
        return stored

    def get_recent(self, limit: int = 50) -> List[Forecast]:
        with self._lock:
            newest_first = list(reversed(self._forecasts))
        return newest_first[:limit]

    def get_by_date(self, day: date) -> List[Forecast]:
        key = date_key(day)
        with self._lock:
            return [f for f in self._forecasts if date_key(f.forecast_date) == key]

    def get_latest(self) -> Optional[Forecast]:
        with self._lock:
            return self._forecasts[-1] if self._forecasts else None

    def clear(self) -> None:
        with self._lock:
            self._forecasts.clear()


# =============================================================================
# SQLite backend
# =============================================================================

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sales_data (
    id              TEXT PRIMARY KEY,
    date            TEXT NOT NULL,
    date_key        TEXT NOT NULL,
    item            TEXT NOT NULL,
    quantity        INTEGER NOT NULL CHECK (quantity > 0),
    unit            TEXT NOT NULL,
    price_in_cents  INTEGER NOT NULL CHECK (price_in_cents >= 0),
    supplier        TEXT,
    category        TEXT,
    uploaded_at     TEXT NOT NULL,
    seq             INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sales_item ON sales_data(item);
CREATE INDEX IF NOT EXISTS idx_sales_date ON sales_data(date_key);

CREATE TABLE IF NOT EXISTS forecasts (
    id                          TEXT PRIMARY KEY,
    forecast_date               TEXT NOT NULL,
    item                        TEXT NOT NULL,
    predicted_quantity          REAL NOT NULL,
    confidence                  INTEGER NOT NULL,
    current_stock               INTEGER,
    predicted_savings_in_cents  INTEGER,
    based_on_data               TEXT,
    created_at                  TEXT NOT NULL,
    seq                         INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_forecasts_date ON forecasts(forecast_date);
"""


def init_schema(conn: sqlite3.Connection) -> None:
    """Create tables if they don't exist. Safe to call repeatedly."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    logger.debug("Sales and forecast tables initialized")


class _SqliteBase:
    def __init__(self, db_path: str):
        self.db_path = db_path
        # A single ":memory:" database only exists for the life of one connection
        self._shared: Optional[sqlite3.Connection] = None
        if db_path == ":memory:":
            self._shared = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        with self._connect() as conn:
            init_schema(conn)

    def _connect(self) -> "_ConnectionScope":
        return _ConnectionScope(self)

    def _next_seq(self, conn: sqlite3.Connection, table: str) -> int:
        row = conn.execute(f"SELECT COALESCE(MAX(seq), 0) + 1 FROM {table}").fetchone()
        return int(row[0])


class _ConnectionScope:
    """Yields a connection and commits on success, rolls back on error."""

    def __init__(self, owner: _SqliteBase):
        self.owner = owner
        self.conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        self.owner._lock.acquire()
        if self.owner._shared is not None:
            self.conn = self.owner._shared
        else:
            self.conn = sqlite3.connect(self.owner.db_path)
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.conn.commit()
            else:
                self.conn.rollback()
            if self.conn is not self.owner._shared:
                self.conn.close()
        finally:
            self.owner._lock.release()
        return False


class SqliteSalesRepository(_SqliteBase):
    """Sales records in the ``sales_data`` table."""

    _COLUMNS = "id, date, item, quantity, unit, price_in_cents, supplier, category, uploaded_at"

    def add_many(self, records: Iterable[SalesRecord]) -> List[SalesRecord]:
        now = datetime.now()
        stored = [replace(r, id=_new_id(), uploaded_at=now) for r in records]
        with self._connect() as conn:
            seq = self._next_seq(conn, "sales_data")
            conn.executemany(
                """
                INSERT INTO sales_data
                (id, date, date_key, item, quantity, unit, price_in_cents,
                 supplier, category, uploaded_at, seq)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        r.id,
                        r.date.isoformat(),
                        date_key(r.date),
                        r.item,
                        r.quantity,
                        r.unit,
                        r.price_in_cents,
                        r.supplier,
                        r.category,
                        now.isoformat(),
                        seq + i,
                    )
                    for i, r in enumerate(stored)
                ],
            )
        logger.info(f"Stored {len(stored)} sales records")
        return stored

    @staticmethod
    def _row_to_record(row: Tuple) -> SalesRecord:
        return SalesRecord(
            id=row[0],
            date=datetime.fromisoformat(row[1]),
            item=row[2],
            quantity=row[3],
            unit=row[4],
            price_in_cents=row[5],
            supplier=row[6],
            category=row[7],
            uploaded_at=datetime.fromisoformat(row[8]) if row[8] else None,
        )

    def _query(self, where: str = "", params: tuple = ()) -> List[SalesRecord]:
        sql = f"SELECT {self._COLUMNS} FROM sales_data {where}"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        records = [self._row_to_record(row) for row in rows]
        # Stored timestamps may carry different offsets; order on wall-clock
        return sorted(records, key=lambda r: _wallclock(r.date), reverse=True)

    def get_recent(self, limit: int = 100) -> List[SalesRecord]:
        return self._query()[:limit]

    def get_by_item(self, item: str) -> List[SalesRecord]:
        return self._query("WHERE item = ?", (item,))

    def get_by_date_range(self, start: datetime, end: datetime) -> List[SalesRecord]:
        lo, hi = _wallclock(start), _wallclock(end)
        candidates = self._query(
            "WHERE date_key BETWEEN ? AND ?", (date_key(start), date_key(end))
        )
        return [r for r in candidates if lo <= _wallclock(r.date) <= hi]


class SqliteForecastRepository(_SqliteBase):
    """Forecasts in the ``forecasts`` table."""

    _COLUMNS = (
        "id, forecast_date, item, predicted_quantity, confidence, current_stock, "
        "predicted_savings_in_cents, based_on_data, created_at"
    )

    def save(self, forecast: Forecast) -> Forecast:
        stored = replace(forecast, id=_new_id(), created_at=datetime.now())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO forecasts
                (id, forecast_date, item, predicted_quantity, confidence, current_stock,
                 predicted_savings_in_cents, based_on_data, created_at, seq)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    stored.id,
                    stored.forecast_date.isoformat(),
                    stored.item,
                    stored.predicted_quantity,
                    stored.confidence,
                    stored.current_stock,
                    stored.predicted_savings_in_cents,
                    json.dumps(stored.based_on_data),
                    stored.created_at.isoformat(),
                    self._next_seq(conn, "forecasts"),
                ),
            )
        return stored

    @staticmethod
    def _row_to_forecast(row: Tuple) -> Forecast:
        return Forecast(
            id=row[0],
            forecast_date=datetime.fromisoformat(row[1]),
            item=row[2],
            predicted_quantity=row[3],
            confidence=row[4],
            current_stock=row[5],
            predicted_savings_in_cents=row[6],
            based_on_data=json.loads(row[7]) if row[7] else {},
            created_at=datetime.fromisoformat(row[8]),
        )

    def _query(self, tail: str, params: tuple = ()) -> List[Forecast]:
        with self._connect() as conn:
            rows = conn.execute(f"SELECT {self._COLUMNS} FROM forecasts {tail}", params).fetchall()
        return [self._row_to_forecast(row) for row in rows]

    def get_recent(self, limit: int = 50) -> List[Forecast]:
        return self._query("ORDER BY seq DESC LIMIT ?", (limit,))

    def get_by_date(self, day: date) -> List[Forecast]:
        return self._query("WHERE substr(forecast_date, 1, 10) = ? ORDER BY seq", (date_key(day),))

    def get_latest(self) -> Optional[Forecast]:
        found = self.get_recent(1)
        return found[0] if found else None

    def clear(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM forecasts")


# =============================================================================
# Factory
# =============================================================================


def build_repositories(settings) -> Tuple[SalesRepository, ForecastRepository]:
    """Create the sales and forecast repositories for the configured backend.

    Args:
        settings: A :class:`xtock_forecast.config.Settings` instance.

    Returns:
        (sales_repo, forecast_repo)
    """
    backend = settings.storage_backend
    if backend == "memory":
        logger.info("Using in-memory storage")
        return InMemorySalesRepository(), InMemoryForecastRepository()
    if backend == "sqlite":
        logger.info(f"Using SQLite storage at {settings.database_path}")
        return (
            SqliteSalesRepository(settings.database_path),
            SqliteForecastRepository(settings.database_path),
        )
    raise ValueError(f"Unknown storage backend: {backend}")
