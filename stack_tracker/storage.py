from __future__ import annotations

import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Protocol

import structlog

from .pricing.models import CalibrationRecord

log = structlog.get_logger()

DDL_ETF_RATIOS = [
    """
    CREATE TABLE IF NOT EXISTS etf_ratios (
      date TEXT PRIMARY KEY,       -- YYYY-MM-DD, one calibration per day
      slv_ratio REAL NOT NULL,
      gld_ratio REAL NOT NULL,
      slv_price REAL NOT NULL,
      gld_price REAL NOT NULL,
      gold_spot REAL NOT NULL,
      silver_spot REAL NOT NULL,
      updated_at TEXT NOT NULL
    );
    """,
]

_COLUMNS = "date, slv_ratio, gld_ratio, slv_price, gld_price, gold_spot, silver_spot, updated_at"


def get_conn(db_path: str) -> sqlite3.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, isolation_level=None)  # autocommit
    conn.execute("PRAGMA journal_mode=WAL;")
    return conn


def migrate(conn: sqlite3.Connection):
    cur = conn.cursor()
    for stmt in DDL_ETF_RATIOS:
        cur.execute(stmt)


def _row_to_record(row) -> CalibrationRecord:
    return CalibrationRecord(
        date=date.fromisoformat(row[0]),
        slv_ratio=float(row[1]),
        gld_ratio=float(row[2]),
        slv_price=float(row[3]),
        gld_price=float(row[4]),
        gold_spot=float(row[5]),
        silver_spot=float(row[6]),
        updated_at=datetime.fromisoformat(row[7]),
    )


class RatioStore(Protocol):
    def upsert(self, record: CalibrationRecord) -> None: ...
    def latest_on_or_before(self, day: date) -> CalibrationRecord | None: ...
    def latest(self) -> CalibrationRecord | None: ...


class NullRatioStore:
    """Used when no database is configured: writes are dropped, reads find nothing."""
    def upsert(self, record: CalibrationRecord) -> None:
        return None

    def latest_on_or_before(self, day: date) -> CalibrationRecord | None:
        return None

    def latest(self) -> CalibrationRecord | None:
        return None


class SqliteRatioStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        conn = get_conn(db_path)
        try:
            migrate(conn)
        finally:
            conn.close()

    def upsert(self, record: CalibrationRecord) -> None:
        conn = get_conn(self.db_path)
        try:
            conn.execute(
                f"""
                INSERT INTO etf_ratios({_COLUMNS}) VALUES(?,?,?,?,?,?,?,?)
                ON CONFLICT(date) DO UPDATE SET
                  slv_ratio=excluded.slv_ratio, gld_ratio=excluded.gld_ratio,
                  slv_price=excluded.slv_price, gld_price=excluded.gld_price,
                  gold_spot=excluded.gold_spot, silver_spot=excluded.silver_spot,
                  updated_at=excluded.updated_at
                """,
                (
                    record.date.isoformat(),
                    record.slv_ratio,
                    record.gld_ratio,
                    record.slv_price,
                    record.gld_price,
                    record.gold_spot,
                    record.silver_spot,
                    record.updated_at.isoformat(),
                ),
            )
        finally:
            conn.close()

    def latest_on_or_before(self, day: date) -> CalibrationRecord | None:
        conn = get_conn(self.db_path)
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM etf_ratios WHERE date <= ? ORDER BY date DESC LIMIT 1",
                (day.isoformat(),),
            ).fetchone()
        finally:
            conn.close()
        return _row_to_record(row) if row else None

    def latest(self) -> CalibrationRecord | None:
        conn = get_conn(self.db_path)
        try:
            row = conn.execute(f"SELECT {_COLUMNS} FROM etf_ratios ORDER BY date DESC LIMIT 1").fetchone()
        finally:
            conn.close()
        return _row_to_record(row) if row else None

    def count(self) -> int:
        conn = get_conn(self.db_path)
        try:
            return int(conn.execute("SELECT COUNT(*) FROM etf_ratios").fetchone()[0])
        finally:
            conn.close()


def build_ratio_store(db_path: str | None) -> RatioStore:
    if db_path:
        log.info("ratio_store_sqlite", db_path=db_path)
        return SqliteRatioStore(db_path)
    log.warning("ratio_store_disabled", reason="RATIO_DB_PATH not set")
    return NullRatioStore()
