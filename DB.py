# DB.py
import os
import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import Config
from Errors import DatabaseUnavailable

DB_PATH = Config.DB_PATH

# type -> (table, select list); time is always exposed as "timestamp"
RECORD_SOURCES: Dict[str, Tuple[str, str]] = {
    "air": ("airenvtbl", "time AS timestamp, temperature, humidity, co2"),
    "water": ("waterenvtbl", "time AS timestamp, watertemperature AS temperature, ph, ec"),
}
RECORD_FIELDS: Dict[str, Tuple[str, ...]] = {
    "air": ("temperature", "humidity", "co2"),
    "water": ("temperature", "ph", "ec"),
}

FLAGS_KEY = "system_flags"


def _connect() -> sqlite3.Connection:
    try:
        directory = os.path.dirname(DB_PATH)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = sqlite3.connect(DB_PATH, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
    except (OSError, sqlite3.Error) as err:
        raise DatabaseUnavailable(f"Cannot open database {DB_PATH}: {err}") from err
    return conn


def init_db() -> None:
    conn = _connect()
    try:
        # Air environment (SCD41)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS airenvtbl (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                time TEXT NOT NULL,
                temperature REAL,
                humidity REAL,
                co2 REAL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_airenvtbl_time ON airenvtbl(time);")

        # Aquarium / water environment
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS waterenvtbl (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                time TEXT NOT NULL,
                watertemperature REAL,
                ph REAL,
                ec REAL
            );
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_waterenvtbl_time ON waterenvtbl(time);")

        # Best-effort mirror of UI state (not authoritative)
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS system_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated TEXT NOT NULL
            );
            """
        )

        conn.commit()
    finally:
        conn.close()


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


def insert_air_record(temperature: Optional[float], humidity: Optional[float], co2: Optional[float], time: Optional[str] = None) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO airenvtbl (time, temperature, humidity, co2) VALUES (?, ?, ?, ?);",
            (time or _now_iso(), temperature, humidity, co2),
        )
        conn.commit()
    finally:
        conn.close()


def insert_water_record(temperature: Optional[float], ph: Optional[float], ec: Optional[float], time: Optional[str] = None) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT INTO waterenvtbl (time, watertemperature, ph, ec) VALUES (?, ?, ?, ?);",
            (time or _now_iso(), temperature, ph, ec),
        )
        conn.commit()
    finally:
        conn.close()


def get_latest_environment() -> Dict[str, Any]:
    """Latest air row merged with the latest water row.

    Either side is None-filled when its table has no rows. Raises
    sqlite3.Error on query failure (e.g. missing tables).
    """
    conn = _connect()
    try:
        air = conn.execute(
            """
            SELECT time, temperature, humidity, co2
            FROM airenvtbl
            ORDER BY time DESC, id DESC
            LIMIT 1;
            """
        ).fetchone()
        water = conn.execute(
            """
            SELECT time, watertemperature AS waterTemp, ph, ec
            FROM waterenvtbl
            ORDER BY time DESC, id DESC
            LIMIT 1;
            """
        ).fetchone()
    finally:
        conn.close()

    return {
        "time": air["time"] if air is not None else None,
        "temperature": air["temperature"] if air is not None else None,
        "humidity": air["humidity"] if air is not None else None,
        "co2": air["co2"] if air is not None else None,
        "waterTemp": water["waterTemp"] if water is not None else None,
        "ph": water["ph"] if water is not None else None,
        "ec": water["ec"] if water is not None else None,
    }


def record_source(data_type: str) -> Tuple[str, str]:
    # Anything that is not "air" reads the water table.
    return RECORD_SOURCES["air" if data_type == "air" else "water"]


def table_exists(table: str) -> bool:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?;",
            (table,),
        ).fetchone()
        return row is not None
    finally:
        conn.close()


def get_records(data_type: str, page: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
    """One page of rows, newest first, plus the table's total row count."""
    table, fields = record_source(data_type)
    offset = (page - 1) * limit
    conn = _connect()
    try:
        rows = conn.execute(
            f"SELECT {fields} FROM {table} ORDER BY time DESC, id DESC LIMIT ? OFFSET ?;",
            (limit, offset),
        ).fetchall()
        total = conn.execute(f"SELECT COUNT(*) AS total FROM {table};").fetchone()["total"]
        return [dict(r) for r in rows], int(total)
    finally:
        conn.close()


def save_system_flags(flags: Dict[str, bool]) -> None:
    conn = _connect()
    try:
        conn.execute(
            """
            INSERT INTO system_state (key, value, updated) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated;
            """,
            (FLAGS_KEY, json.dumps(flags, separators=(",", ":")), _now_iso()),
        )
        conn.commit()
    finally:
        conn.close()


def load_system_flags() -> Optional[Dict[str, bool]]:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT value FROM system_state WHERE key = ?;",
            (FLAGS_KEY,),
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])
    finally:
        conn.close()
