from __future__ import annotations
import sqlite3
import threading
from pathlib import Path
from typing import List, Optional, Union

from repcounter.common import settings
from repcounter.common.events import SessionSummary

_DB_PATH = settings.DB_PATH

SCHEMA = r"""
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS sessions (
  id TEXT PRIMARY KEY,
  exercise TEXT NOT NULL,
  started_at REAL NOT NULL,
  stopped_at REAL,
  count INTEGER,
  duration_s REAL,
  avg_time_per_rep REAL
);

CREATE TABLE IF NOT EXISTS events (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  session_id TEXT NOT NULL,
  t REAL NOT NULL,
  rep_count INTEGER NOT NULL,
  angle REAL,
  FOREIGN KEY(session_id) REFERENCES sessions(id)
);
"""

_conn: Optional[sqlite3.Connection] = None
_lock = threading.RLock()


def configure(path: Union[str, Path]):
    """Point the module at another database file (":memory:" works too)."""
    global _DB_PATH, _conn
    with _lock:
        if _conn is not None:
            _conn.close()
            _conn = None
        _DB_PATH = Path(path) if str(path) != ":memory:" else path


def get_conn() -> sqlite3.Connection:
    global _conn
    with _lock:
        if _conn is None:
            if isinstance(_DB_PATH, Path):
                _DB_PATH.parent.mkdir(parents=True, exist_ok=True)
                target = _DB_PATH.as_posix()
            else:
                target = _DB_PATH
            _conn = sqlite3.connect(target, check_same_thread=False)
            _conn.row_factory = sqlite3.Row
            _conn.execute("PRAGMA foreign_keys=ON;")
            _conn.executescript(SCHEMA)
            _conn.commit()
        return _conn

# Session-level writes

def insert_session(session_id: str, exercise: str, started_at: float):
    conn = get_conn()
    with _lock:
        conn.execute(
            "INSERT OR REPLACE INTO sessions (id, exercise, started_at) VALUES (?,?,?)",
            (session_id, exercise, started_at),
        )
        conn.commit()


def finish_session(session_id: str, stopped_at: float, summary: SessionSummary):
    conn = get_conn()
    with _lock:
        conn.execute(
            "UPDATE sessions SET stopped_at=?, count=?, duration_s=?, avg_time_per_rep=? WHERE id=?",
            (stopped_at, summary.count, summary.duration_seconds, summary.avg_time_per_rep, session_id),
        )
        conn.commit()

# Event writes

def insert_event(session_id: str, t: float, rep_count: int, angle: float):
    conn = get_conn()
    with _lock:
        conn.execute(
            "INSERT INTO events (session_id, t, rep_count, angle) VALUES (?,?,?,?)",
            (session_id, t, rep_count, angle),
        )
        conn.commit()

# Reads

def get_session(session_id: str) -> Optional[dict]:
    conn = get_conn()
    with _lock:
        row = conn.execute("SELECT * FROM sessions WHERE id=?", (session_id,)).fetchone()
    return dict(row) if row else None


def list_sessions(limit: int = 20, exercise: Optional[str] = None) -> List[dict]:
    conn = get_conn()
    sql = "SELECT * FROM sessions WHERE stopped_at IS NOT NULL"
    args: list = []
    if exercise:
        sql += " AND exercise=?"
        args.append(exercise)
    sql += " ORDER BY started_at DESC LIMIT ?"
    args.append(limit)
    with _lock:
        rows = conn.execute(sql, args).fetchall()
    return [dict(r) for r in rows]


def count_events(session_id: str) -> int:
    conn = get_conn()
    with _lock:
        row = conn.execute("SELECT COUNT(*) FROM events WHERE session_id=?", (session_id,)).fetchone()
    return int(row[0])
