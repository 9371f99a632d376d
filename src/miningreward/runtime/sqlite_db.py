# src/miningreward/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator

Json = Dict[str, Any]

_SYNCHRONOUS_VALUES = {"OFF", "NORMAL", "FULL", "EXTRA"}

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS meta (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS ledger_state (
      id INTEGER PRIMARY KEY CHECK (id = 1),
      revision INTEGER NOT NULL,
      datetime INTEGER NOT NULL,
      state_json TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL
    );
    """,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def canon_json(obj: Any) -> str:
    """Canonical JSON encoding of the ledger snapshot.

    Unknown types are not coerced (no default=str); a non-JSON value in the
    state is a bug and must fail the write.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    raw = str(os.environ.get(name, "")).strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _synchronous_pragma() -> str:
    # Durability follows the operator mode unless MININGREWARD_SQLITE_SYNCHRONOUS pins it.
    default = "FULL" if (os.environ.get("MININGREWARD_MODE") or "prod").strip().lower() == "prod" else "NORMAL"
    raw = (os.environ.get("MININGREWARD_SQLITE_SYNCHRONOUS") or default).strip().upper()
    return raw if raw in _SYNCHRONOUS_VALUES else default


def _is_locked_error(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "database is locked" in msg or "database is busy" in msg


class SqliteDB:
    """One SQLite file holding the reward ledger snapshot.

    Connections are opened per use and never shared across threads. SQLite
    admits a single writer; write_tx() takes the write lock up front with
    BEGIN IMMEDIATE and retries lock contention with jittered backoff until
    MININGREWARD_SQLITE_WRITE_DEADLINE_MS runs out.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        timeout_ms = _env_int("MININGREWARD_SQLITE_CONNECT_TIMEOUT_MS", 30_000)
        con = sqlite3.connect(self.path, timeout=timeout_ms / 1000.0, isolation_level=None, check_same_thread=False)
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        journal = str(row[0]).strip().lower() if row is not None else ""
        if journal and journal != "wal":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{journal}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={_synchronous_pragma()};")
        con.execute("PRAGMA temp_store=MEMORY;")
        con.execute(f"PRAGMA busy_timeout={max(0, _env_int('MININGREWARD_SQLITE_BUSY_TIMEOUT_MS', timeout_ms))};")
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    def _execute_with_retry(self, con: sqlite3.Connection, sql: str, deadline_ms: int) -> None:
        base = max(1, _env_int("MININGREWARD_SQLITE_WRITE_BACKOFF_BASE_MS", 5))
        cap = max(base, _env_int("MININGREWARD_SQLITE_WRITE_BACKOFF_MAX_MS", 250))
        attempt = 0
        while True:
            try:
                con.execute(sql)
                return
            except sqlite3.OperationalError as e:
                if not _is_locked_error(e) or _now_ms() >= deadline_ms:
                    raise
            delay_ms = min(cap, base * (2 ** min(attempt, 8)))
            time.sleep(delay_ms * (0.5 + random.random()) / 1000.0)
            attempt += 1

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        deadline_ms = _now_ms() + max(250, _env_int("MININGREWARD_SQLITE_WRITE_DEADLINE_MS", 30_000))
        with self.connection() as con:
            self._execute_with_retry(con, "BEGIN IMMEDIATE;", deadline_ms)
            try:
                yield con
                self._execute_with_retry(con, "COMMIT;", deadline_ms)
            except BaseException:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass
                raise

    def init_schema(self) -> None:
        with self.write_tx() as con:
            for ddl in _SCHEMA:
                con.execute(ddl)
            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
                return
            have = int(row["value"]) if str(row["value"]).isdigit() else 0
            if have != self.SCHEMA_VERSION:
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={have} want={self.SCHEMA_VERSION}; refusing to open"
                )


class SqliteLedgerStore:
    """Current reward ledger snapshot, one row, overwritten per commit.

    `revision` counts persisted commits; it is the only history kept.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @property
    def db(self) -> SqliteDB:
        return self._db

    def exists(self) -> bool:
        return self.revision() >= 0

    def revision(self) -> int:
        """Number of writes so far minus one; -1 when nothing was written yet."""
        with self._db.connection() as con:
            row = con.execute("SELECT revision FROM ledger_state WHERE id=1;").fetchone()
        return -1 if row is None else int(row["revision"])

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError(f"no reward ledger snapshot in {self._db.path}")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        return st

    def write(self, st: Json) -> int:
        """Overwrite the snapshot; returns the new revision."""
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        payload = canon_json(st)
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO ledger_state(id, revision, datetime, state_json, updated_ts_ms)
                VALUES(1, 0, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  revision=ledger_state.revision + 1,
                  datetime=excluded.datetime,
                  state_json=excluded.state_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (int(st.get("datetime", 0) or 0), payload, _now_ms()),
            )
            row = con.execute("SELECT revision FROM ledger_state WHERE id=1;").fetchone()
        return int(row["revision"])


__all__ = ["SqliteDB", "SqliteLedgerStore", "canon_json"]
