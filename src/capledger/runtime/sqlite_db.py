# src/capledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding for persisted structures.

    Unknown types are not coerced (no default=str): a non-JSON value leaking
    into the ledger state must fail the commit instead of being stringified.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


class SqliteDB:
    """SQLite manager for the ledger runtime.

    One durable file holds the ledger snapshot and the event log. Connections
    are never shared between threads; every write goes through write_tx().

    SQLite allows only one writer at a time, so BEGIN IMMEDIATE can transiently
    fail with "database is locked". write_tx() retries with a bounded deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """PRAGMA synchronous value: FULL in prod, NORMAL in dev/testnet.

        Override with CAPLEDGER_SQLITE_SYNCHRONOUS in {OFF,NORMAL,FULL,EXTRA}.
        """
        mode = (os.environ.get("CAPLEDGER_MODE") or "prod").strip().lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = (os.environ.get("CAPLEDGER_SQLITE_SYNCHRONOUS") or default).strip().upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        if self.path == ":memory:":
            return
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(_env_int("CAPLEDGER_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        # WAL is required unless explicitly waived; rollback-journal mode blocks
        # readers during every commit.
        allow_non_wal = (os.environ.get("CAPLEDGER_SQLITE_ALLOW_NON_WAL") or "").strip().lower() in {"1", "true"}
        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal" and not allow_non_wal:
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = max(0, _env_int("CAPLEDGER_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  op_seq INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  op_seq INTEGER NOT NULL,
                  tx_type TEXT NOT NULL,
                  signer TEXT NOT NULL,
                  kind TEXT NOT NULL,
                  event_json TEXT NOT NULL,
                  ledger_time INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_kind ON events(kind);")
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_op_seq ON events(op_seq);")

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except Exception:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction, retrying lock contention until a deadline.

        Exponential backoff with jitter; raises the last OperationalError once
        CAPLEDGER_SQLITE_WRITE_DEADLINE_MS has elapsed.
        """
        deadline_ts = _now_ms() + max(250, _env_int("CAPLEDGER_SQLITE_WRITE_DEADLINE_MS", 30_000))
        base_sleep = max(0.001, float(_env_int("CAPLEDGER_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        max_sleep = max(base_sleep, float(_env_int("CAPLEDGER_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)

        def _retry(stmt: str, con: sqlite3.Connection) -> None:
            attempt = 0
            while True:
                try:
                    con.execute(stmt)
                    return
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    sleep_s = min(max_sleep, base_sleep * (2.0 ** min(attempt, 8)))
                    time.sleep(sleep_s * (0.5 + random.random()))
                    attempt += 1

        with self.connection() as con:
            _retry("BEGIN IMMEDIATE;", con)
            try:
                yield con
                _retry("COMMIT;", con)
            except Exception:
                try:
                    con.execute("ROLLBACK;")
                except sqlite3.Error:
                    pass
                raise


class SqliteLedgerStore:
    """Ledger snapshot plus append-only event log.

      - read(): latest snapshot
      - write(st): overwrite the snapshot (genesis, migrations)
      - commit(st, events, ...): snapshot and its events in one transaction
      - read_events(...): paged event log

    The authoritative snapshot is a single row; op_seq counts committed operations.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def op_seq(self) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT op_seq FROM ledger_state WHERE id=1;").fetchone()
            return int(row["op_seq"]) if row is not None else 0

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
            if row is None:
                raise FileNotFoundError("sqlite ledger_state is missing")
            st = json.loads(str(row["state_json"]))
            if not isinstance(st, dict):
                raise ValueError("ledger_state is not a JSON object")
            return st

    @staticmethod
    def _upsert_state(con: sqlite3.Connection, st: Json, op_seq: int) -> None:
        con.execute(
            """
            INSERT INTO ledger_state(id, op_seq, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              op_seq=excluded.op_seq,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (int(op_seq), _canon_json(st), _now_ms()),
        )

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            row = con.execute("SELECT op_seq FROM ledger_state WHERE id=1;").fetchone()
            self._upsert_state(con, st, int(row["op_seq"]) if row is not None else 0)

    def commit(self, st: Json, events: List[Json], *, tx_type: str, signer: str) -> int:
        """Persist the post-operation snapshot and its events atomically.

        Returns the new op_seq.
        """
        if not isinstance(st, dict):
            raise ValueError("ledger commit expects dict")
        ledger_time = int(st.get("time") or 0)
        with self._db.write_tx() as con:
            row = con.execute("SELECT op_seq FROM ledger_state WHERE id=1;").fetchone()
            op_seq = (int(row["op_seq"]) if row is not None else 0) + 1
            for ev in events:
                con.execute(
                    "INSERT INTO events(op_seq, tx_type, signer, kind, event_json, ledger_time) VALUES(?,?,?,?,?,?);",
                    (op_seq, str(tx_type), str(signer), str(ev.get("kind") or ""), _canon_json(ev), ledger_time),
                )
            self._upsert_state(con, st, op_seq)
        return op_seq

    def read_events(self, *, after_seq: int = 0, limit: int = 100, kind: Optional[str] = None) -> List[Json]:
        limit = max(1, min(int(limit), 1000))
        sql = "SELECT seq, op_seq, tx_type, signer, event_json, ledger_time FROM events WHERE seq > ?"
        args: List[Any] = [int(after_seq)]
        if kind:
            sql += " AND kind = ?"
            args.append(str(kind))
        sql += " ORDER BY seq ASC LIMIT ?;"
        args.append(limit)

        out: List[Json] = []
        with self._db.connection() as con:
            for row in con.execute(sql, args).fetchall():
                ev = json.loads(str(row["event_json"]))
                out.append(
                    {
                        "seq": int(row["seq"]),
                        "op_seq": int(row["op_seq"]),
                        "tx_type": str(row["tx_type"]),
                        "signer": str(row["signer"]),
                        "time": int(row["ledger_time"]),
                        "event": ev,
                    }
                )
        return out


__all__ = ["SqliteDB", "SqliteLedgerStore"]
