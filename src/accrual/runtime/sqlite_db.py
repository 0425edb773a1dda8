# src/accrual/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Tuple

from accrual.ledger.constants import DEFAULT_POOL_ID

Json = Dict[str, Any]

_PARTICIPANT_FIELDS = ("staked", "reward_per_share_paid", "settled_reward")

# Writer-lock contention budget for one pool transaction.
_WRITE_DEADLINE_MS = 30_000
_BACKOFF_BASE_S = 0.005
_BACKOFF_MAX_S = 0.25


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    # Pool records hold only str/int/bool; anything else is a bug.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _busy_timeout_ms() -> int:
    raw = (os.environ.get("ACCRUAL_SQLITE_BUSY_TIMEOUT_MS") or "").strip()
    try:
        return max(0, int(raw)) if raw else 5_000
    except ValueError:
        return 5_000


class SqliteDB:
    """One SQLite file holding pool records and participant balances.

    Connections are never shared: every transaction opens its own, so
    separate threads and processes only contend on SQLite's file lock.
    A pool write is a single BEGIN IMMEDIATE transaction; while another
    writer holds the lock it is retried with jittered backoff until
    _WRITE_DEADLINE_MS, then the error propagates and nothing is applied.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _synchronous() -> str:
        # Balances must survive power loss in prod.
        mode = (os.environ.get("ACCRUAL_MODE") or "prod").strip().lower()
        return "FULL" if mode == "prod" else "NORMAL"

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        busy_ms = _busy_timeout_ms()
        con = sqlite3.connect(
            self.path,
            timeout=busy_ms / 1000.0,
            isolation_level=None,  # explicit BEGIN/COMMIT
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode != "wal":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is {mode!r}, expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._synchronous()};")
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS pool_state (
                  pool_id TEXT PRIMARY KEY,
                  pool_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )
            # uint256 values do not fit INTEGER; stored as decimal text.
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS participants (
                  pool_id TEXT NOT NULL,
                  participant_id TEXT NOT NULL,
                  staked TEXT NOT NULL,
                  reward_per_share_paid TEXT NOT NULL,
                  settled_reward TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL,
                  PRIMARY KEY (pool_id, participant_id)
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            elif str(row["value"]) != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"pool db schema_version is {row['value']}, this build expects {self.SCHEMA_VERSION}"
                )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @contextmanager
    def read_tx(self) -> Iterator[sqlite3.Connection]:
        """Pool record and participants read from one snapshot."""
        with self.connection() as con:
            con.execute("BEGIN;")
            try:
                yield con
            finally:
                con.execute("COMMIT;")

    @staticmethod
    def _is_locked(e: sqlite3.OperationalError) -> bool:
        msg = str(e).lower()
        return "locked" in msg or "busy" in msg

    def _retry(self, con: sqlite3.Connection, sql: str, deadline_ms: int) -> None:
        attempt = 0
        while True:
            try:
                con.execute(sql)
                return
            except sqlite3.OperationalError as e:
                if not self._is_locked(e) or _now_ms() >= deadline_ms:
                    raise
                sleep_s = min(_BACKOFF_MAX_S, _BACKOFF_BASE_S * (2 ** min(attempt, 8)))
                time.sleep(sleep_s * (0.5 + random.random()))
                attempt += 1

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT; any exception in the block rolls back."""
        deadline = _now_ms() + _WRITE_DEADLINE_MS
        with self.connection() as con:
            self._retry(con, "BEGIN IMMEDIATE;", deadline)
            try:
                yield con
                self._retry(con, "COMMIT;", deadline)
            except Exception:
                if con.in_transaction:
                    con.execute("ROLLBACK;")
                raise


class SqlitePoolStore:
    """Pool store persisted in SQLite.

    One row per pool in pool_state, one row per (pool, participant) in
    participants. update() touches the pool row plus only the participants
    an operation names, all inside a single write transaction.
    """

    def __init__(self, *, db: SqliteDB, pool_id: str = DEFAULT_POOL_ID) -> None:
        self._db = db
        self._db.init_schema()
        self.pool_id = str(pool_id)

    @property
    def db(self) -> SqliteDB:
        return self._db

    def exists(self) -> bool:
        with self._db.connection() as con:
            row = con.execute("SELECT 1 FROM pool_state WHERE pool_id=?;", (self.pool_id,)).fetchone()
            return row is not None

    def _load(self, con: sqlite3.Connection, participant_ids: Iterable[str]) -> Json:
        row = con.execute("SELECT pool_json FROM pool_state WHERE pool_id=?;", (self.pool_id,)).fetchone()
        pool: Json = {}
        if row is not None:
            pool = json.loads(str(row["pool_json"]))
            if not isinstance(pool, dict):
                raise ValueError("pool_state is not a JSON object")

        parts: Json = {}
        for pid in participant_ids:
            prow = con.execute(
                "SELECT staked, reward_per_share_paid, settled_reward FROM participants "
                "WHERE pool_id=? AND participant_id=?;",
                (self.pool_id, str(pid)),
            ).fetchone()
            if prow is not None:
                parts[str(pid)] = {k: int(str(prow[k])) for k in _PARTICIPANT_FIELDS}
        return {"pool": pool, "participants": parts}

    def read(self, participant_ids: Iterable[str] = ()) -> Json:
        with self._db.read_tx() as con:
            return self._load(con, participant_ids)

    def update(self, mut: Callable[[Json], Any], *, participant_ids: Iterable[str] = ()) -> Any:
        with self._db.write_tx() as con:
            working = self._load(con, participant_ids)
            out = mut(working)

            pool = working.get("pool")
            if not isinstance(pool, dict):
                raise ValueError("pool record is not a dict")
            parts = working.get("participants")
            if not isinstance(parts, dict):
                raise ValueError("participants is not a dict")

            now = _now_ms()
            con.execute(
                """
                INSERT INTO pool_state(pool_id, pool_json, updated_ts_ms)
                VALUES(?, ?, ?)
                ON CONFLICT(pool_id) DO UPDATE SET
                  pool_json=excluded.pool_json,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (self.pool_id, _canon_json(pool), now),
            )
            for pid, rec in parts.items():
                con.execute(
                    """
                    INSERT INTO participants(pool_id, participant_id, staked, reward_per_share_paid,
                                             settled_reward, updated_ts_ms)
                    VALUES(?, ?, ?, ?, ?, ?)
                    ON CONFLICT(pool_id, participant_id) DO UPDATE SET
                      staked=excluded.staked,
                      reward_per_share_paid=excluded.reward_per_share_paid,
                      settled_reward=excluded.settled_reward,
                      updated_ts_ms=excluded.updated_ts_ms;
                    """,
                    (
                        self.pool_id,
                        str(pid),
                        str(int(rec.get("staked", 0))),
                        str(int(rec.get("reward_per_share_paid", 0))),
                        str(int(rec.get("settled_reward", 0))),
                        now,
                    ),
                )
            return out

    def iter_participants(self) -> Iterator[Tuple[str, Json]]:
        with self._db.read_tx() as con:
            rows = con.execute(
                "SELECT participant_id, staked, reward_per_share_paid, settled_reward FROM participants "
                "WHERE pool_id=? ORDER BY participant_id;",
                (self.pool_id,),
            ).fetchall()
        out: List[Tuple[str, Json]] = []
        for r in rows:
            out.append((str(r["participant_id"]), {k: int(str(r[k])) for k in _PARTICIPANT_FIELDS}))
        return iter(out)
