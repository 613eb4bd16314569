"""
Session Store — initial snapshot, running snapshot and append-only turn log.

Behavioral Contract:
- The turn log is the source of truth; the running snapshot is a cache
  that replay must reproduce exactly.
- Append-only. No record is ever modified or deleted.
- Each record is hashed and chained to the previous record of its session.
- Appending a turn that is already logged is a no-op returning the stored
  record, so a retried commit never duplicates history.
- Snapshots whose schema version does not carry the expected prefix fail
  fast with IncompatibleSessionError; there is no upgrade path.

Two backends honor the same protocol: JSONL files (one directory per
session) and SQLite.
"""

import hashlib
import json
import logging
import os
import re
import sqlite3
from pathlib import Path
from typing import List, Optional, Protocol, Tuple
from uuid import uuid4

from saga_kernel.errors import IncompatibleSessionError, InputValidationError
from saga_kernel.models.turn import TurnRecord
from saga_kernel.models.world import WorldState
from saga_kernel.world_model.factory import SCHEMA_VERSION_PREFIX, WorldFactory

logger = logging.getLogger(__name__)

_SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


def check_session_id(session_id: str) -> str:
    if not _SESSION_ID_PATTERN.match(session_id or ""):
        raise InputValidationError(
            "sessionId must be 1-64 characters of letters, digits, '-' or '_'"
        )
    return session_id


def compute_signature(record: TurnRecord) -> str:
    """SHA-256 over the canonical JSON of the record with an empty signature."""
    record_dict = record.model_dump(mode="json")
    record_dict["signature"] = ""
    record_bytes = json.dumps(record_dict, sort_keys=True, default=str).encode()
    return hashlib.sha256(record_bytes).hexdigest()


def sign_record(record: TurnRecord, prior_hash: Optional[str]) -> TurnRecord:
    signed = record.model_copy(update={"prior_record_hash": prior_hash, "signature": ""})
    signed.signature = compute_signature(signed)
    return signed


def verify_records(records: List[TurnRecord]) -> bool:
    """Recompute every signature and chain link."""
    prior: Optional[str] = None
    for record in records:
        if record.signature != compute_signature(record):
            return False
        if record.prior_record_hash != prior:
            return False
        prior = record.signature
    return True


def load_state_checked(session_id: str, raw_json: str) -> WorldState:
    """Check the schema version on the raw payload, then validate it."""
    raw = json.loads(raw_json)
    version = raw.get("meta", {}).get("version") if isinstance(raw, dict) else None
    if not isinstance(version, str) or not version.startswith(SCHEMA_VERSION_PREFIX):
        raise IncompatibleSessionError(session_id, version, SCHEMA_VERSION_PREFIX)
    return WorldState.model_validate(raw)


class SessionStore(Protocol):
    """Protocol for session persistence — pluggable backend."""

    def ensure_session(
        self, session_id: Optional[str], factory: WorldFactory
    ) -> Tuple[str, WorldState, bool]: ...

    def load_session(self, session_id: str) -> Optional[WorldState]: ...

    def load_initial(self, session_id: str) -> Optional[WorldState]: ...

    def load_turn_log(self, session_id: str) -> List[TurnRecord]: ...

    def append_turn(self, session_id: str, record: TurnRecord) -> TurnRecord: ...

    def save_snapshot(self, session_id: str, state: WorldState) -> None: ...

    def verify_chain_integrity(self, session_id: str) -> bool: ...


class JsonlSessionStore:
    """
    File-backed store. Layout per session:

        <root>/<session_id>/initial.json
        <root>/<session_id>/snapshot.json
        <root>/<session_id>/turns.jsonl
    """

    def __init__(self, root_dir: str):
        self.root = Path(root_dir)

    def _dir(self, session_id: str) -> Path:
        return self.root / check_session_id(session_id)

    @staticmethod
    def _write_atomic(path: Path, content: str) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)

    def ensure_session(
        self, session_id: Optional[str], factory: WorldFactory
    ) -> Tuple[str, WorldState, bool]:
        session_id = session_id or new_session_id()
        existing = self.load_session(session_id)
        if existing is not None:
            logger.info("Loaded session %s at turn %d", session_id, existing.meta.turn)
            return session_id, existing, False

        state = factory()
        session_dir = self._dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)
        payload = state.model_dump_json()
        self._write_atomic(session_dir / "initial.json", payload)
        self._write_atomic(session_dir / "snapshot.json", payload)
        (session_dir / "turns.jsonl").touch()
        logger.info("Created session %s (world=%s)", session_id, state.meta.world_id)
        return session_id, state, True

    def _load(self, session_id: str, name: str) -> Optional[WorldState]:
        path = self._dir(session_id) / name
        if not path.exists():
            return None
        return load_state_checked(session_id, path.read_text(encoding="utf-8"))

    def load_session(self, session_id: str) -> Optional[WorldState]:
        return self._load(session_id, "snapshot.json")

    def load_initial(self, session_id: str) -> Optional[WorldState]:
        return self._load(session_id, "initial.json")

    def load_turn_log(self, session_id: str) -> List[TurnRecord]:
        path = self._dir(session_id) / "turns.jsonl"
        if not path.exists():
            return []
        records = []
        with path.open(encoding="utf-8") as fh:
            for line in fh:
                if line.strip():
                    records.append(TurnRecord.model_validate_json(line))
        return records

    def append_turn(self, session_id: str, record: TurnRecord) -> TurnRecord:
        log = self.load_turn_log(session_id)
        for existing in log:
            if existing.turn == record.turn:
                logger.info("Turn %d of session %s already logged; skipping append", record.turn, session_id)
                return existing

        signed = sign_record(record, log[-1].signature if log else None)
        with (self._dir(session_id) / "turns.jsonl").open("a", encoding="utf-8") as fh:
            fh.write(signed.model_dump_json() + "\n")
        logger.debug("Appended turn %d to session %s", signed.turn, session_id)
        return signed

    def save_snapshot(self, session_id: str, state: WorldState) -> None:
        self._write_atomic(self._dir(session_id) / "snapshot.json", state.model_dump_json())
        logger.debug("Saved snapshot for session %s at turn %d", session_id, state.meta.turn)

    def verify_chain_integrity(self, session_id: str) -> bool:
        return verify_records(self.load_turn_log(session_id))


class SqliteSessionStore:
    """
    Embedded-database store.
    Prototype: SQLite. Any backend must keep "replay reconstructs snapshot".
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the session tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                version TEXT NOT NULL,
                initial_json TEXT NOT NULL,
                snapshot_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS turns (
                session_id TEXT NOT NULL,
                turn INTEGER NOT NULL,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                record_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                PRIMARY KEY (session_id, turn)
            )
        """)
        self._conn.commit()

    def ensure_session(
        self, session_id: Optional[str], factory: WorldFactory
    ) -> Tuple[str, WorldState, bool]:
        session_id = check_session_id(session_id or new_session_id())
        existing = self.load_session(session_id)
        if existing is not None:
            logger.info("Loaded session %s at turn %d", session_id, existing.meta.turn)
            return session_id, existing, False

        state = factory()
        payload = state.model_dump_json()
        self._conn.execute(
            "INSERT INTO sessions (session_id, version, initial_json, snapshot_json) VALUES (?, ?, ?, ?)",
            (session_id, state.meta.version, payload, payload),
        )
        self._conn.commit()
        logger.info("Created session %s (world=%s)", session_id, state.meta.world_id)
        return session_id, state, True

    def _load(self, session_id: str, column: str) -> Optional[WorldState]:
        row = self._conn.execute(
            f"SELECT {column} FROM sessions WHERE session_id = ?", (session_id,)
        ).fetchone()
        if row is None:
            return None
        return load_state_checked(session_id, row[column])

    def load_session(self, session_id: str) -> Optional[WorldState]:
        return self._load(session_id, "snapshot_json")

    def load_initial(self, session_id: str) -> Optional[WorldState]:
        return self._load(session_id, "initial_json")

    def load_turn_log(self, session_id: str) -> List[TurnRecord]:
        rows = self._conn.execute(
            "SELECT record_json FROM turns WHERE session_id = ? ORDER BY turn",
            (session_id,),
        ).fetchall()
        return [TurnRecord.model_validate_json(r["record_json"]) for r in rows]

    def append_turn(self, session_id: str, record: TurnRecord) -> TurnRecord:
        row = self._conn.execute(
            "SELECT record_json FROM turns WHERE session_id = ? AND turn = ?",
            (session_id, record.turn),
        ).fetchone()
        if row is not None:
            logger.info("Turn %d of session %s already logged; skipping append", record.turn, session_id)
            return TurnRecord.model_validate_json(row["record_json"])

        latest = self._conn.execute(
            "SELECT signature FROM turns WHERE session_id = ? ORDER BY turn DESC LIMIT 1",
            (session_id,),
        ).fetchone()
        signed = sign_record(record, latest["signature"] if latest else None)
        self._conn.execute(
            """
            INSERT INTO turns (session_id, turn, signature, prior_record_hash, record_json)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, signed.turn, signed.signature, signed.prior_record_hash, signed.model_dump_json()),
        )
        self._conn.commit()
        logger.debug("Appended turn %d to session %s", signed.turn, session_id)
        return signed

    def save_snapshot(self, session_id: str, state: WorldState) -> None:
        self._conn.execute(
            "UPDATE sessions SET snapshot_json = ?, version = ?, updated_at = datetime('now') "
            "WHERE session_id = ?",
            (state.model_dump_json(), state.meta.version, session_id),
        )
        self._conn.commit()
        logger.debug("Saved snapshot for session %s at turn %d", session_id, state.meta.turn)

    def verify_chain_integrity(self, session_id: str) -> bool:
        return verify_records(self.load_turn_log(session_id))

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def create_store(backend: str, data_dir: str) -> SessionStore:
    if backend == "sqlite":
        Path(data_dir).mkdir(parents=True, exist_ok=True)
        return SqliteSessionStore(str(Path(data_dir) / "sessions.db"))
    return JsonlSessionStore(data_dir)
