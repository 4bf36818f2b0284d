"""SQLite session storage.

All session records live in a single database (default
~/.taskrelay/sessions.db) with three tables:
- sessions: one row per session, indexed by token and expiry
- chat_sessions: the "current session" pointer for each chat
- legacy_imports: ids of legacy JSON records already imported, so a
  revoked or expired legacy session is not brought back from its file

The hook process writes sessions while the webhook server reads them, so the
database runs in WAL mode and every write is a short IMMEDIATE transaction.
Each thread gets its own connection.

Legacy one-file-per-session JSON records (~/.../sessions/{id}.json) remain
readable through import_legacy() and a lookup fallback.
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path

import orjson

from taskrelay.core.errors import DuplicateTokenError
from taskrelay.core.session import Session
from taskrelay.core.tokens import normalize_token

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    token TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL,
    target TEXT NOT NULL,
    project TEXT NOT NULL DEFAULT '',
    chat_id TEXT NOT NULL DEFAULT '',
    kind TEXT NOT NULL DEFAULT 'completed'
);

CREATE INDEX IF NOT EXISTS idx_sessions_token ON sessions(token);
CREATE INDEX IF NOT EXISTS idx_sessions_expires ON sessions(expires_at);

CREATE TABLE IF NOT EXISTS chat_sessions (
    chat_id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL
);

-- Ids of legacy records already imported once; never imported again
CREATE TABLE IF NOT EXISTS legacy_imports (
    session_id TEXT PRIMARY KEY
);
"""

# Written by the old chat-pointer layout, not a session record
LEGACY_CHAT_FILE = "chat-sessions.json"


class SessionStore:
    """SQLite-backed session storage, safe across threads and processes."""

    def __init__(self, db_path: Path, legacy_dir: Path | None = None):
        self.db_path = Path(db_path)
        self.legacy_dir = Path(legacy_dir) if legacy_dir else None
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_guard = threading.Lock()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_conn()
        conn.executescript(SCHEMA)

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            # isolation_level=None: we issue BEGIN/COMMIT ourselves
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=10.0,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=10000")
            self._local.conn = conn
            with self._connections_guard:
                self._connections.append(conn)
        return conn

    def close(self) -> None:
        with self._connections_guard:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def _row_to_session(self, row: sqlite3.Row) -> Session:
        return Session(
            id=row["id"],
            token=row["token"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            target=row["target"],
            project=row["project"],
            chat_id=row["chat_id"],
            kind=row["kind"],
        )

    def _insert_unlocked(self, conn: sqlite3.Connection, session: Session) -> None:
        token = normalize_token(session.token)
        holders = conn.execute(
            "SELECT id, expires_at FROM sessions WHERE token = ?", (token,)
        ).fetchall()
        for holder in holders:
            if holder["expires_at"] > session.created_at:
                raise DuplicateTokenError(token)
            self._delete_unlocked(conn, holder["id"])

        try:
            conn.execute(
                """INSERT INTO sessions
                (id, token, created_at, expires_at, target, project, chat_id, kind)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    session.id,
                    token,
                    session.created_at,
                    session.expires_at,
                    session.target,
                    session.project,
                    session.chat_id,
                    session.kind,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Session {session.id} already exists") from e

    def put(self, session: Session) -> Session:
        """Insert a new session.

        An expired session holding the same token is removed in the same
        transaction. "Expired" is judged against the new session's
        created_at.

        Raises:
            DuplicateTokenError: If a live session already holds the token.
            ValueError: If a session with the same id already exists.
        """
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            self._insert_unlocked(conn, session)
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return session

    def get_by_token(self, token: str) -> Session | None:
        """Look up the newest session holding a token (case-insensitive)."""
        token = normalize_token(token)
        row = self._get_conn().execute(
            "SELECT * FROM sessions WHERE token = ? ORDER BY created_at DESC LIMIT 1",
            (token,),
        ).fetchone()
        if row:
            return self._row_to_session(row)

        if self.legacy_dir is not None:
            return self._find_legacy(token)
        return None

    def get_by_id(self, session_id: str) -> Session | None:
        row = self._get_conn().execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self) -> list[Session]:
        """List all stored sessions, newest first."""
        rows = self._get_conn().execute(
            "SELECT * FROM sessions ORDER BY created_at DESC, id"
        ).fetchall()
        return [self._row_to_session(r) for r in rows]

    def _delete_unlocked(self, conn: sqlite3.Connection, session_id: str) -> bool:
        cursor = conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        conn.execute("DELETE FROM chat_sessions WHERE session_id = ?", (session_id,))
        return cursor.rowcount > 0

    def delete(self, session_id: str) -> bool:
        """Delete a session and any chat pointer at it.

        Idempotent. Returns True if a session row was removed.
        """
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            removed = self._delete_unlocked(conn, session_id)
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return removed

    def delete_expired(self, now: int) -> int:
        """Delete every session with expires_at <= now.

        Returns:
            Number of sessions removed.
        """
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            conn.execute(
                """DELETE FROM chat_sessions WHERE session_id IN
                (SELECT id FROM sessions WHERE expires_at <= ?)""",
                (now,),
            )
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now,))
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return cursor.rowcount

    def set_current_for_chat(self, chat_id: str, session: Session) -> None:
        """Point a chat's reply shortcut at a session.

        Replaces any previous pointer; the previous session is kept.
        """
        self._get_conn().execute(
            "INSERT OR REPLACE INTO chat_sessions (chat_id, session_id) VALUES (?, ?)",
            (str(chat_id), session.id),
        )

    def get_current_for_chat(self, chat_id: str) -> Session | None:
        row = self._get_conn().execute(
            """SELECT s.* FROM chat_sessions c
            JOIN sessions s ON s.id = c.session_id
            WHERE c.chat_id = ?""",
            (str(chat_id),),
        ).fetchone()
        return self._row_to_session(row) if row else None

    def _iter_legacy(self, directory: Path):
        """Yield sessions parsed from a legacy sessions directory."""
        if not directory.is_dir():
            return
        for path in sorted(directory.glob("*.json")):
            if path.name == LEGACY_CHAT_FILE:
                continue
            try:
                yield Session.from_legacy(orjson.loads(path.read_bytes()))
            except (orjson.JSONDecodeError, OSError, ValueError, TypeError) as e:
                logger.error("Failed to read legacy session file %s: %s", path.name, e)

    def _import_one(self, session: Session) -> bool:
        """Insert a legacy session unless its id was imported before.

        Returns:
            True if the session was inserted.

        Raises:
            DuplicateTokenError: If a live session already holds the token.
            ValueError: If a session with the same id already exists.
        """
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            seen = conn.execute(
                "SELECT 1 FROM legacy_imports WHERE session_id = ?", (session.id,)
            ).fetchone()
            if seen is None:
                self._insert_unlocked(conn, session)
                conn.execute(
                    "INSERT INTO legacy_imports (session_id) VALUES (?)", (session.id,)
                )
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return seen is None

    def _find_legacy(self, token: str) -> Session | None:
        for session in self._iter_legacy(self.legacy_dir):
            if session.token != token:
                continue
            # Expired legacy records stay on disk, so they are never imported
            if session.is_expired(int(time.time())):
                return None
            try:
                imported = self._import_one(session)
            except (DuplicateTokenError, ValueError) as e:
                logger.warning("Legacy session %s not imported: %s", session.id, e)
                return None
            if not imported:
                # Imported once already, then revoked or expired
                return None
            logger.info("Imported legacy session %s on lookup", session.id)
            return session
        return None

    def import_legacy(self, directory: Path, now: int) -> int:
        """Import unexpired legacy session files into the store.

        Records that are expired, already present, imported before, or whose
        token is taken are skipped. Legacy files are left untouched.

        Returns:
            Number of sessions imported.
        """
        imported = 0
        for session in self._iter_legacy(Path(directory)):
            if session.is_expired(now) or self.get_by_id(session.id) is not None:
                continue
            try:
                if self._import_one(session):
                    imported += 1
            except (DuplicateTokenError, ValueError) as e:
                logger.warning("Legacy session %s not imported: %s", session.id, e)
        return imported
