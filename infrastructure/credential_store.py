import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from use_cases.session_models import Credential

log = logging.getLogger(__name__)

_UNSET = object()


class MemoryCredentialStore:
    """Process-local store; the credential does not survive a restart."""

    def __init__(self, credential: Optional[Credential] = None):
        self._credential = credential

    def get(self) -> Optional[Credential]:
        return self._credential

    def set(self, credential: Optional[Credential]) -> None:
        self._credential = credential


class SQLiteCredentialStore:
    """Durable single-credential store with an in-memory mirror.

    Reads are served from the mirror once it has been loaded, so `get()` stays
    cheap and synchronous for the session controller.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._mirror = _UNSET
        self.init_db()

    def _conn(self):
        return sqlite3.connect(self.db_path)

    def init_db(self):
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS credential (
                    slot INTEGER PRIMARY KEY CHECK (slot = 1),
                    token TEXT NOT NULL,
                    expires_at TEXT,
                    stored_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self) -> Optional[Credential]:
        if self._mirror is _UNSET:
            self._mirror = self._load()
        return self._mirror

    def set(self, credential: Optional[Credential]) -> None:
        with self._conn() as conn:
            if credential is None:
                conn.execute("DELETE FROM credential")
            else:
                expires_at = credential.expires_at.isoformat() if credential.expires_at else None
                conn.execute(
                    """
                    INSERT INTO credential (slot, token, expires_at, stored_at)
                    VALUES (1, ?, ?, ?)
                    ON CONFLICT(slot) DO UPDATE SET
                        token = excluded.token,
                        expires_at = excluded.expires_at,
                        stored_at = excluded.stored_at
                    """,
                    (credential.token, expires_at, datetime.now(timezone.utc).isoformat()),
                )
            conn.commit()
        self._mirror = credential
        log.debug(f"Credential {'cleared' if credential is None else 'stored'}")

    def _load(self) -> Optional[Credential]:
        with self._conn() as conn:
            row = conn.execute("SELECT token, expires_at FROM credential WHERE slot = 1").fetchone()
        if not row:
            return None
        token, expires_raw = row
        expires_at = None
        if expires_raw:
            try:
                expires_at = datetime.fromisoformat(expires_raw)
            except ValueError:
                log.warning("Stored credential has an unreadable expiry, keeping token without it")
        return Credential(token=token, expires_at=expires_at)
