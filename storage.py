"""Storage backends for the POS.

Both backends behave like browser local storage: string keys mapping to JSON
documents. ``transaction()`` groups several writes into one unit that either
applies completely or not at all.
"""
import copy
import json
from contextlib import contextmanager
from datetime import datetime

from database import DatabaseManager, commit_with_retry


def _now():
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class MemoryStorage:
    """Dict-backed storage, used by the tests and for throwaway sessions."""

    def __init__(self, initial=None):
        self._data = {}
        self._audit = []
        self._in_transaction = False
        for key, value in (initial or {}).items():
            self.set_item(key, value)

    def get_item(self, key, default=None):
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set_item(self, key, value):
        self._data[key] = json.dumps(value)

    def remove_item(self, key):
        self._data.pop(key, None)

    def keys(self):
        return sorted(self._data)

    @contextmanager
    def transaction(self):
        if self._in_transaction:
            # nested units join the outer one
            yield self
            return
        snapshot = copy.copy(self._data)
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self._data = snapshot
            raise
        finally:
            self._in_transaction = False

    def write_audit(self, event_type, detail=None, username=None, role=None):
        self._audit.append({
            'id': len(self._audit) + 1,
            'username': username,
            'role': role,
            'event_type': event_type,
            'detail': detail,
            'created_at': _now(),
        })

    def read_audit(self, limit=50):
        return list(reversed(self._audit))[:limit]


class SQLiteStorage:
    """Local storage persisted in the SQLite file managed by ``DatabaseManager``."""

    def __init__(self, db=None):
        self.db = db if db is not None else DatabaseManager()
        self._conn = None

    @contextmanager
    def _connection(self):
        # Inside transaction() every call shares the open connection
        if self._conn is not None:
            yield self._conn
            return
        conn = self.db.connect()
        try:
            yield conn
        finally:
            conn.close()

    def get_item(self, key, default=None):
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM local_storage WHERE key=?", (key,)).fetchone()
        if row is None:
            return default
        return json.loads(row['value'])

    def set_item(self, key, value):
        payload = json.dumps(value)
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO local_storage (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                (key, payload, _now())
            )

    def remove_item(self, key):
        with self._connection() as conn:
            conn.execute("DELETE FROM local_storage WHERE key=?", (key,))

    def keys(self):
        with self._connection() as conn:
            rows = conn.execute("SELECT key FROM local_storage ORDER BY key").fetchall()
        return [r['key'] for r in rows]

    @contextmanager
    def transaction(self):
        if self._conn is not None:
            yield self
            return
        conn = self.db.connect()
        conn.execute("BEGIN IMMEDIATE")
        self._conn = conn
        try:
            yield self
            commit_with_retry(conn)
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._conn = None
            conn.close()

    def write_audit(self, event_type, detail=None, username=None, role=None):
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO audit_logs (username, role, event_type, detail, created_at) VALUES (?, ?, ?, ?, ?)",
                (username, role, event_type, detail, _now())
            )

    def read_audit(self, limit=50):
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_logs ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [dict(r) for r in rows]
