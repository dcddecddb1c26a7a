import sqlite3
import os
import time

# Use a DB file located next to this module so the application uses a consistent
# database file regardless of the current working directory when launched.
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_NAME = os.path.join(BASE_DIR, "pos_storage.db")


def commit_with_retry(conn, retries=6, initial_delay=0.5):
    """Attempt to commit, retrying on `sqlite3.OperationalError: database is locked`.

    Retries use exponential backoff (initial_delay * 2**attempt).
    """
    last_exc = None
    for attempt in range(retries):
        try:
            conn.commit()
            return
        except sqlite3.OperationalError as e:
            last_exc = e
            msg = str(e).lower()
            if 'locked' in msg or 'busy' in msg:
                delay = initial_delay * (2 ** attempt)
                time.sleep(delay)
                continue
            raise
    # If we exhausted retries, re-raise last exception
    raise last_exc


class DatabaseManager:
    def __init__(self, db_name=DB_NAME):
        self.db_name = db_name
        self.check_schema()

    def connect(self):
        # Wait for locks instead of failing immediately; isolation_level=None lets
        # callers issue BEGIN IMMEDIATE themselves for multi-statement units.
        conn = sqlite3.connect(self.db_name, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def check_schema(self):
        conn = self.connect()
        c = conn.cursor()
        # Improve concurrency: enable WAL journal mode and set busy timeout
        try:
            c.execute('PRAGMA journal_mode=WAL')
        except sqlite3.DatabaseError:
            pass
        c.execute('PRAGMA busy_timeout = 30000')

        # Key/value documents (JSON text), the persistent side of local storage
        c.execute('''CREATE TABLE IF NOT EXISTS local_storage (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )''')

        # Audit logs for logins, checkouts and admin changes
        c.execute('''CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT,
            role TEXT,
            event_type TEXT NOT NULL,
            detail TEXT,
            created_at TEXT NOT NULL
        )''')
        conn.close()
