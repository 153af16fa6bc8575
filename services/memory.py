import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from standup_order.config import get_db_path as _configured_db_path


DB_PATH = _configured_db_path()


def get_db_path() -> Path:
    return DB_PATH

def get_conn() -> sqlite3.Connection:
    """Get a database connection."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(DB_PATH, timeout=10)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA foreign_keys=ON;")
    return con


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Open a connection holding the write lock until the block exits.

    BEGIN IMMEDIATE makes read-then-write sequences atomic against other
    writers, in this process or another one.
    """
    con = get_conn()
    try:
        con.execute("BEGIN IMMEDIATE")
        yield con
        con.commit()
    except Exception:
        con.rollback()
        raise
    finally:
        con.close()


def init_db() -> None:
    con = get_conn()
    cur = con.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY,
        handle TEXT UNIQUE NOT NULL,    -- opaque chat handle, as in <@handle>
        username TEXT,                  -- @name typed in chat, if any
        full_name TEXT,
        email TEXT,
        is_bot INTEGER DEFAULT 0,
        is_admin INTEGER DEFAULT 0,
        send_report INTEGER DEFAULT 0,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS channels (
        id INTEGER PRIMARY KEY,
        handle TEXT UNIQUE NOT NULL,
        name TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS order_records (
        id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL,
        channel_id INTEGER NOT NULL,
        day TEXT NOT NULL, -- YYYY-MM-DD
        state TEXT NOT NULL DEFAULT 'idle' CHECK(state IN (
            'idle', 'active', 'answering', 'done', 'not_available', 'vacation'
        )),
        yesterday TEXT,
        today TEXT,
        conflicts TEXT,
        sequence_position INTEGER NOT NULL DEFAULT 1,
        auto_skipped_times INTEGER NOT NULL DEFAULT 0,
        reason TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
        FOREIGN KEY(channel_id) REFERENCES channels(id) ON DELETE CASCADE,
        UNIQUE(user_id, channel_id, day)
    );
    """)

    cur.execute("PRAGMA table_info(users)")
    user_columns = [row[1] for row in cur.fetchall()]
    if "username" not in user_columns:
        cur.execute("ALTER TABLE users ADD COLUMN username TEXT")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_users_username ON users(username)")

    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_order_records_channel_day ON order_records(channel_id, day)"
    )

    con.commit()
    con.close()
