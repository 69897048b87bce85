import sqlite3
from pathlib import Path


def get_conn(db_path: str):
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str):
    conn = get_conn(db_path)
    cur = conn.cursor()

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS string_tables (
          name TEXT PRIMARY KEY,
          created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS locales (
          code TEXT PRIMARY KEY,
          position INTEGER NOT NULL,
          created_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS entries (
          table_name TEXT NOT NULL,
          key TEXT NOT NULL,
          locale TEXT NOT NULL,
          text TEXT NOT NULL DEFAULT '',
          updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
          PRIMARY KEY (table_name, key, locale)
        )
        """
    )

    cur.execute("CREATE INDEX IF NOT EXISTS idx_entries_table ON entries(table_name)")

    conn.commit()
    conn.close()
