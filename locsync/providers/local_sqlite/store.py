from __future__ import annotations

from pathlib import Path
from typing import Iterator

from locsync.core.errors import LocalStoreError
from locsync.providers.local_sqlite.db import get_conn, init_db


class SqliteLocalStore:
    """Local translation tables kept in one sqlite file.

    A key belongs to a table as soon as it has one entry row, even an empty
    one. Locales are ordered by the position they were added in.
    """

    def __init__(self, db_path: str):
        self.db_path = str(Path(db_path).expanduser())
        init_db(self.db_path)

    def list_tables(self) -> list[str]:
        conn = get_conn(self.db_path)
        try:
            rows = conn.execute("SELECT name FROM string_tables ORDER BY name").fetchall()
        finally:
            conn.close()
        return [r["name"] for r in rows]

    def list_locales(self) -> list[str]:
        conn = get_conn(self.db_path)
        try:
            rows = conn.execute("SELECT code FROM locales ORDER BY position, code").fetchall()
        finally:
            conn.close()
        return [r["code"] for r in rows]

    def scan_entries(self, table: str) -> Iterator[tuple[str, str, str]]:
        conn = get_conn(self.db_path)
        try:
            rows = conn.execute(
                "SELECT key, locale, text FROM entries WHERE table_name=? ORDER BY key, locale",
                (table,),
            ).fetchall()
        finally:
            conn.close()
        for r in rows:
            yield r["key"], r["locale"], r["text"] or ""

    def write_entry(self, table: str, key: str, locale: str, text: str) -> None:
        if table not in self.list_tables():
            raise LocalStoreError(f"local_table_missing: {table}")
        if locale not in self.list_locales():
            raise LocalStoreError(f"local_locale_missing: {locale}")
        conn = get_conn(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO entries(table_name, key, locale, text, updated_at)
                VALUES(?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(table_name, key, locale)
                DO UPDATE SET text=excluded.text, updated_at=CURRENT_TIMESTAMP
                """,
                (table, key, locale, text or ""),
            )
            conn.commit()
        finally:
            conn.close()

    def add_table(self, name: str) -> bool:
        name = (name or "").strip()
        if not name:
            raise LocalStoreError("table_name_empty")
        conn = get_conn(self.db_path)
        try:
            cur = conn.execute("INSERT OR IGNORE INTO string_tables(name) VALUES(?)", (name,))
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()

    def add_locale(self, code: str) -> bool:
        code = (code or "").strip()
        if not code:
            raise LocalStoreError("locale_code_empty")
        conn = get_conn(self.db_path)
        try:
            row = conn.execute("SELECT COALESCE(MAX(position), -1) + 1 AS next_pos FROM locales").fetchone()
            cur = conn.execute(
                "INSERT OR IGNORE INTO locales(code, position) VALUES(?, ?)",
                (code, int(row["next_pos"])),
            )
            conn.commit()
            return cur.rowcount > 0
        finally:
            conn.close()
