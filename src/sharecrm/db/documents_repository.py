"""Repository functions for generated class rolls and emailing lists."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date

from sharecrm.utils.validators import utc_now_iso


@dataclass
class ClassRollRecord:
    id: str
    session_id: str
    class_date: date
    format: str
    file_path: str | None
    generated_at: str
    downloaded_at: str | None
    session_name: str = ""


def insert_class_roll(
    conn: sqlite3.Connection,
    roll_id: str,
    session_id: str,
    class_date: date,
    fmt: str,
    file_path: str | None,
) -> None:
    conn.execute(
        """
        INSERT INTO class_rolls (id, session_id, class_date, format, file_path, generated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (roll_id, session_id, class_date.isoformat(), fmt, file_path, utc_now_iso()),
    )


def mark_roll_downloaded(conn: sqlite3.Connection, roll_id: str) -> bool:
    cursor = conn.execute(
        "UPDATE class_rolls SET downloaded_at = ? WHERE id = ?", (utc_now_iso(), roll_id)
    )
    return cursor.rowcount > 0


def get_class_roll(conn: sqlite3.Connection, roll_id: str) -> ClassRollRecord | None:
    row = conn.execute(
        """
        SELECT r.*, s.name AS session_name FROM class_rolls r
        JOIN sessions s ON s.id = r.session_id
        WHERE r.id = ?
        """,
        (roll_id,),
    ).fetchone()
    return _row_to_roll(row) if row else None


def list_class_rolls(conn: sqlite3.Connection, session_id: str | None = None) -> list[ClassRollRecord]:
    """List generated rolls, newest first."""
    sql = """
        SELECT r.*, s.name AS session_name FROM class_rolls r
        JOIN sessions s ON s.id = r.session_id
    """
    params: tuple = ()
    if session_id:
        sql += " WHERE r.session_id = ?"
        params = (session_id,)
    rows = conn.execute(f"{sql} ORDER BY r.generated_at DESC, r.rowid DESC", params).fetchall()
    return [_row_to_roll(row) for row in rows]


def _row_to_roll(row: sqlite3.Row) -> ClassRollRecord:
    return ClassRollRecord(
        id=row["id"],
        session_id=row["session_id"],
        class_date=date.fromisoformat(row["class_date"]),
        format=row["format"],
        file_path=row["file_path"],
        generated_at=row["generated_at"],
        downloaded_at=row["downloaded_at"],
        session_name=row["session_name"],
    )


# =============================================================================
# EMAILING LISTS
# =============================================================================


def get_emailing_lists(conn: sqlite3.Connection) -> dict[str, list[str]]:
    rows = conn.execute(
        "SELECT list_name, email FROM emailing_list ORDER BY list_name, email"
    ).fetchall()
    lists: dict[str, list[str]] = {}
    for row in rows:
        lists.setdefault(row["list_name"], []).append(row["email"])
    return lists


def get_list_addresses(conn: sqlite3.Connection, list_name: str) -> list[str]:
    rows = conn.execute(
        "SELECT email FROM emailing_list WHERE list_name = ? ORDER BY email", (list_name,)
    ).fetchall()
    return [row["email"] for row in rows]


def replace_list(conn: sqlite3.Connection, list_name: str, emails: list[str]) -> None:
    conn.execute("DELETE FROM emailing_list WHERE list_name = ?", (list_name,))
    conn.executemany(
        "INSERT OR IGNORE INTO emailing_list (list_name, email) VALUES (?, ?)",
        [(list_name, email) for email in emails],
    )
