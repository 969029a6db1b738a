"""SQLite database connection and schema management.

Provides connection management and schema initialization for SHARE CRM.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from sharecrm.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

# Current database (module-level, set by init_db)
_db_path: Path | None = None


def _default_db_path() -> Path:
    return Path(load_app_config().database.path)


def init_db(db_path: Path | None = None) -> Path:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured path.

    Returns:
        The path of the initialized database.
    """
    global _db_path
    _db_path = Path(db_path) if db_path else _default_db_path()

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))
    return _db_path


def current_db_path() -> Path:
    """Return the database path connections will use."""
    return _db_path or _default_db_path()


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Everything executed inside one ``with`` block is a single transaction:
    committed on success, rolled back if the block raises.

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM customers").fetchall()
    """
    db_path = current_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS staff_roles (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS permissions (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT
        );

        CREATE TABLE IF NOT EXISTS staff_role_permissions (
            role_id TEXT NOT NULL REFERENCES staff_roles(id) ON DELETE CASCADE,
            permission_id TEXT NOT NULL REFERENCES permissions(id) ON DELETE CASCADE,
            PRIMARY KEY (role_id, permission_id)
        );

        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            full_name TEXT NOT NULL DEFAULT '',
            role TEXT NOT NULL CHECK(role IN ('customer', 'instructor', 'admin')),
            staff_role_id TEXT REFERENCES staff_roles(id) ON DELETE SET NULL,
            phone TEXT,
            bio TEXT,
            disabled INTEGER NOT NULL DEFAULT 0,
            disabled_reason TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS customers (
            id TEXT PRIMARY KEY,
            user_id TEXT UNIQUE REFERENCES users(id) ON DELETE SET NULL,
            first_name TEXT NOT NULL,
            surname TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE,
            contact_no TEXT,
            street_number TEXT,
            street_name TEXT,
            suburb TEXT,
            post_code TEXT,
            country_of_birth TEXT,
            date_of_birth TEXT,
            work_mobile TEXT,
            australian_citizen INTEGER,
            language_other_than_english TEXT,
            english_proficiency TEXT,
            indigenous_status TEXT,
            reason_for_class TEXT,
            how_did_you_hear TEXT,
            occupation TEXT,
            next_of_kin_name TEXT,
            next_of_kin_relationship TEXT,
            next_of_kin_mobile TEXT,
            next_of_kin_phone TEXT,
            status TEXT NOT NULL DEFAULT 'active'
                CHECK(status IN ('active', 'blocked', 'inactive')),
            block_note TEXT,
            blocked_at TEXT,
            customer_credit INTEGER NOT NULL DEFAULT 0 CHECK(customer_credit >= 0),
            paq_form INTEGER NOT NULL DEFAULT 0,
            paq_status TEXT CHECK(paq_status IN ('pending', 'accepted', 'rejected')),
            paq_answers TEXT,
            paq_document_path TEXT,
            paq_filled_date TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS terminations (
            id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
            termination_date TEXT NOT NULL,
            reason TEXT NOT NULL,
            admin_notes TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'accepted', 'rejected')),
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS venues (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            street_address TEXT NOT NULL,
            city TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'active' CHECK(status IN ('active', 'inactive'))
        );

        CREATE TABLE IF NOT EXISTS terms (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            fiscal_year INTEGER NOT NULL,
            term_number INTEGER NOT NULL CHECK(term_number BETWEEN 1 AND 4),
            day_of_week TEXT NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            number_of_weeks INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS exercise_types (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            description TEXT
        );

        CREATE TABLE IF NOT EXISTS instructors (
            id TEXT PRIMARY KEY,
            user_id TEXT UNIQUE REFERENCES users(id) ON DELETE SET NULL,
            name TEXT NOT NULL,
            email TEXT NOT NULL,
            contact_no TEXT NOT NULL,
            specialty TEXT NOT NULL,
            address TEXT NOT NULL,
            description TEXT,
            image_link TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS sessions (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            code TEXT NOT NULL,
            venue_id TEXT NOT NULL REFERENCES venues(id),
            instructor_id TEXT NOT NULL REFERENCES instructors(id),
            exercise_type_id TEXT REFERENCES exercise_types(id),
            term_id INTEGER NOT NULL REFERENCES terms(id),
            fee_criteria TEXT NOT NULL,
            fee_amount REAL NOT NULL CHECK(fee_amount >= 0),
            day_of_week TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT,
            zip_code TEXT,
            is_subsidised INTEGER NOT NULL DEFAULT 0,
            class_capacity INTEGER
        );

        CREATE TABLE IF NOT EXISTS class_cancellations (
            id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
            instructor_id TEXT REFERENCES instructors(id) ON DELETE SET NULL,
            class_date TEXT NOT NULL,
            reason TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'accepted', 'rejected')),
            admin_notes TEXT,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            reviewed_at TEXT,
            UNIQUE (session_id, class_date)
        );

        CREATE TABLE IF NOT EXISTS enrollments (
            id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL REFERENCES customers(id),
            enrollment_type TEXT NOT NULL CHECK(enrollment_type IN ('direct', 'portal')),
            status TEXT NOT NULL CHECK(status IN ('pending', 'active', 'cancelled')),
            payment_status TEXT NOT NULL
                CHECK(payment_status IN ('pending', 'paid', 'failed', 'cancelled', 'refunded', 'disputed')),
            payment_intent TEXT UNIQUE,
            created_at TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        CREATE TABLE IF NOT EXISTS enrollment_sessions (
            id TEXT PRIMARY KEY,
            enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
            session_id TEXT NOT NULL REFERENCES sessions(id),
            enrollment_type TEXT NOT NULL CHECK(enrollment_type IN ('full', 'trial', 'partial')),
            trial_date TEXT,
            partial_dates TEXT,
            fee_amount REAL NOT NULL DEFAULT 0,
            booking_date TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS attendance (
            enrollment_session_id TEXT NOT NULL
                REFERENCES enrollment_sessions(id) ON DELETE CASCADE,
            class_date TEXT NOT NULL,
            status TEXT NOT NULL CHECK(status IN ('present', 'absent', 'late')),
            marked_by TEXT,
            marked_at TEXT NOT NULL,
            PRIMARY KEY (enrollment_session_id, class_date)
        );

        CREATE TABLE IF NOT EXISTS booking_cancellations (
            id TEXT PRIMARY KEY,
            enrollment_session_id TEXT NOT NULL
                REFERENCES enrollment_sessions(id) ON DELETE CASCADE,
            class_date TEXT NOT NULL,
            reason TEXT NOT NULL,
            medical_certificate_path TEXT,
            status TEXT NOT NULL DEFAULT 'pending'
                CHECK(status IN ('pending', 'accepted', 'rejected')),
            admin_notes TEXT,
            credit_awarded INTEGER NOT NULL DEFAULT 0,
            requested_at TEXT NOT NULL DEFAULT (datetime('now')),
            reviewed_at TEXT,
            UNIQUE (enrollment_session_id, class_date)
        );

        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            enrollment_id TEXT NOT NULL REFERENCES enrollments(id) ON DELETE CASCADE,
            amount REAL NOT NULL,
            payment_method TEXT NOT NULL
                CHECK(payment_method IN ('cash', 'cheque', 'card', 'credit')),
            payment_status TEXT NOT NULL
                CHECK(payment_status IN ('pending', 'completed', 'failed', 'cancelled', 'refunded', 'disputed')),
            transaction_id TEXT,
            receipt_number TEXT NOT NULL UNIQUE,
            payment_date TEXT,
            notes TEXT
        );

        CREATE TABLE IF NOT EXISTS class_rolls (
            id TEXT PRIMARY KEY,
            session_id TEXT NOT NULL REFERENCES sessions(id) ON DELETE CASCADE,
            class_date TEXT NOT NULL,
            format TEXT NOT NULL CHECK(format IN ('pdf', 'csv')),
            file_path TEXT,
            generated_at TEXT NOT NULL,
            downloaded_at TEXT
        );

        CREATE TABLE IF NOT EXISTS emailing_list (
            list_name TEXT NOT NULL,
            email TEXT NOT NULL,
            PRIMARY KEY (list_name, email)
        );

        CREATE INDEX IF NOT EXISTS idx_customers_status ON customers(status);
        CREATE INDEX IF NOT EXISTS idx_customers_paq_status ON customers(paq_status);
        CREATE INDEX IF NOT EXISTS idx_sessions_term ON sessions(term_id);
        CREATE INDEX IF NOT EXISTS idx_enrollments_customer ON enrollments(customer_id);
        CREATE INDEX IF NOT EXISTS idx_enrollment_sessions_session
            ON enrollment_sessions(session_id);
        CREATE INDEX IF NOT EXISTS idx_booking_cancellations_status
            ON booking_cancellations(status);
        """
    )
