"""
SQLite database integration and a small migration system.

The marketplace keeps users, skills, services and bookings in a single
SQLite file.  Sub-documents that a document store would embed live in
child tables: a provider's skill list in ``user_skills`` and a booking's
append-only audit trail in ``booking_status_history``.

Applied migration versions are recorded in the ``migrations`` table and
new entries of ``MIGRATIONS`` are executed in order by ``init_db``.
"""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from .config import settings


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: base schema
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            mobile_number TEXT NOT NULL UNIQUE,
            email TEXT,
            password TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'customer',
            is_active INTEGER NOT NULL DEFAULT 1,
            is_verified INTEGER NOT NULL DEFAULT 0,
            bio TEXT,
            street TEXT,
            city TEXT,
            state TEXT,
            pincode TEXT,
            rating_average REAL NOT NULL DEFAULT 0,
            rating_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        CREATE TABLE IF NOT EXISTS skills (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE COLLATE NOCASE,
            description TEXT,
            category TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );

        CREATE TABLE IF NOT EXISTS user_skills (
            user_id INTEGER NOT NULL,
            skill_id INTEGER NOT NULL,
            position INTEGER NOT NULL,
            experience REAL NOT NULL DEFAULT 0,
            hourly_rate REAL NOT NULL DEFAULT 0,
            is_primary INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (user_id, skill_id),
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY(skill_id) REFERENCES skills(id)
        );

        CREATE TABLE IF NOT EXISTS services (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            price REAL NOT NULL DEFAULT 0,
            category TEXT,
            image TEXT,
            provider_id INTEGER,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(provider_id) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS bookings (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            service_id INTEGER NOT NULL,
            customer_id INTEGER NOT NULL,
            assigned_provider_id INTEGER,
            date TIMESTAMP NOT NULL,
            address TEXT NOT NULL,
            notes TEXT,
            quantity INTEGER NOT NULL DEFAULT 1,
            total_amount REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'pending',
            rating INTEGER,
            started_at TIMESTAMP,
            completed_at TIMESTAMP,
            cancelled_at TIMESTAMP,
            work_completed INTEGER NOT NULL DEFAULT 0,
            work_completed_at TIMESTAMP,
            work_notes TEXT,
            work_images TEXT,
            work_completed_by INTEGER,
            version INTEGER NOT NULL DEFAULT 1,
            deleted_at TIMESTAMP,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL,
            FOREIGN KEY(service_id) REFERENCES services(id),
            FOREIGN KEY(customer_id) REFERENCES users(id),
            FOREIGN KEY(assigned_provider_id) REFERENCES users(id),
            FOREIGN KEY(work_completed_by) REFERENCES users(id)
        );

        CREATE TABLE IF NOT EXISTS booking_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            booking_id INTEGER NOT NULL,
            status TEXT NOT NULL,
            changed_at TIMESTAMP NOT NULL,
            changed_by INTEGER NOT NULL,
            notes TEXT,
            FOREIGN KEY(booking_id) REFERENCES bookings(id),
            FOREIGN KEY(changed_by) REFERENCES users(id)
        );
        """,
    ),
    # Migration 2: lookup indices used by the booking queries and reports
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_bookings_customer_id ON bookings(customer_id);
        CREATE INDEX IF NOT EXISTS idx_bookings_assigned_provider_id ON bookings(assigned_provider_id);
        CREATE INDEX IF NOT EXISTS idx_bookings_status ON bookings(status);
        CREATE INDEX IF NOT EXISTS idx_bookings_created_at ON bookings(created_at);
        CREATE INDEX IF NOT EXISTS idx_status_history_booking_id ON booking_status_history(booking_id);
        CREATE INDEX IF NOT EXISTS idx_user_skills_skill_id ON user_skills(skill_id);
        """,
    ),
]


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string, the storage format for timestamps."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def to_storage(value: datetime) -> str:
    """Normalise a datetime to the UTC ISO string stored in the database.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Inverse of ``to_storage``: always returns an aware UTC datetime."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    Absolute paths in ``settings.database_url`` are used as is; relative
    ones are resolved against the project root (the directory that holds
    the ``home_services_api`` package).
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Open a new connection with dict-like rows and foreign keys enabled."""
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Yield a cursor, commit on success and always close the connection."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Create the database file if needed and apply pending migrations."""
    with get_cursor() as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)")
        row = cursor.execute("SELECT MAX(version) AS version FROM migrations").fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute("INSERT INTO migrations (version) VALUES (?)", (version,))
                current_version = version
