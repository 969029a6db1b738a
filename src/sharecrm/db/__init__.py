"""Database module for SQLite persistence.

Provides:
- Database connection management
- Schema initialization
- Repository functions per table group (customers, catalog, enrollments,
  cancellations, staff, documents)
"""

from sharecrm.db.database import current_db_path, get_db, init_db

__all__ = ["current_db_path", "get_db", "init_db"]
