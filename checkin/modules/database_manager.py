"""
Database Manager Module - Event Check-in Service

This module handles all database operations for the check-in service.
It manages SQLite connections, schema creation, queries and updates, and
provides the write transactions the verification pipeline relies on for its
at-most-once check-in guarantee.

Features:
- Thread-local SQLite connection management
- Schema creation for organizers, events and registrations
- Query and update helpers returning plain dictionaries
- Immediate (write-locking) transactions
- Error logging and rollback on failure
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os


class DatabaseManager:
    """
    Database management class for the check-in service.
    Handles connection management, schema creation and data manipulation
    with error logging and transaction support.
    """

    def __init__(self, db_path, timeout=30.0):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
            timeout (float): Seconds to wait on a locked database before failing
        """
        self.db_path = str(db_path)
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        # Ensure database directory exists
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=self.timeout
            )
            self._local.connection.row_factory = sqlite3.Row
            # Enable foreign key constraints (needed for cascading deletes)
            self._local.connection.execute("PRAGMA foreign_keys = ON")

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create all necessary tables for the check-in service.
        This method is idempotent and can be called multiple times safely.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                # Organizers
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        id VARCHAR(36) PRIMARY KEY,
                        email VARCHAR(255) UNIQUE NOT NULL,
                        password_hash VARCHAR(255) NOT NULL,
                        full_name VARCHAR(100) NOT NULL,
                        is_active BOOLEAN DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS events (
                        id VARCHAR(36) PRIMARY KEY,
                        slug VARCHAR(120) UNIQUE NOT NULL,
                        title VARCHAR(200) NOT NULL,
                        description TEXT,
                        date VARCHAR(20),
                        time VARCHAR(20),
                        location VARCHAR(255),
                        status VARCHAR(20) NOT NULL DEFAULT 'ACTIVE',
                        max_attendees INTEGER,
                        organizer_id VARCHAR(36) NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (organizer_id) REFERENCES users(id)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS registrations (
                        id VARCHAR(36) PRIMARY KEY,
                        event_id VARCHAR(36) NOT NULL,
                        name VARCHAR(100) NOT NULL,
                        email VARCHAR(255) NOT NULL,
                        phone VARCHAR(30),
                        location VARCHAR(255),
                        qr_code TEXT,
                        verified BOOLEAN NOT NULL DEFAULT 0,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (event_id) REFERENCES events(id) ON DELETE CASCADE,
                        UNIQUE(event_id, email)
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_organizer ON events(organizer_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_registrations_event ON registrations(event_id)")

                conn.commit()
                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                try:
                    cursor.execute(query, params or ())

                    if fetch_all:
                        return [dict(row) for row in cursor.fetchall()]
                    result = cursor.fetchone()
                    return dict(result) if result else None
                finally:
                    # Finalize the statement so no read lock outlives the call
                    cursor.close()

        except Exception as e:
            self.logger.error(f"Query execution failed: {str(e)}")
            raise

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Number of affected rows or last inserted row ID
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(query, params or ())
                conn.commit()

                if query.strip().upper().startswith('INSERT'):
                    return cursor.lastrowid
                return cursor.rowcount

        except Exception as e:
            self.logger.error(f"Update execution failed: {str(e)}")
            raise

    @contextmanager
    def transaction(self, immediate=False):
        """
        Context manager for database transactions with automatic rollback on error.

        With ``immediate=True`` the write lock is taken up front
        (``BEGIN IMMEDIATE``), so check-then-write sequences inside the block
        cannot interleave with another writer. Waiting longer than the
        connection timeout raises ``sqlite3.OperationalError``.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                if immediate:
                    conn.execute("BEGIN IMMEDIATE")
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def ping(self):
        """Return True when the database answers a trivial query."""
        return self.execute_query("SELECT 1 AS ok", fetch_all=False) is not None

    def close_all_connections(self):
        """Close the calling thread's database connection."""
        try:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
        except Exception as e:
            self.logger.error(f"Error closing connections: {str(e)}")
