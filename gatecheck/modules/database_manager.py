"""
Database Manager Module - GateCheck Event Check-in System

This module handles all SQLite access for the check-in system.
It owns connection management, schema creation and the small set of
query helpers the ticket store builds on. Connections are thread-local
and run in WAL mode with a busy timeout so that several scanner devices
or worker threads can share one database file.

Features:
- SQLite connection management (thread-local, closed once the owning thread exits)
- Table schema creation
- Query and update helpers
- Transaction support with automatic rollback
"""

import sqlite3
import logging
from contextlib import contextmanager
import threading
import os

from config import DatabaseConfig


class DatabaseManager:
    """
    Database management class for the ticket check-in system.
    Handles connection management, schema creation and data manipulation
    with proper error handling and transaction support.
    """

    def __init__(self, db_path, timeout=None, journal_mode=None):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file
            timeout (float): Seconds to wait on a locked database
            journal_mode (str): SQLite journal mode for file databases
        """
        self.db_path = str(db_path)
        self.timeout = timeout if timeout is not None else DatabaseConfig.TIMEOUT
        self.journal_mode = journal_mode or DatabaseConfig.JOURNAL_MODE
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()
        self._connections = {}  # thread -> connection opened for it
        self._connections_lock = threading.Lock()

        # Ensure database directory exists
        directory = os.path.dirname(self.db_path)
        if self.db_path != ':memory:' and directory:
            os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    def _connect(self):
        connection = sqlite3.connect(
            self.db_path,
            check_same_thread=DatabaseConfig.CHECK_SAME_THREAD,
            timeout=self.timeout
        )
        connection.row_factory = sqlite3.Row
        if self.db_path != ':memory:':
            connection.execute(f"PRAGMA journal_mode = {self.journal_mode}")
            connection.execute(f"PRAGMA synchronous = {DatabaseConfig.SYNCHRONOUS}")
        with self._connections_lock:
            self._close_finished_threads()
            self._connections[threading.current_thread()] = connection
        return connection

    def _close_finished_threads(self):
        for thread in [thread for thread in self._connections if not thread.is_alive()]:
            try:
                self._connections.pop(thread).close()
            except sqlite3.Error as e:
                self.logger.error(f"Error closing connection: {str(e)}")

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for thread safety.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = self._connect()

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create all necessary tables for the check-in system.
        This method is idempotent and can be called multiple times safely.
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                # One row per ticket; checked_in_at is the single-use marker
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS tickets (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ticket_code TEXT UNIQUE NOT NULL,
                        attendee_name TEXT NOT NULL,
                        event_name TEXT NOT NULL,
                        checked_in_at TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                # Audit trail of scan outcomes
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS check_ins (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ticket_code TEXT NOT NULL,
                        status VARCHAR(20) NOT NULL,
                        attendee_name TEXT,
                        observed_at TEXT NOT NULL
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_tickets_checked_in ON tickets(checked_in_at)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_observed ON check_ins(observed_at)")

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
        with self.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(query, params or ())

                if fetch_all:
                    return [dict(row) for row in cursor.fetchall()]
                result = cursor.fetchone()
                return dict(result) if result else None
            finally:
                cursor.close()

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters

        Returns:
            int: Number of affected rows or last inserted row ID
        """
        with self.transaction() as conn:
            cursor = conn.execute(query, params or ())

            # Return last inserted row ID for INSERT statements
            if query.strip().upper().startswith('INSERT'):
                return cursor.lastrowid
            return cursor.rowcount

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def close_all_connections(self):
        """Close every connection opened by this manager."""
        with self._connections_lock:
            connections, self._connections = list(self._connections.values()), {}
        for connection in connections:
            try:
                connection.close()
            except sqlite3.Error as e:
                self.logger.error(f"Error closing connection: {str(e)}")
        if hasattr(self._local, 'connection'):
            del self._local.connection
