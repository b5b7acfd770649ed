import psycopg2
import logging
import time
import os
from typing import Optional, List, Dict, Any, Tuple
from contextlib import contextmanager
from urllib.parse import urlparse, urlunparse
from psycopg2.pool import ThreadedConnectionPool
from psycopg2.extensions import connection, cursor as CursorClass

from app.config.settings import settings
from app.core.secrets import SecretProvider
from app.core.metrics import DB_QUERY_DURATION

logger = logging.getLogger(__name__)

class DatabaseService:
    def __init__(self, secret_provider: SecretProvider) -> None:
        super().__init__()

        database_url = secret_provider.get("DATABASE_URL")
        if not database_url:
            raise ValueError("DATABASE_URL secret not found.")
        # Convert PostgresDsn to string if needed
        self.database_url = str(database_url)

        self._apply_test_overrides()

        self.pool: Optional[ThreadedConnectionPool] = None

    def _apply_test_overrides(self) -> None:
        """Allow test-specific environment variables to override connection details."""

        override_host = os.getenv("TEST_DB_HOST")
        override_port = os.getenv("TEST_DB_PORT")

        if not override_host and not override_port:
            return

        parsed = urlparse(self.database_url)

        # Split userinfo and host/port sections of the netloc
        userinfo, at, hostport = parsed.netloc.rpartition("@")
        host, _, port = hostport.partition(":")

        new_host = override_host or host
        new_port = override_port or port

        host_segment = new_host or host
        if new_port:
            host_segment = f"{host_segment}:{new_port}"

        if at:
            netloc = f"{userinfo}@{host_segment}"
        else:
            netloc = host_segment

        self.database_url = urlunparse(parsed._replace(netloc=netloc))

    def _get_or_create_pool(self) -> ThreadedConnectionPool:
        """Lazily creates and returns the connection pool."""
        # Repositories run queries through asyncio.to_thread, so the pool
        # must be safe to share between worker threads.
        if self.pool is None:
            try:
                self.pool = ThreadedConnectionPool(
                    minconn=settings.DB_POOL_MIN_CONN,
                    maxconn=settings.DB_POOL_MAX_CONN,
                    dsn=self.database_url
                )
                logger.info("Database connection pool created successfully on first use.")
            except psycopg2.OperationalError as e:
                logger.error(f"Failed to create database connection pool: {e}")
                raise
        return self.pool

    @contextmanager
    def get_connection(self) -> connection:
        """Get a connection from the lazily-initialized pool."""
        pool = self._get_or_create_pool()
        conn = pool.getconn()
        try:
            yield conn
        finally:
            pool.putconn(conn)

    def checkout(self) -> connection:
        """Take a connection out of the pool until :meth:`checkin` is called.

        Session-scoped state such as advisory locks lives on the connection,
        so callers that hold such state keep the connection for its lifetime.
        """
        pool = self._get_or_create_pool()
        conn = pool.getconn()
        try:
            conn.autocommit = True
        except psycopg2.Error:
            pool.putconn(conn, close=True)
            raise
        return conn

    def checkin(self, conn: connection, *, discard: bool = False) -> None:
        if self.pool is None:
            return
        # A closed session cannot take the autocommit reset and must not be reused.
        discard = discard or bool(conn.closed)
        if not discard:
            try:
                conn.autocommit = False
            except psycopg2.Error:
                logger.warning("Could not reset a checked-out connection; discarding it.", exc_info=True)
                discard = True
        self.pool.putconn(conn, close=discard)

    @contextmanager
    def transaction(self, query_type: str = "unknown") -> CursorClass:
        """
        Provides a transactional cursor and records metrics.
        Commits if the block succeeds, rolls back if it fails.
        """
        start_time = time.time()
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    try:
                        yield cur
                        conn.commit()
                    except Exception:
                        conn.rollback()
                        logger.error("Transaction failed, rolling back.", exc_info=True)
                        raise
        finally:
            duration = time.time() - start_time
            DB_QUERY_DURATION.labels(query_type=query_type).observe(duration)

    def execute_query(
        self, query: str, params: Optional[Tuple[Any, ...]] = None
    ) -> List[Dict[str, Any]]:
        """Execute a read-only query and fetch all results."""
        with self.transaction(query_type="read") as cur:
            cur.execute(query, params)
            if cur.description:
                columns = [desc[0] for desc in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            return []

    def execute_update(
        self, query: str, params: Optional[Tuple[Any, ...]] = None
    ) -> int:
        """Execute an update/insert/delete query and return the row count."""
        with self.transaction(query_type="write") as cur:
            cur.execute(query, params)
            return cur.rowcount

    def execute_returning(
        self, query: str, params: Optional[Tuple[Any, ...]] = None
    ) -> List[Dict[str, Any]]:
        """Execute a query that mutates data but also returns rows."""
        with self.transaction(query_type="write") as cur:
            cur.execute(query, params)
            if cur.description:
                columns = [desc[0] for desc in cur.description]
                return [dict(zip(columns, row)) for row in cur.fetchall()]
            return []

    def close(self) -> None:
        """Close all connections in the pool."""
        if self.pool:
            self.pool.closeall()
            self.pool = None
            logger.info("Database connection pool closed.")

# Singleton instance, lazily initialized
_database_service_instance: Optional[DatabaseService] = None

def get_database_service() -> DatabaseService:
    """Returns the singleton instance of the DatabaseService."""
    from app.core.secrets import env_secrets_provider
    global _database_service_instance
    if _database_service_instance is None:
        _database_service_instance = DatabaseService(secret_provider=env_secrets_provider)
    return _database_service_instance


def close_database_service() -> None:
    """Close the singleton's pool if it was ever created."""
    if _database_service_instance is not None:
        _database_service_instance.close()
