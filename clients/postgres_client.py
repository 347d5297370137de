"""
PostgreSQL client for the ledger's document tables and audit log.

One psycopg2 ThreadedConnectionPool per database URL, shared by every
client built for that URL; the invoice repository, the credit note
repository and the audit logger all hold their own PostgresClient.
Each call runs in its own transaction: committed on success, rolled
back on any error.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None


def _to_db(value: Any) -> Any:
    """UUIDs become strings; containers are converted element-wise."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_to_db(v) for v in value)
    if isinstance(value, dict):
        return {k: _to_db(v) for k, v in value.items()}
    return value


class PostgresClient:
    """
    Pooled PostgreSQL access returning rows as dicts.

    Usage:
        db = PostgresClient(database_url)
        rows = db.execute("SELECT id, version FROM invoices")
        row = db.execute_single("SELECT * FROM invoices WHERE id = %s", (7,))
        next_id = db.execute_scalar("SELECT nextval('invoices_id_seq')")
    """

    _pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _lock = threading.RLock()
    _jsonb_registered = False

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self.min_connections = min_connections
        self.max_connections = max_connections
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._lock:
            pool = self._pools.get(self.database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.min_connections,
                    maxconn=self.max_connections,
                    dsn=self.database_url,
                    connect_timeout=30,
                )
                if not PostgresClient._jsonb_registered:
                    # JSONB columns come back as Python objects
                    psycopg2.extras.register_default_jsonb(globally=True)
                    PostgresClient._jsonb_registered = True
                self._pools[self.database_url] = pool
                logger.info(
                    f"Connection pool created ({self.min_connections}-{self.max_connections} connections)"
                )
            return pool

    @contextmanager
    def connection(self):
        """Borrow a pooled connection; rolls back if the block raises."""
        pool = self._pool()
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def _run(self, query: str, params: Params, rows: bool) -> Any:
        with self.connection() as conn:
            factory = psycopg2.extras.RealDictCursor if rows else None
            with conn.cursor(cursor_factory=factory) as cur:
                cur.execute(query, _to_db(params))
                if not rows:
                    result = cur.fetchone()
                elif cur.description:
                    result = [dict(row) for row in cur.fetchall()]
                else:
                    result = []
            conn.commit()
            return result

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run a statement; rows as dicts, or [] for statements without a result set."""
        return self._run(query, params, rows=True)

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Params = None) -> Any:
        """First column of the first row, or None."""
        row = self._run(query, params, rows=False)
        return row[0] if row else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """INSERT/UPDATE/DELETE ... RETURNING; an empty list means no row matched."""
        return self.execute(query, params)

    def close(self) -> None:
        with self._lock:
            pool = self._pools.pop(self.database_url, None)
            if pool is not None:
                pool.closeall()

    @classmethod
    def close_all_pools(cls) -> None:
        with cls._lock:
            for pool in cls._pools.values():
                pool.closeall()
            cls._pools.clear()
