"""Database helpers: connection pool, JSONB document collections, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Iterator, Optional, Protocol

import psycopg2
import psycopg2.extras
import psycopg2.pool
from psycopg2 import sql

from scripts.namesearch.config import DatabaseConfig

logger = logging.getLogger("namesearch.db")

SINGLETON_KEY = "singleton"


class DocumentCollection(Protocol):
    """The store operations the pipeline and index builder rely on."""

    def find(self) -> Iterator[dict[str, Any]]: ...

    def save(self, doc: dict[str, Any]) -> None: ...

    def save_many(self, docs: Iterable[dict[str, Any]]) -> int: ...

    def replace(self, doc: dict[str, Any]) -> None: ...

    def ensure_index(self, field: str) -> None: ...


class Database:
    """Thin wrapper around a ThreadedConnectionPool with run tracking."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def collection(self, table: str, key_field: Optional[str] = None) -> "PostgresCollection":
        return PostgresCollection(self, table, key_field)

    def ensure_runs_table(self) -> None:
        with self.transaction() as cur:
            cur.execute(
                """CREATE TABLE IF NOT EXISTS indexer_runs (
                       id UUID PRIMARY KEY,
                       stage TEXT NOT NULL,
                       status TEXT NOT NULL,
                       started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                       finished_at TIMESTAMPTZ,
                       records_written INTEGER NOT NULL DEFAULT 0,
                       records_errored INTEGER NOT NULL DEFAULT 0,
                       error_message TEXT,
                       error_detail JSONB,
                       run_metadata JSONB
                   )"""
            )

    # ------------------------------------------------------------------
    # Indexer run tracking
    # ------------------------------------------------------------------

    def record_run_start(self, stage: str, metadata: Optional[dict] = None) -> str:
        """Insert a new indexer_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO indexer_runs (id, stage, status, run_metadata)
                   VALUES (%s, %s, 'RUNNING', %s)""",
                (run_id, stage, psycopg2.extras.Json(metadata or {})),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        records_written: int = 0,
        records_errored: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        """Finalise an indexer_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE indexer_runs
                   SET status = %s,
                       finished_at = NOW(),
                       records_written = %s,
                       records_errored = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s""",
                (
                    status,
                    records_written,
                    records_errored,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                ),
            )

    def get_recent_runs(self, stage: Optional[str] = None, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch recent indexer runs for status display."""
        with self.transaction() as cur:
            if stage:
                cur.execute(
                    """SELECT id, stage, status, started_at, finished_at,
                              records_written, records_errored, error_message
                       FROM indexer_runs
                       WHERE stage = %s
                       ORDER BY started_at DESC LIMIT %s""",
                    (stage, limit),
                )
            else:
                cur.execute(
                    """SELECT id, stage, status, started_at, finished_at,
                              records_written, records_errored, error_message
                       FROM indexer_runs
                       ORDER BY started_at DESC LIMIT %s""",
                    (limit,),
                )
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]


class PostgresCollection:
    """A table of JSONB documents keyed by one natural-key field.

    Collections without a key_field hold a single document (the caches).
    """

    FETCH_SIZE = 500

    def __init__(self, db: Database, table: str, key_field: Optional[str] = None) -> None:
        self._db = db
        self.table = table
        self.key_field = key_field

    def _key(self, doc: dict[str, Any]) -> str:
        if self.key_field is None:
            return SINGLETON_KEY
        key = doc.get(self.key_field)
        if key is None or key == "":
            raise ValueError(f"Document for {self.table} has no {self.key_field!r}")
        return str(key)

    def create(self) -> None:
        with self._db.transaction() as cur:
            cur.execute(
                sql.SQL(
                    """CREATE TABLE IF NOT EXISTS {} (
                           key TEXT PRIMARY KEY,
                           doc JSONB NOT NULL,
                           updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                       )"""
                ).format(sql.Identifier(self.table))
            )

    def find(self) -> Iterator[dict[str, Any]]:
        """Stream every document through a server-side cursor."""
        with self._db.connection() as conn:
            try:
                with conn.cursor(name=f"find_{self.table}_{uuid.uuid4().hex[:8]}") as cur:
                    cur.itersize = self.FETCH_SIZE
                    cur.execute(
                        sql.SQL("SELECT doc FROM {} ORDER BY key").format(
                            sql.Identifier(self.table)
                        )
                    )
                    for (doc,) in cur:
                        yield doc
            finally:
                conn.rollback()

    def save(self, doc: dict[str, Any]) -> None:
        self.save_many([doc])

    def save_many(self, docs: Iterable[dict[str, Any]]) -> int:
        """Bulk upsert using execute_values with ON CONFLICT DO UPDATE."""
        rows = [(self._key(doc), psycopg2.extras.Json(doc)) for doc in docs]
        if not rows:
            return 0
        query = sql.SQL(
            "INSERT INTO {} (key, doc) VALUES %s "
            "ON CONFLICT (key) DO UPDATE SET doc = EXCLUDED.doc, updated_at = NOW()"
        ).format(sql.Identifier(self.table))
        with self._db.transaction() as cur:
            psycopg2.extras.execute_values(cur, query, rows, page_size=self.FETCH_SIZE)
        return len(rows)

    def replace(self, doc: dict[str, Any]) -> None:
        """Swap the collection's content for exactly this one document."""
        with self._db.transaction() as cur:
            cur.execute(sql.SQL("DELETE FROM {}").format(sql.Identifier(self.table)))
            cur.execute(
                sql.SQL("INSERT INTO {} (key, doc) VALUES (%s, %s)").format(
                    sql.Identifier(self.table)
                ),
                (self._key(doc), psycopg2.extras.Json(doc)),
            )

    def ensure_index(self, field: str) -> None:
        """GIN index on doc -> field; a hint for lookups, never required."""
        with self._db.transaction() as cur:
            cur.execute(
                sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} USING GIN ((doc -> {}))").format(
                    sql.Identifier(f"{self.table}_{field}_idx"),
                    sql.Identifier(self.table),
                    sql.Literal(field),
                )
            )
        logger.debug("Ensured index on %s.%s", self.table, field)
