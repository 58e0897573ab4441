import logging

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from qmdash.config import settings
from qmdash.models import Agent, UploadRecord
from qmdash.store import KPI_METRICS

log = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS agents (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active'
);
CREATE TABLE IF NOT EXISTS kpis (
    id SERIAL PRIMARY KEY,
    agent_id INTEGER NOT NULL REFERENCES agents(id),
    date TEXT NOT NULL,
    quality REAL,
    aht INTEGER,
    srr REAL,
    voc REAL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (agent_id, date)
);
CREATE TABLE IF NOT EXISTS uploads (
    id SERIAL PRIMARY KEY,
    filename TEXT NOT NULL,
    file_type TEXT NOT NULL,
    report_type TEXT,
    status TEXT NOT NULL,
    records_processed INTEGER DEFAULT 0,
    errors TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


class PostgresStore:
    """KpiStore backed by a psycopg async connection pool."""

    name = "postgres"

    def __init__(self, conninfo: str | None = None, schema: str | None = None):
        self._conninfo = conninfo or settings.db.conninfo
        self._schema = schema or settings.db.schema_
        self._pool: AsyncConnectionPool | None = None

    async def open(self) -> None:
        """Open the pool and make sure the tables exist.

        Adds connect_timeout=10 so an unreachable host fails fast instead of hanging.
        """
        conninfo = self._conninfo
        if "connect_timeout" not in conninfo:
            conninfo += " connect_timeout=10"
        self._pool = AsyncConnectionPool(conninfo=conninfo, min_size=1, max_size=5, open=False)
        await self._pool.open()
        async with self._pool.connection() as conn:
            await conn.execute(sql.SQL("SET search_path TO {}").format(sql.Identifier(self._schema)))
            await conn.execute(SCHEMA_DDL)
        log.info("Database pool opened (schema=%s)", self._schema)

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            log.info("Database pool closed")

    def _get_pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise RuntimeError("Database pool is not initialized")
        return self._pool

    async def _prepare(self, cur) -> None:
        await cur.execute(f"SET statement_timeout TO '{settings.db.query_timeout_s}s'")
        await cur.execute(sql.SQL("SET search_path TO {}").format(sql.Identifier(self._schema)))

    async def list_agents(self) -> list[Agent]:
        async with self._get_pool().connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await self._prepare(cur)
                await cur.execute("SELECT id, name, status FROM agents ORDER BY id")
                rows = await cur.fetchall()
                return [Agent(**r) for r in rows]

    async def upsert_kpi(self, agent_id: int, date: str, metric: str, value: float | int) -> None:
        if metric not in KPI_METRICS:
            raise ValueError(f"Unknown KPI metric: {metric}")
        query = sql.SQL(
            "INSERT INTO kpis (agent_id, date, {col}) VALUES (%s, %s, %s) "
            "ON CONFLICT (agent_id, date) DO UPDATE SET {col} = EXCLUDED.{col}"
        ).format(col=sql.Identifier(metric))
        async with self._get_pool().connection() as conn:
            async with conn.cursor() as cur:
                await self._prepare(cur)
                await cur.execute(query, (agent_id, date, value))

    async def record_upload(self, record: UploadRecord) -> None:
        async with self._get_pool().connection() as conn:
            async with conn.cursor() as cur:
                await self._prepare(cur)
                await cur.execute(
                    "INSERT INTO uploads (filename, file_type, report_type, status, records_processed, errors) "
                    "VALUES (%s, %s, %s, %s, %s, %s)",
                    (
                        record.filename,
                        record.file_type,
                        record.report_type,
                        record.status,
                        record.records_processed,
                        record.errors,
                    ),
                )
