"""
Database manager for the Vulnerability Sync Service
Implements the key-value / list command interface on top of a PostgreSQL
connection pool (asyncpg).

Tables:
- kv_documents: JSON documents (vulnerability records)
- kv_values:    plain string values (alias index)
- kv_lists:     ordered lists, head = highest id (ingestion history)
"""

import asyncpg
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from .commands import KeyValueCommands
from .config import settings
from .exceptions import StoreException

logger = logging.getLogger(__name__)

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return escaped + '%'


def _affected_rows(status: str) -> int:
    # asyncpg returns command tags such as "DELETE 3"
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


class DatabaseManager(KeyValueCommands):
    """Manages the connection pool and store commands"""

    def __init__(self, config: Dict[str, Any] = None):
        self.pool = None
        self.config = config or {
            'host': settings.DB_HOST,
            'port': settings.DB_PORT,
            'database': settings.DB_NAME,
            'user': settings.DB_USER,
            'password': settings.DB_PASSWORD,
            'pool_size': settings.DB_POOL_SIZE,
        }

    async def initialize(self):
        """Initialize database connection pool"""
        try:
            self.pool = await asyncpg.create_pool(
                host=self.config['host'],
                port=self.config['port'],
                database=self.config['database'],
                user=self.config['user'],
                password=self.config['password'],
                min_size=1,
                max_size=self.config.get('pool_size', 10),
            )
            logger.info(f"Database connection pool created for {self.config['host']}:{self.config['port']}")

            await self._ensure_tables()

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    async def close(self):
        """Close database connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Database connection pool closed")

    async def check_connection(self) -> bool:
        """Check if database connection is healthy"""
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def _ensure_tables(self):
        """Ensure the key-value tables exist"""
        create_tables_sql = """
        CREATE TABLE IF NOT EXISTS kv_documents (
            key TEXT PRIMARY KEY,
            doc JSONB NOT NULL
        );

        CREATE TABLE IF NOT EXISTS kv_values (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS kv_lists (
            id BIGSERIAL PRIMARY KEY,
            list_key TEXT NOT NULL,
            value TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_kv_lists_key_id ON kv_lists(list_key, id);
        """

        try:
            async with self.pool.acquire() as conn:
                await conn.execute(create_tables_sql)
            logger.info("Database tables ensured successfully")
        except Exception as e:
            logger.error(f"Failed to create tables: {e}")
            raise

    @asynccontextmanager
    async def _connection(self, command: str):
        if not self.pool:
            raise StoreException("Database pool is not initialized", command=command)
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except STORE_ERRORS as e:
            raise StoreException(f"{command} failed: {e}", command=command) from e

    async def json_set(self, key: str, doc: Any) -> None:
        async with self._connection('JSON.SET') as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM kv_values WHERE key = $1", key)
                await conn.execute("""
                    INSERT INTO kv_documents (key, doc) VALUES ($1, $2::jsonb)
                    ON CONFLICT (key) DO UPDATE SET doc = EXCLUDED.doc
                """, key, json.dumps(doc))

    async def json_get(self, key: str) -> Optional[Any]:
        async with self._connection('JSON.GET') as conn:
            raw = await conn.fetchval("SELECT doc FROM kv_documents WHERE key = $1", key)
        return json.loads(raw) if raw is not None else None

    async def set_value(self, key: str, value: str) -> None:
        async with self._connection('SET') as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM kv_documents WHERE key = $1", key)
                await conn.execute("""
                    INSERT INTO kv_values (key, value) VALUES ($1, $2)
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value
                """, key, value)

    async def get_value(self, key: str) -> Optional[str]:
        async with self._connection('GET') as conn:
            return await conn.fetchval("SELECT value FROM kv_values WHERE key = $1", key)

    async def delete(self, *keys: str) -> int:
        removed = 0
        async with self._connection('DEL') as conn:
            async with conn.transaction():
                for key in keys:
                    found = 0
                    found += _affected_rows(await conn.execute("DELETE FROM kv_documents WHERE key = $1", key))
                    found += _affected_rows(await conn.execute("DELETE FROM kv_values WHERE key = $1", key))
                    found += _affected_rows(await conn.execute("DELETE FROM kv_lists WHERE list_key = $1", key))
                    if found:
                        removed += 1
        return removed

    async def scan(self, prefix: str, count: int = 2000) -> AsyncIterator[str]:
        pattern = _like_prefix(prefix)
        last_key = ''
        while True:
            async with self._connection('SCAN') as conn:
                rows = await conn.fetch("""
                    SELECT key FROM (
                        SELECT key FROM kv_documents
                        UNION ALL
                        SELECT key FROM kv_values
                    ) AS keys
                    WHERE key LIKE $1 AND key > $2
                    ORDER BY key
                    LIMIT $3
                """, pattern, last_key, count)
            for row in rows:
                yield row['key']
            if len(rows) < count:
                break
            last_key = rows[-1]['key']

    async def lpush(self, key: str, *values: str) -> int:
        async with self._connection('LPUSH') as conn:
            async with conn.transaction():
                for value in values:
                    await conn.execute("INSERT INTO kv_lists (list_key, value) VALUES ($1, $2)", key, value)
                return await conn.fetchval("SELECT COUNT(*) FROM kv_lists WHERE list_key = $1", key)

    async def rpop(self, key: str) -> Optional[str]:
        async with self._connection('RPOP') as conn:
            return await conn.fetchval("""
                DELETE FROM kv_lists
                WHERE id = (SELECT id FROM kv_lists WHERE list_key = $1 ORDER BY id ASC LIMIT 1)
                RETURNING value
            """, key)

    async def lindex(self, key: str, index: int) -> Optional[str]:
        order, offset = ("DESC", index) if index >= 0 else ("ASC", -index - 1)
        async with self._connection('LINDEX') as conn:
            return await conn.fetchval(f"""
                SELECT value FROM kv_lists WHERE list_key = $1
                ORDER BY id {order} OFFSET $2 LIMIT 1
            """, key, offset)

    async def lset(self, key: str, index: int, value: str) -> None:
        order, offset = ("DESC", index) if index >= 0 else ("ASC", -index - 1)
        async with self._connection('LSET') as conn:
            updated = await conn.fetchval(f"""
                UPDATE kv_lists SET value = $3
                WHERE id = (SELECT id FROM kv_lists WHERE list_key = $1 ORDER BY id {order} OFFSET $2 LIMIT 1)
                RETURNING id
            """, key, offset, value)
        if updated is None:
            raise StoreException(f"ERR index out of range for list {key}", command='LSET')

    async def llen(self, key: str) -> int:
        async with self._connection('LLEN') as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM kv_lists WHERE list_key = $1", key)

    async def flush_all(self) -> None:
        async with self._connection('FLUSHALL') as conn:
            await conn.execute("TRUNCATE kv_documents, kv_values, kv_lists RESTART IDENTITY")
        logger.warning("All stored data flushed")
