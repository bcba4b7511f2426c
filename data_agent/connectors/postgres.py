"""
PostgreSQL Connector

Async PostgreSQL connector using asyncpg.

Features:
- Connection pooling with asyncpg
- Read-only transactions with a per-statement timeout
- Schema introspection across every non-system schema
- Foreign key discovery and row count estimates from pg_class

Usage:
    connector = PostgresConnector(
        host="localhost",
        port=5432,
        database="chinook",
        user="postgres",
        password="secret",
    )

    await connector.connect()
    rows = await connector.execute("SELECT ttle FROM albm WHERE col1 = 2016")
    tables = await connector.get_schema()
    await connector.close()
"""

import logging
import time
from typing import Any

import asyncpg

from data_agent.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    QueryError,
    RowSet,
    SchemaError,
    TableInfo,
)

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("pg_catalog", "information_schema", "pg_toast")

_TABLES_QUERY = """
    SELECT
        c.table_schema,
        c.table_name,
        c.column_name,
        c.data_type,
        c.is_nullable
    FROM information_schema.columns AS c
    JOIN information_schema.tables AS t
        ON t.table_schema = c.table_schema
        AND t.table_name = c.table_name
    WHERE t.table_type = 'BASE TABLE'
    AND c.table_schema <> ALL($1::text[])
    AND c.table_schema NOT LIKE 'pg_temp%'
    ORDER BY c.table_schema, c.table_name, c.ordinal_position
"""

_PRIMARY_KEYS_QUERY = """
    SELECT
        kcu.table_schema,
        kcu.table_name,
        kcu.column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY'
    AND tc.table_schema <> ALL($1::text[])
"""

_FOREIGN_KEYS_QUERY = """
    SELECT
        tc.table_schema,
        tc.table_name,
        kcu.column_name,
        ccu.table_name AS foreign_table_name,
        ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
    AND tc.table_schema <> ALL($1::text[])
"""

_ROW_ESTIMATES_QUERY = """
    SELECT
        n.nspname AS table_schema,
        c.relname AS table_name,
        c.reltuples::bigint AS estimate
    FROM pg_class AS c
    JOIN pg_namespace AS n ON n.oid = c.relnamespace
    WHERE c.relkind IN ('r', 'p')
    AND n.nspname <> ALL($1::text[])
"""


class PostgresConnector(BaseConnector):
    """
    PostgreSQL database connector using asyncpg.

    Statements run inside a read-only transaction unless the connector was
    created with ``read_only=False``.
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 5,
        timeout: int = 30,
        read_only: bool = True,
        excluded_schemas: tuple[str, ...] | list[str] = (),
        **kwargs,
    ):
        super().__init__(
            host=host,
            port=port,
            database=database,
            user=user,
            password=password,
            pool_size=pool_size,
            timeout=timeout,
            **kwargs,
        )
        self.read_only = read_only
        self.excluded_schemas = list(SYSTEM_SCHEMAS) + [
            name for name in excluded_schemas if name not in SYSTEM_SCHEMAS
        ]

    async def connect(self) -> None:
        """
        Create the asyncpg pool and verify the server answers.

        Raises:
            ConnectionError: If connection fails
        """
        if self._connected and self._pool:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to PostgreSQL at {self.host}:{self.port}/{self.database}")

            self._pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=self.timeout,
                **self.kwargs,
            )

            async with self._pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.info(f"Connected to PostgreSQL: {version.split(',')[0]}")

            self._connected = True

        except asyncpg.PostgresError as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e
        except (OSError, asyncpg.InterfaceError) as e:
            logger.error(f"PostgreSQL unreachable: {e}")
            raise ConnectionError(f"Database unreachable: {e}") from e

    async def execute(self, query: str, timeout: int | None = None) -> RowSet:
        """
        Execute a statement and return its rows.

        Raises:
            QueryError: If the statement fails; carries the SQLSTATE
            ConnectionError: If not connected or the connection drops
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout

        try:
            async with self._pool.acquire() as conn:
                await conn.execute(f"SET statement_timeout = {int(query_timeout * 1000)}")

                if self.read_only:
                    async with conn.transaction(readonly=True):
                        records = await conn.fetch(query)
                else:
                    records = await conn.fetch(query)

        except asyncpg.QueryCanceledError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)", sqlstate=e.sqlstate) from e
        except asyncpg.PostgresError as e:
            logger.warning(
                f"Query failed: {e}",
                extra={"sqlstate": e.sqlstate, "sql": query[:200]},
            )
            raise QueryError(str(e), sqlstate=e.sqlstate) from e
        except (OSError, asyncpg.InterfaceError) as e:
            logger.error(f"Connection lost during query: {e}")
            raise ConnectionError(f"Connection lost: {e}") from e

        rows = [dict(record) for record in records]
        columns = list(records[0].keys()) if records else []
        execution_time_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            f"Query executed in {execution_time_ms:.2f}ms, returned {len(rows)} rows"
        )

        return RowSet(
            rows=rows,
            row_count=len(rows),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def get_schema(self) -> list[TableInfo]:
        """
        Introspect base tables, columns, keys and row estimates.

        Raises:
            SchemaError: If a catalog query fails
            ConnectionError: If not connected
        """
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        excluded = self.excluded_schemas

        try:
            async with self._pool.acquire() as conn:
                column_rows = await conn.fetch(_TABLES_QUERY, excluded)
                pk_rows = await conn.fetch(_PRIMARY_KEYS_QUERY, excluded)
                fk_rows = await conn.fetch(_FOREIGN_KEYS_QUERY, excluded)
                estimate_rows = await conn.fetch(_ROW_ESTIMATES_QUERY, excluded)
        except asyncpg.PostgresError as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaError(f"Failed to introspect schema: {e}") from e
        except (OSError, asyncpg.InterfaceError) as e:
            logger.error(f"Connection lost during schema introspection: {e}")
            raise ConnectionError(f"Connection lost: {e}") from e

        primary_keys = {
            (row["table_schema"], row["table_name"], row["column_name"]) for row in pk_rows
        }
        foreign_keys = {
            (row["table_schema"], row["table_name"], row["column_name"]): (
                row["foreign_table_name"],
                row["foreign_column_name"],
            )
            for row in fk_rows
        }
        estimates = {
            (row["table_schema"], row["table_name"]): _row_estimate(row["estimate"])
            for row in estimate_rows
        }

        tables: dict[tuple[str, str], list[ColumnInfo]] = {}
        for row in column_rows:
            key = (row["table_schema"], row["table_name"])
            column_key = (*key, row["column_name"])
            foreign = foreign_keys.get(column_key)
            tables.setdefault(key, []).append(
                ColumnInfo(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    is_nullable=row["is_nullable"] == "YES",
                    is_primary_key=column_key in primary_keys,
                    foreign_table=foreign[0] if foreign else None,
                    foreign_column=foreign[1] if foreign else None,
                )
            )

        table_infos = [
            TableInfo(
                schema=schema_name,
                table_name=table_name,
                columns=columns,
                row_count=estimates.get((schema_name, table_name)),
            )
            for (schema_name, table_name), columns in tables.items()
        ]

        logger.info(
            f"Introspected {len(table_infos)} tables",
            extra={"excluded_schemas": excluded},
        )
        return table_infos

    async def close(self) -> None:
        """Close connection pool. Safe to call multiple times."""
        if not self._pool:
            logger.debug("No connection pool to close")
            return

        try:
            await self._pool.close()
        finally:
            self._pool = None
            self._connected = False
            logger.info("PostgreSQL connection closed")


def _row_estimate(value: Any) -> int | None:
    # reltuples is -1 for tables that were never analyzed
    if value is None or int(value) < 0:
        return None
    return int(value)
