"""
Integration tests against a live PostgreSQL database.

Configure the target with DATABASE_URL (or DATABASE_HOST/NAME/USER/PASSWORD)
and run with --run-integration.
"""

import pytest

from data_agent.config import DatabaseSettings
from data_agent.connectors.base import QueryError
from data_agent.connectors.factory import create_connector
from data_agent.pipeline.catalog import SchemaCatalog

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_connect_and_query():
    async with create_connector(DatabaseSettings()) as connector:
        result = await connector.execute("SELECT 1 AS one")

    assert result.rows == [{"one": 1}]
    assert result.columns == ["one"]


@pytest.mark.asyncio
async def test_schema_excludes_system_tables():
    async with create_connector(DatabaseSettings()) as connector:
        schema = await SchemaCatalog(connector).load()

    assert all(not name.startswith(("pg_catalog.", "information_schema.")) for name in schema.table_names)


@pytest.mark.asyncio
async def test_undefined_table_sqlstate():
    async with create_connector(DatabaseSettings()) as connector:
        with pytest.raises(QueryError) as exc_info:
            await connector.execute("SELECT * FROM definitely_not_a_table_xyz")

    assert exc_info.value.sqlstate == "42P01"


@pytest.mark.asyncio
async def test_read_only_transaction_rejects_writes():
    async with create_connector(DatabaseSettings()) as connector:
        with pytest.raises(QueryError) as exc_info:
            await connector.execute("CREATE TABLE data_agent_scratch (id int)")

    assert exc_info.value.sqlstate == "25006"
