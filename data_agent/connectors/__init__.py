"""
Database Connectors Module

Async connectors for the target database the pipeline queries.

Usage:
    from data_agent.connectors import PostgresConnector

    async with PostgresConnector(host="localhost", port=5432, database="chinook",
                                 user="postgres", password="secret") as connector:
        rows = await connector.execute("SELECT * FROM albm LIMIT 5")
        tables = await connector.get_schema()
"""

from data_agent.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    ConnectorError,
    QueryError,
    RowSet,
    SchemaError,
    TableInfo,
)
from data_agent.connectors.factory import create_connector
from data_agent.connectors.postgres import PostgresConnector

__all__ = [
    "BaseConnector",
    "PostgresConnector",
    "create_connector",
    "ColumnInfo",
    "TableInfo",
    "RowSet",
    "ConnectorError",
    "ConnectionError",
    "QueryError",
    "SchemaError",
]
