"""
Base Database Connector

Abstract base class for the database connectors the pipeline runs against.
Connectors are read-only from the pipeline's point of view: they execute the
sanitized SQL and introspect catalog views, nothing else.

All connectors must implement:
- connect(): Establish connection with connection pooling
- execute(): Run a statement with a timeout
- get_schema(): Introspect base tables, columns and foreign keys
- close(): Clean up connections and pools
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


# ============================================================================
# Data Models
# ============================================================================


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Column data type")
    is_nullable: bool = Field(..., description="Whether column can be NULL")
    is_primary_key: bool = Field(default=False, description="Is part of primary key")
    foreign_table: str | None = Field(None, description="Referenced table if FK")
    foreign_column: str | None = Field(None, description="Referenced column if FK")


class TableInfo(BaseModel):
    """Information about a database table."""

    schema_name: str = Field(..., alias="schema", description="Schema name")
    table_name: str = Field(..., description="Table name")
    columns: list[ColumnInfo] = Field(..., description="List of columns")
    row_count: int | None = Field(None, description="Approximate row count")

    model_config = ConfigDict(populate_by_name=True)


class RowSet(BaseModel):
    """Raw rows returned by a connector."""

    rows: list[dict[str, Any]] = Field(..., description="Result rows")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names")
    execution_time_ms: float = Field(..., description="Execution time in ms")


class ConnectorError(Exception):
    """Base exception for connector errors."""

    pass


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""

    pass


class QueryError(ConnectorError):
    """
    Error executing a statement.

    ``sqlstate`` carries the five-character SQLSTATE when the driver
    reported one (``42P01`` undefined table, ``42703`` undefined column).
    """

    def __init__(self, message: str, sqlstate: str | None = None):
        super().__init__(message)
        self.sqlstate = sqlstate


class SchemaError(ConnectorError):
    """Error introspecting database schema."""

    pass


# ============================================================================
# Base Connector
# ============================================================================


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Usage:
        connector = PostgresConnector(host="localhost", ...)
        await connector.connect()

        rows = await connector.execute("SELECT ttle FROM albm LIMIT 5")
        print(f"Found {rows.row_count} rows")

        await connector.close()
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
        **kwargs,
    ):
        """
        Initialize connector.

        Args:
            host: Database host
            port: Database port
            database: Database name
            user: Database user
            password: Database password
            pool_size: Connection pool size (default: 5)
            timeout: Statement timeout in seconds (default: 30)
            **kwargs: Additional connector-specific parameters
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.info(f"Initialized {self.__class__.__name__} for {user}@{host}:{port}/{database}")

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection and create connection pool.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    async def execute(self, query: str, timeout: int | None = None) -> RowSet:
        """
        Execute a SQL statement.

        Raises:
            QueryError: If execution fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def get_schema(self) -> list[TableInfo]:
        """
        Introspect base tables outside the system schemas.

        Raises:
            SchemaError: If introspection fails
            ConnectionError: If not connected
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close database connection and clean up pool."""
        pass

    @property
    def is_connected(self) -> bool:
        """Check if connector is connected."""
        return self._connected

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.user}@{self.host}:{self.port}/{self.database} ({status})>"
