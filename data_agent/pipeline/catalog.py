"""
Schema Catalog

Reads table, column and foreign-key metadata through the connector and keeps
one immutable SchemaDescription until somebody explicitly refreshes it.
"""

import asyncio
import logging
import re

from data_agent.connectors.base import BaseConnector, ConnectorError, SchemaError
from data_agent.connectors.base import ConnectionError as ConnectorConnectionError
from data_agent.models.errors import SchemaReadError
from data_agent.models.schema import SchemaDescription

logger = logging.getLogger(__name__)

_MISSING_RELATION = re.compile(r'relation "([^"]+)" does not exist', re.IGNORECASE)
_MISSING_COLUMN = re.compile(r'column "?([^"\s]+)"? does not exist', re.IGNORECASE)
_TABLE_REFERENCE = re.compile(
    r'\b(?:FROM|JOIN)\s+((?:"[^"]+"|[A-Za-z_][\w$]*)(?:\.(?:"[^"]+"|[A-Za-z_][\w$]*))?)',
    re.IGNORECASE,
)


class SchemaCatalog:
    """
    Owner of the current schema snapshot.

    ``load()`` always reads the database; ``get()`` returns the cached
    snapshot and loads it on first use; ``refresh()`` replaces the cache.
    """

    def __init__(self, connector: BaseConnector):
        self.connector = connector
        self._snapshot: SchemaDescription | None = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> SchemaDescription | None:
        return self._snapshot

    async def load(self) -> SchemaDescription:
        """
        Read the schema from the database.

        Raises:
            ConnectionError: If the database is unreachable (connector error)
            SchemaReadError: If metadata queries fail
        """
        try:
            table_infos = await self.connector.get_schema()
        except ConnectorConnectionError:
            logger.error("Database unreachable while reading schema")
            raise
        except (SchemaError, ConnectorError) as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaReadError(str(e)) from e

        schema = SchemaDescription.from_table_infos(table_infos)
        logger.info(
            f"Loaded schema with {len(schema.tables)} tables",
            extra={"tables": schema.table_names[:50]},
        )
        return schema

    async def get(self) -> SchemaDescription:
        """Cached snapshot, loading it once if needed."""
        if self._snapshot is None:
            async with self._lock:
                if self._snapshot is None:
                    self._snapshot = await self.load()
        return self._snapshot

    async def refresh(self) -> SchemaDescription:
        """Reload the schema and replace the cached snapshot."""
        async with self._lock:
            self._snapshot = await self.load()
        return self._snapshot


def build_correction_hint(error_message: str, failed_sql: str, schema: SchemaDescription) -> str:
    """
    Describe a schema-mismatch failure together with the names that do exist.

    Missing tables list every valid table. Missing columns list the columns
    of the tables the failed statement referenced, or of every table when
    none of them can be resolved.
    """
    lines = [
        "The previous query failed with this database error:",
        error_message.strip(),
        "",
        "Previous query:",
        failed_sql.strip(),
        "",
    ]

    missing_table = _MISSING_RELATION.search(error_message)
    missing_column = _MISSING_COLUMN.search(error_message)

    if missing_table:
        lines.append(
            f'Table "{missing_table.group(1)}" does not exist; valid tables are: '
            f"{', '.join(schema.table_names)}."
        )
    elif missing_column:
        lines.append(f'Column "{missing_column.group(1)}" does not exist.')

    referenced = [
        table
        for name in referenced_tables(failed_sql)
        if (table := schema.get_table(name)) is not None
    ]
    for table in referenced or list(schema.tables):
        lines.append(f"Valid columns of {table.qualified_name}: {', '.join(table.column_names)}.")

    lines.append("Rewrite the query using only these names.")
    return "\n".join(lines)


def referenced_tables(sql: str) -> list[str]:
    """Table names following FROM or JOIN, in order of appearance, without duplicates."""
    seen: list[str] = []
    for match in _TABLE_REFERENCE.finditer(sql):
        name = match.group(1).replace('"', "")
        if name.lower() not in {existing.lower() for existing in seen}:
            seen.append(name)
    return seen
