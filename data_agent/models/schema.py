"""
Schema Description Models

Immutable snapshot of the target database structure. Built by the schema
catalog and read by the prompt builder and the query executor. Table and
column names are stored exactly as the database reports them.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from data_agent.connectors.base import TableInfo


class ForeignKeyRef(BaseModel):
    """Target of a foreign-key edge."""

    table: str = Field(..., description="Referenced table")
    column: str = Field(..., description="Referenced column")

    model_config = ConfigDict(frozen=True)


class ColumnSchema(BaseModel):
    """One column of a base table."""

    name: str
    data_type: str
    nullable: bool = True
    is_primary_key: bool = False
    foreign_key: ForeignKeyRef | None = None

    model_config = ConfigDict(frozen=True)


class TableSchema(BaseModel):
    """One base table with its columns."""

    name: str
    schema_name: str = "public"
    columns: tuple[ColumnSchema, ...] = ()
    row_count_hint: int | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def qualified_name(self) -> str:
        """Name to use in SQL; tables outside ``public`` keep their schema prefix."""
        if self.schema_name == "public":
            return self.name
        return f"{self.schema_name}.{self.name}"

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def get_column(self, name: str) -> ColumnSchema | None:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None


class SchemaDescription(BaseModel):
    """
    Snapshot of every base table visible to the pipeline.

    Instances never change after construction; reloading produces a new
    snapshot.
    """

    tables: tuple[TableSchema, ...] = ()
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_table_infos(cls, infos: list[TableInfo]) -> "SchemaDescription":
        """Build a snapshot from connector introspection results."""
        tables = []
        for info in sorted(infos, key=lambda item: (item.schema_name, item.table_name)):
            columns = tuple(
                ColumnSchema(
                    name=column.name,
                    data_type=column.data_type,
                    nullable=column.is_nullable,
                    is_primary_key=column.is_primary_key,
                    foreign_key=(
                        ForeignKeyRef(table=column.foreign_table, column=column.foreign_column)
                        if column.foreign_table and column.foreign_column
                        else None
                    ),
                )
                for column in info.columns
            )
            tables.append(
                TableSchema(
                    name=info.table_name,
                    schema_name=info.schema_name,
                    columns=columns,
                    row_count_hint=info.row_count,
                )
            )
        return cls(tables=tuple(tables))

    @property
    def table_names(self) -> list[str]:
        return [table.qualified_name for table in self.tables]

    def get_table(self, name: str) -> TableSchema | None:
        """Look up a table by bare or schema-qualified name, ignoring case and quotes."""
        wanted = name.replace('"', "").lower()
        for table in self.tables:
            if wanted in (table.qualified_name.lower(), f"{table.schema_name}.{table.name}".lower()):
                return table
        for table in self.tables:
            if table.name.lower() == wanted:
                return table
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize as {table: {columns: [...], rowCountHint}} for API responses."""
        return {
            table.qualified_name: {
                "columns": [
                    {
                        "name": column.name,
                        "type": column.data_type,
                        "nullable": column.nullable,
                        **(
                            {
                                "foreignKey": {
                                    "table": column.foreign_key.table,
                                    "column": column.foreign_key.column,
                                }
                            }
                            if column.foreign_key
                            else {}
                        ),
                    }
                    for column in table.columns
                ],
                "rowCountHint": table.row_count_hint,
            }
            for table in self.tables
        }
