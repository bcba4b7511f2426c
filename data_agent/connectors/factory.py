"""Connector factory for the configured target database."""

from __future__ import annotations

from data_agent.config import DatabaseSettings
from data_agent.connectors.postgres import PostgresConnector


def create_connector(settings: DatabaseSettings, *, read_only: bool = True) -> PostgresConnector:
    """Create a PostgreSQL connector from URL or host/user/password settings."""
    params = settings.connection_params()
    extra = {"ssl": "require"} if settings.ssl else {}
    return PostgresConnector(
        **params,
        pool_size=settings.pool_size,
        timeout=settings.statement_timeout,
        read_only=read_only,
        excluded_schemas=settings.excluded_schemas,
        **extra,
    )
