"""Data Agent: natural-language questions answered from a PostgreSQL database."""

__version__ = "0.1.0"
