from .postgres import (
    PostgresDashboardReader,
    PostgresReferenceReader,
    PostgresRollupStore,
    PostgresSetReader,
)

__all__ = [
    "PostgresDashboardReader",
    "PostgresReferenceReader",
    "PostgresRollupStore",
    "PostgresSetReader",
]
