"""Database introspection for DuckDB schema discovery."""

from dataclasses import dataclass, field
from typing import List, Dict, Optional
import logging
import duckdb

logger = logging.getLogger(__name__)


@dataclass
class ColumnInfo:
    """Information about a database column."""
    name: str
    data_type: str
    is_nullable: bool
    is_primary_key: bool = False
    default_value: Optional[str] = None


@dataclass
class TableInfo:
    """Information about a database table."""
    name: str
    columns: List[ColumnInfo]
    primary_keys: List[str] = field(default_factory=list)

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]


class DuckDBIntrospector:
    """Introspects DuckDB database schema."""

    def __init__(self, connection: duckdb.DuckDBPyConnection):
        self.connection = connection

    def get_tables(self) -> List[str]:
        """Get all table names in the database."""
        result = self.connection.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = 'main'
                AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """
        ).fetchall()
        return [row[0] for row in result]

    def has_table(self, table_name: str) -> bool:
        return table_name in self.get_tables()

    def get_table_info(self, table_name: str) -> TableInfo:
        """Get detailed information about a table."""
        columns = self._get_columns(table_name)
        primary_keys = self._get_primary_keys(table_name)

        for col in columns:
            if col.name in primary_keys:
                col.is_primary_key = True

        return TableInfo(
            name=table_name,
            columns=columns,
            primary_keys=primary_keys
        )

    def _get_columns(self, table_name: str) -> List[ColumnInfo]:
        """Get column information for a table."""
        result = self.connection.execute(
            """
            SELECT
                column_name,
                data_type,
                is_nullable,
                column_default
            FROM information_schema.columns
            WHERE table_schema = 'main'
                AND table_name = ?
            ORDER BY ordinal_position
            """,
            [table_name]
        ).fetchall()

        return [
            ColumnInfo(
                name=row[0],
                data_type=row[1],
                is_nullable=row[2] == 'YES',
                default_value=row[3]
            )
            for row in result
        ]

    def _get_primary_keys(self, table_name: str) -> List[str]:
        """Get primary key columns for a table."""
        try:
            quoted = table_name.replace("'", "''")
            result = self.connection.execute(
                f"PRAGMA table_info('{quoted}')"
            ).fetchall()
        except duckdb.Error as e:
            logger.debug(f"PRAGMA table_info failed for {table_name}: {e}")
            return ['id'] if 'id' in [c.name for c in self._get_columns(table_name)] else []

        # Column 1 is the name, column 5 the pk flag
        return [row[1] for row in result if len(row) > 5 and row[5]]

    def get_schema(self) -> Dict[str, TableInfo]:
        """Get complete schema information for all tables."""
        return {name: self.get_table_info(name) for name in self.get_tables()}
