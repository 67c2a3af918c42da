"""SQL statement construction for the CRUD operations.

Identifiers (table and column names) are written into the statement text;
values always travel as ``?`` parameters.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from sqlglot import exp

from ..exceptions import ValidationError

TAUTOLOGY = "1 = 1"


@dataclass
class Statement:
    """A SQL statement and its positional arguments."""
    sql: str
    args: List[Any] = field(default_factory=list)

    def __iter__(self):
        # Allows ``sql, args = statement``
        return iter((self.sql, self.args))


def build_where_clause(where: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """Turn a filter map into ``a = ? AND b = ?`` plus its arguments.

    Keys are used verbatim and in the map's order. An empty map gives an
    empty fragment.
    """
    where_clauses = []
    where_args = []

    for key, value in where.items():
        where_clauses.append(f"{key} = ?")
        where_args.append(value)

    return " AND ".join(where_clauses), where_args


def is_safe_identifier(name: str) -> bool:
    """Whether sqlglot would write the name without quoting it."""
    if not isinstance(name, str) or not name:
        return False
    return not exp.to_identifier(name).quoted


def ensure_table_name(table_name: str) -> str:
    """Reject table names that are not plain (optionally schema-qualified) identifiers."""
    parts = table_name.split(".") if isinstance(table_name, str) else [table_name]
    if len(parts) > 2 or not all(is_safe_identifier(part) for part in parts):
        raise ValidationError(
            f"invalid table name: {table_name!r}",
            field_name="table",
            expected_type="identifier",
            actual_value=table_name
        )
    return table_name


def ensure_column_name(column: str) -> str:
    if not is_safe_identifier(column):
        raise ValidationError(
            f"invalid column name: {column!r}",
            field_name=str(column),
            expected_type="identifier",
            actual_value=column
        )
    return column


class StatementBuilder:
    """Builds the statements issued by the CRUD operations."""

    def select_page(
        self,
        table_name: str,
        select_column: str,
        where: Dict[str, Any],
        page_size: int,
        offset: int,
    ) -> Statement:
        where_clause, where_args = build_where_clause(where)
        sql = (
            f"SELECT {select_column} FROM {table_name} WHERE {where_clause or TAUTOLOGY} "
            f"ORDER BY id DESC LIMIT {int(page_size)} OFFSET {int(offset)};"
        )
        return Statement(sql, where_args)

    def select_where(self, table_name: str, select_column: str, where: Dict[str, Any]) -> Statement:
        where_clause, where_args = build_where_clause(where)
        return Statement(
            f"SELECT {select_column} FROM {table_name} WHERE {where_clause or TAUTOLOGY};",
            where_args
        )

    def select_by_id(self, table_name: str, select_column: str, id_value: Any) -> Statement:
        return Statement(f"SELECT {select_column} FROM {table_name} WHERE id = ?;", [id_value])

    def count(self, table_name: str) -> Statement:
        return Statement(f"SELECT COUNT(*) FROM {table_name};")

    def insert(self, table_name: str, values: Dict[str, Any]) -> Statement:
        fields = list(values.keys())
        placeholders = ",".join("?" for _ in fields)
        return Statement(
            f"INSERT INTO {table_name} ({','.join(fields)}) VALUES ({placeholders});",
            list(values.values())
        )

    def update(self, table_name: str, values: Dict[str, Any], id_value: Any) -> Statement:
        assignments = [f"{key} = ?" for key in values]
        args = list(values.values())
        args.append(id_value)
        return Statement(f"UPDATE {table_name} SET {','.join(assignments)} WHERE id = ?;", args)

    def delete(self, table_name: str, id_value: Any) -> Statement:
        return Statement(f"DELETE FROM {table_name} WHERE id = ?;", [id_value])


def parse_columns(select_column: Optional[str]) -> List[str]:
    """Split a comma-joined projection, dropping blanks."""
    if not select_column:
        return []
    return [col.strip() for col in select_column.split(",") if col.strip()]
