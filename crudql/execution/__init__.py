"""Statement construction, execution and the CRUD operations."""

from .context import ResolveParams
from .projection import get_columns, selected_fields
from .translator import StatementBuilder, Statement, build_where_clause
from .materializer import (
    FieldRef,
    map_to_struct,
    model_column,
    model_columns,
    scan_row,
    struct_to_map,
)
from .handle import DatabaseHandle, DuckDBHandle, DBAPIHandle, ExecResult, Rows, connect_handle
from .executor import Executor, as_executor, with_retry
from .operations import (
    query_model,
    find_by_id,
    query_model_count,
    create_model,
    update_model,
    delete_model,
    where_model,
    raw_insert_model,
    find_all_model,
)

__all__ = [
    "ResolveParams",
    "get_columns",
    "selected_fields",
    "StatementBuilder",
    "Statement",
    "build_where_clause",
    "FieldRef",
    "map_to_struct",
    "model_column",
    "model_columns",
    "scan_row",
    "struct_to_map",
    "DatabaseHandle",
    "DuckDBHandle",
    "DBAPIHandle",
    "ExecResult",
    "Rows",
    "connect_handle",
    "Executor",
    "as_executor",
    "with_retry",
    "query_model",
    "find_by_id",
    "query_model_count",
    "create_model",
    "update_model",
    "delete_model",
    "where_model",
    "raw_insert_model",
    "find_all_model",
]
