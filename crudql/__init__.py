"""CrudQL - generic CRUD operations for GraphQL resolvers."""

from .core import CrudQL
from .execution import (
    ResolveParams,
    get_columns,
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

__version__ = "0.1.0"
__all__ = [
    "CrudQL",
    "ResolveParams",
    "get_columns",
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
