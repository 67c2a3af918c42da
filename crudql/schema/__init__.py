"""Record descriptors and schema introspection."""

from .model import (
    ModelDescriptor,
    FieldDescriptor,
    FieldMap,
    FieldValue,
    describe,
    is_bindable,
    to_field_name,
)
from .introspection import DuckDBIntrospector, TableInfo, ColumnInfo
from .types import TypeBuilder, sql_to_python_type

__all__ = [
    "ModelDescriptor",
    "FieldDescriptor",
    "FieldMap",
    "FieldValue",
    "describe",
    "is_bindable",
    "to_field_name",
    "DuckDBIntrospector",
    "TableInfo",
    "ColumnInfo",
    "TypeBuilder",
    "sql_to_python_type",
]
