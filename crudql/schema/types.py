"""Record type generation from table schema."""

from typing import Dict, Any, Optional, List, Type
from datetime import date, datetime, time
from decimal import Decimal
import keyword
import uuid
import strawberry
from strawberry.scalars import JSON, Base64

from .introspection import TableInfo
from ..exceptions import InvalidFieldError


# Python types the DuckDB driver returns for each column type
SQL_TYPE_MAP = {
    # Numeric types
    'BIGINT': int,
    'INTEGER': int,
    'INT': int,
    'SMALLINT': int,
    'TINYINT': int,
    'UBIGINT': int,
    'UINTEGER': int,
    'USMALLINT': int,
    'UTINYINT': int,
    'HUGEINT': int,
    'UHUGEINT': int,

    # Floating point
    'DOUBLE': float,
    'REAL': float,
    'FLOAT': float,
    'DECIMAL': Decimal,
    'NUMERIC': Decimal,

    # Boolean
    'BOOLEAN': bool,
    'BOOL': bool,

    # String types
    'VARCHAR': str,
    'TEXT': str,
    'STRING': str,
    'CHAR': str,
    'BPCHAR': str,

    # Date/Time types
    'DATE': date,
    'TIMESTAMP': datetime,
    'TIMESTAMP WITHOUT TIME ZONE': datetime,
    'TIMESTAMP WITH TIME ZONE': datetime,
    'TIMESTAMPTZ': datetime,
    'TIME': time,

    # Binary
    'BLOB': Base64,
    'BYTEA': Base64,

    'UUID': uuid.UUID,
    'JSON': JSON,
}


def sql_to_python_type(sql_type: str, is_nullable: bool = True) -> Any:
    """Convert a column type to the annotation used on record fields."""
    base_type = sql_type.upper().strip()

    if base_type.endswith('[]'):
        inner_type = sql_to_python_type(base_type[:-2], False)
        return Optional[List[inner_type]] if is_nullable else List[inner_type]

    # DECIMAL(10, 2), VARCHAR(20)
    if '(' in base_type:
        base_type = base_type.split('(')[0].strip()

    python_type = SQL_TYPE_MAP.get(base_type, JSON)

    return Optional[python_type] if is_nullable else python_type


class TypeBuilder:
    """Builds strawberry record types from table information."""

    def __init__(self):
        self._types: Dict[str, Type] = {}

    def build_type(self, table_info: TableInfo) -> Type:
        """Build a record type with one optional field per column."""
        type_name = self._to_pascal_case(table_info.name)

        if type_name in self._types:
            return self._types[type_name]

        annotations = {}
        for column in table_info.columns:
            if not column.name.isidentifier() or keyword.iskeyword(column.name):
                raise InvalidFieldError(
                    f"Column '{column.name}' cannot be used as a record field",
                    field_name=column.name,
                    model_name=type_name,
                    suggestions=["Declare the record type by hand and alias the column"]
                )
            # Every field is optional so partial projections leave the rest unset
            annotations[column.name] = sql_to_python_type(column.data_type, True)

        class_dict: Dict[str, Any] = {'__annotations__': annotations}
        for field_name in annotations:
            class_dict[field_name] = None

        record_type = strawberry.type(type(type_name, (), class_dict))

        # Keep database column names as GraphQL names
        for field_def in record_type.__strawberry_definition__.fields:
            field_def.graphql_name = field_def.python_name

        self._types[type_name] = record_type
        return record_type

    def get_type(self, table_name: str) -> Optional[Type]:
        return self._types.get(self._to_pascal_case(table_name))

    @staticmethod
    def _to_pascal_case(snake_str: str) -> str:
        """Convert snake_case to PascalCase."""
        return ''.join(word.capitalize() for word in snake_str.split('_'))
