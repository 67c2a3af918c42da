"""Conversion between result rows, field maps and record instances."""

from typing import Any, Dict, List, Mapping, Sequence, Type

from ..schema.model import FieldDescriptor, describe
from ..exceptions import EmptyProjectionError, NoRowsFoundError
from .translator import parse_columns


class FieldRef:
    """Addressable reference to one field of one record."""

    __slots__ = ("record", "field")

    def __init__(self, record: Any, field: FieldDescriptor):
        self.record = record
        self.field = field

    @property
    def name(self) -> str:
        return self.field.name

    def get(self) -> Any:
        return getattr(self.record, self.field.name)

    def set(self, value: Any) -> None:
        setattr(self.record, self.field.name, value)

    def __repr__(self) -> str:
        return f"FieldRef({type(self.record).__name__}.{self.field.name})"


def struct_to_map(obj: Any) -> Dict[str, Any]:
    """Flatten a record into a field map.

    Fields holding ``None`` or an empty string are left out, which is how
    create and update skip unset fields. A mapping is copied unchanged.
    """
    if isinstance(obj, Mapping):
        return dict(obj)

    values = {}
    for f in describe(type(obj)).exported_fields():
        value = getattr(obj, f.name, None)
        if value is not None and value != "":
            values[f.name] = value
    return values


def map_to_struct(data: Mapping[str, Any], result_type: Type) -> Any:
    """Build a record from a field map.

    Keys that match no field, and values whose type differs from the
    field's declared type, are skipped.
    """
    descriptor = describe(result_type)
    result = descriptor.new()
    for key, value in data.items():
        f = descriptor.lookup(key)
        if f is None:
            continue
        if not f.accepts(value):
            continue
        setattr(result, f.name, value)
    return result


def model_column(select_column: str, record: Any) -> List[FieldRef]:
    """Resolve a comma-joined column list to references into ``record``.

    Raises:
        InvalidFieldError: a column names no exported field
        EmptyProjectionError: the list holds no columns
    """
    descriptor = describe(type(record))
    columns = [FieldRef(record, descriptor.resolve(col)) for col in parse_columns(select_column)]
    if not columns:
        raise EmptyProjectionError("no columns selected", context={"model": descriptor.name})
    return columns


def model_columns(record: Any) -> List[FieldRef]:
    """References to every exported field of ``record``, in declaration order."""
    return [FieldRef(record, f) for f in describe(type(record)).exported_fields()]


def scan_row(row: Sequence[Any], columns: List[FieldRef]) -> None:
    """Assign a result row to field references, position by position."""
    if row is None or len(row) != len(columns):
        raise NoRowsFoundError(
            "no data found",
            context={
                "expected_columns": [ref.name for ref in columns],
                "row_width": None if row is None else len(row),
            }
        )
    for ref, value in zip(columns, row):
        ref.set(value)
