"""Per-type field registry used for name-based record access."""

from dataclasses import dataclass, MISSING
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, Union, get_type_hints
import dataclasses
import threading
import types
import typing
import uuid

from ..exceptions import InvalidFieldError


# Scalar types a field map value may hold; anything else cannot be bound.
FieldValue = Union[None, bool, int, float, Decimal, str, bytes, date, datetime, time, uuid.UUID]
FieldMap = Dict[str, FieldValue]

_UNION_TYPES = (Union, getattr(types, "UnionType", Union))

BINDABLE_TYPES = (bool, int, float, Decimal, str, bytes, date, datetime, time, uuid.UUID)

_ZERO_VALUES = {
    int: 0,
    float: 0.0,
    str: "",
    bool: False,
    bytes: b"",
    Decimal: Decimal(0),
}


def is_bindable(value: Any) -> bool:
    """Whether a value can be passed to the driver as a bound parameter."""
    return value is None or isinstance(value, BINDABLE_TYPES)


def to_field_name(column: str) -> str:
    """Upper-case the first character of a column name, nothing else."""
    return column[:1].upper() + column[1:]


def _unwrap(annotation: Any) -> Any:
    """Reduce an annotation to the runtime class a value must have."""
    origin = typing.get_origin(annotation)
    if origin in _UNION_TYPES:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return _unwrap(args[0])
        return Any

    # NewType (strawberry.ID is one)
    supertype = getattr(annotation, "__supertype__", None)
    if supertype is not None:
        return _unwrap(supertype)

    if origin is not None:
        return origin if isinstance(origin, type) else Any

    if isinstance(annotation, type):
        return annotation

    # Scalar wrappers, TypeVars, strings that failed to resolve
    return Any


@dataclass(frozen=True)
class FieldDescriptor:
    """A single record field."""
    name: str
    annotation: Any
    exported: bool
    default: Any = MISSING
    default_factory: Any = MISSING
    init: bool = True

    @property
    def runtime_type(self) -> Any:
        return _unwrap(self.annotation)

    def accepts(self, value: Any) -> bool:
        """Whether value's runtime type exactly matches the declared type."""
        if value is None:
            return False
        expected = self.runtime_type
        if expected is Any:
            return True
        return type(value) is expected

    def zero_value(self) -> Any:
        if self.default is not MISSING:
            return self.default
        if self.default_factory is not MISSING:
            return self.default_factory()
        if typing.get_origin(self.annotation) in _UNION_TYPES:
            return None
        return _ZERO_VALUES.get(self.runtime_type)


class ModelDescriptor:
    """Describes the fields of a record type.

    Built from the strawberry / dataclass field list when the type has one,
    otherwise from the class annotations.
    """

    def __init__(self, model_type: Type, fields: List[FieldDescriptor]):
        self.model_type = model_type
        self.name = model_type.__name__
        self.fields = fields
        self._by_name = {f.name: f for f in fields}

    @classmethod
    def from_type(cls, model_type: Type) -> "ModelDescriptor":
        if not isinstance(model_type, type):
            raise TypeError(f"Model must be a class, got {type(model_type).__name__}")

        try:
            hints = get_type_hints(model_type)
        except (NameError, TypeError):
            hints = dict(getattr(model_type, "__annotations__", {}))

        fields = []
        if dataclasses.is_dataclass(model_type):
            for f in dataclasses.fields(model_type):
                # strawberry fields backed by a resolver are not columns
                if getattr(f, "base_resolver", None) is not None:
                    continue
                fields.append(FieldDescriptor(
                    name=f.name,
                    annotation=hints.get(f.name, f.type),
                    exported=not f.name.startswith("_"),
                    default=f.default,
                    default_factory=f.default_factory,
                    init=f.init,
                ))
        else:
            for name, annotation in hints.items():
                if typing.get_origin(annotation) is typing.ClassVar:
                    continue
                fields.append(FieldDescriptor(
                    name=name,
                    annotation=annotation,
                    exported=not name.startswith("_"),
                    default=getattr(model_type, name, MISSING),
                    init=False,
                ))

        return cls(model_type, fields)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def exported_fields(self) -> List[FieldDescriptor]:
        return [f for f in self.fields if f.exported]

    def lookup(self, name: str) -> Optional[FieldDescriptor]:
        """Find an exported field for a column or key name.

        The first-letter upper-cased form wins; the verbatim name is the
        fallback.
        """
        if not name:
            return None
        for candidate in (to_field_name(name), name):
            f = self._by_name.get(candidate)
            if f is not None and f.exported:
                return f
        return None

    def resolve(self, name: str) -> FieldDescriptor:
        f = self.lookup(name)
        if f is None:
            raise InvalidFieldError(
                f"invalid field name: {to_field_name(name)}",
                field_name=name,
                model_name=self.name
            )
        return f

    def new(self) -> Any:
        """Allocate a zero-valued record."""
        kwargs = {f.name: f.zero_value() for f in self.fields if f.init}
        record = self.model_type(**kwargs)
        for f in self.fields:
            if not f.init and f.default is MISSING and f.default_factory is MISSING:
                setattr(record, f.name, f.zero_value())
        return record

    def __repr__(self) -> str:
        return f"ModelDescriptor({self.name}, fields={self.field_names()})"


_descriptors: Dict[Type, ModelDescriptor] = {}
_lock = threading.Lock()


def describe(model_type: Type) -> ModelDescriptor:
    """Return the descriptor for a record type, building it on first use."""
    descriptor = _descriptors.get(model_type)
    if descriptor is None:
        with _lock:
            descriptor = _descriptors.get(model_type)
            if descriptor is None:
                descriptor = ModelDescriptor.from_type(model_type)
                _descriptors[model_type] = descriptor
    return descriptor
