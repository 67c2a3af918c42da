"""CRUD operations mapping a resolving GraphQL field onto one table.

Each operation derives its projection and predicate from scratch, runs the
statement through an :class:`Executor` and materializes the rows into records
of the given type.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Type
import dataclasses
import logging
import uuid

from .context import ResolveParams
from .executor import as_executor
from .materializer import map_to_struct, model_column, model_columns, scan_row, struct_to_map
from .projection import get_columns
from .translator import (
    StatementBuilder,
    ensure_column_name,
    ensure_table_name,
    parse_columns,
)
from ..schema.model import ModelDescriptor, describe, is_bindable
from ..exceptions import (
    CrudQLError,
    EmptyProjectionError,
    MissingArgumentError,
    NoRowsFoundError,
    ProjectionConfigError,
    QueryExecutionError,
    ValidationError,
    ZeroRowsAffectedError,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

_builder = StatementBuilder()


def _op_context(operation: str, table_name: str) -> Dict[str, Any]:
    return {
        "correlation_id": str(uuid.uuid4()),
        "operation": operation,
        "table_name": table_name,
    }


@contextmanager
def _wrap_errors(context: Dict[str, Any]):
    """Let CrudQL errors through; wrap anything unexpected."""
    try:
        yield
    except (CrudQLError, ProjectionConfigError):
        raise
    except Exception as e:
        correlation_id = context["correlation_id"]
        logger.error(
            f"[{correlation_id}] Error in {context['operation']} for {context['table_name']}: {e}"
        )
        raise QueryExecutionError(
            f"Failed to {context['operation']} {context['table_name']}",
            table_name=context["table_name"],
            operation=context["operation"],
            correlation_id=correlation_id,
            context={"original_error": str(e)}
        ) from e


def _int_arg(params: ResolveParams, name: str, default: int, context: Dict[str, Any]) -> int:
    value = params.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    if value < 1:
        raise ValidationError(
            f"{name} must be at least 1",
            field_name=name,
            expected_type="positive int",
            actual_value=value,
            correlation_id=context["correlation_id"]
        )
    return value


def _require_id(params: Optional[ResolveParams], context: Dict[str, Any]) -> Any:
    id_value = params.get("id") if params is not None else None
    if isinstance(id_value, bool) or not isinstance(id_value, (int, str)) or id_value == "":
        raise MissingArgumentError(
            "id is required",
            argument_name="id",
            actual_value=id_value,
            correlation_id=context["correlation_id"],
            context={"table": context["table_name"], "operation": context["operation"]}
        )
    return id_value


def _where_arg(params: Optional[ResolveParams]) -> Dict[str, Any]:
    where = params.get("where") if params is not None else None
    return _as_filter(where)


def _as_filter(where: Any) -> Dict[str, Any]:
    if isinstance(where, Mapping):
        return dict(where)
    # strawberry input objects
    if dataclasses.is_dataclass(where) and not isinstance(where, type):
        return struct_to_map(where)
    return {}


def _check_values(descriptor: Optional[ModelDescriptor], values: Dict[str, Any],
                  context: Dict[str, Any]) -> None:
    """Every key must name a field (or be a plain identifier) and every value be bindable."""
    for key, value in values.items():
        if descriptor is not None:
            descriptor.resolve(key)
        else:
            ensure_column_name(key)
        if not is_bindable(value):
            raise ValidationError(
                f"Value for '{key}' cannot be bound as a parameter",
                field_name=key,
                expected_type="scalar",
                actual_value=value,
                correlation_id=context["correlation_id"]
            )


def _projection(descriptor: ModelDescriptor, columns: Iterable[str]) -> str:
    cols = list(columns)
    if not cols:
        raise EmptyProjectionError("no columns selected", context={"model": descriptor.name})
    for col in cols:
        descriptor.resolve(col)
    return ",".join(cols)


def _materialize(rows: Iterable[Sequence[Any]], descriptor: ModelDescriptor,
                 select_column: str) -> List[Any]:
    results = []
    for row in rows:
        model = descriptor.new()
        scan_row(row, model_column(select_column, model))
        results.append(model)
    return results


def query_model(model_type: Type, table_name: str, params: ResolveParams, db: Any) -> List[Any]:
    """
    Paginated list of records, newest id first.

    Reads ``where`` (default empty), ``page`` (default 1) and ``pageSize``
    (default 10) from the resolver arguments.
    """
    context = _op_context("list", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        where = _where_arg(params)
        page = _int_arg(params, "page", DEFAULT_PAGE, context)
        page_size = _int_arg(params, "pageSize", DEFAULT_PAGE_SIZE, context)
        offset = (page - 1) * page_size

        select_column = _projection(descriptor, parse_columns(get_columns(params)))
        _check_values(descriptor, where, context)

        sql, args = _builder.select_page(table_name, select_column, where, page_size, offset)
        logger.debug(f"[{context['correlation_id']}] select columns for {table_name}: {select_column}")

        with executor.query(sql, args, context) as rows:
            return _materialize(rows, descriptor, select_column)


def find_by_id(model_type: Type, table_name: str, params: ResolveParams, db: Any) -> Any:
    """Fetch the record whose id is the ``id`` argument."""
    context = _op_context("find_by_id", table_name)
    with _wrap_errors(context):
        id_value = _require_id(params, context)
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        select_column = _projection(descriptor, parse_columns(get_columns(params)))
        sql, args = _builder.select_by_id(table_name, select_column, id_value)

        row = executor.query_row(sql, args, context)
        if row is None:
            raise NoRowsFoundError(
                "no data found",
                table_name=table_name,
                operation="find_by_id",
                correlation_id=context["correlation_id"],
                context={"id": id_value}
            )

        model = descriptor.new()
        scan_row(row, model_column(select_column, model))
        return model


def query_model_count(table_name: str, params: Optional[ResolveParams], db: Any) -> int:
    """Number of rows in the table."""
    context = _op_context("count", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)

        sql, args = _builder.count(table_name)
        row = executor.query_row(sql, args, context)
        if row is None or len(row) != 1:
            raise NoRowsFoundError(
                "no data found",
                table_name=table_name,
                operation="count",
                correlation_id=context["correlation_id"]
            )
        return int(row[0])


def create_model(model_type: Type, table_name: str, params: Optional[ResolveParams],
                 payload: Any, db: Any) -> Any:
    """
    Insert the set fields of ``payload`` and return the stored record.

    ``payload`` is a record or a field map. Fields holding ``None`` or ``""``
    are not written. The generated id is set on the returned record.
    """
    context = _op_context("create", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        model_map = struct_to_map(payload)
        _check_values(descriptor, model_map, context)
        if not model_map:
            raise ValidationError(
                "No fields to insert",
                field_name="model",
                correlation_id=context["correlation_id"]
            )

        sql, args = _builder.insert(table_name, model_map)
        result = executor.exec(sql, args, context)

        if result.rows_affected == 0:
            raise ZeroRowsAffectedError(
                "failed to create model",
                query=sql,
                table_name=table_name,
                operation="create",
                correlation_id=context["correlation_id"]
            )
        if result.last_insert_id is None:
            raise QueryExecutionError(
                "Driver did not report the inserted id",
                query=sql,
                table_name=table_name,
                operation="create",
                correlation_id=context["correlation_id"]
            )

        model_map["id"] = result.last_insert_id
        return map_to_struct(model_map, model_type)


def update_model(model_type: Type, table_name: str, params: ResolveParams,
                 payload: Any, db: Any) -> Any:
    """
    Update the record named by the ``id`` argument and return it re-read.

    The re-read goes through :func:`find_by_id` with the same ``params``, so
    the returned record carries the columns the caller selected.
    """
    context = _op_context("update", table_name)
    with _wrap_errors(context):
        id_value = _require_id(params, context)
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        model_map = {
            key: value for key, value in struct_to_map(payload).items()
            if key != "id" and key != "Id"
        }
        _check_values(descriptor, model_map, context)
        if not model_map:
            raise ValidationError(
                "No fields to update",
                field_name="model",
                correlation_id=context["correlation_id"]
            )

        sql, args = _builder.update(table_name, model_map, id_value)
        executor.exec(sql, args, context)

        try:
            return find_by_id(model_type, table_name, params, executor)
        except CrudQLError as e:
            raise NoRowsFoundError(
                "failed to retrieve updated model",
                table_name=table_name,
                operation="update",
                correlation_id=context["correlation_id"],
                context={"id": id_value, "original_error": e.message}
            ) from e


def delete_model(model_type: Type, table_name: str, params: ResolveParams, db: Any) -> int:
    """Delete the record named by the ``id`` argument; return rows affected."""
    context = _op_context("delete", table_name)
    with _wrap_errors(context):
        id_value = _require_id(params, context)
        executor = as_executor(db)
        ensure_table_name(table_name)

        sql, args = _builder.delete(table_name, id_value)
        result = executor.exec(sql, args, context)
        return result.rows_affected


def where_model(model_type: Type, table_name: str, params: ResolveParams,
                where: Any, db: Any) -> List[Any]:
    """All records matching ``where``, projected on the requested fields."""
    context = _op_context("where", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        where = _as_filter(where)
        select_column = _projection(descriptor, parse_columns(get_columns(params)))
        _check_values(descriptor, where, context)

        sql, args = _builder.select_where(table_name, select_column, where)
        with executor.query(sql, args, context) as rows:
            return _materialize(rows, descriptor, select_column)


def raw_insert_model(table_name: str, data: Mapping[str, Any], db: Any) -> Any:
    """Insert a field map as-is and return the generated id."""
    context = _op_context("raw_insert", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)

        values = dict(data)
        _check_values(None, values, context)
        if not values:
            raise ValidationError(
                "No fields to insert",
                field_name="data",
                correlation_id=context["correlation_id"]
            )

        sql, args = _builder.insert(table_name, values)
        result = executor.exec(sql, args, context)

        if result.rows_affected == 0:
            raise ZeroRowsAffectedError(
                "failed to insert model",
                query=sql,
                table_name=table_name,
                operation="raw_insert",
                correlation_id=context["correlation_id"]
            )
        return result.last_insert_id


def find_all_model(model_type: Type, table_name: str, where: Any,
                   select_columns: Optional[Sequence[str]], db: Any) -> List[Any]:
    """
    All records matching ``where`` with an explicit column list.

    For use outside a resolver. ``select_columns=None`` selects every
    exported field of ``model_type``.
    """
    context = _op_context("find_all", table_name)
    with _wrap_errors(context):
        executor = as_executor(db)
        ensure_table_name(table_name)
        descriptor = describe(model_type)

        if select_columns is None:
            select_columns = [ref.name for ref in model_columns(descriptor.new())]
        select_column = _projection(descriptor, [c.strip() for c in select_columns if c.strip()])

        where = _as_filter(where)
        _check_values(descriptor, where, context)

        sql, args = _builder.select_where(table_name, select_column, where)
        with executor.query(sql, args, context) as rows:
            return _materialize(rows, descriptor, select_column)
