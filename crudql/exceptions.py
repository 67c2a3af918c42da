"""Custom exceptions for CrudQL with enhanced error messages."""

from typing import Optional, Dict, Any, List
import re
import uuid


class CrudQLError(Exception):
    """Base exception for all CrudQL errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize CrudQL error with rich context.

        Args:
            message: The error message
            error_code: Optional error code for categorization
            context: Additional context about the error
            suggestions: List of suggestions to fix the error
            correlation_id: ID to track this error across logs
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "CRUDQL_ERROR"
        self.context = context or {}
        self.suggestions = suggestions or []
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
            "suggestions": self.suggestions,
            "correlation_id": self.correlation_id
        }

    def __str__(self) -> str:
        """Return formatted error message."""
        parts = [f"[{self.error_code}] {self.message}"]

        if self.context:
            parts.append(f"Context: {self.context}")

        if self.suggestions:
            parts.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"  {i}. {suggestion}")

        parts.append(f"Correlation ID: {self.correlation_id}")

        return "\n".join(parts)


class MissingArgumentError(CrudQLError):
    """A required resolver argument is absent or has the wrong type."""

    def __init__(
        self,
        message: str,
        argument_name: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if argument_name:
            context["argument"] = argument_name
        if actual_value is not None:
            context["actual_type"] = type(actual_value).__name__

        super().__init__(
            message=message,
            error_code="MISSING_ARGUMENT",
            context=context,
            **kwargs
        )


class InvalidFieldError(CrudQLError):
    """A column or payload key has no matching record field."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        model_name: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if field_name:
            context["field"] = field_name
        if model_name:
            context["model"] = model_name

        suggestions = kwargs.pop("suggestions", [])
        if not suggestions and model_name:
            suggestions = [
                f"Check that '{model_name}' declares the requested field",
                "Column names are matched with their first letter upper-cased, then verbatim"
            ]

        super().__init__(
            message=message,
            error_code="INVALID_FIELD",
            context=context,
            suggestions=suggestions,
            **kwargs
        )


class EmptyProjectionError(CrudQLError):
    """No columns were resolved for a SELECT statement."""

    def __init__(self, message: str = "no columns selected", **kwargs):
        super().__init__(
            message=message,
            error_code="EMPTY_PROJECTION",
            **kwargs
        )


class QueryExecutionError(CrudQLError):
    """Error during statement execution."""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if query:
            # Truncate long queries
            context["query"] = query[:200] + "..." if len(query) > 200 else query
        if table_name:
            context["table"] = table_name
        if operation:
            context["operation"] = operation

        error_code = kwargs.pop("error_code", None) or "QUERY_ERROR"

        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            **kwargs
        )


class NoRowsFoundError(QueryExecutionError):
    """A result row could not be scanned into the target record."""

    def __init__(self, message: str = "no data found", **kwargs):
        kwargs.pop("error_code", None)
        super().__init__(message, error_code="NO_ROWS_FOUND", **kwargs)


class ZeroRowsAffectedError(QueryExecutionError):
    """A mutating statement reported zero affected rows."""

    def __init__(self, message: str, **kwargs):
        kwargs.pop("error_code", None)
        super().__init__(message, error_code="ZERO_ROWS_AFFECTED", **kwargs)


class ValidationError(CrudQLError):
    """Argument or payload value rejected before any statement runs."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        expected_type: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if field_name:
            context["field"] = field_name
        if expected_type:
            context["expected_type"] = expected_type
        if actual_value is not None:
            context["actual_value"] = str(actual_value)
            context["actual_type"] = type(actual_value).__name__

        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            context=context,
            **kwargs
        )


class ProjectionConfigError(RuntimeError):
    """
    The resolving field has no selection to project.

    Raised by the column projector when the resolver and the schema disagree.
    This is a configuration fault, so it is not a CrudQLError and no operation
    catches it.
    """

    def __init__(self, message: str, path_key: Optional[str] = None):
        super().__init__(message)
        self.path_key = path_key


def enhance_db_error(original_error: Exception, **context) -> CrudQLError:
    """
    Transform a driver exception into a CrudQL error.

    Args:
        original_error: The original DuckDB / DB-API exception
        **context: Additional context to include

    Returns:
        QueryExecutionError carrying the driver's message
    """
    if isinstance(original_error, CrudQLError):
        return original_error

    error_message = str(original_error)
    error_type = type(original_error).__name__
    table_name = context.get("table_name")
    operation = context.get("operation")
    query = context.get("sql")
    correlation_id = context.get("correlation_id")

    # Missing column: DuckDB "Referenced column "x" not found", SQLite "no such column: x"
    column_match = (
        re.search(r"column\s*['\"]?(\w+)['\"]?\s*not found", error_message, re.IGNORECASE)
        or re.search(r"no such column:\s*(\w+)", error_message, re.IGNORECASE)
        or re.search(r"has no column named\s*(\w+)", error_message, re.IGNORECASE)
    )
    if column_match:
        column_name = column_match.group(1)
        return QueryExecutionError(
            error_message,
            query=query,
            table_name=table_name,
            operation=operation,
            correlation_id=correlation_id,
            context={"error_type": error_type, "column": column_name},
            suggestions=[
                f"Check that column '{column_name}' exists in the table",
                "Make sure the record type only declares columns of the table"
            ]
        )

    # Missing table: DuckDB "Catalog Error: Table with name x does not exist", SQLite "no such table: x"
    table_match = (
        re.search(r"Table with name\s*['\"]?(\w+)['\"]?\s*does not exist", error_message, re.IGNORECASE)
        or re.search(r"no such table:\s*(\w+)", error_message, re.IGNORECASE)
    )
    if table_match:
        missing_table = table_match.group(1)
        return QueryExecutionError(
            error_message,
            query=query,
            table_name=table_name or missing_table,
            operation=operation,
            correlation_id=correlation_id,
            context={"error_type": error_type, "missing_table": missing_table},
            suggestions=[
                f"Check if the table name '{missing_table}' is spelled correctly",
                "Ensure the table has been created in the database"
            ]
        )

    # Generic fallback
    return QueryExecutionError(
        error_message,
        query=query,
        table_name=table_name,
        operation=operation,
        correlation_id=correlation_id,
        context={"error_type": error_type}
    )
