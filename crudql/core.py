"""Core CrudQL implementation."""

from typing import Dict, Any, Optional, List, Mapping, Sequence, Type
import logging

from .schema import DuckDBIntrospector, TypeBuilder
from .execution import operations
from .execution.context import ResolveParams
from .execution.executor import Executor
from .execution.handle import DuckDBHandle, connect_handle
from .exceptions import ValidationError
from .metrics import MetricsCollector

logger = logging.getLogger(__name__)


class CrudQL:
    """CRUD operations for GraphQL resolvers over one database connection."""

    def __init__(self,
                 connection: Any,
                 max_retries: int = 3,
                 retry_delay: float = 0.1,
                 retry_backoff: float = 2.0,
                 log_queries: bool = False,
                 log_slow_queries: bool = True,
                 slow_query_ms: int = 1000,
                 enable_metrics: bool = True,
                 metrics_history_size: int = 10000,
                 id_column: str = "id",
                 validate_tables: bool = False):
        """
        Initialize CrudQL with a database connection.

        Args:
            connection: DuckDB connection, PEP 249 connection or DatabaseHandle
            max_retries: Maximum number of retry attempts for failed reads
            retry_delay: Initial delay between retries in seconds
            retry_backoff: Multiplier for exponential backoff
            log_queries: Whether to log all SQL statements at DEBUG level
            log_slow_queries: Whether to log slow statements at WARNING level
            slow_query_ms: Threshold in milliseconds for slow statement logging
            enable_metrics: Whether to enable metrics collection
            metrics_history_size: Maximum number of statements to keep in metrics history
            id_column: Column DuckDB inserts return as the generated id
            validate_tables: Reject table names introspection does not know (DuckDB only)
        """
        self.handle = connect_handle(connection, id_column=id_column)

        self.introspector = None
        if isinstance(self.handle, DuckDBHandle):
            self.introspector = DuckDBIntrospector(self.handle.connection)
        self.type_builder = TypeBuilder()
        self.validate_tables = validate_tables and self.introspector is not None
        if validate_tables and self.introspector is None:
            logger.warning("validate_tables needs a DuckDB connection; table validation disabled")

        # Set up metrics collection
        self.metrics_collector = None
        if enable_metrics:
            self.metrics_collector = MetricsCollector(
                max_history=metrics_history_size,
                record_sql=log_queries
            )

        self.executor = Executor(
            self.handle,
            max_retries=max_retries,
            retry_delay=retry_delay,
            retry_backoff=retry_backoff,
            log_queries=log_queries,
            log_slow_queries=log_slow_queries,
            slow_query_ms=slow_query_ms,
            metrics_collector=self.metrics_collector
        )

    def _require_table(self, table_name: str) -> None:
        if not self.introspector.has_table(table_name):
            raise ValidationError(
                f"Table '{table_name}' not found",
                field_name="table",
                actual_value=table_name,
                suggestions=[f"Available tables: {', '.join(self.introspector.get_tables())}"]
            )

    def _table(self, table_name: str) -> str:
        if self.validate_tables:
            self._require_table(table_name)
        return table_name

    def query(self, model_type: Type, table_name: str, params: ResolveParams) -> List[Any]:
        """Paginated records; see :func:`operations.query_model`."""
        return operations.query_model(model_type, self._table(table_name), params, self.executor)

    def find_by_id(self, model_type: Type, table_name: str, params: ResolveParams) -> Any:
        return operations.find_by_id(model_type, self._table(table_name), params, self.executor)

    def count(self, table_name: str, params: Optional[ResolveParams] = None) -> int:
        return operations.query_model_count(self._table(table_name), params, self.executor)

    def create(self, model_type: Type, table_name: str, payload: Any,
               params: Optional[ResolveParams] = None) -> Any:
        return operations.create_model(model_type, self._table(table_name), params, payload, self.executor)

    def update(self, model_type: Type, table_name: str, params: ResolveParams, payload: Any) -> Any:
        return operations.update_model(model_type, self._table(table_name), params, payload, self.executor)

    def delete(self, model_type: Type, table_name: str, params: ResolveParams) -> int:
        return operations.delete_model(model_type, self._table(table_name), params, self.executor)

    def where(self, model_type: Type, table_name: str, params: ResolveParams, where: Any) -> List[Any]:
        return operations.where_model(model_type, self._table(table_name), params, where, self.executor)

    def raw_insert(self, table_name: str, data: Mapping[str, Any]) -> Any:
        return operations.raw_insert_model(self._table(table_name), data, self.executor)

    def find_all(self, model_type: Type, table_name: str, where: Any = None,
                 select_columns: Optional[Sequence[str]] = None) -> List[Any]:
        return operations.find_all_model(
            model_type, self._table(table_name), where, select_columns, self.executor
        )

    def model_for_table(self, table_name: str) -> Type:
        """
        Build a strawberry record type from an existing DuckDB table.

        Every field is optional and named exactly like its column.
        """
        if self.introspector is None:
            raise TypeError("Table introspection requires a DuckDB connection")
        self._require_table(table_name)
        return self.type_builder.build_type(self.introspector.get_table_info(table_name))

    def get_stats(self) -> Dict[str, Any]:
        """Get execution statistics and, when enabled, collected metrics."""
        stats = {"executor": self.executor.get_stats()}
        if self.metrics_collector:
            stats["metrics"] = self.metrics_collector.get_stats()
        return stats

    def reset_stats(self) -> None:
        self.executor.reset_stats()
        if self.metrics_collector:
            self.metrics_collector.reset_stats()

    def close(self) -> None:
        """Close the underlying connection."""
        self.executor.close()
