"""Statement execution with logging, retries and metrics."""

from typing import Any, Callable, Dict, Optional, Sequence, Set, Type
import logging
import threading
import time
import uuid
from functools import wraps

import duckdb

from .handle import DatabaseHandle, ExecResult, Row, Rows, connect_handle
from ..exceptions import enhance_db_error
from ..metrics import MetricsCollector, StatementMetrics

logger = logging.getLogger(__name__)


# Default retryable error types
DEFAULT_RETRYABLE_ERRORS = {
    duckdb.ConnectionException,
    duckdb.IOException,
}


def with_retry(max_retries: int = 3,
               delay: float = 0.1,
               backoff: float = 2.0,
               retryable_errors: Optional[Set[Type[Exception]]] = None,
               on_retry: Optional[Callable[[Exception], None]] = None):
    """
    Decorator to retry a function on specific errors with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for exponential backoff
        retryable_errors: Set of exception types to retry on
        on_retry: Called with the error before each retry
    """
    if retryable_errors is None:
        retryable_errors = DEFAULT_RETRYABLE_ERRORS

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not any(isinstance(e, error_type) for error_type in retryable_errors):
                        raise

                    if attempt >= max_retries:
                        logger.error(f"Statement failed after {max_retries + 1} attempts: {e}")
                        raise

                    logger.warning(
                        f"Statement failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                        f"Retrying in {current_delay:.2f}s..."
                    )
                    if on_retry is not None:
                        on_retry(e)
                    time.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


class Executor(DatabaseHandle):
    """Runs statements on a handle, logging and timing each one.

    Reads are retried on connection-class errors; writes run once. Driver
    errors are re-raised as ``QueryExecutionError``.
    """

    def __init__(self,
                 handle: DatabaseHandle,
                 max_retries: int = 3,
                 retry_delay: float = 0.1,
                 retry_backoff: float = 2.0,
                 retryable_errors: Optional[Set[Type[Exception]]] = None,
                 log_queries: bool = False,
                 log_slow_queries: bool = True,
                 slow_query_ms: int = 1000,
                 metrics_collector: Optional[MetricsCollector] = None):
        """
        Initialize the executor.

        Args:
            handle: Database handle statements run on
            max_retries: Maximum number of retry attempts for failed reads
            retry_delay: Initial delay between retries in seconds
            retry_backoff: Multiplier for exponential backoff
            retryable_errors: Set of exception types to retry on
            log_queries: Whether to log all SQL statements at DEBUG level
            log_slow_queries: Whether to log slow statements at WARNING level
            slow_query_ms: Threshold in milliseconds for slow statement logging
            metrics_collector: Optional metrics collector instance
        """
        self.handle = handle

        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.retry_backoff = retry_backoff
        self.retryable_errors = retryable_errors or DEFAULT_RETRYABLE_ERRORS

        self.log_queries = log_queries
        self.log_slow_queries = log_slow_queries
        self.slow_query_ms = slow_query_ms

        self._statement_count = 0
        self._total_time = 0.0
        self._lock = threading.Lock()

        self.metrics = metrics_collector

    def _retrying(self, func: Callable, metrics: Optional[StatementMetrics]) -> Callable:
        def on_retry(_error: Exception) -> None:
            if self.metrics and metrics:
                self.metrics.record_retry(metrics)

        return with_retry(
            max_retries=self.max_retries,
            delay=self.retry_delay,
            backoff=self.retry_backoff,
            retryable_errors=self.retryable_errors,
            on_retry=on_retry
        )(func)

    def _begin(self, sql: str, args: Sequence[Any], context: Optional[Dict[str, Any]]):
        context = dict(context or {})
        correlation_id = context.get("correlation_id") or str(uuid.uuid4())
        context["correlation_id"] = correlation_id

        metrics = None
        if self.metrics:
            metrics = self.metrics.start(
                statement_id=correlation_id,
                operation=context.get("operation", "other"),
                table_name=context.get("table_name"),
                sql=sql,
                context=context
            )

        if self.log_queries:
            logger.debug(
                f"[{correlation_id}] Executing statement: {sql[:200]}{'...' if len(sql) > 200 else ''}",
                extra={"correlation_id": correlation_id, "sql": sql, "params": list(args)}
            )

        return context, metrics, time.time()

    def _finish(self, sql: str, context: Dict[str, Any], metrics: Optional[StatementMetrics],
                start_time: float, row_count: Optional[int]) -> None:
        correlation_id = context["correlation_id"]
        execution_time = (time.time() - start_time) * 1000

        with self._lock:
            self._statement_count += 1
            self._total_time += execution_time

        if metrics:
            self.metrics.complete(metrics, row_count=row_count)

        if self.log_slow_queries and execution_time > self.slow_query_ms:
            logger.warning(
                f"[{correlation_id}] Slow statement detected: {execution_time:.2f}ms - "
                f"{sql[:200]}{'...' if len(sql) > 200 else ''}",
                extra={
                    "correlation_id": correlation_id,
                    "execution_time_ms": execution_time,
                    "sql": sql,
                    "row_count": row_count
                }
            )
        elif self.log_queries:
            logger.debug(
                f"[{correlation_id}] Statement completed in {execution_time:.2f}ms, {row_count} rows",
                extra={
                    "correlation_id": correlation_id,
                    "execution_time_ms": execution_time,
                    "row_count": row_count
                }
            )

    def _record_failure(self, error: Exception, sql: str, context: Dict[str, Any],
                        metrics: Optional[StatementMetrics], start_time: float) -> float:
        correlation_id = context["correlation_id"]
        execution_time = (time.time() - start_time) * 1000

        if metrics:
            self.metrics.complete(metrics, error=str(error))

        logger.error(
            f"[{correlation_id}] Statement failed after {execution_time:.2f}ms: {error}",
            extra={
                "correlation_id": correlation_id,
                "execution_time_ms": execution_time,
                "sql": sql,
                "error": str(error),
                "error_type": type(error).__name__
            }
        )
        return execution_time

    def _fail(self, error: Exception, sql: str, args: Sequence[Any], context: Dict[str, Any],
              metrics: Optional[StatementMetrics], start_time: float) -> Exception:
        execution_time = self._record_failure(error, sql, context, metrics, start_time)

        error_context = dict(context)
        error_context.update({
            "sql": sql,
            "params": list(args),
            "execution_time_ms": execution_time
        })
        return enhance_db_error(error, **error_context)

    def query(self, sql: str, args: Sequence[Any] = (),
              context: Optional[Dict[str, Any]] = None) -> Rows:
        context, metrics, start_time = self._begin(sql, args, context)
        try:
            rows = self._retrying(self.handle.query, metrics)(sql, args)
        except Exception as e:
            raise self._fail(e, sql, args, context, metrics, start_time) from e

        def on_close(row_count: int) -> None:
            self._finish(sql, context, metrics, start_time, row_count)

        def on_error(error: Exception) -> None:
            self._record_failure(error, sql, context, metrics, start_time)

        return Rows(rows, on_close=on_close, on_error=on_error)

    def query_row(self, sql: str, args: Sequence[Any] = (),
                  context: Optional[Dict[str, Any]] = None) -> Optional[Row]:
        context, metrics, start_time = self._begin(sql, args, context)
        try:
            row = self._retrying(self.handle.query_row, metrics)(sql, args)
        except Exception as e:
            raise self._fail(e, sql, args, context, metrics, start_time) from e

        self._finish(sql, context, metrics, start_time, 0 if row is None else 1)
        return row

    def exec(self, sql: str, args: Sequence[Any] = (),
             context: Optional[Dict[str, Any]] = None) -> ExecResult:
        context, metrics, start_time = self._begin(sql, args, context)
        try:
            result = self.handle.exec(sql, args)
        except Exception as e:
            raise self._fail(e, sql, args, context, metrics, start_time) from e

        self._finish(sql, context, metrics, start_time, result.rows_affected)
        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get statement execution statistics."""
        with self._lock:
            avg_time = self._total_time / self._statement_count if self._statement_count > 0 else 0
            return {
                "statement_count": self._statement_count,
                "total_time_ms": self._total_time,
                "average_time_ms": avg_time,
                "max_retries": self.max_retries,
                "slow_query_threshold_ms": self.slow_query_ms
            }

    def reset_stats(self) -> None:
        """Reset statement execution statistics."""
        with self._lock:
            self._statement_count = 0
            self._total_time = 0.0

    def close(self) -> None:
        """Close the underlying handle."""
        stats = self.get_stats()
        if stats["statement_count"] > 0:
            logger.info(
                f"Executor closing. Executed {stats['statement_count']} statements, "
                f"average time: {stats['average_time_ms']:.2f}ms"
            )
        self.handle.close()


def as_executor(db: Any) -> Executor:
    """Accept an Executor, a DatabaseHandle or a raw connection."""
    if isinstance(db, Executor):
        return db
    return Executor(connect_handle(db))
