"""Metrics collection for CrudQL statements."""

import time
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from datetime import datetime
import statistics


OPERATIONS = (
    'list',
    'find_by_id',
    'count',
    'create',
    'update',
    'delete',
    'where',
    'raw_insert',
    'find_all',
)


@dataclass
class StatementMetrics:
    """Metrics for a single statement execution."""

    statement_id: str
    operation: str
    table_name: Optional[str]
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    sql: Optional[str] = None
    row_count: Optional[int] = None
    error: Optional[str] = None
    retries: int = 0
    context: Dict[str, Any] = field(default_factory=dict)

    def complete(self, row_count: Optional[int] = None, error: Optional[str] = None):
        """Mark statement as complete and calculate duration."""
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.row_count = row_count
        self.error = error


class MetricsCollector:
    """Collects and aggregates metrics for executed statements."""

    def __init__(self,
                 max_history: int = 10000,
                 record_sql: bool = False):
        """
        Initialize metrics collector.

        Args:
            max_history: Maximum number of statements to keep in history
            record_sql: Whether to store the SQL text of each statement
        """
        self.max_history = max_history
        self.record_sql = record_sql
        self._statements: List[StatementMetrics] = []
        self._lock = threading.Lock()

        self._total_statements = 0
        self._total_errors = 0
        self._total_retries = 0
        self._table_statements: Dict[str, int] = {}
        self._table_errors: Dict[str, int] = {}
        self._operation_counts: Dict[str, int] = self._empty_operation_counts()

    @staticmethod
    def _empty_operation_counts() -> Dict[str, int]:
        counts = {op: 0 for op in OPERATIONS}
        counts['other'] = 0
        return counts

    def start(self,
              statement_id: str,
              operation: str,
              table_name: Optional[str] = None,
              sql: Optional[str] = None,
              context: Optional[Dict[str, Any]] = None) -> StatementMetrics:
        """Start tracking a statement."""
        metrics = StatementMetrics(
            statement_id=statement_id,
            operation=operation,
            table_name=table_name,
            start_time=time.time(),
            sql=sql if self.record_sql else None,
            context=context or {}
        )

        with self._lock:
            self._statements.append(metrics)
            self._total_statements += 1

            if operation in self._operation_counts:
                self._operation_counts[operation] += 1
            else:
                self._operation_counts['other'] += 1

            if table_name:
                self._table_statements[table_name] = self._table_statements.get(table_name, 0) + 1

            if len(self._statements) > self.max_history:
                self._statements = self._statements[-self.max_history:]

        return metrics

    def complete(self,
                 metrics: StatementMetrics,
                 row_count: Optional[int] = None,
                 error: Optional[str] = None):
        """Complete tracking for a statement."""
        metrics.complete(row_count=row_count, error=error)

        with self._lock:
            if error:
                self._total_errors += 1
                if metrics.table_name:
                    self._table_errors[metrics.table_name] = \
                        self._table_errors.get(metrics.table_name, 0) + 1

            if metrics.retries > 0:
                self._total_retries += metrics.retries

    def record_retry(self, metrics: StatementMetrics):
        """Record a retry for a statement."""
        with self._lock:
            metrics.retries += 1

    def get_stats(self) -> Dict[str, Any]:
        """Get aggregated statistics."""
        with self._lock:
            completed = [s for s in self._statements if s.duration_ms is not None]
            failed = [s for s in completed if s.error is not None]
            succeeded = [s for s in completed if s.error is None]

            durations = [s.duration_ms for s in succeeded]
            duration_stats = {}
            if durations:
                duration_stats = {
                    'min': min(durations),
                    'max': max(durations),
                    'mean': statistics.mean(durations),
                    'median': statistics.median(durations),
                    'p95': statistics.quantiles(durations, n=20)[18] if len(durations) > 1 else durations[0],
                }

            return {
                'summary': {
                    'total_statements': self._total_statements,
                    'total_errors': self._total_errors,
                    'error_rate': self._total_errors / self._total_statements if self._total_statements > 0 else 0,
                    'total_retries': self._total_retries,
                },
                'operations': dict(self._operation_counts),
                'tables': {
                    'statements': dict(self._table_statements),
                    'errors': dict(self._table_errors)
                },
                'durations_ms': duration_stats,
                'rows_total': sum(s.row_count for s in succeeded if s.row_count is not None),
                'recent_errors': [
                    {
                        'statement_id': s.statement_id,
                        'operation': s.operation,
                        'table': s.table_name,
                        'error': s.error,
                        'timestamp': datetime.fromtimestamp(s.start_time).isoformat()
                    }
                    for s in failed[-10:]
                ],
            }

    def reset_stats(self):
        """Reset all statistics."""
        with self._lock:
            self._statements.clear()
            self._total_statements = 0
            self._total_errors = 0
            self._total_retries = 0
            self._table_statements.clear()
            self._table_errors.clear()
            self._operation_counts = self._empty_operation_counts()
