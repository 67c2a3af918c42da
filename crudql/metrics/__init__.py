"""Statement metrics for CrudQL."""

from .collector import MetricsCollector, StatementMetrics, OPERATIONS

__all__ = [
    'MetricsCollector',
    'StatementMetrics',
    'OPERATIONS',
]
