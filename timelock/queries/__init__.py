"""Read-side queries package."""

from timelock.queries.executor import QueryExecutor, format_duration

__all__ = ["QueryExecutor", "format_duration"]
