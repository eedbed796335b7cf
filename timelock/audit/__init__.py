"""Audit logging package."""

from timelock.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
