"""Audit module."""

from .audit_log import AuditLog, IAuditLog

__all__ = ["AuditLog", "IAuditLog"]
