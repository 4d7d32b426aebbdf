"""Supporting utilities."""

from .audit_trail import AuditTrail, AuditEntry, MergeSession, OperationType

__all__ = ['AuditTrail', 'AuditEntry', 'MergeSession', 'OperationType']
