from services.audit_worker.schemas.audit import (
    AuditMessage,
    AuditRunResult,
    AuditRecord,
    AuditResultMessage,
    AuditResponse
)

from services.audit_worker.schemas.entities import (
    Organization,
    Site,
    Configuration,
    HandlerConfig,
    HandlerTargets
)

__all__ = [
    "AuditMessage",
    "AuditRunResult",
    "AuditRecord",
    "AuditResultMessage",
    "AuditResponse",
    "Organization",
    "Site",
    "Configuration",
    "HandlerConfig",
    "HandlerTargets",
]
