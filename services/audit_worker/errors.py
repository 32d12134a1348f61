class AuditWorkerError(Exception):
    status_code: int | None = None


class AuditValidationError(AuditWorkerError, ValueError):
    pass


class AuditConfigurationError(AuditWorkerError):
    pass


class NotFoundError(AuditWorkerError):
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} with id {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class RedirectLoopError(AuditWorkerError):

    def __init__(self, url: str):
        super().__init__(f"Redirect loop detected at {url}")
        self.url = url


class AuditFailedError(AuditWorkerError):
    """Uniform failure raised by ``Audit.run`` for any stage before post-processing.

    The original exception is chained as ``__cause__``; callers only get its
    message through ``reason``.
    """

    status_code = 500

    def __init__(self, audit_type: str, site_key: str, reason: str):
        super().__init__(f"{audit_type} audit failed for site {site_key}. Reason: {reason}")
        self.audit_type = audit_type
        self.site_key = site_key
        self.reason = reason
