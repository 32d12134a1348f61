import time

from services.audit_worker.audits.cwv import cwv
from services.audit_worker.context import AuditContext
from services.audit_worker.schemas.audit import AuditMessage, AuditResponse
from services.audit_worker.support.utils import elapsed_seconds

HANDLERS = {
    "cwv": cwv,
}


async def run(message: AuditMessage | dict, context: AuditContext, handlers: dict | None = None) -> AuditResponse:
    """Dispatch ``message`` to the audit registered for its type.

    Never raises: unknown types map to 404 and failures to the error's
    ``status_code`` or 500.
    """
    registry = HANDLERS if handlers is None else handlers
    log = context.log
    msg = message if isinstance(message, AuditMessage) else AuditMessage.model_validate(message)

    log.info(f"Audit req received for url: {msg.site_key}")

    handler = registry.get(msg.type)
    if handler is None:
        log.error(f"no such audit type: {msg.type}")
        return AuditResponse(status=404)

    start = time.perf_counter()
    try:
        result = await handler.run(msg, context)
        log.info(f"Audit for {msg.type} completed in {elapsed_seconds(start)} seconds")
        return result
    except Exception as e:
        log.error(f"Audit failed after {elapsed_seconds(start)} seconds", exc_info=True)
        return AuditResponse.error(getattr(e, "status_code", None) or 500)
