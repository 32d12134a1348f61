import inspect
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from prometheus_client import Counter, Histogram

from services.audit_worker.context import AuditContext
from services.audit_worker.errors import AuditConfigurationError, AuditFailedError, NotFoundError
from services.audit_worker.schemas.audit import (
    AuditMessage,
    AuditRecord,
    AuditResponse,
    AuditResultMessage,
    AuditRunResult
)
from services.audit_worker.schemas.entities import Organization, Site
from services.audit_worker.support.utils import compose_audit_url, elapsed_seconds, get_host, prepend_schema

audit_runs_total = Counter(
    'audit_runs_total',
    'Total audit pipeline runs',
    ['audit_type', 'outcome']
)

audit_duration = Histogram(
    'audit_duration_seconds',
    'Duration of audit pipeline runs',
    ['audit_type']
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def accepts_positional(fn: Callable, count: int) -> bool:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return True
    try:
        sig.bind(*range(count))
    except TypeError:
        return False
    return True


async def default_site_provider(site_id: str, context: AuditContext) -> Site:
    site = await context.data_access.get_site_by_id(site_id)
    if site is None:
        raise NotFoundError("Site", site_id)
    return site


async def default_org_provider(org_id: str, context: AuditContext) -> Organization:
    org = await context.data_access.get_organization_by_id(org_id)
    if org is None:
        raise NotFoundError("Org", org_id)
    return org


async def default_persister(audit_record: AuditRecord, context: AuditContext) -> None:
    await context.data_access.add_audit(audit_record)


async def default_message_sender(message: AuditResultMessage, context: AuditContext) -> None:
    queue_url = context.settings.results_queue_url
    if not queue_url:
        raise AuditConfigurationError("AUDIT_RESULTS_QUEUE_URL is not configured")
    await context.queue.send_message(queue_url, message)


async def default_url_resolver(site: Site) -> str:
    return get_host(await compose_audit_url(site.base_url))


async def noop_url_resolver(site: Site) -> str:
    return site.base_url


@dataclass(frozen=True)
class Audit:
    """One configured audit pipeline. Build it with ``AuditBuilder``.

    ``run`` resolves the site and its org, checks the configuration, resolves
    the audit URL, runs the audit, persists the record and publishes the
    result. A failure in any of those stages is logged and re-raised as
    ``AuditFailedError``. Post-processors run afterwards, in order, and their
    failures propagate as they are.
    """

    site_provider: Callable
    org_provider: Callable
    url_resolver: Callable
    persister: Callable
    message_sender: Callable
    runner: Callable
    post_processors: tuple[Callable, ...] = ()

    async def run(self, message: AuditMessage | dict, context: AuditContext) -> AuditResponse:
        msg = message if isinstance(message, AuditMessage) else AuditMessage.model_validate(message)
        log = context.log
        audit_type = msg.type
        site_key = msg.site_key
        start = time.perf_counter()

        try:
            site = await resolve(self.site_provider(site_key, context))
            if site is None:
                raise NotFoundError("Site", site_key)

            org = await resolve(self.org_provider(site.organization_id, context))
            if org is None:
                raise NotFoundError("Org", site.organization_id)

            configuration = await resolve(context.data_access.get_configuration())
            if not configuration.is_handler_enabled_for_site(audit_type, site):
                log.warning(f"{audit_type} audits disabled for site {site_key}, skipping...")
                audit_runs_total.labels(audit_type=audit_type, outcome="skipped").inc()
                return AuditResponse.ok()

            final_url = await resolve(self.url_resolver(site))
            audit_url = prepend_schema(final_url)

            result = await self._run_audit(audit_url, context)

            audit_record = AuditRecord(
                site_id=site.id,
                is_live=site.is_live,
                audited_at=utcnow(),
                audit_type=audit_type,
                audit_result=result.audit_result,
                full_audit_ref=result.full_audit_ref,
            )
            await resolve(self.persister(audit_record, context))

            result_message = AuditResultMessage(
                type=audit_type,
                url=audit_url,
                audit_context={
                    **msg.audit_context,
                    "finalUrl": final_url,
                    "fullAuditRef": result.full_audit_ref,
                },
                audit_result=result.audit_result,
            )
            await resolve(self.message_sender(result_message, context))
        except Exception as e:
            duration = elapsed_seconds(start)
            log.error(
                f"{audit_type} audit failed for site {site_key} after {duration} seconds",
                extra={"audit_type": audit_type, "site_id": site_key, "duration_seconds": float(duration)},
                exc_info=True
            )
            audit_runs_total.labels(audit_type=audit_type, outcome="failed").inc()
            raise AuditFailedError(audit_type, site_key, str(e)) from e

        for post_processor in self.post_processors:
            await resolve(post_processor(final_url, audit_record))

        duration = elapsed_seconds(start)
        log.info(
            f"{audit_type} audit for site {site_key} completed in {duration} seconds",
            extra={"audit_type": audit_type, "site_id": site_key, "duration_seconds": float(duration)}
        )
        audit_runs_total.labels(audit_type=audit_type, outcome="success").inc()
        audit_duration.labels(audit_type=audit_type).observe(float(duration))

        return AuditResponse.ok()

    async def _run_audit(self, audit_url: str, context: AuditContext) -> AuditRunResult:
        raw = await resolve(self.runner(audit_url, context))
        if isinstance(raw, AuditRunResult):
            return raw
        return AuditRunResult.model_validate(raw)
