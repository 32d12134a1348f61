from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import respx

from services.audit_worker.common.audit import (
    default_message_sender,
    default_org_provider,
    default_persister,
    default_site_provider,
    default_url_resolver,
    noop_url_resolver,
)
from services.audit_worker.common.audit_builder import AuditBuilder
from services.audit_worker.errors import AuditConfigurationError, AuditFailedError, AuditValidationError, NotFoundError
from services.audit_worker.schemas.audit import AuditRecord, AuditResultMessage, AuditRunResult

BASE_URL = "https://space.cat"
QUEUE_URL = "some-queue-url"
MOCK_DATE = datetime(2023, 3, 12, 15, 24, 51, 231000, tzinfo=timezone.utc)
FULL_AUDIT_REF = "hebele"


def dummy_runner(url, context):
    return {
        "auditResult": {"metric": 42} if isinstance(url, str) and context is not None else None,
        "fullAuditRef": FULL_AUDIT_REF,
    }


def expected_record(site):
    return AuditRecord(
        site_id=site.id,
        is_live=site.is_live,
        audited_at=MOCK_DATE,
        audit_type="dummy",
        audit_result={"metric": 42},
        full_audit_ref=FULL_AUDIT_REF,
    )


@pytest.mark.asyncio
async def test_default_site_provider_raises_when_site_is_missing(context):
    with pytest.raises(NotFoundError, match="Site with id site-id not found"):
        await default_site_provider("site-id", context)


@pytest.mark.asyncio
async def test_default_site_provider_returns_site(context, site):
    context.data_access.get_site_by_id.return_value = site

    result = await default_site_provider("site-id", context)

    assert result.base_url == BASE_URL
    context.data_access.get_site_by_id.assert_awaited_once_with("site-id")


@pytest.mark.asyncio
async def test_default_org_provider_raises_when_org_is_missing(context, site):
    with pytest.raises(NotFoundError, match=f"Org with id {site.organization_id} not found"):
        await default_org_provider(site.organization_id, context)


@pytest.mark.asyncio
async def test_default_org_provider_returns_org(context, site, org):
    context.data_access.get_organization_by_id.return_value = org

    result = await default_org_provider(site.organization_id, context)

    assert result.id == site.organization_id
    context.data_access.get_organization_by_id.assert_awaited_once_with(site.organization_id)


@pytest.mark.asyncio
async def test_default_persister_saves_the_record(context):
    audit_data = {"result": "hebele"}

    await default_persister(audit_data, context)

    context.data_access.add_audit.assert_awaited_once_with(audit_data)


@pytest.mark.asyncio
async def test_default_message_sender_sends_to_results_queue(context):
    result_message = {"result": "hebele"}

    await default_message_sender(result_message, context)

    context.queue.send_message.assert_awaited_once_with(QUEUE_URL, result_message)


@pytest.mark.asyncio
async def test_default_message_sender_requires_queue_url(context):
    context.settings.results_queue_url = None

    with pytest.raises(AuditConfigurationError):
        await default_message_sender({"result": "hebele"}, context)
    context.queue.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_default_url_resolver_follows_redirects_to_host(site):
    with respx.mock:
        respx.get("https://space.cat/").respond(301, headers={"Location": "https://www.space.cat/"})
        respx.get("https://www.space.cat/").respond(200, text="Success")

        url = await default_url_resolver(site)

    assert url == "www.space.cat"


@pytest.mark.asyncio
async def test_default_url_resolver_strips_path_of_final_url(org):
    from services.audit_worker.schemas.entities import Site

    blog = Site(base_url="https://spacekitty.cat/blog", organization_id=org.id)
    with respx.mock:
        respx.get("https://spacekitty.cat/blog").respond(302, headers={"Location": "/en/blog"})
        respx.get("https://spacekitty.cat/en/blog").respond(301, headers={"Location": "https://www.spacekitty.cat/en/blog"})
        respx.get("https://www.spacekitty.cat/en/blog").respond(200, text="hello world")

        url = await default_url_resolver(blog)

    assert url == "www.spacekitty.cat"


@pytest.mark.asyncio
async def test_noop_url_resolver_returns_base_url_without_network(site):
    with respx.mock(assert_all_called=False) as router:
        url = await noop_url_resolver(site)

    assert url == BASE_URL
    assert router.calls.call_count == 0


def test_build_fails_without_runner():
    with pytest.raises(AuditValidationError, match='"runner" must be a function'):
        AuditBuilder().build()


def test_build_rejects_non_callable_override():
    builder = AuditBuilder().with_runner(dummy_runner).with_site_provider("not-a-function")

    with pytest.raises(AuditValidationError, match='"site_provider" must be a function'):
        builder.build()


def test_build_rejects_override_with_wrong_arity():
    builder = AuditBuilder().with_runner(dummy_runner).with_url_resolver(lambda: "space.cat")

    with pytest.raises(AuditValidationError, match=r'"url_resolver" must be a function accepting \(site\)'):
        builder.build()


def test_build_rejects_post_processors_that_are_not_a_list():
    builder = AuditBuilder().with_runner(dummy_runner).with_post_processors(lambda url, record: None)

    with pytest.raises(AuditValidationError, match='"post_processors" must be a list of functions'):
        builder.build()


def test_build_fills_unset_slots_with_defaults():
    audit = AuditBuilder().with_runner(dummy_runner).build()

    assert audit.site_provider is default_site_provider
    assert audit.org_provider is default_org_provider
    assert audit.url_resolver is default_url_resolver
    assert audit.persister is default_persister
    assert audit.message_sender is default_message_sender
    assert audit.post_processors == ()


@pytest.mark.asyncio
async def test_run_wraps_missing_site(context, message):
    audit = AuditBuilder().with_runner(dummy_runner).build()

    with pytest.raises(AuditFailedError) as exc_info:
        await audit.run(message, context)

    assert str(exc_info.value) == "dummy audit failed for site site-id. Reason: Site with id site-id not found"
    assert isinstance(exc_info.value.__cause__, NotFoundError)
    context.log.error.assert_called_once()


@pytest.mark.asyncio
async def test_run_wraps_missing_org(context, message, site):
    context.data_access.get_site_by_id.return_value = site
    audit = AuditBuilder().with_runner(dummy_runner).build()

    with pytest.raises(AuditFailedError) as exc_info:
        await audit.run(message, context)

    assert str(exc_info.value) == (
        f"dummy audit failed for site site-id. Reason: Org with id {site.organization_id} not found"
    )


@pytest.mark.asyncio
async def test_run_wraps_runner_errors(context, message, known_site):
    def failing_runner(url, context):
        raise RuntimeError("lighthouse exploded")

    audit = (
        AuditBuilder()
        .with_url_resolver(noop_url_resolver)
        .with_runner(failing_runner)
        .build()
    )

    with pytest.raises(AuditFailedError) as exc_info:
        await audit.run(message, context)

    assert str(exc_info.value) == "dummy audit failed for site site-id. Reason: lighthouse exploded"
    assert exc_info.value.audit_type == "dummy"
    assert exc_info.value.site_key == "site-id"
    context.data_access.add_audit.assert_not_awaited()
    context.queue.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_wraps_persister_errors(context, message, known_site):
    context.data_access.add_audit.side_effect = ConnectionError("db down")
    audit = AuditBuilder().with_url_resolver(noop_url_resolver).with_runner(dummy_runner).build()

    with pytest.raises(AuditFailedError, match="Reason: db down"):
        await audit.run(message, context)
    context.queue.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_skips_when_audit_is_disabled(context, message, known_site, org, configuration):
    configuration.disable_handler_for_site("dummy", known_site)
    configuration.disable_handler_for_org("dummy", org)
    runner = AsyncMock(return_value=AuditRunResult(full_audit_ref=FULL_AUDIT_REF))
    url_resolver = AsyncMock(return_value="space.cat")

    audit = AuditBuilder().with_url_resolver(url_resolver).with_runner(runner).build()
    resp = await audit.run(message, context)

    assert resp.status == 200
    context.log.warning.assert_called_once_with("dummy audits disabled for site site-id, skipping...")
    url_resolver.assert_not_awaited()
    runner.assert_not_awaited()
    context.data_access.add_audit.assert_not_awaited()
    context.queue.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_skips_when_audit_is_disabled_for_org_only(context, message, known_site, org, configuration):
    configuration.disable_handler_for_org("dummy", org)

    audit = AuditBuilder().with_url_resolver(noop_url_resolver).with_runner(dummy_runner).build()
    resp = await audit.run(message, context)

    assert resp.status == 200
    context.log.warning.assert_called_once_with("dummy audits disabled for site site-id, skipping...")
    context.data_access.add_audit.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_persists_publishes_and_post_processes(context, message, known_site, frozen_time):
    calls = []

    async def first(final_url, audit_record):
        calls.append(("first", final_url, audit_record))

    def second(final_url, audit_record):
        calls.append(("second", final_url, audit_record))
        return "ignored"

    audit = (
        AuditBuilder()
        .with_site_provider(default_site_provider)
        .with_url_resolver(default_url_resolver)
        .with_runner(dummy_runner)
        .with_persister(default_persister)
        .with_message_sender(default_message_sender)
        .with_post_processors([first, second])
        .build()
    )

    with respx.mock:
        respx.get("https://space.cat/").respond(200)
        resp = await audit.run(message, context)

    assert resp.status == 200

    record = expected_record(known_site)
    context.data_access.add_audit.assert_awaited_once_with(record)
    assert record.model_dump(by_alias=True) == {
        "siteId": known_site.id,
        "isLive": False,
        "auditedAt": "2023-03-12T15:24:51.231Z",
        "auditType": "dummy",
        "auditResult": {"metric": 42},
        "fullAuditRef": FULL_AUDIT_REF,
    }

    context.queue.send_message.assert_awaited_once_with(
        QUEUE_URL,
        AuditResultMessage(
            type="dummy",
            url="https://space.cat",
            audit_context={"someField": 431, "finalUrl": "space.cat", "fullAuditRef": FULL_AUDIT_REF},
            audit_result={"metric": 42},
        ),
    )

    assert calls == [("first", "space.cat", record), ("second", "space.cat", record)]


@pytest.mark.asyncio
async def test_run_with_site_id_matches_url_message(context, known_site, frozen_time):
    audit = AuditBuilder().with_url_resolver(default_url_resolver).with_runner(dummy_runner).build()

    with respx.mock:
        respx.get("https://space.cat/").respond(200)
        resp = await audit.run({"siteId": "site-id", "type": "dummy"}, context)

    assert resp.status == 200
    context.data_access.add_audit.assert_awaited_once_with(expected_record(known_site))
    context.queue.send_message.assert_awaited_once_with(
        QUEUE_URL,
        AuditResultMessage(
            type="dummy",
            url="https://space.cat",
            audit_context={"finalUrl": "space.cat", "fullAuditRef": FULL_AUDIT_REF},
            audit_result={"metric": 42},
        ),
    )


@pytest.mark.asyncio
async def test_post_processor_failure_propagates_unwrapped(context, message, known_site):
    second = AsyncMock()

    async def first(final_url, audit_record):
        raise RuntimeError("slack is down")

    audit = (
        AuditBuilder()
        .with_url_resolver(noop_url_resolver)
        .with_runner(dummy_runner)
        .with_post_processors([first, second])
        .build()
    )

    with pytest.raises(RuntimeError, match="slack is down"):
        await audit.run(message, context)

    context.data_access.add_audit.assert_awaited_once()
    context.queue.send_message.assert_awaited_once()
    second.assert_not_awaited()


@pytest.mark.asyncio
async def test_runner_extra_parameters_keep_their_defaults(context, message, known_site):
    seen = {}

    async def runner(url, context, strategy="mobile"):
        seen["url"] = url
        seen["strategy"] = strategy
        return AuditRunResult(audit_result={"ok": True}, full_audit_ref="ref")

    audit = AuditBuilder().with_url_resolver(noop_url_resolver).with_runner(runner).build()
    await audit.run(message, context)

    assert seen == {"url": BASE_URL, "strategy": "mobile"}


@pytest.mark.asyncio
async def test_runner_is_called_with_url_and_context_only(context, message, known_site):
    runner = AsyncMock(return_value=AuditRunResult(full_audit_ref="ref"))

    audit = AuditBuilder().with_url_resolver(noop_url_resolver).with_runner(runner).build()
    await audit.run(message, context)

    runner.assert_awaited_once_with(BASE_URL, context)
