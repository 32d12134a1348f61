from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.audit_worker.common import audit as audit_module
from services.audit_worker.config import Settings
from services.audit_worker.context import AuditContext
from services.audit_worker.schemas.entities import Configuration, Organization, Site

BASE_URL = "https://space.cat"
QUEUE_URL = "some-queue-url"
MOCK_DATE = datetime(2023, 3, 12, 15, 24, 51, 231000, tzinfo=timezone.utc)


@pytest.fixture
def message():
    return {
        "type": "dummy",
        "url": "site-id",
        "auditContext": {"someField": 431},
    }


@pytest.fixture
def org():
    return Organization(name="some-org")


@pytest.fixture
def site(org):
    return Site(base_url=BASE_URL, organization_id=org.id)


@pytest.fixture
def configuration(site, org):
    return Configuration.model_validate({
        "version": "1.0",
        "queues": {},
        "handlers": {
            "dummy": {
                "enabled": {
                    "sites": ["site-id", "space.cat", site.id],
                    "orgs": ["some-org", "org2", org.id],
                },
                "enabledByDefault": False,
                "dependencies": [],
            },
        },
        "jobs": [],
    })


@pytest.fixture
def context():
    data_access = MagicMock()
    data_access.get_site_by_id = AsyncMock(return_value=None)
    data_access.get_organization_by_id = AsyncMock(return_value=None)
    data_access.get_configuration = AsyncMock(return_value=Configuration())
    data_access.add_audit = AsyncMock(return_value=None)

    queue = MagicMock()
    queue.send_message = AsyncMock(return_value=None)

    return AuditContext(
        data_access=data_access,
        queue=queue,
        settings=Settings(results_queue_url=QUEUE_URL),
        log=MagicMock(),
    )


@pytest.fixture
def known_site(context, site, org, configuration):
    context.data_access.get_site_by_id.side_effect = lambda site_id: site if site_id == "site-id" else None
    context.data_access.get_organization_by_id.side_effect = lambda org_id: org if org_id == org.id else None
    context.data_access.get_configuration.return_value = configuration
    return site


@pytest.fixture
def frozen_time(monkeypatch):
    monkeypatch.setattr(audit_module, "utcnow", lambda: MOCK_DATE)
    return MOCK_DATE
