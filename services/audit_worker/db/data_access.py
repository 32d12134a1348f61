from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.logging_config import get_logger
from services.audit_worker.db.models import AuditRow, ConfigurationRow, OrganizationRow, SiteRow
from services.audit_worker.db.session import get_sessionmaker
from services.audit_worker.schemas.audit import AuditRecord
from services.audit_worker.schemas.entities import Configuration, Organization, Site

logger = get_logger(__name__)


def site_from_row(row: SiteRow) -> Site:
    return Site(id=row.id, base_url=row.base_url, organization_id=row.organization_id, is_live=row.is_live)


def organization_from_row(row: OrganizationRow) -> Organization:
    return Organization(id=row.id, name=row.name)


def audit_row_from_record(record: AuditRecord) -> AuditRow:
    return AuditRow(
        site_id=record.site_id,
        audit_type=record.audit_type,
        audited_at=record.audited_at,
        is_live=record.is_live,
        audit_result=record.audit_result,
        full_audit_ref=record.full_audit_ref,
    )


class SqlDataAccess:
    """Site, organization, configuration and audit storage on SQLAlchemy asyncio.

    Lookups return ``None`` for unknown ids; deciding whether that is an error
    is up to the caller.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession] | None = None):
        self._sessionmaker = sessionmaker or get_sessionmaker()

    async def get_site_by_id(self, site_id: str) -> Site | None:
        async with self._sessionmaker() as session:
            row = await session.get(SiteRow, site_id)
            return site_from_row(row) if row is not None else None

    async def get_organization_by_id(self, org_id: str) -> Organization | None:
        async with self._sessionmaker() as session:
            row = await session.get(OrganizationRow, org_id)
            return organization_from_row(row) if row is not None else None

    async def get_configuration(self) -> Configuration:
        async with self._sessionmaker() as session:
            res = await session.execute(select(ConfigurationRow).order_by(ConfigurationRow.version.desc()).limit(1))
            row = res.scalar_one_or_none()
            if row is None:
                logger.warning("No configuration stored, every audit type is disabled")
                return Configuration()
            return Configuration.model_validate(row.data)

    async def add_configuration(self, configuration: Configuration) -> int:
        async with self._sessionmaker() as session:
            row = ConfigurationRow(
                data=configuration.model_dump(mode="json", by_alias=True),
                created_at=datetime.now(timezone.utc),
            )
            session.add(row)
            await session.commit()
            return row.version

    async def add_audit(self, record: AuditRecord) -> None:
        async with self._sessionmaker() as session:
            session.add(audit_row_from_record(record))
            await session.commit()
