import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _new_id() -> str:
    return str(uuid.uuid4())


class Organization(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str = Field(default_factory=_new_id)
    name: str


class Site(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str = Field(default_factory=_new_id)
    base_url: str = Field(alias="baseURL")
    organization_id: str
    is_live: bool = False


class HandlerTargets(BaseModel):
    sites: list[str] = Field(default_factory=list)
    orgs: list[str] = Field(default_factory=list)


class HandlerConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    enabled_by_default: bool = False
    enabled: HandlerTargets = Field(default_factory=HandlerTargets)
    disabled: HandlerTargets = Field(default_factory=HandlerTargets)
    dependencies: list[Any] = Field(default_factory=list)


class Configuration(BaseModel):
    """Versioned set of per-audit-type enablement rules.

    Explicit ``disabled`` entries win over ``enabled`` entries, which win over
    ``enabled_by_default``. An audit type without a handler entry is disabled.
    """

    version: str = "1.0"
    handlers: dict[str, HandlerConfig] = Field(default_factory=dict)
    jobs: list[dict[str, Any]] = Field(default_factory=list)
    queues: dict[str, str] = Field(default_factory=dict)

    def is_handler_enabled_for_site(self, audit_type: str, site: Site) -> bool:
        handler = self.handlers.get(audit_type)
        if handler is None:
            return False

        if site.id in handler.disabled.sites or site.organization_id in handler.disabled.orgs:
            return False
        if site.id in handler.enabled.sites or site.organization_id in handler.enabled.orgs:
            return True
        return handler.enabled_by_default

    def is_handler_enabled_for_org(self, audit_type: str, org: Organization) -> bool:
        handler = self.handlers.get(audit_type)
        if handler is None:
            return False

        if org.id in handler.disabled.orgs:
            return False
        if org.id in handler.enabled.orgs:
            return True
        return handler.enabled_by_default

    def enable_handler_for_site(self, audit_type: str, site: Site) -> None:
        self._toggle(audit_type, "sites", site.id, enabled=True)

    def disable_handler_for_site(self, audit_type: str, site: Site) -> None:
        self._toggle(audit_type, "sites", site.id, enabled=False)

    def enable_handler_for_org(self, audit_type: str, org: Organization) -> None:
        self._toggle(audit_type, "orgs", org.id, enabled=True)

    def disable_handler_for_org(self, audit_type: str, org: Organization) -> None:
        self._toggle(audit_type, "orgs", org.id, enabled=False)

    def _toggle(self, audit_type: str, kind: str, entity_id: str, enabled: bool) -> None:
        handler = self.handlers.setdefault(audit_type, HandlerConfig())
        add_to, remove_from = (handler.enabled, handler.disabled) if enabled else (handler.disabled, handler.enabled)

        setattr(remove_from, kind, [i for i in getattr(remove_from, kind) if i != entity_id])
        if entity_id not in getattr(add_to, kind):
            getattr(add_to, kind).append(entity_id)
