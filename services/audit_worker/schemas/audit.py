import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel


class AuditMessage(BaseModel):
    """Incoming audit job.

    ``url`` historically carries a site id as often as a real URL, so it is
    treated as an opaque site key. ``site_id`` wins when both are present.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    type: str
    url: str | None = None
    site_id: str | None = None
    audit_context: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_site_key(self) -> "AuditMessage":
        if self.site_id is None and self.url is None:
            raise ValueError("either siteId or url must be set")
        return self

    @property
    def site_key(self) -> str:
        return self.site_id if self.site_id is not None else self.url


class AuditRunResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    audit_result: Any = None
    full_audit_ref: str


class AuditRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)

    site_id: str
    is_live: bool
    audited_at: datetime
    audit_type: str
    audit_result: Any = None
    full_audit_ref: str

    @field_serializer("audited_at")
    def _serialize_audited_at(self, value: datetime) -> str:
        return format_timestamp(value)


class AuditResultMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    type: str
    url: str
    audit_context: dict[str, Any]
    audit_result: Any = None

    def to_bytes(self) -> bytes:
        return json.dumps(self.model_dump(mode="json", by_alias=True), ensure_ascii=False).encode("utf-8")


class AuditResponse(BaseModel):
    status: int = 200
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""

    @classmethod
    def ok(cls) -> "AuditResponse":
        return cls(status=200)

    @classmethod
    def error(cls, status: int, reason: str = "internal server error") -> "AuditResponse":
        return cls(status=status, headers={"x-error": reason})


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
