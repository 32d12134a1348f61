from typing import Callable, Sequence

from services.audit_worker.common.audit import (
    Audit,
    accepts_positional,
    default_message_sender,
    default_org_provider,
    default_persister,
    default_site_provider,
    default_url_resolver,
)
from services.audit_worker.errors import AuditValidationError

_SIGNATURES = {
    "site_provider": (2, "(site_id, context)"),
    "org_provider": (2, "(org_id, context)"),
    "url_resolver": (1, "(site)"),
    "persister": (2, "(audit_record, context)"),
    "message_sender": (2, "(message, context)"),
    "runner": (2, "(url, context)"),
    "post_processor": (2, "(final_url, audit_record)"),
}


def _check_function(slot: str, fn: Callable) -> None:
    arity, params = _SIGNATURES[slot]
    if not callable(fn):
        raise AuditValidationError(f'"{slot}" must be a function')
    if not accepts_positional(fn, arity):
        raise AuditValidationError(f'"{slot}" must be a function accepting {params}')


class AuditBuilder:
    """Collects pipeline overrides and validates them in ``build``.

    Only the runner is mandatory; every other slot falls back to its default
    implementation.
    """

    def __init__(self):
        self._site_provider = None
        self._org_provider = None
        self._url_resolver = None
        self._persister = None
        self._message_sender = None
        self._runner = None
        self._post_processors = None

    def with_site_provider(self, site_provider: Callable) -> "AuditBuilder":
        self._site_provider = site_provider
        return self

    def with_org_provider(self, org_provider: Callable) -> "AuditBuilder":
        self._org_provider = org_provider
        return self

    def with_url_resolver(self, url_resolver: Callable) -> "AuditBuilder":
        self._url_resolver = url_resolver
        return self

    def with_persister(self, persister: Callable) -> "AuditBuilder":
        self._persister = persister
        return self

    def with_message_sender(self, message_sender: Callable) -> "AuditBuilder":
        self._message_sender = message_sender
        return self

    def with_runner(self, runner: Callable) -> "AuditBuilder":
        self._runner = runner
        return self

    def with_post_processors(self, post_processors: Sequence[Callable]) -> "AuditBuilder":
        self._post_processors = post_processors
        return self

    def build(self) -> Audit:
        if self._runner is None:
            raise AuditValidationError('"runner" must be a function')

        slots = {
            "site_provider": default_site_provider if self._site_provider is None else self._site_provider,
            "org_provider": default_org_provider if self._org_provider is None else self._org_provider,
            "url_resolver": default_url_resolver if self._url_resolver is None else self._url_resolver,
            "persister": default_persister if self._persister is None else self._persister,
            "message_sender": default_message_sender if self._message_sender is None else self._message_sender,
            "runner": self._runner,
        }
        for slot, fn in slots.items():
            _check_function(slot, fn)

        post_processors = self._post_processors if self._post_processors is not None else ()
        if not isinstance(post_processors, (list, tuple)):
            raise AuditValidationError('"post_processors" must be a list of functions')
        for post_processor in post_processors:
            _check_function("post_processor", post_processor)

        return Audit(post_processors=tuple(post_processors), **slots)
