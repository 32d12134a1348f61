import logging
from dataclasses import dataclass, field
from typing import Any

from config.logging_config import get_logger
from services.audit_worker.config import Settings, settings as default_settings


@dataclass
class AuditContext:
    """Per-invocation collaborators handed to every pipeline stage."""

    data_access: Any
    queue: Any
    settings: Settings = field(default_factory=lambda: default_settings)
    log: logging.Logger | logging.LoggerAdapter = field(default_factory=lambda: get_logger("services.audit_worker"))
