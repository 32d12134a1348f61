# logging_config.py

import os
import re
import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from pythonjsonlogger import jsonlogger

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

PLAIN_FORMAT = '[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
JSON_FORMAT = '%(timestamp)s %(level)s %(name)s %(message)s'


class SensitiveDataFilter(logging.Filter):

    SENSITIVE_KEYS = [
        'password', 'token', 'api_key', 'secret', 'authorization',
        'access_token', 'credentials', 'bearer', 'amqp://', 'key=',
    ]

    PATTERNS = [
        (re.compile(r'(api[_-]?key\s*[=:]\s*)[^\s&]+', re.I), r'\1***MASKED***'),
        (re.compile(r'(\bkey\s*=\s*)[^\s&]+', re.I), r'\1***MASKED***'),
        (re.compile(r'(token\s*[=:]\s*)[^\s&]+', re.I), r'\1***MASKED***'),
        (re.compile(r'(password\s*[=:]\s*)[^\s&]+', re.I), r'\1***MASKED***'),
        (re.compile(r'(Bearer\s+)[^\s]+'), r'\1***MASKED***'),
        (re.compile(r'(amqps?://[^:/\s]+:)[^@\s]+(@)'), r'\1***MASKED***\2'),
        (re.compile(r'(postgresql(?:\+\w+)?://[^:/\s]+:)[^@\s]+(@)'), r'\1***MASKED***\2'),
    ]

    def filter(self, record):
        msg = str(record.msg)
        lowered = msg.lower()
        if any(key in lowered for key in self.SENSITIVE_KEYS):
            record.msg = self.mask(msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.mask(arg) if isinstance(arg, str) else arg for arg in record.args
            )

        return True

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text


class CustomJsonFormatter(jsonlogger.JsonFormatter):

    EXTRA_FIELDS = ('site_id', 'audit_type', 'queue_url', 'duration_seconds', 'status_code')

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        if hasattr(record, 'service_name'):
            log_record['service'] = record.service_name

        for field in self.EXTRA_FIELDS:
            if hasattr(record, field):
                log_record[field] = getattr(record, field)

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


def _build_formatter() -> logging.Formatter:
    if ENVIRONMENT == "production":
        return CustomJsonFormatter(JSON_FORMAT)
    return logging.Formatter(PLAIN_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')


def setup_logging(service_name: str = "audit_worker", log_dir: Optional[str] = LOG_DIR) -> logging.Logger:
    logger = logging.getLogger()
    logger.setLevel(LOG_LEVEL)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()
    formatter = _build_formatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            path / f"{service_name}.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        file_handler.setLevel(LOG_LEVEL)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            path / f"{service_name}_error.log",
            maxBytes=50 * 1024 * 1024,
            backupCount=10,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(sensitive_filter)
        logger.addHandler(error_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return logger


def get_logger(name, service_name=None):
    logger = logging.getLogger(name)

    if service_name:
        logger = logging.LoggerAdapter(logger, {'service_name': service_name})

    return logger
