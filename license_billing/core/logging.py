"""
Logging Configuration and Utilities

Structured logging for the billing engine. structlog events and standard
library records share the same billing context (license, owner, payment
reference) bound with ``billing_context`` and the same credential
redaction, and are rendered by python-json-logger in JSON mode.
"""

import sys
import time
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from decimal import Decimal
from functools import wraps
from typing import Any, Dict, Iterator, Mapping, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import settings
from .exceptions import BaseAppException

SERVICE_NAME = 'license-billing'

# Billing identifiers attached to every record emitted inside ``billing_context``
_billing_context: ContextVar[Mapping[str, Any]] = ContextVar('billing_context', default={})

SENSITIVE_KEYS = (
    'password', 'token', 'secret', 'authorization',
    'card_number', 'cvv', 'iban', 'account_number', 'tax_number',
)
REDACTED = '[REDACTED]'

# Attributes every LogRecord has; anything else arrived through ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord('', 0, '', 0, '', (), None))) | {'message', 'asctime'}


@contextmanager
def billing_context(**values: Any) -> Iterator[Mapping[str, Any]]:
    """
    Bind billing identifiers for the duration of a block.

    Nested blocks extend the outer context; ``None`` values are skipped.

    Usage:
        with billing_context(global_license_id=7):
            service.generate_cycle(request)
    """
    merged = dict(_billing_context.get())
    merged.update({key: value for key, value in values.items() if value is not None})
    token = _billing_context.set(merged)
    try:
        yield merged
    finally:
        _billing_context.reset(token)


def current_billing_context() -> Dict[str, Any]:
    return dict(_billing_context.get())


def is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(sensitive in lowered for sensitive in SENSITIVE_KEYS)


def redact(values: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``values`` with credential-like keys masked, recursively."""
    cleaned = {}
    for key, value in values.items():
        if is_sensitive(key):
            cleaned[key] = REDACTED
        elif isinstance(value, dict):
            cleaned[key] = redact(value)
        else:
            cleaned[key] = value
    return cleaned


def add_billing_context(logger, method_name, event_dict):
    """structlog processor: service, environment and bound billing identifiers"""
    for key, value in _billing_context.get().items():
        event_dict.setdefault(key, value)
    event_dict['service'] = SERVICE_NAME
    event_dict['environment'] = settings.ENVIRONMENT
    return event_dict


def redact_event(logger, method_name, event_dict):
    return redact(event_dict)


class BillingContextFilter(logging.Filter):
    """Stamp standard library records with the bound billing context"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _billing_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        record.service = SERVICE_NAME
        record.environment = settings.ENVIRONMENT
        return True


class RedactingFilter(logging.Filter):
    """Mask credential-like ``extra`` fields on standard library records"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in list(vars(record)):
            if key in _RECORD_ATTRIBUTES:
                continue
            value = getattr(record, key)
            if is_sensitive(key):
                setattr(record, key, REDACTED)
            elif isinstance(value, dict):
                setattr(record, key, redact(value))
        return True


class BillingJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter; decimals keep their exact string form"""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('json_default', self._default)
        super().__init__(*args, **kwargs)

    @staticmethod
    def _default(value: Any) -> Any:
        if isinstance(value, Decimal):
            return str(value)
        if hasattr(value, 'isoformat'):
            return value.isoformat()
        if hasattr(value, 'value'):
            return value.value
        return str(value)

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['level'] = record.levelname
        log_record['logger'] = record.name

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


class LoggingConfig:
    """Centralized logging configuration"""

    @staticmethod
    def configure_structured_logging():
        processors = [
            add_billing_context,
            redact_event,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt='iso', utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        ]

        if settings.logging.ENABLE_STRUCTURED_LOGGING and settings.logging.LOG_FORMAT == "json":
            processors.append(structlog.processors.JSONRenderer(default=BillingJsonFormatter._default))
        else:
            processors.append(structlog.processors.KeyValueRenderer(key_order=['event', 'level']))

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

    @staticmethod
    def configure_standard_logging():
        level = getattr(logging, settings.logging.LOG_LEVEL)
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.addFilter(BillingContextFilter())
        handler.addFilter(RedactingFilter())

        if settings.logging.LOG_FORMAT == "json":
            handler.setFormatter(BillingJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
        else:
            handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

        package_logger = logging.getLogger('license_billing')
        package_logger.setLevel(level)
        package_logger.handlers.clear()
        package_logger.addHandler(handler)
        package_logger.propagate = False

        logging.getLogger("sqlalchemy.engine").setLevel(
            logging.INFO if settings.logging.LOG_SQL_QUERIES else logging.WARNING
        )
        logging.getLogger("redis").setLevel(logging.WARNING)


class LoggerAdapter:
    """Logger carrying a fixed set of ``extra`` fields"""

    def __init__(self, logger: logging.Logger, context: Optional[Mapping[str, Any]] = None):
        self.logger = logger
        self._context = dict(context or {})

    def bind(self, **kwargs) -> "LoggerAdapter":
        """New adapter whose records also carry ``kwargs``"""
        return LoggerAdapter(self.logger, {**self._context, **kwargs})

    def _log(self, level: int, message: str, *args, **kwargs):
        extra = dict(self._context)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        self.logger.log(level, message, *args, **kwargs)

    def debug(self, message: str, *args, **kwargs):
        self._log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        self._log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        self._log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        self._log(logging.ERROR, message, *args, **kwargs)


def _package_name(name: Optional[str]) -> str:
    # names outside the package (class names, for instance) are nested
    # under it so they reach the configured handler
    if not name:
        return 'license_billing'
    if not name.startswith('license_billing'):
        return f'license_billing.{name}'
    return name


def get_logger(name: Optional[str] = None) -> LoggerAdapter:
    """Logger under the ``license_billing`` namespace."""
    return LoggerAdapter(logging.getLogger(_package_name(name)))


def get_event_logger(name: Optional[str] = None):
    """
    structlog logger for operation events.

    Events pass the billing context and redaction processors before being
    rendered onto the same ``license_billing`` handler.
    """
    return structlog.get_logger(_package_name(name))


def log_execution_time(logger_name: Optional[str] = None):
    """
    Decorator logging the duration of a service entry point.

    Failures are logged with their type and re-raised; rejections raised
    as application exceptions are left to the service layer.
    """
    def decorator(func):
        logger = get_logger(logger_name or func.__module__)

        @wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except BaseAppException:
                raise
            except Exception as e:
                logger.error("Function execution failed", extra={
                    'function': func.__qualname__,
                    'duration_ms': round((time.perf_counter() - started) * 1000, 3),
                    'error_type': type(e).__name__,
                }, exc_info=True)
                raise

            logger.debug("Function executed", extra={
                'function': func.__qualname__,
                'duration_ms': round((time.perf_counter() - started) * 1000, 3),
            })
            return result

        return wrapper

    return decorator


def setup_logging():
    """Initialize logging configuration"""
    LoggingConfig.configure_structured_logging()
    LoggingConfig.configure_standard_logging()

    get_logger(__name__).debug("Logging system initialized", extra={
        'log_level': settings.logging.LOG_LEVEL,
        'log_format': settings.logging.LOG_FORMAT,
    })


# Initialize logging when module is imported
setup_logging()

__all__ = [
    'get_logger',
    'get_event_logger',
    'setup_logging',
    'log_execution_time',
    'billing_context',
    'current_billing_context',
    'redact',
    'LoggerAdapter',
    'LoggingConfig',
]
