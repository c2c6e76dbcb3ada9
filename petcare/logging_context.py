"""Per-conversation logging context.

Attaches the phone number of the conversation being processed to every
log record, so interleaved conversations can be told apart in the logs.

Usage:
    from petcare.logging_context import get_chat_logger, set_phone

    set_phone("5511999990000")
    logger = get_chat_logger(__name__)
    logger.info("Processing message")  # record.phone == "5511999990000"
"""

import logging
from contextvars import ContextVar

_phone: ContextVar[str] = ContextVar("phone", default="NO_PHONE")


def set_phone(phone: str) -> None:
    """Set the conversation phone for the current async context."""
    _phone.set(phone)


def get_phone() -> str:
    """Retrieve the conversation phone for the current async context."""
    return _phone.get()


class PhoneFilter(logging.Filter):
    """Injects phone into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.phone = get_phone()  # type: ignore[attr-defined]
        return True


def get_chat_logger(name: str) -> logging.Logger:
    """Return a logger with the PhoneFilter attached.

    The filter adds ``phone`` to each record so formatters can
    include ``%(phone)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, PhoneFilter) for f in logger.filters):
        logger.addFilter(PhoneFilter())
    return logger
