"""
Logging helpers for collection stores.

Library code logs through ``logging.getLogger(__name__)`` and never installs
handlers. Applications that want one JSON object per line call
:func:`configure_structured_logging`; the formatter masks bearer tokens so a
debug log of request headers or config never leaks the repository credential.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Mapping, MutableMapping
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .collection import Collection

MASK = "***"

SECRET_FIELDS = frozenset({"auth_token", "authorization", "token", "password"})

_BEARER = re.compile(r"\bBearer\s+[^\s\"',]+", re.IGNORECASE)

# LogRecord attributes that are not caller-supplied context
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def mask_secrets(value: Any) -> Any:
    """Return ``value`` with credential fields and bearer tokens masked.

    Mappings are masked by key (case-insensitive), strings by pattern.
    Lists and tuples are masked element-wise.
    """
    if isinstance(value, str):
        return _BEARER.sub(f"Bearer {MASK}", value)
    if isinstance(value, Mapping):
        return {
            key: MASK if str(key).lower() in SECRET_FIELDS else mask_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [mask_secrets(item) for item in value]
    return value


class StructuredJsonFormatter(logging.Formatter):
    """
    Render records as single-line JSON with credentials masked.

    Output keys are ``timestamp`` (UTC, ISO 8601), ``level``, ``logger`` and
    ``message``, followed by any ``extra`` context such as ``collection``,
    ``path``, ``version`` and ``state``. Values that JSON cannot represent
    are rendered with ``str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": mask_secrets(record.getMessage()),
        }
        if record.exc_info:
            entry["exception"] = mask_secrets(self.formatException(record.exc_info))

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            entry[key] = MASK if key.lower() in SECRET_FIELDS else mask_secrets(value)

        return json.dumps(entry, default=str, ensure_ascii=False)


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = "gh_collections",
    stream=None,
) -> logging.Logger:
    """
    Send ``logger_name`` records to ``stream`` as structured JSON.

    Calling it again replaces the handler installed by a previous call
    instead of adding a second one.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure; None configures the root logger
        stream: Output stream (default: stdout)

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, StructuredJsonFormatter):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class CollectionLoggerAdapter(logging.LoggerAdapter):
    """Attach the live state of a collection to every record.

    ``version`` and ``state`` are read when the record is emitted, so a
    message logged after a failed write shows the collection as stale.
    """

    def __init__(self, logger: logging.Logger, collection: Collection[Any]):
        super().__init__(logger, {})
        self.collection = collection

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        context = {
            "collection": self.collection.name,
            "path": self.collection.path,
            "version": self.collection.version,
            "state": self.collection.state.value,
        }
        context.update(kwargs.get("extra") or {})
        kwargs["extra"] = context
        return msg, kwargs
