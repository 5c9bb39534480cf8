"""
Correlation-aware Logging

Every log line written while serving a request can carry two correlation
values, both held in contextvars so concurrent requests never mix them up:

    request_id  set by the HTTP middleware (X-Request-ID or a generated id)
    infohash    set while a release is being resolved on the debrid provider

With LOG_FORMAT=json the root handler emits one JSON object per line that
includes these values; the text format leaves them out.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Optional, Dict, Any

_request_id: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
_infohash: ContextVar[Optional[str]] = ContextVar('infohash', default=None)

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_request_id() -> Optional[str]:
    return _request_id.get()


def set_request_id(request_id: Optional[str]) -> None:
    _request_id.set(request_id)


def get_infohash() -> Optional[str]:
    """Infohash of the release currently being resolved, if any."""
    return _infohash.get()


def clear_context() -> None:
    _request_id.set(None)
    _infohash.set(None)


def generate_request_id() -> str:
    """Short random id for requests that arrive without X-Request-ID."""
    return uuid.uuid4().hex[:8]


class CorrelationContext:
    """
    Scope correlation values to a block.

    Values left as None keep whatever the enclosing scope set. Leaving the
    block restores the previous values.

    Usage:
        with CorrelationContext(infohash=infohash):
            logger.info("polling provider")
    """

    def __init__(self, request_id: Optional[str] = None, infohash: Optional[str] = None):
        self.request_id = request_id
        self.infohash = infohash
        self._tokens = []

    def __enter__(self) -> 'CorrelationContext':
        if self.request_id:
            self._tokens.append((_request_id, _request_id.set(self.request_id)))
        if self.infohash:
            self._tokens.append((_infohash, _infohash.set(self.infohash)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)
        return False


class JSONLogFormatter(logging.Formatter):
    """One JSON object per record, with the active correlation values."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for key, value in (("request_id", get_request_id()), ("infohash", get_infohash())):
            if value:
                entry[key] = value

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


def setup_json_logging(
    logger_name: Optional[str] = None,
    level: int = logging.INFO,
    json_output: bool = True
) -> logging.Handler:
    """
    Attach a stream handler to a logger (the root logger by default).

    Args:
        logger_name: Logger name, None for the root logger
        level: Minimum level of the handler and the logger
        json_output: JSON lines (True) or the plain text format (False)

    Returns:
        The attached handler
    """
    target = logging.getLogger(logger_name)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JSONLogFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    target.addHandler(handler)
    target.setLevel(level)
    return handler
