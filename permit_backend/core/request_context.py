import logging
import uuid
from contextvars import ContextVar, Token
from typing import Optional, Tuple

from fastapi import Request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_ID_HEADER = "X-Correlation-ID"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def assign_request_id(request: Request) -> Tuple[str, Token]:
    request_id = request.headers.get(REQUEST_ID_HEADER) or request.headers.get(CORRELATION_ID_HEADER)
    if not request_id:
        request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id, _request_id.set(request_id)


def release_request_id(token: Token) -> None:
    _request_id.reset(token)


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def current_request_id() -> Optional[str]:
    return _request_id.get()


class RequestIdFilter(logging.Filter):
    """Stamp each record with the id of the request being served, or ``-``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True
