"""
Request tracing for shop-floor clients.

The intake desk or bench terminal sends an X-Correlation-ID that stays the
same across its requests; every request also gets its own request id. While
a repair ticket is being worked on, service intake binds its ticket number
so log lines for one job can be grepped together.

Log records gain ``correlation_id``, ``request_id`` and ``ticket`` attributes.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
ticket_ctx: ContextVar[str] = ContextVar("ticket_number", default="")


def _short_id() -> str:
    return uuid.uuid4().hex[:12]


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind the caller's correlation id and a fresh request id, and echo both."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or _short_id()
        request_id = _short_id()
        correlation_id_ctx.set(correlation_id)
        request_id_ctx.set(request_id)
        ticket_ctx.set("")

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Request-ID"] = request_id
        return response


def get_request_id() -> str:
    return request_id_ctx.get() or "unknown"


def bind_ticket(ticket_number: str) -> None:
    """Tag the rest of this request's log lines with a ticket number."""
    ticket_ctx.set(ticket_number or "")


def get_ticket_number() -> str:
    return ticket_ctx.get()


class CorrelationLogFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get() or "-"
        record.request_id = get_request_id()
        record.ticket = ticket_ctx.get() or "-"
        return True
