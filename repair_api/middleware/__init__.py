"""
Middleware for the repair shop API.

- Correlation and request ids for every request
- Ticket-tagged log records
"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    bind_ticket,
    get_ticket_number,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "bind_ticket",
    "get_ticket_number",
]
