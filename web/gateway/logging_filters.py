"""Logging filter stamping log records with the current request id.

Wired in ``config.settings.LOGGING`` on the console handler so the JSON
formatter can always reference ``%(request_id)s``.
"""

from logging import Filter, LogRecord
from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    """Attach ``request_id`` from ``REQUEST_ID_CTX`` ("-" outside a request)."""

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
