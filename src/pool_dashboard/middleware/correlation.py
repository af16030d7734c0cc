import logging
from contextvars import ContextVar
from uuid import uuid4

from fastapi import Request

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

_LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(isinstance(f, CorrelationIdFilter) for h in root.handlers for f in h.filters):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())
    root.addHandler(handler)
    root.setLevel(level.upper())


def resolve_correlation_id(request: Request) -> str:
    incoming = request.headers.get("X-Correlation-Id")
    return incoming if incoming else f"corr_{uuid4().hex[:12]}"


def propagation_headers(correlation_id: str) -> dict[str, str]:
    if not correlation_id:
        return {}
    return {"X-Correlation-Id": correlation_id}


async def correlation_middleware(request: Request, call_next):
    correlation_id = resolve_correlation_id(request)
    token = correlation_id_var.set(correlation_id)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)
    response.headers["X-Correlation-Id"] = correlation_id
    return response
