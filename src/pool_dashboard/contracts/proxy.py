from typing import Any

from pydantic import BaseModel


class ProxyEnvelope(BaseModel):
    """Uniform response shape for every logical endpoint and every domain error."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    timestamp: str | None = None


class ProblemDetails(BaseModel):
    """RFC 7807 body for failures that escape every domain handler."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    instance: str
    correlation_id: str = ""
    error_code: str = "INTERNAL_ERROR"
