from datetime import UTC, datetime

from fastapi.responses import JSONResponse

from pool_dashboard.contracts.proxy import ProxyEnvelope


def error_response(status_code: int, message: str) -> JSONResponse:
    envelope = ProxyEnvelope(success=False, error=message, timestamp=datetime.now(UTC).isoformat())
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))
